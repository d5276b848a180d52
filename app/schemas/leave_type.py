"""
Leave type schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_serializer
from app.utils.datetime_utils import iso_8601_utc


class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Leave type name (unique)")
    description: Optional[str] = Field(None, max_length=500)
    default_days: int = Field(..., ge=0, le=366, description="Yearly entitlement for new balances")
    active: bool = True


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    default_days: Optional[int] = Field(None, ge=0, le=366)
    active: Optional[bool] = None


class LeaveTypeOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    default_days: int
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    def _ser_datetime(self, dt):
        return iso_8601_utc(dt)
