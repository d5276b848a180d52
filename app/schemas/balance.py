"""
Leave balance schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_serializer
from app.models.leave import LeaveTransactionAction
from app.utils.datetime_utils import iso_8601_utc


class LeaveBalanceOut(BaseModel):
    id: int
    employee_id: int
    leave_type_id: int
    year: int
    total: float
    used: float
    remaining: float

    model_config = ConfigDict(from_attributes=True)


class BalanceAdjustRequest(BaseModel):
    """Administrative override of a bucket's total"""
    employee_id: int
    leave_type_id: int
    year: int = Field(..., ge=2000, le=2100)
    new_total: float = Field(..., ge=0, description="New total days for the bucket")
    remarks: Optional[str] = Field(None, max_length=500)


class LeaveTransactionOut(BaseModel):
    id: int
    employee_id: int
    leave_type_id: int
    leave_request_id: Optional[int] = None
    year: int
    delta_days: float
    action: LeaveTransactionAction
    remarks: Optional[str] = None
    action_by_id: Optional[int] = None
    action_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("action_at", when_used="always")
    def _ser_action_at(self, dt):
        return iso_8601_utc(dt)
