"""
Carry forward schemas
"""
from datetime import date
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator


class CarryForwardRequest(BaseModel):
    employee_id: int
    leave_type_id: int
    from_year: int = Field(..., ge=2000, le=2100)
    to_year: int = Field(..., ge=2000, le=2100)
    max_carry_forward_days: float = Field(..., ge=0)
    expiry_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_years(self):
        if self.to_year <= self.from_year:
            raise ValueError("to_year must be after from_year")
        return self


class YearEndRequest(BaseModel):
    from_year: int = Field(..., ge=2000, le=2100)
    to_year: int = Field(..., ge=2000, le=2100)

    @model_validator(mode="after")
    def validate_years(self):
        if self.to_year <= self.from_year:
            raise ValueError("to_year must be after from_year")
        return self


class CarryForwardOut(BaseModel):
    id: int
    employee_id: int
    leave_type_id: int
    from_year: int
    to_year: int
    carried_days: float
    max_carry_forward_days: float
    expiry_date: Optional[date] = None
    is_expired: bool

    model_config = ConfigDict(from_attributes=True)


class CarryForwardRunResult(BaseModel):
    processed: int
