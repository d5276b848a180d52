"""
Leave request schemas
"""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator, field_serializer
from app.models.leave import LeaveStatus, WorkflowState
from app.schemas.approval import ApprovalStepOut
from app.utils.datetime_utils import iso_8601_utc


class LeaveApplyRequest(BaseModel):
    """Schema for applying for leave"""
    leave_type_id: int = Field(..., description="Leave type ID")
    start_date: date = Field(..., description="First day of leave (inclusive)")
    end_date: date = Field(..., description="Last day of leave (inclusive)")
    reason: Optional[str] = Field(None, max_length=1000, description="Reason for leave")

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must be less than or equal to end_date")
        return self


class LeaveUpdateRequest(BaseModel):
    """Schema for editing a pending leave request"""
    leave_type_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be less than or equal to end_date")
        return self


class LeaveRequestOut(BaseModel):
    """Schema for leave request output. Datetimes in UTC (Z)."""
    id: int
    employee_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    total_days: float
    reason: Optional[str] = None
    status: LeaveStatus
    approver_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    approver_comment: Optional[str] = None
    cancelled_by_id: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("approved_at", "cancelled_at", "created_at", "updated_at", when_used="always")
    def _ser_datetime(self, dt):
        return iso_8601_utc(dt)


class LeaveRequestDetail(LeaveRequestOut):
    """Leave request with its approval chain"""
    workflow_state: Optional[WorkflowState] = None
    steps: List[ApprovalStepOut] = []


class LeaveListResponse(BaseModel):
    items: List[LeaveRequestOut]
    total: int
