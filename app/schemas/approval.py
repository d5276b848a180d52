"""
Approval workflow schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_serializer
from app.models.leave import ApprovalStepStatus
from app.utils.datetime_utils import iso_8601_utc


class ApprovalDecision(BaseModel):
    """Decision on one approval step"""
    approved: bool = Field(..., description="True to approve, False to reject")
    comment: Optional[str] = Field(None, max_length=500, description="Approver comment")


class ApprovalStepOut(BaseModel):
    id: int
    leave_request_id: int
    approver_id: int
    step_order: int
    status: ApprovalStepStatus
    comment: Optional[str] = None
    action_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("action_at", when_used="always")
    def _ser_action_at(self, dt):
        return iso_8601_utc(dt)


class WorkflowInitiated(BaseModel):
    leave_request_id: int
    steps_created: int
