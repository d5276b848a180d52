"""
Database models
"""
from app.models.employee import Employee, Role
from app.models.audit_log import AuditLog
from app.models.notification import Notification
from app.models.leave import (
    LeaveType,
    LeaveRequest,
    ApprovalStep,
    LeaveBalance,
    LeaveTransaction,
    LeaveCarryForward,
    LeaveStatus,
    ApprovalStepStatus,
    WorkflowState,
    LeaveTransactionAction,
    LEAVE_STATUS_TRANSITIONS,
    ACTIVE_LEAVE_STATUSES,
)

__all__ = [
    "Employee",
    "Role",
    "AuditLog",
    "Notification",
    "LeaveType",
    "LeaveRequest",
    "ApprovalStep",
    "LeaveBalance",
    "LeaveTransaction",
    "LeaveCarryForward",
    "LeaveStatus",
    "ApprovalStepStatus",
    "WorkflowState",
    "LeaveTransactionAction",
    "LEAVE_STATUS_TRANSITIONS",
    "ACTIVE_LEAVE_STATUSES",
]
