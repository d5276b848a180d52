"""
Leave models
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    Numeric,
    Enum as SQLEnum,
    Boolean,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import text
import enum
from app.core.exceptions import InvalidStateError
from app.db.base import Base


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# Allowed request status transitions; APPROVED -> CANCELLED is the compensating cancellation
LEAVE_STATUS_TRANSITIONS = {
    LeaveStatus.PENDING: frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED}),
    LeaveStatus.APPROVED: frozenset({LeaveStatus.CANCELLED}),
    LeaveStatus.REJECTED: frozenset(),
    LeaveStatus.CANCELLED: frozenset(),
}

# Statuses that block overlapping requests
ACTIVE_LEAVE_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED)


class ApprovalStepStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"


class WorkflowState(str, enum.Enum):
    """Request-level workflow state, derived from the approval steps"""
    NOT_INITIATED = "NOT_INITIATED"
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class LeaveTransactionAction(str, enum.Enum):
    ALLOCATION = "ALLOCATION"
    APPROVE_DEDUCT = "APPROVE_DEDUCT"
    CANCEL_RESTORE = "CANCEL_RESTORE"
    MANUAL_ADJUST = "MANUAL_ADJUST"
    CARRY_FORWARD_CREDIT = "CARRY_FORWARD_CREDIT"
    CARRY_FORWARD_EXPIRY = "CARRY_FORWARD_EXPIRY"


class LeaveType(Base):
    __tablename__ = "leave_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(String(500), nullable=True)
    default_days = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Numeric(5, 2), nullable=False)  # business days, inclusive range
    reason = Column(Text, nullable=True)
    status = Column(SQLEnum(LeaveStatus), nullable=False, default=LeaveStatus.PENDING)
    approver_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approver_comment = Column(String(500), nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    # Owned approval chain, deleted with the request
    steps = relationship(
        "ApprovalStep",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ApprovalStep.step_order",
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
        CheckConstraint("start_date <= end_date", name="check_start_date_le_end_date"),
    )

    @validates("status")
    def _validate_status(self, key, new_status):
        """Reject status moves that LEAVE_STATUS_TRANSITIONS does not allow."""
        new_status = LeaveStatus(new_status)
        current = self.status
        if current is None or current == new_status:
            return new_status
        current = LeaveStatus(current)
        if new_status not in LEAVE_STATUS_TRANSITIONS[current]:
            raise InvalidStateError(
                f"Cannot move leave request from {current.value} to {new_status.value}"
            )
        return new_status


class ApprovalStep(Base):
    __tablename__ = "approval_steps"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(
        Integer, ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    approver_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    step_order = Column(Integer, nullable=False)  # 1-based
    status = Column(SQLEnum(ApprovalStepStatus), nullable=False, default=ApprovalStepStatus.PENDING)
    comment = Column(String(500), nullable=True)
    action_at = Column(DateTime(timezone=True), nullable=True)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        UniqueConstraint("leave_request_id", "step_order", name="uq_approval_steps_request_order"),
        CheckConstraint("step_order >= 1", name="check_step_order_positive"),
    )


class LeaveBalance(Base):
    """
    One row per balance bucket (employee_id, leave_type_id, year).
    remaining = total - used, derived on read and never stored.
    """
    __tablename__ = "leave_balances"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    total = Column(Numeric(6, 2), nullable=False, default=0)
    used = Column(Numeric(6, 2), nullable=False, default=0)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_leave_balances_employee_type_year"),
    )

    @hybrid_property
    def remaining(self):
        return self.total - self.used


class LeaveTransaction(Base):
    """Audit trail for the balance ledger: allocation, deduct, restore, adjust, carry forward."""
    __tablename__ = "leave_transactions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True, index=True)
    year = Column(Integer, nullable=False, index=True)
    delta_days = Column(Numeric(6, 2), nullable=False)  # + for credit, - for deduct
    action = Column(SQLEnum(LeaveTransactionAction), nullable=False)
    remarks = Column(Text, nullable=True)
    action_by_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    action_at = Column(DateTime(timezone=True), nullable=False)


class LeaveCarryForward(Base):
    __tablename__ = "leave_carry_forwards"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False)
    from_year = Column(Integer, nullable=False)
    to_year = Column(Integer, nullable=False)
    carried_days = Column(Numeric(6, 2), nullable=False)
    max_carry_forward_days = Column(Numeric(6, 2), nullable=False)
    expiry_date = Column(Date, nullable=True)
    is_expired = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "leave_type_id", "from_year", "to_year",
            name="uq_leave_carry_forwards_key",
        ),
    )
