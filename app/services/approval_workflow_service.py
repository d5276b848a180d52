"""
Multi-level approval workflow for leave requests.

Chain: the requester's manager, then that manager's manager, up to
MAX_APPROVAL_LEVELS. Without any manager the first active ADMIN approves alone.
Steps are processed strictly in step_order; the last approval deducts the
balance, any rejection ends the workflow and skips the remaining steps.
"""
import logging
from contextlib import nullcontext
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    PrecedenceViolationError,
    UnauthorizedActorError,
)
from app.db.session import unit_of_work
from app.models.employee import Employee, Role
from app.models.leave import (
    ApprovalStep,
    ApprovalStepStatus,
    LeaveRequest,
    LeaveStatus,
    WorkflowState,
)
from app.services import leave_balance_service as ledger
from app.services import notification_service
from app.services.audit_service import log_audit
from app.utils.datetime_utils import Clock, system_clock

logger = logging.getLogger(__name__)


def _get_leave_request(db: Session, leave_request_id: int) -> LeaveRequest:
    leave_request = db.query(LeaveRequest).filter(LeaveRequest.id == leave_request_id).first()
    if not leave_request:
        raise NotFoundError(f"Leave request with id {leave_request_id} not found")
    return leave_request


def build_approver_chain(db: Session, employee: Employee) -> List[int]:
    """
    Resolve approver ids for a requester, in approval order.

    Walks manager_id links up to MAX_APPROVAL_LEVELS. Falls back to the first
    active ADMIN (lowest id, never the requester) when no manager is set.
    """
    chain: List[int] = []
    seen = {employee.id}
    current = employee
    for _ in range(settings.MAX_APPROVAL_LEVELS):
        if current.manager_id is None or current.manager_id in seen:
            break
        manager = db.query(Employee).filter(Employee.id == current.manager_id).first()
        if not manager:
            break
        chain.append(manager.id)
        seen.add(manager.id)
        current = manager

    if not chain:
        # Only active admins, and never the requester, so nobody approves their own leave
        admin = (
            db.query(Employee)
            .filter(
                Employee.role == Role.ADMIN,
                Employee.active.is_(True),
                Employee.id != employee.id,
            )
            .order_by(Employee.id)
            .first()
        )
        if admin:
            chain.append(admin.id)
    return chain


def initiate_workflow(
    db: Session,
    leave_request_id: int,
    clock: Clock = system_clock,
    commit: bool = True,
) -> int:
    """
    Create the approval steps of a PENDING request and notify the first approver.

    Args:
        db: Database session
        leave_request_id: Request to route
        clock: Time source
        commit: Commit here, or leave it to the caller's unit of work

    Returns:
        Number of steps created (0 when there is neither a manager nor an admin)

    Raises:
        NotFoundError: request does not exist
        InvalidStateError: request not PENDING, or already routed
    """
    with (unit_of_work(db) if commit else nullcontext(db)):
        leave_request = _get_leave_request(db, leave_request_id)
        if leave_request.status != LeaveStatus.PENDING:
            raise InvalidStateError(
                f"Cannot start approval for a {leave_request.status.value} leave request"
            )
        if leave_request.steps:
            raise InvalidStateError("Approval workflow already initiated for this leave request")

        employee = db.query(Employee).filter(Employee.id == leave_request.employee_id).first()
        if not employee:
            raise NotFoundError(f"Employee with id {leave_request.employee_id} not found")

        approvers = build_approver_chain(db, employee)
        for order, approver_id in enumerate(approvers, start=1):
            leave_request.steps.append(ApprovalStep(
                approver_id=approver_id,
                step_order=order,
                status=ApprovalStepStatus.PENDING,
            ))
        db.flush()

        if approvers:
            notification_service.notify_approver(db, approvers[0], leave_request, first_step=True, clock=clock)
        else:
            logger.warning("No approver found for leave request %s; it stays PENDING", leave_request_id)

        log_audit(
            db=db,
            actor_id=leave_request.employee_id,
            action="WORKFLOW_INITIATE",
            entity_type="leave_request",
            entity_id=leave_request.id,
            meta={"approvers": approvers},
        )

    logger.info("Leave request %s routed to %d approver(s): %s", leave_request_id, len(approvers), approvers)
    return len(approvers)


def process_approval_step(
    db: Session,
    approver_id: int,
    step_id: int,
    approved: bool,
    comment: Optional[str] = None,
    clock: Clock = system_clock,
) -> ApprovalStep:
    """
    Record an approver's decision on a step.

    Guards run in order: step exists, caller is the step's approver, step is
    PENDING, every lower step is APPROVED. Then:
    - reject: request REJECTED, later steps SKIPPED, requester notified, no balance change
    - approve last step: request APPROVED, total_days deducted from the
      start_date.year bucket, requester notified
    - approve otherwise: next approver notified

    Everything commits together; any failure rolls the whole decision back.

    Raises:
        NotFoundError, UnauthorizedActorError, InvalidStateError,
        PrecedenceViolationError, ConcurrentModificationError
    """
    with unit_of_work(db):
        step = db.query(ApprovalStep).filter(ApprovalStep.id == step_id).first()
        if not step:
            raise NotFoundError(f"Approval step with id {step_id} not found")
        if step.approver_id != approver_id:
            raise UnauthorizedActorError("You are not the approver for this step")
        if step.status != ApprovalStepStatus.PENDING:
            raise InvalidStateError(f"Approval step already {step.status.value}")

        leave_request = _get_leave_request(db, step.leave_request_id)
        if leave_request.status != LeaveStatus.PENDING:
            raise InvalidStateError(
                f"Leave request is {leave_request.status.value}, expected PENDING"
            )

        blocking = (
            db.query(ApprovalStep)
            .filter(
                ApprovalStep.leave_request_id == step.leave_request_id,
                ApprovalStep.step_order < step.step_order,
                ApprovalStep.status != ApprovalStepStatus.APPROVED,
            )
            .first()
        )
        if blocking:
            raise PrecedenceViolationError()

        now = clock.now()
        step.status = ApprovalStepStatus.APPROVED if approved else ApprovalStepStatus.REJECTED
        step.comment = comment
        step.action_at = now

        later_steps = (
            db.query(ApprovalStep)
            .filter(
                ApprovalStep.leave_request_id == step.leave_request_id,
                ApprovalStep.step_order > step.step_order,
            )
            .order_by(ApprovalStep.step_order)
            .all()
        )

        if not approved:
            leave_request.status = LeaveStatus.REJECTED
            leave_request.approver_id = approver_id
            leave_request.approved_at = now
            leave_request.approver_comment = comment
            for later in later_steps:
                if later.status == ApprovalStepStatus.PENDING:
                    later.status = ApprovalStepStatus.SKIPPED
            db.flush()
            notification_service.notify_decision(db, leave_request, approved=False, clock=clock)
        elif not later_steps:
            leave_request.status = LeaveStatus.APPROVED
            leave_request.approver_id = approver_id
            leave_request.approved_at = now
            leave_request.approver_comment = comment
            ledger.deduct(
                db,
                leave_request.employee_id,
                leave_request.leave_type_id,
                leave_request.total_days,
                year=leave_request.start_date.year,
                leave_request_id=leave_request.id,
                action_by_id=approver_id,
                clock=clock,
                commit=False,
            )
            notification_service.notify_decision(db, leave_request, approved=True, clock=clock)
        else:
            db.flush()
            notification_service.notify_approver(
                db, later_steps[0].approver_id, leave_request, first_step=False, clock=clock
            )

        log_audit(
            db=db,
            actor_id=approver_id,
            action="APPROVAL_STEP_PROCESS",
            entity_type="approval_step",
            entity_id=step.id,
            meta={
                "leave_request_id": leave_request.id,
                "step_order": step.step_order,
                "decision": step.status,
                "request_status": leave_request.status,
            },
        )

    logger.info(
        "Approval step %s (order %s) of leave request %s %s by %s; request is %s",
        step.id, step.step_order, leave_request.id, step.status.value, approver_id, leave_request.status.value,
    )
    db.refresh(step)
    return step


def get_pending_approvals_for(db: Session, approver_id: int) -> List[ApprovalStep]:
    """All PENDING steps assigned to the approver, actionable or not."""
    return (
        db.query(ApprovalStep)
        .filter(
            ApprovalStep.approver_id == approver_id,
            ApprovalStep.status == ApprovalStepStatus.PENDING,
        )
        .order_by(ApprovalStep.created_at, ApprovalStep.id)
        .all()
    )


def get_approval_steps(db: Session, leave_request_id: int) -> List[ApprovalStep]:
    _get_leave_request(db, leave_request_id)
    return (
        db.query(ApprovalStep)
        .filter(ApprovalStep.leave_request_id == leave_request_id)
        .order_by(ApprovalStep.step_order)
        .all()
    )


def workflow_state(db: Session, leave_request_id: int) -> WorkflowState:
    """Derive the request-level workflow state from the request and its steps."""
    leave_request = _get_leave_request(db, leave_request_id)
    if leave_request.status == LeaveStatus.CANCELLED:
        return WorkflowState.CANCELLED
    if leave_request.status == LeaveStatus.REJECTED:
        return WorkflowState.REJECTED
    if leave_request.status == LeaveStatus.APPROVED:
        return WorkflowState.APPROVED
    if not leave_request.steps:
        return WorkflowState.NOT_INITIATED
    return WorkflowState.IN_PROGRESS
