"""
Leave service - business logic for leave requests
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedActorError,
)
from app.db.session import unit_of_work
from app.models.employee import Employee, Role
from app.models.leave import (
    ApprovalStep,
    ApprovalStepStatus,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
)
from app.services import leave_balance_service as ledger
from app.services import notification_service
from app.services.approval_workflow_service import initiate_workflow
from app.services.audit_service import log_audit
from app.services.overlap_validator import find_overlapping_request
from app.utils.datetime_utils import Clock, iter_dates, system_clock

logger = logging.getLogger(__name__)

# Roles that may cancel someone else's leave
CANCEL_ON_BEHALF_ROLES = frozenset({Role.ADMIN, Role.HR})


def calculate_business_days(start_date: date, end_date: date) -> int:
    """Count Monday-Friday dates in [start_date, end_date]; 0 when end precedes start."""
    return sum(1 for d in iter_dates(start_date, end_date) if d.weekday() < 5)


def get_leave_request(db: Session, leave_request_id: int) -> LeaveRequest:
    leave_request = db.query(LeaveRequest).filter(LeaveRequest.id == leave_request_id).first()
    if not leave_request:
        raise NotFoundError(f"Leave request with id {leave_request_id} not found")
    return leave_request


def _get_active_leave_type(db: Session, leave_type_id: int) -> LeaveType:
    leave_type = db.query(LeaveType).filter(LeaveType.id == leave_type_id).first()
    if not leave_type or not leave_type.active:
        raise NotFoundError(f"Leave type with id {leave_type_id} not found")
    return leave_type


def _validate_request(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    start_date: date,
    end_date: date,
    clock: Clock,
    exclude_request_id: Optional[int] = None,
) -> Decimal:
    """
    Shared validation for create and update. Returns the business-day count.

    Raises:
        InvalidStateError: bad date range, start in the past, no business days
        ConflictError: overlaps another PENDING/APPROVED request
    """
    if end_date < start_date:
        raise InvalidStateError("end_date must be on or after start_date")
    if start_date < clock.today():
        raise InvalidStateError("Start date cannot be in the past")

    _get_active_leave_type(db, leave_type_id)

    days = calculate_business_days(start_date, end_date)
    if days <= 0:
        raise InvalidStateError("Leave request must include at least one business day")

    overlapping = find_overlapping_request(db, employee_id, start_date, end_date, exclude_request_id)
    if overlapping:
        raise ConflictError(
            f"Leave request overlaps with existing leave from {overlapping.start_date} to {overlapping.end_date}"
        )
    return Decimal(days)


def _check_balance(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    days: Decimal,
    year: int,
    clock: Clock,
) -> None:
    ledger.ensure_balance(db, employee_id, leave_type_id, year, clock=clock)
    if not ledger.has_sufficient_balance(db, employee_id, leave_type_id, days, year=year, clock=clock):
        raise InsufficientBalanceError(
            f"Insufficient leave balance for {days} day(s) in {year}"
        )


def create_leave_request(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    start_date: date,
    end_date: date,
    reason: Optional[str] = None,
    clock: Clock = system_clock,
) -> LeaveRequest:
    """
    Apply for leave: validate, persist a PENDING request and route it for approval.

    The request and its approval steps are committed together.

    Args:
        db: Database session
        employee_id: Requesting employee
        leave_type_id: Leave type
        start_date: First day (inclusive)
        end_date: Last day (inclusive)
        reason: Optional reason

    Returns:
        Created LeaveRequest instance

    Raises:
        NotFoundError, InvalidStateError, ConflictError, InsufficientBalanceError
    """
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee or not employee.active:
        raise NotFoundError(f"Employee with id {employee_id} not found")

    days = _validate_request(db, employee_id, leave_type_id, start_date, end_date, clock)

    with unit_of_work(db):
        _check_balance(db, employee_id, leave_type_id, days, start_date.year, clock)

        leave_request = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            start_date=start_date,
            end_date=end_date,
            total_days=days,
            reason=reason,
            status=LeaveStatus.PENDING,
        )
        db.add(leave_request)
        db.flush()

        initiate_workflow(db, leave_request.id, clock=clock, commit=False)

        log_audit(
            db=db,
            actor_id=employee_id,
            action="LEAVE_APPLY",
            entity_type="leave_request",
            entity_id=leave_request.id,
            meta={
                "leave_type_id": leave_type_id,
                "start_date": start_date,
                "end_date": end_date,
                "total_days": days,
                "status": LeaveStatus.PENDING,
            },
        )

    db.refresh(leave_request)
    logger.info(
        "Leave request %s created for employee %s: %s..%s (%s days)",
        leave_request.id, employee_id, start_date, end_date, days,
    )
    return leave_request


def update_leave_request(
    db: Session,
    leave_request_id: int,
    actor_id: int,
    leave_type_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    reason: Optional[str] = None,
    clock: Clock = system_clock,
) -> LeaveRequest:
    """
    Edit a PENDING request before any approver has acted on it. Owner only.

    Omitted fields keep their current value; the result is re-validated like a
    new request (overlap check ignores the request itself).
    """
    leave_request = get_leave_request(db, leave_request_id)
    if leave_request.employee_id != actor_id:
        raise UnauthorizedActorError("You can only update your own leave requests")
    if leave_request.status != LeaveStatus.PENDING:
        raise InvalidStateError("Only pending leave requests can be updated")
    acted = db.query(ApprovalStep).filter(
        ApprovalStep.leave_request_id == leave_request.id,
        ApprovalStep.status != ApprovalStepStatus.PENDING,
    ).first()
    if acted:
        raise InvalidStateError("Leave request is already under review and cannot be updated")

    new_type_id = leave_type_id if leave_type_id is not None else leave_request.leave_type_id
    new_start = start_date if start_date is not None else leave_request.start_date
    new_end = end_date if end_date is not None else leave_request.end_date

    days = _validate_request(
        db, leave_request.employee_id, new_type_id, new_start, new_end, clock,
        exclude_request_id=leave_request.id,
    )

    with unit_of_work(db):
        _check_balance(db, leave_request.employee_id, new_type_id, days, new_start.year, clock)
        leave_request.leave_type_id = new_type_id
        leave_request.start_date = new_start
        leave_request.end_date = new_end
        leave_request.total_days = days
        if reason is not None:
            leave_request.reason = reason
        db.flush()
        log_audit(
            db=db,
            actor_id=actor_id,
            action="LEAVE_UPDATE",
            entity_type="leave_request",
            entity_id=leave_request.id,
            meta={
                "leave_type_id": new_type_id,
                "start_date": new_start,
                "end_date": new_end,
                "total_days": days,
            },
        )

    db.refresh(leave_request)
    return leave_request


def cancel_leave_request(
    db: Session,
    leave_request_id: int,
    actor: Employee,
    clock: Clock = system_clock,
) -> LeaveRequest:
    """
    Cancel a PENDING or APPROVED request.

    - PENDING: pending approval steps become SKIPPED, balance untouched
    - APPROVED: total_days restored to the start_date.year bucket
    Owner, ADMIN or HR only.

    Raises:
        NotFoundError, UnauthorizedActorError, InvalidStateError, BalanceNotFoundError
    """
    leave_request = get_leave_request(db, leave_request_id)
    if leave_request.employee_id != actor.id and actor.role not in CANCEL_ON_BEHALF_ROLES:
        raise UnauthorizedActorError("You can only cancel your own leave requests")

    previous_status = leave_request.status
    with unit_of_work(db):
        if previous_status == LeaveStatus.PENDING:
            for step in leave_request.steps:
                if step.status == ApprovalStepStatus.PENDING:
                    step.status = ApprovalStepStatus.SKIPPED
        elif previous_status == LeaveStatus.APPROVED:
            ledger.restore(
                db,
                leave_request.employee_id,
                leave_request.leave_type_id,
                leave_request.total_days,
                year=leave_request.start_date.year,
                leave_request_id=leave_request.id,
                action_by_id=actor.id,
                clock=clock,
                commit=False,
            )
        else:
            raise InvalidStateError(f"Cannot cancel a {previous_status.value} leave request")

        leave_request.status = LeaveStatus.CANCELLED
        leave_request.cancelled_by_id = actor.id
        leave_request.cancelled_at = clock.now()
        db.flush()

        notification_service.notify_cancelled(db, leave_request, clock=clock)
        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_CANCEL",
            entity_type="leave_request",
            entity_id=leave_request.id,
            meta={"previous_status": previous_status, "total_days": leave_request.total_days},
        )

    logger.info(
        "Leave request %s cancelled by %s (was %s)", leave_request_id, actor.id, previous_status.value
    )
    db.refresh(leave_request)
    return leave_request


def delete_leave_request(db: Session, leave_request_id: int, actor_id: Optional[int] = None) -> None:
    """Hard-delete a request and its approval steps. Balances are not touched."""
    leave_request = get_leave_request(db, leave_request_id)
    with unit_of_work(db):
        log_audit(
            db=db,
            actor_id=actor_id,
            action="LEAVE_DELETE",
            entity_type="leave_request",
            entity_id=leave_request.id,
            meta={"status": leave_request.status, "employee_id": leave_request.employee_id},
        )
        db.delete(leave_request)
    logger.info("Leave request %s deleted by %s", leave_request_id, actor_id)


def list_leave_requests(
    db: Session,
    employee_id: Optional[int] = None,
    status: Optional[LeaveStatus] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[LeaveRequest]:
    query = db.query(LeaveRequest)
    if employee_id is not None:
        query = query.filter(LeaveRequest.employee_id == employee_id)
    if status is not None:
        query = query.filter(LeaveRequest.status == status)
    return query.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc()).offset(skip).limit(limit).all()
