"""
Carry forward - move unused days of one year into the next.

- Carried days = min(remaining in from_year, cap), credited onto to_year total.
- One carry forward per (employee, leave type, from_year, to_year).
- Year-end run: cap min(CARRY_FORWARD_DEFAULT_CAP, default_days // 2), expiry at
  CARRY_FORWARD_EXPIRY_MONTH/DAY of to_year.
- Expiry takes the carried days back off to_year total, but only while the
  total still covers them.
"""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    AppException,
    BalanceNotFoundError,
    DuplicateCarryForwardError,
    InvalidStateError,
    NotFoundError,
)
from app.db.session import unit_of_work
from app.models.employee import Employee
from app.models.leave import LeaveCarryForward, LeaveTransactionAction, LeaveType
from app.services import leave_balance_service as ledger
from app.services.audit_service import log_audit
from app.utils.datetime_utils import Clock, system_clock

logger = logging.getLogger(__name__)


def year_end_cap(leave_type: LeaveType) -> int:
    """Default cap for the year-end run: the configured cap or half the entitlement, whichever is lower."""
    return min(settings.CARRY_FORWARD_DEFAULT_CAP, (leave_type.default_days or 0) // 2)


def year_end_expiry(to_year: int) -> date:
    return date(to_year, settings.CARRY_FORWARD_EXPIRY_MONTH, settings.CARRY_FORWARD_EXPIRY_DAY)


def _find_existing(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    from_year: int,
    to_year: int,
) -> Optional[LeaveCarryForward]:
    return db.query(LeaveCarryForward).filter(
        LeaveCarryForward.employee_id == employee_id,
        LeaveCarryForward.leave_type_id == leave_type_id,
        LeaveCarryForward.from_year == from_year,
        LeaveCarryForward.to_year == to_year,
    ).first()


def _savepoint(db: Session):
    return db.begin_nested()


def process_carry_forward(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    from_year: int,
    to_year: int,
    max_carry_forward_days,
    expiry_date: Optional[date] = None,
    actor_id: Optional[int] = None,
    clock: Clock = system_clock,
    commit: bool = True,
) -> LeaveCarryForward:
    """
    Carry unused days of from_year into to_year.

    The duplicate check runs before anything is written. With commit=False the
    work runs in a savepoint of the caller's transaction instead of committing.

    Args:
        db: Database session
        employee_id: Employee ID
        leave_type_id: Leave type ID
        from_year: Year the days come from
        to_year: Year the days are credited to
        max_carry_forward_days: Cap on the carried days
        expiry_date: Date after which the carried days lapse (optional)
        actor_id: Employee triggering the run, None for system jobs

    Returns:
        The created LeaveCarryForward row

    Raises:
        DuplicateCarryForwardError: already processed for this period
        NotFoundError: employee or leave type missing
        BalanceNotFoundError: no from_year bucket
        InvalidStateError: nothing to carry
    """
    if to_year <= from_year:
        raise InvalidStateError("to_year must be after from_year")
    cap = ledger.to_days(max_carry_forward_days)
    if cap < 0:
        raise InvalidStateError("max_carry_forward_days cannot be negative")

    with (unit_of_work(db) if commit else _savepoint(db)):
        if _find_existing(db, employee_id, leave_type_id, from_year, to_year):
            raise DuplicateCarryForwardError()

        if not db.query(Employee).filter(Employee.id == employee_id).first():
            raise NotFoundError(f"Employee with id {employee_id} not found")
        leave_type = db.query(LeaveType).filter(LeaveType.id == leave_type_id).first()
        if not leave_type:
            raise NotFoundError(f"Leave type with id {leave_type_id} not found")

        balance = ledger.get_balance(db, employee_id, leave_type_id, from_year)
        if not balance:
            raise BalanceNotFoundError(f"No balance found for {from_year}")

        carry_days = min(balance.remaining, cap)
        if carry_days <= 0:
            raise InvalidStateError("No days available to carry forward")

        carry_forward = LeaveCarryForward(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            from_year=from_year,
            to_year=to_year,
            carried_days=carry_days,
            max_carry_forward_days=cap,
            expiry_date=expiry_date,
            is_expired=False,
        )
        db.add(carry_forward)
        db.flush()

        ledger.change_total(
            db, employee_id, leave_type_id, to_year, carry_days,
            LeaveTransactionAction.CARRY_FORWARD_CREDIT,
            remarks=f"Carry forward from {from_year}",
            action_by_id=actor_id,
            clock=clock,
            commit=False,
        )
        log_audit(
            db=db,
            actor_id=actor_id,
            action="CARRY_FORWARD",
            entity_type="leave_carry_forward",
            entity_id=carry_forward.id,
            meta={
                "employee_id": employee_id,
                "leave_type_id": leave_type_id,
                "from_year": from_year,
                "to_year": to_year,
                "carried_days": carry_days,
                "expiry_date": expiry_date,
            },
        )

    logger.info(
        "Carried %s days employee=%s leave_type=%s %s -> %s",
        carry_days, employee_id, leave_type_id, from_year, to_year,
    )
    return carry_forward


def process_year_end(
    db: Session,
    from_year: int,
    to_year: int,
    actor_id: Optional[int] = None,
    clock: Clock = system_clock,
) -> int:
    """
    Run the default carry forward for every active employee and active leave type.

    Each attempt runs in its own savepoint: a failed pair is logged and skipped
    without undoing the others. Returns the number of carry forwards created.
    """
    employees = db.query(Employee).filter(Employee.active.is_(True)).order_by(Employee.id).all()
    leave_types = db.query(LeaveType).filter(LeaveType.active.is_(True)).order_by(LeaveType.id).all()
    expiry = year_end_expiry(to_year)

    processed = 0
    skipped = 0
    with unit_of_work(db):
        for employee in employees:
            for leave_type in leave_types:
                try:
                    process_carry_forward(
                        db,
                        employee.id,
                        leave_type.id,
                        from_year,
                        to_year,
                        year_end_cap(leave_type),
                        expiry_date=expiry,
                        actor_id=actor_id,
                        clock=clock,
                        commit=False,
                    )
                    processed += 1
                except AppException as exc:
                    skipped += 1
                    logger.info(
                        "Year-end carry forward skipped employee=%s leave_type=%s: %s",
                        employee.id, leave_type.id, exc.message,
                    )
                except SQLAlchemyError:
                    skipped += 1
                    logger.exception(
                        "Year-end carry forward failed employee=%s leave_type=%s", employee.id, leave_type.id
                    )

    logger.info(
        "Year-end carry forward %s -> %s: %d processed, %d skipped",
        from_year, to_year, processed, skipped,
    )
    return processed


def expire_outstanding(db: Session, actor_id: Optional[int] = None, clock: Clock = system_clock) -> int:
    """
    Expire every carry forward whose expiry_date has been reached.

    The carried days come off the to_year total only when that total is at
    least the carried amount. Returns the number of rows expired.
    """
    today = clock.today()
    with unit_of_work(db):
        due = db.query(LeaveCarryForward).filter(
            LeaveCarryForward.is_expired.is_(False),
            LeaveCarryForward.expiry_date.isnot(None),
            LeaveCarryForward.expiry_date <= today,
        ).order_by(LeaveCarryForward.id).all()

        for carry_forward in due:
            carry_forward.is_expired = True
            balance = ledger.get_balance(db, carry_forward.employee_id, carry_forward.leave_type_id, carry_forward.to_year)
            if balance and balance.total >= carry_forward.carried_days:
                ledger.change_total(
                    db,
                    carry_forward.employee_id,
                    carry_forward.leave_type_id,
                    carry_forward.to_year,
                    -carry_forward.carried_days,
                    LeaveTransactionAction.CARRY_FORWARD_EXPIRY,
                    remarks=f"Carry forward from {carry_forward.from_year} expired",
                    action_by_id=actor_id,
                    clock=clock,
                    commit=False,
                )
            else:
                logger.warning(
                    "Carry forward %s expired without reducing balance (total below carried days)",
                    carry_forward.id,
                )
        db.flush()
        if due:
            log_audit(
                db=db,
                actor_id=actor_id,
                action="CARRY_FORWARD_EXPIRE",
                entity_type="leave_carry_forward",
                meta={"expired_ids": [cf.id for cf in due], "as_of": today},
            )

    logger.info("Expired %d carry forward(s) as of %s", len(due), today)
    return len(due)


def get_employee_carry_forwards(db: Session, employee_id: int) -> List[LeaveCarryForward]:
    """Non-expired carry forwards of the employee, newest target year first."""
    return (
        db.query(LeaveCarryForward)
        .filter(
            LeaveCarryForward.employee_id == employee_id,
            LeaveCarryForward.is_expired.is_(False),
        )
        .order_by(LeaveCarryForward.to_year.desc(), LeaveCarryForward.id.desc())
        .all()
    )
