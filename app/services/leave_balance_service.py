"""
Balance ledger - per (employee, leave type, year) buckets.

- remaining = total - used, derived on read.
- deduct / restore move `used`; adjust and carry forward move `total`.
- Every mutation appends a LeaveTransaction line.
- A missing bucket is materialised from the leave type's default_days when
  AUTO_CREATE_MISSING_BALANCE is on (deduct, carry-forward credit); restore never
  creates one.
"""
import logging
from contextlib import nullcontext
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import BalanceNotFoundError, InvalidStateError, NotFoundError
from app.db.session import unit_of_work
from app.models.employee import Employee
from app.models.leave import LeaveBalance, LeaveTransaction, LeaveTransactionAction, LeaveType
from app.utils.datetime_utils import Clock, system_clock

logger = logging.getLogger(__name__)

Days = Union[Decimal, int, float, str]

ZERO = Decimal("0")


def to_days(value: Days) -> Decimal:
    """Normalise a day count to Decimal (floats go through str to avoid binary noise)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _transaction(db: Session, commit: bool):
    return unit_of_work(db) if commit else nullcontext(db)


def get_balance(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    year: int,
) -> Optional[LeaveBalance]:
    return (
        db.query(LeaveBalance)
        .filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year,
        )
        .first()
    )


def _log_transaction(
    db: Session,
    balance: LeaveBalance,
    delta_days: Decimal,
    action: LeaveTransactionAction,
    clock: Clock,
    leave_request_id: Optional[int] = None,
    remarks: Optional[str] = None,
    action_by_id: Optional[int] = None,
) -> None:
    db.add(LeaveTransaction(
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        leave_request_id=leave_request_id,
        year=balance.year,
        delta_days=delta_days,
        action=action,
        remarks=remarks,
        action_by_id=action_by_id,
        action_at=clock.now(),
    ))


def _create_bucket(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    year: int,
    clock: Clock,
    action_by_id: Optional[int] = None,
) -> LeaveBalance:
    total = to_days(leave_type.default_days or 0)
    balance = LeaveBalance(
        employee_id=employee_id,
        leave_type_id=leave_type.id,
        year=year,
        total=total,
        used=ZERO,
    )
    db.add(balance)
    db.flush()
    _log_transaction(
        db, balance, total, LeaveTransactionAction.ALLOCATION, clock,
        remarks=f"Opening allocation for {year}", action_by_id=action_by_id,
    )
    logger.info(
        "Created balance bucket employee=%s leave_type=%s year=%s total=%s",
        employee_id, leave_type.id, year, total,
    )
    return balance


def _get_or_create_bucket(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    year: int,
    clock: Clock,
    action_by_id: Optional[int] = None,
) -> LeaveBalance:
    balance = get_balance(db, employee_id, leave_type_id, year)
    if balance:
        return balance
    if not settings.AUTO_CREATE_MISSING_BALANCE:
        raise BalanceNotFoundError(
            f"No balance for employee {employee_id}, leave type {leave_type_id}, year {year}"
        )
    leave_type = db.query(LeaveType).filter(LeaveType.id == leave_type_id).first()
    if not leave_type:
        raise NotFoundError(f"Leave type with id {leave_type_id} not found")
    return _create_bucket(db, employee_id, leave_type, year, clock, action_by_id)


def ensure_balance(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    year: int,
    clock: Clock = system_clock,
) -> Optional[LeaveBalance]:
    """Return the bucket, materialising it when auto-creation is on; None when missing and off."""
    balance = get_balance(db, employee_id, leave_type_id, year)
    if balance or not settings.AUTO_CREATE_MISSING_BALANCE:
        return balance
    return _get_or_create_bucket(db, employee_id, leave_type_id, year, clock)


def has_sufficient_balance(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    days: Days,
    year: Optional[int] = None,
    clock: Clock = system_clock,
) -> bool:
    """
    Check whether the bucket can cover `days`.

    Args:
        db: Database session
        employee_id: Employee ID
        leave_type_id: Leave type ID
        days: Days requested
        year: Bucket year (defaults to the current year)

    Returns:
        False when no bucket exists, otherwise remaining >= days
    """
    year = clock.current_year if year is None else year
    balance = get_balance(db, employee_id, leave_type_id, year)
    if not balance:
        return False
    return balance.remaining >= to_days(days)


def deduct(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    days: Days,
    year: Optional[int] = None,
    leave_request_id: Optional[int] = None,
    action_by_id: Optional[int] = None,
    clock: Clock = system_clock,
    commit: bool = True,
) -> LeaveBalance:
    """
    Consume `days` from the bucket (used += days).

    Sufficiency is not re-checked here; callers validate with has_sufficient_balance.

    Raises:
        BalanceNotFoundError: bucket missing and auto-creation disabled
    """
    year = clock.current_year if year is None else year
    amount = to_days(days)
    with _transaction(db, commit):
        balance = _get_or_create_bucket(db, employee_id, leave_type_id, year, clock, action_by_id)
        balance.used = balance.used + amount
        _log_transaction(
            db, balance, -amount, LeaveTransactionAction.APPROVE_DEDUCT, clock,
            leave_request_id=leave_request_id, action_by_id=action_by_id,
        )
        db.flush()
    logger.info(
        "Deducted %s days employee=%s leave_type=%s year=%s used=%s",
        amount, employee_id, leave_type_id, year, balance.used,
    )
    return balance


def restore(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    days: Days,
    year: Optional[int] = None,
    leave_request_id: Optional[int] = None,
    action_by_id: Optional[int] = None,
    clock: Clock = system_clock,
    commit: bool = True,
) -> LeaveBalance:
    """
    Give `days` back to the bucket (used -= days, never below zero).

    Raises:
        BalanceNotFoundError: bucket missing (restore never creates one)
    """
    year = clock.current_year if year is None else year
    amount = to_days(days)
    with _transaction(db, commit):
        balance = get_balance(db, employee_id, leave_type_id, year)
        if not balance:
            raise BalanceNotFoundError(
                f"No balance for employee {employee_id}, leave type {leave_type_id}, year {year}"
            )
        before = balance.used
        balance.used = max(ZERO, before - amount)
        _log_transaction(
            db, balance, before - balance.used, LeaveTransactionAction.CANCEL_RESTORE, clock,
            leave_request_id=leave_request_id, action_by_id=action_by_id,
        )
        db.flush()
    logger.info(
        "Restored %s days employee=%s leave_type=%s year=%s used=%s",
        amount, employee_id, leave_type_id, year, balance.used,
    )
    return balance


def adjust(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    year: int,
    new_total: Days,
    action_by_id: Optional[int] = None,
    remarks: Optional[str] = None,
    clock: Clock = system_clock,
    commit: bool = True,
) -> LeaveBalance:
    """
    Administrative override of a bucket's total.

    used <= total is deliberately not re-validated; an adjustment may leave the
    bucket overdrawn.
    """
    total = to_days(new_total)
    if total < 0:
        raise InvalidStateError("Total days cannot be negative")
    with _transaction(db, commit):
        balance = get_balance(db, employee_id, leave_type_id, year)
        if not balance:
            raise BalanceNotFoundError(
                f"No balance for employee {employee_id}, leave type {leave_type_id}, year {year}"
            )
        delta = total - balance.total
        balance.total = total
        _log_transaction(
            db, balance, delta, LeaveTransactionAction.MANUAL_ADJUST, clock,
            remarks=remarks, action_by_id=action_by_id,
        )
        db.flush()
    if balance.used > balance.total:
        logger.warning(
            "Balance overdrawn after adjustment employee=%s leave_type=%s year=%s total=%s used=%s",
            employee_id, leave_type_id, year, balance.total, balance.used,
        )
    return balance


def change_total(
    db: Session,
    employee_id: int,
    leave_type_id: int,
    year: int,
    delta: Days,
    action: LeaveTransactionAction,
    remarks: Optional[str] = None,
    action_by_id: Optional[int] = None,
    clock: Clock = system_clock,
    commit: bool = True,
) -> LeaveBalance:
    """
    Credit (delta > 0) or debit (delta < 0) a bucket's total.

    Used by carry forward; a credit to a missing bucket follows the
    missing-bucket policy, a debit requires the bucket to exist.
    """
    amount = to_days(delta)
    with _transaction(db, commit):
        if amount >= 0:
            balance = _get_or_create_bucket(db, employee_id, leave_type_id, year, clock, action_by_id)
        else:
            balance = get_balance(db, employee_id, leave_type_id, year)
            if not balance:
                raise BalanceNotFoundError(
                    f"No balance for employee {employee_id}, leave type {leave_type_id}, year {year}"
                )
        balance.total = balance.total + amount
        _log_transaction(
            db, balance, amount, action, clock, remarks=remarks, action_by_id=action_by_id,
        )
        db.flush()
    return balance


def initialize_for_employee(
    db: Session,
    employee_id: int,
    year: Optional[int] = None,
    action_by_id: Optional[int] = None,
    clock: Clock = system_clock,
    commit: bool = True,
) -> List[LeaveBalance]:
    """
    Create a bucket per active leave type for the year (total = default_days, used = 0).

    Idempotent: existing buckets are left untouched. Returns the buckets created.
    """
    year = clock.current_year if year is None else year
    with _transaction(db, commit):
        employee = db.query(Employee).filter(Employee.id == employee_id).first()
        if not employee:
            raise NotFoundError(f"Employee with id {employee_id} not found")
        created = []
        leave_types = db.query(LeaveType).filter(LeaveType.active.is_(True)).order_by(LeaveType.id).all()
        for leave_type in leave_types:
            if get_balance(db, employee_id, leave_type.id, year):
                continue
            created.append(_create_bucket(db, employee_id, leave_type, year, clock, action_by_id))
    return created


def get_employee_balances(
    db: Session,
    employee_id: int,
    year: Optional[int] = None,
    clock: Clock = system_clock,
) -> List[LeaveBalance]:
    year = clock.current_year if year is None else year
    return (
        db.query(LeaveBalance)
        .filter(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
        .order_by(LeaveBalance.leave_type_id)
        .all()
    )


def get_transactions(
    db: Session,
    employee_id: int,
    year: Optional[int] = None,
    limit: int = 100,
) -> List[LeaveTransaction]:
    q = db.query(LeaveTransaction).filter(LeaveTransaction.employee_id == employee_id)
    if year is not None:
        q = q.filter(LeaveTransaction.year == year)
    return q.order_by(LeaveTransaction.action_at.desc(), LeaveTransaction.id.desc()).limit(limit).all()
