"""
Leave balance endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, get_clock, require_roles, ensure_self_or_roles
from app.models.employee import Employee, Role
from app.schemas.balance import BalanceAdjustRequest, LeaveBalanceOut, LeaveTransactionOut
from app.services import leave_balance_service as ledger
from app.utils.datetime_utils import Clock

router = APIRouter()


@router.get("/me", response_model=List[LeaveBalanceOut])
async def my_balances(
    year: Optional[int] = Query(None, description="Calendar year, defaults to the current year"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(get_current_user),
):
    return ledger.get_employee_balances(db, current_user.id, year=year, clock=clock)


@router.get("/employee/{employee_id}", response_model=List[LeaveBalanceOut])
async def employee_balances(
    employee_id: int,
    year: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(get_current_user),
):
    ensure_self_or_roles(current_user, employee_id, (Role.HR,))
    return ledger.get_employee_balances(db, employee_id, year=year, clock=clock)


@router.post("/adjust", response_model=LeaveBalanceOut)
async def adjust_balance(
    data: BalanceAdjustRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    """Set a bucket's total (HR/ADMIN). used is not re-validated against the new total."""
    return ledger.adjust(
        db,
        data.employee_id,
        data.leave_type_id,
        data.year,
        data.new_total,
        action_by_id=current_user.id,
        remarks=data.remarks,
        clock=clock,
    )


@router.post("/initialize/{employee_id}", response_model=List[LeaveBalanceOut])
async def initialize_balances(
    employee_id: int,
    year: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    """Open missing buckets for every active leave type (HR/ADMIN). Returns the buckets created."""
    return ledger.initialize_for_employee(db, employee_id, year=year, action_by_id=current_user.id, clock=clock)


@router.get("/transactions/me", response_model=List[LeaveTransactionOut])
async def my_transactions(
    year: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return ledger.get_transactions(db, current_user.id, year=year, limit=limit)


@router.get("/transactions/{employee_id}", response_model=List[LeaveTransactionOut])
async def employee_transactions(
    employee_id: int,
    year: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    ensure_self_or_roles(current_user, employee_id, (Role.HR,))
    return ledger.get_transactions(db, employee_id, year=year, limit=limit)
