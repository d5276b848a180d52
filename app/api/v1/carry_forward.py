"""
Carry forward endpoints
"""
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, get_clock, require_roles
from app.models.employee import Employee, Role
from app.schemas.carry_forward import (
    CarryForwardRequest,
    CarryForwardOut,
    CarryForwardRunResult,
    YearEndRequest,
)
from app.services import carry_forward_service
from app.utils.datetime_utils import Clock

router = APIRouter()


@router.get("/my", response_model=List[CarryForwardOut])
async def my_carry_forwards(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return carry_forward_service.get_employee_carry_forwards(db, current_user.id)


@router.get("/employee/{employee_id}", response_model=List[CarryForwardOut])
async def employee_carry_forwards(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    return carry_forward_service.get_employee_carry_forwards(db, employee_id)


@router.post("/process", response_model=CarryForwardOut, status_code=status.HTTP_201_CREATED)
async def process_carry_forward(
    data: CarryForwardRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    """Carry one employee's unused days of a leave type into the next year (HR/ADMIN)"""
    return carry_forward_service.process_carry_forward(
        db,
        data.employee_id,
        data.leave_type_id,
        data.from_year,
        data.to_year,
        data.max_carry_forward_days,
        expiry_date=data.expiry_date,
        actor_id=current_user.id,
        clock=clock,
    )


@router.post("/year-end", response_model=CarryForwardRunResult)
async def year_end(
    data: YearEndRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(require_roles(Role.ADMIN)),
):
    """Run the default carry forward for every active employee and leave type (ADMIN)"""
    processed = carry_forward_service.process_year_end(
        db, data.from_year, data.to_year, actor_id=current_user.id, clock=clock
    )
    return CarryForwardRunResult(processed=processed)


@router.post("/expire", response_model=CarryForwardRunResult)
async def expire(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    """Expire carry forwards whose expiry date has been reached (HR/ADMIN)"""
    expired = carry_forward_service.expire_outstanding(db, actor_id=current_user.id, clock=clock)
    return CarryForwardRunResult(processed=expired)
