"""
Employee endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, get_clock, require_roles, ensure_self_or_roles
from app.models.employee import Employee, Role
from app.schemas.employee import EmployeeCreate, EmployeeUpdate, EmployeeOut
from app.services import employee_service
from app.utils.datetime_utils import Clock

router = APIRouter()

DIRECTORY_ROLES = (Role.HR, Role.MANAGER)


@router.post("", response_model=EmployeeOut, status_code=status.HTTP_201_CREATED)
async def create_employee(
    employee_data: EmployeeCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    """
    Create an employee (HR/ADMIN)

    Current-year leave balances are opened for every active leave type.
    """
    return employee_service.create_employee(db, employee_data, actor_id=current_user.id, clock=clock)


@router.get("", response_model=List[EmployeeOut])
async def list_employees(
    active_only: Optional[bool] = Query(None, description="Only active employees"),
    manager_id: Optional[int] = Query(None, description="Direct reports of this manager"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_roles(*DIRECTORY_ROLES)),
):
    return employee_service.list_employees(db, active_only=active_only, manager_id=manager_id, skip=skip, limit=limit)


@router.get("/me", response_model=EmployeeOut)
async def get_me(current_user: Employee = Depends(get_current_user)):
    return current_user


@router.get("/{employee_id}", response_model=EmployeeOut)
async def get_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    ensure_self_or_roles(current_user, employee_id, DIRECTORY_ROLES)
    return employee_service.get_employee(db, employee_id)


@router.patch("/{employee_id}", response_model=EmployeeOut)
async def update_employee(
    employee_id: int,
    employee_data: EmployeeUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    """Update an employee (HR/ADMIN). Manager changes are checked for reporting cycles."""
    return employee_service.update_employee(db, employee_id, employee_data, actor_id=current_user.id)
