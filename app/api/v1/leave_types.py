"""
Leave type endpoints
"""
from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, require_roles
from app.models.employee import Employee, Role
from app.schemas.leave_type import LeaveTypeCreate, LeaveTypeUpdate, LeaveTypeOut
from app.services import leave_type_service

router = APIRouter()


@router.get("", response_model=List[LeaveTypeOut])
async def list_leave_types(
    active_only: bool = Query(False, description="Only active leave types"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return leave_type_service.list_leave_types(db, active_only=active_only)


@router.get("/{leave_type_id}", response_model=LeaveTypeOut)
async def get_leave_type(
    leave_type_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return leave_type_service.get_leave_type(db, leave_type_id)


@router.post("", response_model=LeaveTypeOut, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    data: LeaveTypeCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    return leave_type_service.create_leave_type(db, data, actor_id=current_user.id)


@router.patch("/{leave_type_id}", response_model=LeaveTypeOut)
async def update_leave_type(
    leave_type_id: int,
    data: LeaveTypeUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    return leave_type_service.update_leave_type(db, leave_type_id, data, actor_id=current_user.id)
