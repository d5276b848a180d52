"""
Leave request endpoints
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, get_clock, require_roles
from app.models.employee import Employee, Role
from app.models.leave import LeaveStatus
from app.schemas.leave import (
    LeaveApplyRequest,
    LeaveUpdateRequest,
    LeaveRequestOut,
    LeaveRequestDetail,
    LeaveListResponse,
)
from app.services import leave_service
from app.services.approval_workflow_service import workflow_state
from app.utils.datetime_utils import Clock

router = APIRouter()

# Roles that can see every employee's requests
LEAVE_VIEW_ALL_ROLES = (Role.ADMIN, Role.HR)


@router.post("/apply", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
async def apply(
    data: LeaveApplyRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(get_current_user),
):
    """
    Apply for leave

    Validates dates, overlap and balance, then routes the request to the
    approval chain (manager, then manager's manager; admin when no manager).
    """
    return leave_service.create_leave_request(
        db,
        current_user.id,
        data.leave_type_id,
        data.start_date,
        data.end_date,
        reason=data.reason,
        clock=clock,
    )


@router.get("/my", response_model=LeaveListResponse)
async def my_leaves(
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    items = leave_service.list_leave_requests(
        db, employee_id=current_user.id, status=status_filter, skip=skip, limit=limit
    )
    return LeaveListResponse(items=items, total=len(items))


@router.get("/list", response_model=LeaveListResponse)
async def list_leaves(
    employee_id: Optional[int] = Query(None),
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    """List leave requests across employees (HR/ADMIN)"""
    items = leave_service.list_leave_requests(
        db, employee_id=employee_id, status=status_filter, skip=skip, limit=limit
    )
    return LeaveListResponse(items=items, total=len(items))


@router.get("/{leave_request_id}", response_model=LeaveRequestDetail)
async def get_leave(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Leave request with its approval steps; visible to the owner, its approvers and HR/ADMIN"""
    leave_request = leave_service.get_leave_request(db, leave_request_id)
    approver_ids = {step.approver_id for step in leave_request.steps}
    if (
        leave_request.employee_id != current_user.id
        and current_user.id not in approver_ids
        and current_user.role not in LEAVE_VIEW_ALL_ROLES
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    detail = LeaveRequestDetail.model_validate(leave_request)
    detail.workflow_state = workflow_state(db, leave_request_id)
    return detail


@router.patch("/{leave_request_id}", response_model=LeaveRequestOut)
async def update_leave(
    leave_request_id: int,
    data: LeaveUpdateRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(get_current_user),
):
    """Edit your own PENDING request before any approver has acted"""
    return leave_service.update_leave_request(
        db,
        leave_request_id,
        current_user.id,
        leave_type_id=data.leave_type_id,
        start_date=data.start_date,
        end_date=data.end_date,
        reason=data.reason,
        clock=clock,
    )


@router.post("/{leave_request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    leave_request_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(get_current_user),
):
    """
    Cancel a PENDING or APPROVED request (owner, HR or ADMIN)

    Cancelling an approved request gives the days back to the balance.
    """
    return leave_service.cancel_leave_request(db, leave_request_id, current_user, clock=clock)


@router.delete("/{leave_request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leave(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_roles(Role.ADMIN)),
):
    leave_service.delete_leave_request(db, leave_request_id, actor_id=current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
