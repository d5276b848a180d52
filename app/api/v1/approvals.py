"""
Approval workflow endpoints
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, get_clock, require_roles
from app.models.employee import Employee, Role
from app.schemas.approval import ApprovalDecision, ApprovalStepOut, WorkflowInitiated
from app.services import approval_workflow_service as workflow
from app.utils.datetime_utils import Clock

router = APIRouter()


@router.get("/pending", response_model=List[ApprovalStepOut])
async def pending_approvals(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Every PENDING step assigned to the current user, including ones still waiting on an earlier step"""
    return workflow.get_pending_approvals_for(db, current_user.id)


@router.get("/leave/{leave_request_id}/steps", response_model=List[ApprovalStepOut])
async def approval_steps(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return workflow.get_approval_steps(db, leave_request_id)


@router.post("/steps/{step_id}/process", response_model=ApprovalStepOut)
async def process_step(
    step_id: int,
    decision: ApprovalDecision,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(get_current_user),
):
    """
    Approve or reject an approval step

    Only the step's approver may act, and only after every earlier step is approved.
    """
    return workflow.process_approval_step(
        db,
        current_user.id,
        step_id,
        decision.approved,
        comment=decision.comment,
        clock=clock,
    )


@router.post("/leave/{leave_request_id}/initiate", response_model=WorkflowInitiated)
async def initiate(
    leave_request_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(require_roles(Role.HR)),
):
    """Route a PENDING request that has no approval steps yet (HR/ADMIN)"""
    steps_created = workflow.initiate_workflow(db, leave_request_id, clock=clock)
    return WorkflowInitiated(leave_request_id=leave_request_id, steps_created=steps_created)
