"""
Tests for the multi-level approval workflow
"""
from datetime import date
from decimal import Decimal

import pytest
from fastapi import status
from sqlalchemy import text

from app.core.config import settings
from app.core.exceptions import (
    ConcurrentModificationError,
    InvalidStateError,
    NotFoundError,
    PrecedenceViolationError,
    UnauthorizedActorError,
)
from app.models.employee import Role
from app.models.leave import (
    ApprovalStepStatus,
    LeaveStatus,
    WorkflowState,
)
from app.services import approval_workflow_service as workflow
from app.services import leave_balance_service as ledger


@pytest.fixture
def balance(make_balance, employee, annual_leave):
    return make_balance(employee, annual_leave, total=20)


@pytest.fixture
def leave_request(make_request, employee, annual_leave, balance):
    """Jun 9 - Jun 13, 5 business days, not yet routed"""
    return make_request(employee, annual_leave, date(2025, 6, 9), date(2025, 6, 13))


@pytest.fixture
def routed(db, clock, leave_request):
    workflow.initiate_workflow(db, leave_request.id, clock=clock)
    return leave_request


def _steps(db, leave_request_id):
    return workflow.get_approval_steps(db, leave_request_id)


def _statuses(db, leave_request_id):
    return [s.status for s in _steps(db, leave_request_id)]


@pytest.mark.parametrize("start,target", [
    (LeaveStatus.REJECTED, LeaveStatus.APPROVED),
    (LeaveStatus.CANCELLED, LeaveStatus.PENDING),
    (LeaveStatus.APPROVED, LeaveStatus.REJECTED),
    (LeaveStatus.APPROVED, LeaveStatus.PENDING),
])
def test_illegal_status_move_rejected(make_request, employee, annual_leave, start, target):
    request = make_request(employee, annual_leave, date(2025, 6, 9), date(2025, 6, 10), status=start)

    with pytest.raises(InvalidStateError):
        request.status = target
    assert request.status == start


def test_legal_status_moves_accepted(make_request, employee, annual_leave):
    request = make_request(employee, annual_leave, date(2025, 6, 9), date(2025, 6, 10))

    request.status = LeaveStatus.APPROVED
    request.status = LeaveStatus.CANCELLED
    assert request.status == LeaveStatus.CANCELLED


def test_initiate_builds_manager_chain(db, clock, leave_request, manager, grand_manager):
    count = workflow.initiate_workflow(db, leave_request.id, clock=clock)

    assert count == 2
    steps = _steps(db, leave_request.id)
    assert [(s.approver_id, s.step_order) for s in steps] == [(manager.id, 1), (grand_manager.id, 2)]
    assert all(s.status == ApprovalStepStatus.PENDING for s in steps)
    assert workflow.workflow_state(db, leave_request.id) == WorkflowState.IN_PROGRESS


def test_chain_stops_at_max_levels(db, clock, make_employee, grand_manager, leave_request):
    top = make_employee("Tom", role=Role.MANAGER)
    grand_manager.manager_id = top.id
    db.commit()

    assert workflow.initiate_workflow(db, leave_request.id, clock=clock) == settings.MAX_APPROVAL_LEVELS
    assert top.id not in [s.approver_id for s in _steps(db, leave_request.id)]


def test_chain_follows_configured_depth(db, clock, make_employee, grand_manager, leave_request, monkeypatch):
    top = make_employee("Tom", role=Role.MANAGER)
    grand_manager.manager_id = top.id
    db.commit()
    monkeypatch.setattr(settings, "MAX_APPROVAL_LEVELS", 3)

    assert workflow.initiate_workflow(db, leave_request.id, clock=clock) == 3
    assert _steps(db, leave_request.id)[-1].approver_id == top.id


def test_no_manager_falls_back_to_admin(db, clock, make_employee, make_request, annual_leave, admin):
    loner = make_employee("Lou")
    request = make_request(loner, annual_leave, date(2025, 6, 9), date(2025, 6, 10))

    assert workflow.initiate_workflow(db, request.id, clock=clock) == 1
    [step] = _steps(db, request.id)
    assert (step.approver_id, step.step_order) == (admin.id, 1)


def test_admin_fallback_skips_inactive_admin(db, clock, make_employee, make_request, annual_leave, admin):
    admin.active = False
    db.commit()
    backup = make_employee("Bea", role=Role.ADMIN)
    loner = make_employee("Lou")
    request = make_request(loner, annual_leave, date(2025, 6, 9), date(2025, 6, 10))

    assert workflow.initiate_workflow(db, request.id, clock=clock) == 1
    assert _steps(db, request.id)[0].approver_id == backup.id


def test_admin_never_approves_own_request(db, clock, make_request, annual_leave, admin):
    request = make_request(admin, annual_leave, date(2025, 6, 9), date(2025, 6, 10))

    assert workflow.initiate_workflow(db, request.id, clock=clock) == 0
    assert workflow.workflow_state(db, request.id) == WorkflowState.NOT_INITIATED


def test_initiate_twice_rejected(db, clock, routed):
    with pytest.raises(InvalidStateError):
        workflow.initiate_workflow(db, routed.id, clock=clock)
    assert len(_steps(db, routed.id)) == 2


def test_initiate_requires_pending(db, clock, make_request, employee, annual_leave):
    request = make_request(employee, annual_leave, date(2025, 6, 9), date(2025, 6, 10), status=LeaveStatus.CANCELLED)
    with pytest.raises(InvalidStateError):
        workflow.initiate_workflow(db, request.id, clock=clock)


def test_initiate_unknown_request(db, clock):
    with pytest.raises(NotFoundError):
        workflow.initiate_workflow(db, 9999, clock=clock)


def test_two_level_approval_deducts_on_last_step(db, clock, routed, manager, grand_manager, balance):
    first, second = _steps(db, routed.id)

    step = workflow.process_approval_step(db, manager.id, first.id, approved=True, comment="ok", clock=clock)

    assert step.status == ApprovalStepStatus.APPROVED
    assert step.comment == "ok"
    assert routed.status == LeaveStatus.PENDING
    assert workflow.workflow_state(db, routed.id) == WorkflowState.IN_PROGRESS
    db.refresh(balance)
    assert balance.used == Decimal("0")

    workflow.process_approval_step(db, grand_manager.id, second.id, approved=True, clock=clock)

    db.refresh(routed)
    assert routed.status == LeaveStatus.APPROVED
    assert routed.approver_id == grand_manager.id
    assert routed.approved_at is not None
    assert workflow.workflow_state(db, routed.id) == WorkflowState.APPROVED
    db.refresh(balance)
    assert balance.used == Decimal("5")


def test_deduction_uses_start_date_year_bucket(
    db, clock, make_request, make_balance, employee, annual_leave, manager, grand_manager, balance
):
    next_year = make_balance(employee, annual_leave, year=2026, total=20)
    request = make_request(employee, annual_leave, date(2026, 1, 5), date(2026, 1, 6))
    workflow.initiate_workflow(db, request.id, clock=clock)
    first, second = _steps(db, request.id)

    workflow.process_approval_step(db, manager.id, first.id, approved=True, clock=clock)
    workflow.process_approval_step(db, grand_manager.id, second.id, approved=True, clock=clock)

    db.refresh(next_year)
    db.refresh(balance)
    assert next_year.used == Decimal("2")
    assert balance.used == Decimal("0")


def test_precedence_violation_changes_nothing(db, clock, routed, grand_manager):
    second = _steps(db, routed.id)[1]

    with pytest.raises(PrecedenceViolationError):
        workflow.process_approval_step(db, grand_manager.id, second.id, approved=True, clock=clock)

    assert _statuses(db, routed.id) == [ApprovalStepStatus.PENDING, ApprovalStepStatus.PENDING]
    db.refresh(routed)
    assert routed.status == LeaveStatus.PENDING


def test_wrong_approver_rejected(db, clock, routed, employee, grand_manager):
    first = _steps(db, routed.id)[0]

    with pytest.raises(UnauthorizedActorError):
        workflow.process_approval_step(db, employee.id, first.id, approved=True, clock=clock)
    with pytest.raises(UnauthorizedActorError):
        workflow.process_approval_step(db, grand_manager.id, first.id, approved=True, clock=clock)


def test_unknown_step(db, clock, manager):
    with pytest.raises(NotFoundError):
        workflow.process_approval_step(db, manager.id, 9999, approved=True, clock=clock)


def test_step_cannot_be_processed_twice(db, clock, routed, manager):
    first = _steps(db, routed.id)[0]
    workflow.process_approval_step(db, manager.id, first.id, approved=True, clock=clock)

    with pytest.raises(InvalidStateError):
        workflow.process_approval_step(db, manager.id, first.id, approved=False, clock=clock)


def test_reject_first_step_skips_the_rest(db, clock, routed, manager, grand_manager, balance):
    first, second = _steps(db, routed.id)

    workflow.process_approval_step(db, manager.id, first.id, approved=False, comment="Busy week", clock=clock)

    assert _statuses(db, routed.id) == [ApprovalStepStatus.REJECTED, ApprovalStepStatus.SKIPPED]
    db.refresh(routed)
    assert routed.status == LeaveStatus.REJECTED
    assert routed.approver_comment == "Busy week"
    assert workflow.workflow_state(db, routed.id) == WorkflowState.REJECTED
    db.refresh(balance)
    assert balance.used == Decimal("0")

    with pytest.raises(InvalidStateError):
        workflow.process_approval_step(db, grand_manager.id, second.id, approved=True, clock=clock)


def test_reject_middle_step_keeps_earlier_approvals(
    db, clock, make_employee, grand_manager, manager, leave_request, monkeypatch
):
    top = make_employee("Tom", role=Role.MANAGER)
    grand_manager.manager_id = top.id
    db.commit()
    monkeypatch.setattr(settings, "MAX_APPROVAL_LEVELS", 3)
    workflow.initiate_workflow(db, leave_request.id, clock=clock)
    first, second, _ = _steps(db, leave_request.id)

    workflow.process_approval_step(db, manager.id, first.id, approved=True, clock=clock)
    workflow.process_approval_step(db, grand_manager.id, second.id, approved=False, clock=clock)

    assert _statuses(db, leave_request.id) == [
        ApprovalStepStatus.APPROVED,
        ApprovalStepStatus.REJECTED,
        ApprovalStepStatus.SKIPPED,
    ]


def test_admin_fallback_rejection_has_no_balance_impact(
    db, clock, make_employee, make_request, make_balance, annual_leave, admin
):
    loner = make_employee("Lou")
    bucket = make_balance(loner, annual_leave, total=20)
    request = make_request(loner, annual_leave, date(2025, 6, 9), date(2025, 6, 10))
    workflow.initiate_workflow(db, request.id, clock=clock)
    [step] = _steps(db, request.id)

    workflow.process_approval_step(db, admin.id, step.id, approved=False, clock=clock)

    db.refresh(request)
    db.refresh(bucket)
    assert request.status == LeaveStatus.REJECTED
    assert bucket.used == Decimal("0")


def test_pending_approvals_listed_regardless_of_precedence(db, clock, routed, manager, grand_manager):
    assert [s.step_order for s in workflow.get_pending_approvals_for(db, manager.id)] == [1]
    assert [s.step_order for s in workflow.get_pending_approvals_for(db, grand_manager.id)] == [2]

    first = _steps(db, routed.id)[0]
    workflow.process_approval_step(db, manager.id, first.id, approved=True, clock=clock)

    assert workflow.get_pending_approvals_for(db, manager.id) == []


def test_stale_step_is_reported_as_concurrent_modification(db, clock, routed, manager, balance):
    first = _steps(db, routed.id)[0]
    # Another writer bumps the row version behind this session's back
    db.execute(
        text("UPDATE approval_steps SET version_id = version_id + 1 WHERE id = :id"),
        {"id": first.id},
    )

    with pytest.raises(ConcurrentModificationError):
        workflow.process_approval_step(db, manager.id, first.id, approved=True, clock=clock)

    assert _statuses(db, routed.id) == [ApprovalStepStatus.PENDING, ApprovalStepStatus.PENDING]


def test_failed_deduction_rolls_back_the_decision(
    db, clock, make_employee, make_request, annual_leave, admin, monkeypatch
):
    loner = make_employee("Lou")
    request = make_request(loner, annual_leave, date(2025, 6, 9), date(2025, 6, 10))
    workflow.initiate_workflow(db, request.id, clock=clock)
    [step] = _steps(db, request.id)
    monkeypatch.setattr(settings, "AUTO_CREATE_MISSING_BALANCE", False)

    with pytest.raises(NotFoundError):
        workflow.process_approval_step(db, admin.id, step.id, approved=True, clock=clock)

    assert _statuses(db, request.id) == [ApprovalStepStatus.PENDING]
    db.refresh(request)
    assert request.status == LeaveStatus.PENDING
    assert ledger.get_balance(db, loner.id, annual_leave.id, 2025) is None


def test_process_endpoint_error_codes(client, routed, manager, grand_manager, employee, auth_headers):
    first, second = (s["id"] for s in client.get(
        f"/api/v1/approvals/leave/{routed.id}/steps", headers=auth_headers(employee)
    ).json())

    out_of_order = client.post(
        f"/api/v1/approvals/steps/{second}/process",
        json={"approved": True},
        headers=auth_headers(grand_manager),
    )
    assert out_of_order.status_code == status.HTTP_409_CONFLICT
    assert out_of_order.json()["error_code"] == "PRECEDENCE_VIOLATION"

    not_mine = client.post(
        f"/api/v1/approvals/steps/{first}/process",
        json={"approved": True},
        headers=auth_headers(employee),
    )
    assert not_mine.status_code == status.HTTP_403_FORBIDDEN
    assert not_mine.json()["error_code"] == "UNAUTHORIZED"

    ok = client.post(
        f"/api/v1/approvals/steps/{first}/process",
        json={"approved": True, "comment": "Enjoy"},
        headers=auth_headers(manager),
    )
    assert ok.status_code == status.HTTP_200_OK
    assert ok.json()["status"] == "APPROVED"
    assert ok.json()["action_at"].endswith("Z")

    missing = client.post(
        "/api/v1/approvals/steps/9999/process",
        json={"approved": True},
        headers=auth_headers(manager),
    )
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_pending_endpoint(client, routed, grand_manager, auth_headers):
    response = client.get("/api/v1/approvals/pending", headers=auth_headers(grand_manager))

    assert response.status_code == status.HTTP_200_OK
    [step] = response.json()
    assert step["leave_request_id"] == routed.id
    assert step["step_order"] == 2


def test_initiate_endpoint_requires_hr(client, leave_request, employee, hr_user, auth_headers):
    url = f"/api/v1/approvals/leave/{leave_request.id}/initiate"
    assert client.post(url, headers=auth_headers(employee)).status_code == 403

    response = client.post(url, headers=auth_headers(hr_user))
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"leave_request_id": leave_request.id, "steps_created": 2}

    again = client.post(url, headers=auth_headers(hr_user))
    assert again.status_code == status.HTTP_400_BAD_REQUEST
