"""
Tests for leave request endpoints: apply, view, update, cancel, delete
"""
from decimal import Decimal

import pytest
from fastapi import status

from app.models.leave import ApprovalStep, ApprovalStepStatus, LeaveBalance, LeaveRequest
from app.services import leave_balance_service as ledger


@pytest.fixture
def balance(make_balance, employee, annual_leave):
    return make_balance(employee, annual_leave, total=20)


def _apply(client, headers, leave_type, start="2025-06-09", end="2025-06-13", reason="Family trip"):
    return client.post(
        "/api/v1/leaves/apply",
        json={"leave_type_id": leave_type.id, "start_date": start, "end_date": end, "reason": reason},
        headers=headers,
    )


def _approve_all(client, auth_headers, leave_request_id, approvers):
    steps = client.get(
        f"/api/v1/approvals/leave/{leave_request_id}/steps", headers=auth_headers(approvers[0])
    ).json()
    for step, approver in zip(steps, approvers):
        response = client.post(
            f"/api/v1/approvals/steps/{step['id']}/process",
            json={"approved": True},
            headers=auth_headers(approver),
        )
        assert response.status_code == status.HTTP_200_OK


def test_apply_creates_pending_request_with_chain(
    client, db, balance, employee, manager, grand_manager, annual_leave, auth_headers
):
    response = _apply(client, auth_headers(employee), annual_leave)

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["total_days"] == 5
    assert data["employee_id"] == employee.id

    steps = db.query(ApprovalStep).filter(ApprovalStep.leave_request_id == data["id"]).order_by(ApprovalStep.step_order).all()
    assert [s.approver_id for s in steps] == [manager.id, grand_manager.id]

    # balance is only consumed on final approval
    db.refresh(balance)
    assert balance.used == Decimal("0")


def test_apply_counts_business_days_only(client, balance, employee, annual_leave, auth_headers):
    """Fri Jun 6 - Tue Jun 10 spans a weekend"""
    response = _apply(client, auth_headers(employee), annual_leave, start="2025-06-06", end="2025-06-10")

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["total_days"] == 3


def test_apply_opens_missing_bucket(client, db, employee, annual_leave, auth_headers):
    response = _apply(client, auth_headers(employee), annual_leave)

    assert response.status_code == status.HTTP_201_CREATED
    bucket = ledger.get_balance(db, employee.id, annual_leave.id, 2025)
    assert bucket.total == Decimal("20")


def test_apply_in_the_past_rejected(client, balance, employee, annual_leave, auth_headers):
    response = _apply(client, auth_headers(employee), annual_leave, start="2025-05-30", end="2025-06-03")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error_code"] == "INVALID_STATE"


def test_apply_weekend_only_rejected(client, balance, employee, annual_leave, auth_headers):
    response = _apply(client, auth_headers(employee), annual_leave, start="2025-06-07", end="2025-06-08")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "business day" in response.json()["detail"]


def test_apply_end_before_start_rejected(client, balance, employee, annual_leave, auth_headers):
    response = _apply(client, auth_headers(employee), annual_leave, start="2025-06-13", end="2025-06-09")
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_apply_insufficient_balance(client, db, make_balance, employee, annual_leave, auth_headers):
    make_balance(employee, annual_leave, total=3)

    response = _apply(client, auth_headers(employee), annual_leave)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error_code"] == "INSUFFICIENT_BALANCE"
    assert db.query(LeaveRequest).count() == 0
    assert db.query(ApprovalStep).count() == 0


def test_apply_overlapping_rejected(client, balance, employee, annual_leave, auth_headers):
    headers = auth_headers(employee)
    assert _apply(client, headers, annual_leave).status_code == 201

    response = _apply(client, headers, annual_leave, start="2025-06-13", end="2025-06-16")

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error_code"] == "CONFLICT"


def test_apply_unknown_leave_type(client, employee, auth_headers):
    response = client.post(
        "/api/v1/leaves/apply",
        json={"leave_type_id": 9999, "start_date": "2025-06-09", "end_date": "2025-06-10"},
        headers=auth_headers(employee),
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_my_leaves(client, balance, employee, manager, annual_leave, auth_headers):
    _apply(client, auth_headers(employee), annual_leave)

    mine = client.get("/api/v1/leaves/my", headers=auth_headers(employee)).json()
    theirs = client.get("/api/v1/leaves/my", headers=auth_headers(manager)).json()

    assert mine["total"] == 1
    assert theirs["total"] == 0


def test_list_all_requires_hr(client, balance, employee, hr_user, annual_leave, auth_headers):
    _apply(client, auth_headers(employee), annual_leave)

    assert client.get("/api/v1/leaves/list", headers=auth_headers(employee)).status_code == 403
    response = client.get("/api/v1/leaves/list", params={"status": "PENDING"}, headers=auth_headers(hr_user))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["total"] == 1


def test_detail_includes_steps_and_state(client, balance, employee, grand_manager, annual_leave, auth_headers):
    leave_id = _apply(client, auth_headers(employee), annual_leave).json()["id"]

    response = client.get(f"/api/v1/leaves/{leave_id}", headers=auth_headers(grand_manager))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["workflow_state"] == "IN_PROGRESS"
    assert [s["step_order"] for s in data["steps"]] == [1, 2]


def test_detail_hidden_from_unrelated_employee(client, balance, make_employee, employee, annual_leave, auth_headers):
    outsider = make_employee("Olga")
    leave_id = _apply(client, auth_headers(employee), annual_leave).json()["id"]

    response = client.get(f"/api/v1/leaves/{leave_id}", headers=auth_headers(outsider))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_cancel_pending_leaves_balance_untouched(client, db, balance, employee, annual_leave, auth_headers):
    leave_id = _apply(client, auth_headers(employee), annual_leave).json()["id"]

    response = client.post(f"/api/v1/leaves/{leave_id}/cancel", headers=auth_headers(employee))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["cancelled_by_id"] == employee.id
    steps = db.query(ApprovalStep).filter(ApprovalStep.leave_request_id == leave_id).all()
    assert {s.status for s in steps} == {ApprovalStepStatus.SKIPPED}
    db.refresh(balance)
    assert balance.used == Decimal("0")


def test_cancel_approved_restores_exact_amount(
    client, db, make_balance, employee, manager, grand_manager, annual_leave, auth_headers
):
    balance = make_balance(employee, annual_leave, total=20, used=2)
    leave_id = _apply(client, auth_headers(employee), annual_leave).json()["id"]
    _approve_all(client, auth_headers, leave_id, [manager, grand_manager])

    db.refresh(balance)
    assert balance.used == Decimal("7")

    response = client.post(f"/api/v1/leaves/{leave_id}/cancel", headers=auth_headers(employee))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "CANCELLED"
    db.refresh(balance)
    assert balance.used == Decimal("2")


def test_cancel_twice_rejected(client, balance, employee, annual_leave, auth_headers):
    headers = auth_headers(employee)
    leave_id = _apply(client, headers, annual_leave).json()["id"]
    client.post(f"/api/v1/leaves/{leave_id}/cancel", headers=headers)

    response = client.post(f"/api/v1/leaves/{leave_id}/cancel", headers=headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error_code"] == "INVALID_STATE"


def test_cancel_rejected_request_not_allowed(client, balance, employee, manager, annual_leave, auth_headers):
    leave_id = _apply(client, auth_headers(employee), annual_leave).json()["id"]
    step_id = client.get(
        f"/api/v1/approvals/leave/{leave_id}/steps", headers=auth_headers(manager)
    ).json()[0]["id"]
    client.post(
        f"/api/v1/approvals/steps/{step_id}/process",
        json={"approved": False, "comment": "Release week"},
        headers=auth_headers(manager),
    )

    response = client.post(f"/api/v1/leaves/{leave_id}/cancel", headers=auth_headers(employee))
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_cancel_someone_elses_request(client, balance, employee, manager, hr_user, annual_leave, auth_headers):
    leave_id = _apply(client, auth_headers(employee), annual_leave).json()["id"]

    assert client.post(f"/api/v1/leaves/{leave_id}/cancel", headers=auth_headers(manager)).status_code == 403
    assert client.post(f"/api/v1/leaves/{leave_id}/cancel", headers=auth_headers(hr_user)).status_code == 200


def test_update_pending_request(client, balance, employee, annual_leave, auth_headers):
    headers = auth_headers(employee)
    leave_id = _apply(client, headers, annual_leave).json()["id"]

    response = client.patch(
        f"/api/v1/leaves/{leave_id}",
        json={"end_date": "2025-06-10", "reason": "Shorter trip"},
        headers=headers,
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["end_date"] == "2025-06-10"
    assert data["total_days"] == 2
    assert data["reason"] == "Shorter trip"


def test_update_after_first_decision_rejected(client, balance, employee, manager, annual_leave, auth_headers):
    leave_id = _apply(client, auth_headers(employee), annual_leave).json()["id"]
    step_id = client.get(
        f"/api/v1/approvals/leave/{leave_id}/steps", headers=auth_headers(manager)
    ).json()[0]["id"]
    client.post(f"/api/v1/approvals/steps/{step_id}/process", json={"approved": True}, headers=auth_headers(manager))

    response = client.patch(
        f"/api/v1/leaves/{leave_id}", json={"end_date": "2025-06-10"}, headers=auth_headers(employee)
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_update_by_other_employee_rejected(client, balance, employee, manager, annual_leave, auth_headers):
    leave_id = _apply(client, auth_headers(employee), annual_leave).json()["id"]

    response = client.patch(
        f"/api/v1/leaves/{leave_id}", json={"end_date": "2025-06-10"}, headers=auth_headers(manager)
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_delete_is_admin_only(client, db, balance, employee, admin, annual_leave, auth_headers):
    leave_id = _apply(client, auth_headers(employee), annual_leave).json()["id"]

    assert client.delete(f"/api/v1/leaves/{leave_id}", headers=auth_headers(employee)).status_code == 403

    response = client.delete(f"/api/v1/leaves/{leave_id}", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert db.query(LeaveRequest).count() == 0
    assert db.query(ApprovalStep).count() == 0
    assert db.query(LeaveBalance).count() == 1
