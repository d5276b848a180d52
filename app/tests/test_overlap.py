"""
Tests for leave overlap detection
"""
from datetime import date

import pytest

from app.models.leave import LeaveStatus
from app.services.overlap_validator import find_overlapping_request, has_overlap


@pytest.fixture
def existing(make_request, employee, annual_leave):
    """PENDING request covering Jun 9 - Jun 13"""
    return make_request(employee, annual_leave, date(2025, 6, 9), date(2025, 6, 13))


def test_shared_boundary_day_overlaps(db, existing, employee):
    assert has_overlap(db, employee.id, date(2025, 6, 13), date(2025, 6, 18))
    assert has_overlap(db, employee.id, date(2025, 6, 5), date(2025, 6, 9))


def test_adjacent_ranges_do_not_overlap(db, existing, employee):
    assert not has_overlap(db, employee.id, date(2025, 6, 14), date(2025, 6, 20))
    assert not has_overlap(db, employee.id, date(2025, 6, 2), date(2025, 6, 8))


def test_contained_and_containing_ranges_overlap(db, existing, employee):
    assert has_overlap(db, employee.id, date(2025, 6, 10), date(2025, 6, 11))
    assert has_overlap(db, employee.id, date(2025, 6, 1), date(2025, 6, 30))


def test_find_returns_the_conflicting_request(db, existing, employee):
    found = find_overlapping_request(db, employee.id, date(2025, 6, 12), date(2025, 6, 12))
    assert found.id == existing.id


def test_excluded_request_is_ignored(db, existing, employee):
    assert not has_overlap(
        db, employee.id, date(2025, 6, 9), date(2025, 6, 13), exclude_request_id=existing.id
    )


def test_other_employees_do_not_conflict(db, existing, manager):
    assert not has_overlap(db, manager.id, date(2025, 6, 9), date(2025, 6, 13))


@pytest.mark.parametrize("status", [LeaveStatus.REJECTED, LeaveStatus.CANCELLED])
def test_closed_requests_do_not_block(db, make_request, employee, annual_leave, status):
    make_request(employee, annual_leave, date(2025, 6, 9), date(2025, 6, 13), status=status)
    assert not has_overlap(db, employee.id, date(2025, 6, 9), date(2025, 6, 13))


def test_approved_requests_block(db, make_request, employee, annual_leave):
    make_request(employee, annual_leave, date(2025, 6, 9), date(2025, 6, 13), status=LeaveStatus.APPROVED)
    assert has_overlap(db, employee.id, date(2025, 6, 11), date(2025, 6, 16))
