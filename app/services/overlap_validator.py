"""
Overlap validation for leave requests
"""
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.models.leave import LeaveRequest, ACTIVE_LEAVE_STATUSES


def find_overlapping_request(
    db: Session,
    employee_id: int,
    start_date: date,
    end_date: date,
    exclude_request_id: Optional[int] = None,
) -> Optional[LeaveRequest]:
    """
    Return the first PENDING or APPROVED request of the employee whose date range
    intersects [start_date, end_date].

    Ranges are inclusive, so a request ending on the day another starts overlaps it.

    Args:
        db: Database session
        employee_id: Employee ID
        start_date: Start date of the candidate range
        end_date: End date of the candidate range
        exclude_request_id: Request to ignore (the one being updated)
    """
    # existing.start <= new.end AND existing.end >= new.start
    query = db.query(LeaveRequest).filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
        LeaveRequest.start_date <= end_date,
        LeaveRequest.end_date >= start_date,
    )
    if exclude_request_id is not None:
        query = query.filter(LeaveRequest.id != exclude_request_id)
    return query.order_by(LeaveRequest.start_date).first()


def has_overlap(
    db: Session,
    employee_id: int,
    start_date: date,
    end_date: date,
    exclude_request_id: Optional[int] = None,
) -> bool:
    return find_overlapping_request(db, employee_id, start_date, end_date, exclude_request_id) is not None
