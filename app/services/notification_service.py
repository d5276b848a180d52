"""
In-app notifications.

notify() is a best-effort sink: a notification that cannot be written is logged
and dropped, it never aborts the business operation that triggered it.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import (
    LINK_APPROVALS,
    LINK_LEAVE_REQUESTS,
    LINK_PENDING_APPROVALS,
    NOTIFY_APPROVAL,
    NOTIFY_ERROR,
    NOTIFY_INFO,
    NOTIFY_SUCCESS,
    NOTIFY_WARNING,
)
from app.core.exceptions import NotFoundError
from app.models.employee import Employee
from app.models.leave import LeaveRequest
from app.models.notification import Notification
from app.utils.datetime_utils import Clock, system_clock

logger = logging.getLogger(__name__)

NOTIFICATION_LIST_LIMIT = 50


def _persist(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    category: str,
    link: Optional[str],
    clock: Clock,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        category=category,
        link=link,
        is_read=False,
        created_at=clock.now(),
    )
    db.add(notification)
    db.flush()
    return notification


def notify(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    category: str = NOTIFY_INFO,
    link: Optional[str] = None,
    clock: Clock = system_clock,
) -> Optional[Notification]:
    """
    Queue a notification for user_id in the caller's transaction.

    Written inside a savepoint so a failing insert only rolls back itself.
    Returns None when notifications are disabled or the write failed.
    """
    if not settings.NOTIFICATIONS_ENABLED:
        return None
    db.flush()
    try:
        with db.begin_nested():
            return _persist(db, user_id, title, message, category, link, clock)
    except Exception:
        logger.exception("Dropping notification %r for user %s", title, user_id)
        return None


def _requester_name(db: Session, leave_request: LeaveRequest) -> str:
    employee = db.query(Employee).filter(Employee.id == leave_request.employee_id).first()
    return employee.full_name if employee else f"Employee #{leave_request.employee_id}"


def notify_approver(
    db: Session,
    approver_id: int,
    leave_request: LeaveRequest,
    first_step: bool,
    clock: Clock = system_clock,
) -> Optional[Notification]:
    """Tell an approver that a request is waiting on them."""
    title = "New Leave Request" if first_step else "Pending Approval"
    return notify(
        db,
        approver_id,
        title,
        f"Leave request from {_requester_name(db, leave_request)} requires your approval",
        category=NOTIFY_APPROVAL,
        link=LINK_APPROVALS.format(leave_request_id=leave_request.id),
        clock=clock,
    )


def notify_decision(
    db: Session,
    leave_request: LeaveRequest,
    approved: bool,
    clock: Clock = system_clock,
) -> Optional[Notification]:
    """Tell the requester their request was approved or rejected."""
    outcome = "approved" if approved else "rejected"
    return notify(
        db,
        leave_request.employee_id,
        f"Leave Request {outcome.capitalize()}",
        f"Your leave request from {leave_request.start_date:%b %d} to {leave_request.end_date:%b %d} "
        f"has been {outcome}.",
        category=NOTIFY_SUCCESS if approved else NOTIFY_ERROR,
        link=LINK_LEAVE_REQUESTS,
        clock=clock,
    )


def notify_cancelled(
    db: Session,
    leave_request: LeaveRequest,
    clock: Clock = system_clock,
) -> Optional[Notification]:
    """Tell the requester's manager that a request was cancelled."""
    employee = db.query(Employee).filter(Employee.id == leave_request.employee_id).first()
    if not employee or not employee.manager_id:
        return None
    return notify(
        db,
        employee.manager_id,
        "Leave Request Cancelled",
        f"{employee.full_name} has cancelled their leave request.",
        category=NOTIFY_WARNING,
        link=LINK_PENDING_APPROVALS,
        clock=clock,
    )


def list_notifications(db: Session, user_id: int, unread_only: bool = False) -> List[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(NOTIFICATION_LIST_LIMIT)
        .all()
    )


def unread_count(db: Session, user_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .count()
    )


def mark_as_read(db: Session, notification_id: int, user_id: int, clock: Clock = system_clock) -> Notification:
    """Mark one of the user's notifications read. Other users' notifications are reported as not found."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = clock.now()
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_as_read(db: Session, user_id: int, clock: Clock = system_clock) -> int:
    """Mark every unread notification of the user read; returns how many changed."""
    notifications = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
    ).all()
    now = clock.now()
    for notification in notifications:
        notification.is_read = True
        notification.read_at = now
    db.commit()
    return len(notifications)
