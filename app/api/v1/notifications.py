"""
Notification endpoints
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, get_clock
from app.models.employee import Employee
from app.schemas.notification import NotificationOut, UnreadCount, MarkAllReadResult
from app.services import notification_service
from app.utils.datetime_utils import Clock

router = APIRouter()


@router.get("", response_model=List[NotificationOut])
async def list_notifications(
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Latest 50 notifications of the current user, newest first"""
    return notification_service.list_notifications(db, current_user.id, unread_only=unread_only)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    return UnreadCount(unread=notification_service.unread_count(db, current_user.id))


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(get_current_user),
):
    return notification_service.mark_as_read(db, notification_id, current_user.id, clock=clock)


@router.post("/read-all", response_model=MarkAllReadResult)
async def mark_all_read(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: Employee = Depends(get_current_user),
):
    return MarkAllReadResult(updated=notification_service.mark_all_as_read(db, current_user.id, clock=clock))
