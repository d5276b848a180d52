"""
Leave type catalogue
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.db.session import unit_of_work
from app.models.leave import LeaveType
from app.schemas.leave_type import LeaveTypeCreate, LeaveTypeUpdate
from app.services.audit_service import log_audit

logger = logging.getLogger(__name__)


def get_leave_type(db: Session, leave_type_id: int) -> LeaveType:
    leave_type = db.query(LeaveType).filter(LeaveType.id == leave_type_id).first()
    if not leave_type:
        raise NotFoundError(f"Leave type with id {leave_type_id} not found")
    return leave_type


def list_leave_types(db: Session, active_only: bool = False) -> List[LeaveType]:
    query = db.query(LeaveType)
    if active_only:
        query = query.filter(LeaveType.active.is_(True))
    return query.order_by(LeaveType.name).all()


def create_leave_type(db: Session, data: LeaveTypeCreate, actor_id=None) -> LeaveType:
    name = data.name.strip()
    if db.query(LeaveType).filter(LeaveType.name == name).first():
        raise ConflictError(f"Leave type '{name}' already exists")
    with unit_of_work(db):
        leave_type = LeaveType(
            name=name,
            description=data.description,
            default_days=data.default_days,
            active=data.active,
        )
        db.add(leave_type)
        db.flush()
        log_audit(
            db=db,
            actor_id=actor_id,
            action="CREATE",
            entity_type="leave_type",
            entity_id=leave_type.id,
            meta=data.model_dump(),
        )
    db.refresh(leave_type)
    logger.info("Leave type %s (%s) created", leave_type.id, leave_type.name)
    return leave_type


def update_leave_type(db: Session, leave_type_id: int, data: LeaveTypeUpdate, actor_id=None) -> LeaveType:
    """Existing balances keep their totals when default_days changes; it only applies to new buckets."""
    leave_type = get_leave_type(db, leave_type_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name"):
        changes["name"] = changes["name"].strip()
        taken = db.query(LeaveType).filter(
            LeaveType.name == changes["name"],
            LeaveType.id != leave_type_id,
        ).first()
        if taken:
            raise ConflictError(f"Leave type '{changes['name']}' already exists")
    with unit_of_work(db):
        for field, value in changes.items():
            setattr(leave_type, field, value)
        db.flush()
        log_audit(
            db=db,
            actor_id=actor_id,
            action="UPDATE",
            entity_type="leave_type",
            entity_id=leave_type.id,
            meta=changes,
        )
    db.refresh(leave_type)
    return leave_type
