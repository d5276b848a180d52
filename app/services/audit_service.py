"""
Audit logging service
"""
import logging
from sqlalchemy.orm import Session
from app.models.audit_log import AuditLog
from app.utils.datetime_utils import now_utc
from app.utils.json_serializer import serialize_meta
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    actor_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None
) -> Optional[AuditLog]:
    """
    Record an audit log entry in the caller's transaction

    The entry is written inside a savepoint and never committed here: it lands
    with the caller's commit and disappears with the caller's rollback. A failure
    to write the entry is logged and does not abort the business operation.

    Args:
        db: Database session
        actor_id: ID of the employee performing the action (None for system jobs)
        action: Action type (e.g., "LEAVE_APPLY", "APPROVAL_STEP_PROCESS", "CARRY_FORWARD")
        entity_type: Type of entity (e.g., "leave_request", "approval_step", "leave_balance")
        entity_id: ID of the affected entity (optional)
        meta: Additional metadata as dictionary (optional)

    Returns:
        Created AuditLog instance, or None if it could not be written
    """
    # Pending business changes flush here so their errors reach the caller
    db.flush()
    try:
        with db.begin_nested():
            audit_log = AuditLog(
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                meta_json=serialize_meta(meta),
                created_at=now_utc(),
            )
            db.add(audit_log)
        return audit_log
    except Exception:
        logger.exception("Failed to write audit entry %s for %s %s", action, entity_type, entity_id)
        return None
