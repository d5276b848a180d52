"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from app.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    action = Column(String, nullable=False)  # e.g. "LEAVE_APPLY", "APPROVAL_STEP_PROCESS", "BALANCE_ADJUST"
    entity_type = Column(String, nullable=False)  # e.g. "leave_request", "approval_step", "leave_balance"
    entity_id = Column(Integer, nullable=True)
    meta_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
