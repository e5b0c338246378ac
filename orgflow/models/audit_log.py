"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from orgflow.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String, nullable=False)  # e.g. "LEAVE_SUBMIT", "TICKET_RESOLVE", "SET_REPORTS_TO"
    entity_type = Column(String, nullable=False)  # e.g. "leave_requests", "tickets", "users"
    entity_id = Column(Integer, nullable=True)
    meta_json = Column(JSON, nullable=True)
    # Set explicitly; SQLite server defaults lose timezone
    created_at = Column(DateTime(timezone=True), nullable=False)
