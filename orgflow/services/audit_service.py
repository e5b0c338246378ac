"""
Audit logging service
"""
from sqlalchemy.orm import Session
from orgflow.models.audit_log import AuditLog
from orgflow.utils.datetime_utils import now_utc
from orgflow.utils.json_serializer import sanitize_for_json
from typing import Optional, Dict, Any


def log_audit(
    db: Session,
    actor_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Stage an audit log entry in the caller's transaction

    The row is added to the session but not committed, so it lands (or is
    rolled back) together with the state change it describes.

    Args:
        db: Database session
        actor_id: ID of the user performing the action (None for system actions)
        action: Action type (e.g., "LEAVE_APPROVE", "TICKET_CONTEST")
        entity_type: Type of entity (e.g., "leave_requests", "tickets")
        entity_id: ID of the affected entity (optional)
        meta: Additional metadata as dictionary (optional)

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        created_at=now_utc()
    )
    db.add(audit_log)
    return audit_log
