"""
Approval ledger service - append-only trail of leave decisions
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from orgflow.models.leave import LeaveRequest, LedgerEntry, LeaveDecision
from orgflow.models.user import User
from orgflow.utils.datetime_utils import now_utc


def append_entry(
    db: Session,
    leave_request: LeaveRequest,
    actor: User,
    decision: LeaveDecision,
    note: Optional[str] = None,
) -> LedgerEntry:
    """
    Stage a ledger entry in the caller's transaction

    The actor's name and role are copied onto the entry so the trail still
    reads correctly after a later role change.

    Args:
        db: Database session
        leave_request: Request the decision was made on
        actor: User who made the decision
        decision: APPROVED or REJECTED
        note: Optional remarks

    Returns:
        Pending LedgerEntry instance
    """
    entry = LedgerEntry(
        leave_request_id=leave_request.id,
        actor_id=actor.id,
        actor_name=actor.name,
        actor_role=actor.role,
        decision=decision,
        note=note,
        created_at=now_utc(),
    )
    db.add(entry)
    return entry


def entries_for(db: Session, leave_request_id: int) -> List[LedgerEntry]:
    return (
        db.query(LedgerEntry)
        .filter(LedgerEntry.leave_request_id == leave_request_id)
        .order_by(LedgerEntry.id.asc())
        .all()
    )
