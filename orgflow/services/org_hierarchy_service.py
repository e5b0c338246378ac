"""
Org hierarchy resolver - who must act next on a pending request

Resolution uses role and department-head assignment only. reports_to links
describe direct-report relationships, not approval authority, and are never
consulted here.
"""
import logging
from typing import Callable, List, Optional, Tuple, FrozenSet

from sqlalchemy.orm import Session

from orgflow.constants import RESOLVER_TERMINAL_ROLES, TERMINAL_APPROVAL_ROLES, MAX_ESCALATION_HOPS
from orgflow.models.department import Department
from orgflow.models.user import User, Role

logger = logging.getLogger(__name__)


def first_active_with_role(db: Session, role: Role, exclude_id: Optional[int] = None) -> Optional[User]:
    """
    Deterministic pick for "any user holding role": the active holder with
    the lowest id, skipping exclude_id.
    """
    query = db.query(User).filter(User.role == role.value, User.active == True)  # noqa: E712
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.order_by(User.id.asc()).first()


def _department_head(db: Session, actor: User) -> Optional[User]:
    if actor.department_id is None:
        return None
    department = db.query(Department).filter(Department.id == actor.department_id).first()
    if not department or not department.head_id or department.head_id == actor.id:
        return None
    head = db.query(User).filter(User.id == department.head_id).first()
    if not head or not head.active:
        return None
    return head


def _department_head_or_hr(db: Session, actor: User) -> Optional[User]:
    return _department_head(db, actor) or first_active_with_role(db, Role.HR, exclude_id=actor.id)


def _any_hr(db: Session, actor: User) -> Optional[User]:
    return first_active_with_role(db, Role.HR, exclude_id=actor.id)


def _md_or_admin(db: Session, actor: User) -> Optional[User]:
    return (
        first_active_with_role(db, Role.MD, exclude_id=actor.id)
        or first_active_with_role(db, Role.ADMIN, exclude_id=actor.id)
    )


def _admin(db: Session, actor: User) -> Optional[User]:
    return first_active_with_role(db, Role.ADMIN, exclude_id=actor.id)


def _terminal(db: Session, actor: User) -> Optional[User]:
    return None


# Ordered rule chain, first match wins
RESOLUTION_RULES: Tuple[Tuple[FrozenSet[Role], Callable[[Session, User], Optional[User]]], ...] = (
    (frozenset({Role.GENERAL_STAFF, Role.ASST_DEPARTMENT_HEAD}), _department_head_or_hr),
    (frozenset({Role.DEPARTMENT_HEAD}), _any_hr),
    (frozenset({Role.HR}), _md_or_admin),
    (frozenset({Role.MD}), _admin),
    (RESOLVER_TERMINAL_ROLES, _terminal),
)


def next_approver(db: Session, actor: User) -> Optional[User]:
    """
    Resolve the next eligible approver above actor, or None when the chain
    ends (terminal role, or nobody holds the required role).

    Never returns actor.
    """
    role = Role(actor.role)
    for roles, resolve in RESOLUTION_RULES:
        if role in roles:
            approver = resolve(db, actor)
            logger.debug(
                "resolved next approver: actor_id=%s role=%s approver_id=%s",
                actor.id, role.value, approver.id if approver else None,
            )
            return approver
    return None


def approval_chain(db: Session, requester: User, max_hops: int = MAX_ESCALATION_HOPS) -> List[User]:
    """
    Preview the approvers a request from requester would pass through if
    every approver approved. Stops after a terminal-approval role, on a repeated user,
    or after max_hops.
    """
    chain: List[User] = []
    seen = {requester.id}
    current = requester
    for _ in range(max_hops):
        approver = next_approver(db, current)
        if approver is None or approver.id in seen:
            break
        chain.append(approver)
        if Role(approver.role) in TERMINAL_APPROVAL_ROLES:
            break
        seen.add(approver.id)
        current = approver
    return chain
