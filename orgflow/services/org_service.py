"""
Org chart assignments - reporting lines, department heads and the
approval chain preview
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from orgflow.constants import RESOLVER_TERMINAL_ROLES
from orgflow.core.exceptions import NotAuthorized, NotFound, ValidationError
from orgflow.db.unit_of_work import UnitOfWork
from orgflow.models.department import Department
from orgflow.models.user import User, Role
from orgflow.services.audit_service import log_audit
from orgflow.services.notification_service import Publisher
from orgflow.services.org_hierarchy_service import approval_chain
from orgflow.services.permission_service import Permission, has_permission

logger = logging.getLogger(__name__)

# Roles that stay as they are when made head of a department
_NO_DEMOTION_ROLES = frozenset({Role.CEO, Role.MD, Role.ADMIN, Role.HR})


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound(f"User with id {user_id} not found")
    return user


def would_create_cycle(db: Session, user_id: int, reports_to_id: int) -> bool:
    """
    Check if pointing user_id at reports_to_id would close a reporting loop

    Args:
        db: Database session
        user_id: ID of user being updated
        reports_to_id: Proposed manager ID

    Returns:
        True if cycle would be created, False otherwise
    """
    if user_id == reports_to_id:
        return True

    # Walk up the chain from the proposed manager
    visited = set()
    current_id = reports_to_id
    while current_id is not None:
        if current_id == user_id:
            return True
        if current_id in visited:
            break
        visited.add(current_id)
        manager = db.query(User).filter(User.id == current_id).first()
        if not manager:
            break
        current_id = manager.reports_to_id
    return False


def set_reports_to(db: Session, actor: User, user_id: int, reports_to_id: Optional[int]) -> User:
    """
    Set (or clear, with None) a user's direct manager

    Raises:
        NotFound: User or manager does not exist
        ValidationError: The assignment would create a reporting cycle
    """
    user = _get_user(db, user_id)
    if reports_to_id is not None:
        _get_user(db, reports_to_id)
        if would_create_cycle(db, user.id, reports_to_id):
            raise ValidationError("Cannot set reports_to: would create a reporting cycle")

    before = user.reports_to_id
    with UnitOfWork(db):
        user.reports_to_id = reports_to_id
        log_audit(
            db=db,
            actor_id=actor.id,
            action="USER_SET_REPORTS_TO",
            entity_type="users",
            entity_id=user.id,
            meta={"before": before, "after": reports_to_id},
        )
    logger.info(
        "reports_to updated: user_id=%s before=%s after=%s", user_id, before, reports_to_id
    )
    db.refresh(user)
    return user


def set_department_head(
    db: Session,
    actor: User,
    department_id: int,
    user_id: int,
    publish: Optional[Publisher] = None,
) -> Department:
    """
    Make user_id the head of department_id

    The new head must already belong to the department. Staff-level users are
    promoted to DEPARTMENT_HEAD; executive roles keep their role.

    Raises:
        NotFound: Department or user does not exist
        ValidationError: User is inactive or not a member of the department
    """
    department = db.query(Department).filter(Department.id == department_id).first()
    if not department:
        raise NotFound(f"Department with id {department_id} not found")
    user = _get_user(db, user_id)
    if user.department_id != department.id:
        raise ValidationError(f"User {user.id} is not a member of department {department.name}")
    if not user.active:
        raise ValidationError(f"User {user.id} is inactive")

    before_head_id = department.head_id
    with UnitOfWork(db, publish) as uow:
        department.head_id = user.id
        role_before = user.role
        if Role(user.role) not in _NO_DEMOTION_ROLES:
            user.role = Role.DEPARTMENT_HEAD.value
        log_audit(
            db=db,
            actor_id=actor.id,
            action="DEPARTMENT_SET_HEAD",
            entity_type="departments",
            entity_id=department.id,
            meta={
                "before_head_id": before_head_id,
                "head_id": user.id,
                "role_before": role_before,
                "role_after": user.role,
            },
        )
        uow.notify(
            user.id,
            "Department head assignment",
            f"You are now the head of {department.name}.",
            type="DEPARTMENT_HEAD_ASSIGNED",
            payload={"department_id": department.id},
            actor_id=actor.id,
        )
    logger.info(
        "department head updated: department_id=%s before=%s after=%s",
        department_id, before_head_id, user_id,
    )
    db.refresh(department)
    return department


def preview_approval_chain(db: Session, viewer: User, user_id: int) -> dict:
    """
    Approvers a new leave request from user_id would pass through

    Visible to the user themselves and to holders of leave:view_all.
    """
    user = _get_user(db, user_id)
    if viewer.id != user.id and not has_permission(viewer, Permission.LEAVE_VIEW_ALL):
        raise NotAuthorized("You are not allowed to view this user's approval chain")
    chain = approval_chain(db, user)
    return {
        "user_id": user.id,
        "approvers": chain,
        "auto_approved": not chain and Role(user.role) in RESOLVER_TERMINAL_ROLES,
    }
