"""
Permission model

Role defaults are an immutable mapping built once at import from the closed
Role enumeration. Per-user custom permissions live on the user row and are
unioned in at check time; the role table itself is never mutated.
"""
import enum
import logging
from types import MappingProxyType
from typing import FrozenSet, List, Mapping

from sqlalchemy.orm import Session

from orgflow.core.exceptions import NotFound, ValidationError
from orgflow.models.user import User, Role
from orgflow.services.audit_service import log_audit

logger = logging.getLogger(__name__)


class Permission(str, enum.Enum):
    USER_MANAGE_PERMISSIONS = "user:manage_permissions"
    USER_SET_REPORTS_TO = "user:set_reports_to"
    DEPT_SET_HEAD = "department:set_head"
    LEAVE_APPROVE = "leave:approve"
    LEAVE_VIEW_ALL = "leave:view_all"
    TICKET_MANAGE = "ticket:manage"
    TICKET_DELETE = "ticket:delete"


_ALL = frozenset(Permission)

ROLE_PERMISSIONS: Mapping[Role, FrozenSet[Permission]] = MappingProxyType({
    Role.CEO: _ALL,
    Role.MD: frozenset({
        Permission.USER_SET_REPORTS_TO,
        Permission.DEPT_SET_HEAD,
        Permission.LEAVE_APPROVE,
        Permission.LEAVE_VIEW_ALL,
        Permission.TICKET_MANAGE,
    }),
    Role.ADMIN: frozenset({
        Permission.USER_MANAGE_PERMISSIONS,
        Permission.USER_SET_REPORTS_TO,
        Permission.DEPT_SET_HEAD,
        Permission.LEAVE_APPROVE,
        Permission.LEAVE_VIEW_ALL,
        Permission.TICKET_MANAGE,
        Permission.TICKET_DELETE,
    }),
    Role.HR: frozenset({
        Permission.USER_SET_REPORTS_TO,
        Permission.LEAVE_APPROVE,
        Permission.LEAVE_VIEW_ALL,
    }),
    Role.DEPARTMENT_HEAD: frozenset({
        Permission.LEAVE_APPROVE,
        Permission.TICKET_MANAGE,
    }),
    Role.ASST_DEPARTMENT_HEAD: frozenset({
        Permission.LEAVE_APPROVE,
        Permission.TICKET_MANAGE,
    }),
    Role.GENERAL_STAFF: frozenset(),
})


def parse_permission(value: str) -> Permission:
    try:
        return Permission(value)
    except ValueError:
        raise ValidationError(f"Invalid permission string '{value}'")


def default_permissions(role: str) -> FrozenSet[Permission]:
    try:
        return ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        # Unknown roles get nothing rather than failing the request
        logger.warning("Unknown role %r has no default permissions", role)
        return frozenset()


def custom_permissions(user: User) -> FrozenSet[Permission]:
    """Custom grants stored on the user; unknown strings are ignored."""
    granted = set()
    for raw in user.permissions or []:
        try:
            granted.add(Permission(raw))
        except ValueError:
            continue
    return frozenset(granted)


def effective_permissions(user: User) -> FrozenSet[Permission]:
    return default_permissions(user.role) | custom_permissions(user)


def has_permission(user: User, required: Permission) -> bool:
    if user.role == Role.CEO:
        return True
    return required in effective_permissions(user)


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound(f"User with id {user_id} not found")
    return user


def grant_permission(db: Session, actor: User, user_id: int, permission: str) -> List[str]:
    """Add a custom permission to a user and return the user's custom list"""
    perm = parse_permission(permission)
    user = _get_user(db, user_id)
    current = list(user.permissions or [])
    if perm.value not in current:
        # JSON columns are not mutation-tracked; assign a new list
        user.permissions = current + [perm.value]
        log_audit(
            db=db,
            actor_id=actor.id,
            action="PERMISSION_GRANT",
            entity_type="users",
            entity_id=user.id,
            meta={"permission": perm.value},
        )
        db.commit()
        db.refresh(user)
    return list(user.permissions)


def revoke_permission(db: Session, actor: User, user_id: int, permission: str) -> List[str]:
    """Remove a custom permission; role defaults are unaffected"""
    user = _get_user(db, user_id)
    current = list(user.permissions or [])
    if permission in current:
        user.permissions = [p for p in current if p != permission]
        log_audit(
            db=db,
            actor_id=actor.id,
            action="PERMISSION_REVOKE",
            entity_type="users",
            entity_id=user.id,
            meta={"permission": permission},
        )
        db.commit()
        db.refresh(user)
    return list(user.permissions)


def describe_permissions(db: Session, user_id: int) -> dict:
    user = _get_user(db, user_id)
    return {
        "user_id": user.id,
        "role": user.role,
        "permissions": sorted(p.value for p in effective_permissions(user)),
        "custom_permissions": list(user.permissions or []),
    }
