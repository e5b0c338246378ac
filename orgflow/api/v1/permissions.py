"""
Permission catalogue and per-user custom permission endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orgflow.core.deps import get_db, get_current_user, require_permission, require_roles
from orgflow.core.exceptions import NotAuthorized
from orgflow.models.user import User, Role
from orgflow.schemas.permission import PermissionChange, PermissionCatalogue, RoleDefaultsOut, UserPermissionsOut
from orgflow.services import permission_service
from orgflow.services.permission_service import Permission

router = APIRouter()


@router.get("", response_model=PermissionCatalogue)
async def list_permissions(current_user: User = Depends(get_current_user)):
    """All permission strings known to the system"""
    return PermissionCatalogue(permissions=[p.value for p in Permission])


@router.get("/users/{user_id}", response_model=UserPermissionsOut)
async def get_user_permissions(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Effective and custom permissions; users may read their own, managers anyone's"""
    if current_user.id != user_id and not permission_service.has_permission(
        current_user, Permission.USER_MANAGE_PERMISSIONS
    ):
        raise NotAuthorized("You may only view your own permissions")
    return permission_service.describe_permissions(db, user_id)


@router.post("/users/{user_id}", response_model=UserPermissionsOut)
async def grant_user_permission(
    user_id: int,
    body: PermissionChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.USER_MANAGE_PERMISSIONS)),
):
    permission_service.grant_permission(db, current_user, user_id, body.permission)
    return permission_service.describe_permissions(db, user_id)


@router.delete("/users/{user_id}", response_model=UserPermissionsOut)
async def revoke_user_permission(
    user_id: int,
    body: PermissionChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.USER_MANAGE_PERMISSIONS)),
):
    permission_service.revoke_permission(db, current_user, user_id, body.permission)
    return permission_service.describe_permissions(db, user_id)


@router.get("/roles", response_model=RoleDefaultsOut)
async def list_role_defaults(
    current_user: User = Depends(require_roles(Role.ADMIN, Role.HR)),
):
    """Default permissions granted by each role"""
    return RoleDefaultsOut(roles={
        role.value: sorted(p.value for p in perms)
        for role, perms in permission_service.ROLE_PERMISSIONS.items()
    })
