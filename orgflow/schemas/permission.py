"""
Permission schemas
"""
from typing import Dict, List
from pydantic import BaseModel, Field


class PermissionChange(BaseModel):
    permission: str = Field(..., description="Permission string, e.g. ticket:delete")


class PermissionCatalogue(BaseModel):
    permissions: List[str]


class UserPermissionsOut(BaseModel):
    user_id: int
    role: str
    permissions: List[str] = Field(..., description="Effective permissions (role defaults plus custom)")
    custom_permissions: List[str]


class RoleDefaultsOut(BaseModel):
    roles: Dict[str, List[str]]
