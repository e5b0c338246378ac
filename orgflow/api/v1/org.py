"""
Org chart assignment endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orgflow.core.deps import get_db, get_current_user, require_permission, get_publisher
from orgflow.models.user import User
from orgflow.schemas.org import (
    ApprovalChainOut,
    ReportsToUpdate,
    DepartmentHeadUpdate,
    UserOrgOut,
    DepartmentOut,
)
from orgflow.services.notification_service import Publisher
from orgflow.services.org_service import preview_approval_chain, set_reports_to, set_department_head
from orgflow.services.permission_service import Permission

router = APIRouter()


@router.put("/users/{user_id}/reports-to", response_model=UserOrgOut)
async def set_reports_to_endpoint(
    user_id: int,
    body: ReportsToUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.USER_SET_REPORTS_TO)),
):
    """Set a user's direct manager; rejects assignments that form a loop"""
    return set_reports_to(db, current_user, user_id, body.reports_to_id)


@router.put("/departments/{department_id}/head", response_model=DepartmentOut)
async def set_department_head_endpoint(
    department_id: int,
    body: DepartmentHeadUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.DEPT_SET_HEAD)),
    publish: Publisher = Depends(get_publisher),
):
    """Assign a department head; the user must be a member of the department"""
    return set_department_head(db, current_user, department_id, body.user_id, publish=publish)


@router.get("/users/{user_id}/approval-chain", response_model=ApprovalChainOut)
async def approval_chain_endpoint(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Who a new leave request from this user would be routed through"""
    return preview_approval_chain(db, current_user, user_id)
