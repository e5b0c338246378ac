"""
Leave workflow endpoints
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from orgflow.core.deps import get_db, get_current_user, get_publisher
from orgflow.models.user import User
from orgflow.schemas.leave import (
    LeaveSubmitRequest,
    LeaveRespondRequest,
    LeaveOut,
    LeaveDetailOut,
    LeaveListResponse,
    LedgerEntryOut,
    LedgerListResponse,
)
from orgflow.services.leave_service import (
    submit_leave,
    respond_to_leave,
    get_leave,
    get_leave_history,
    list_pending_for_approver,
    list_my_leaves,
)
from orgflow.services.notification_service import Publisher

router = APIRouter()


@router.post("", response_model=LeaveOut, status_code=status.HTTP_201_CREATED)
async def submit_leave_endpoint(
    leave_data: LeaveSubmitRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    publish: Publisher = Depends(get_publisher),
):
    """
    Submit a leave request for the current user

    The request is routed to the first approver above the requester.
    current_approver_id is null when an ADMIN or CEO requester was approved on
    submission. Other requesters with nobody to approve them get a 400.
    """
    return submit_leave(
        db=db,
        requester=current_user,
        start_date=leave_data.start_date,
        end_date=leave_data.end_date,
        reason=leave_data.reason,
        leave_type=leave_data.type,
        publish=publish,
    )


@router.get("/pending", response_model=LeaveListResponse)
async def list_pending_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Pending requests waiting on the current user"""
    items = list_pending_for_approver(db, current_user)
    return LeaveListResponse(items=[LeaveOut.model_validate(req) for req in items], total=len(items))


@router.get("/my", response_model=LeaveListResponse)
async def list_my_leaves_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items = list_my_leaves(db, current_user)
    return LeaveListResponse(items=[LeaveOut.model_validate(req) for req in items], total=len(items))


@router.get("/{leave_request_id}", response_model=LeaveDetailOut)
async def get_leave_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Leave request with its approval history"""
    return get_leave(db, current_user, leave_request_id)


@router.get("/{leave_request_id}/history", response_model=LedgerListResponse)
async def get_leave_history_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entries = get_leave_history(db, current_user, leave_request_id)
    return LedgerListResponse(
        items=[LedgerEntryOut.model_validate(entry) for entry in entries], total=len(entries)
    )


@router.post("/{leave_request_id}/respond", response_model=LeaveOut)
async def respond_to_leave_endpoint(
    leave_request_id: int,
    body: LeaveRespondRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    publish: Publisher = Depends(get_publisher),
):
    """
    Approve or reject a pending leave request

    Only the current approver, or a CEO/MD/ADMIN override, may respond.
    Approval by a non-terminal approver escalates the request upward.
    """
    return respond_to_leave(
        db=db,
        approver=current_user,
        leave_request_id=leave_request_id,
        decision=body.status,
        note=body.remarks,
        publish=publish,
    )
