"""
Leave workflow service - submission, approval escalation and rejection

A request starts PENDING with the first approver the org hierarchy resolves
for the requester. Each approval either finalizes the request (terminal
approver or nobody above) or reassigns it one step up the chain. Every
decision is written to the approval ledger in the same transaction as the
status change and, for a final approval, the balance deduction.
"""
import logging
from datetime import date, datetime
from typing import List, Optional, Union

from sqlalchemy import case, update
from sqlalchemy.orm import Session, joinedload

from orgflow.constants import (
    LEAVE_OVERRIDE_ROLES,
    RESOLVER_TERMINAL_ROLES,
    TERMINAL_APPROVAL_ROLES,
)
from orgflow.core.exceptions import (
    AlreadyProcessed,
    InvalidAction,
    NotAuthorized,
    NotFound,
    ValidationError,
)
from orgflow.db.unit_of_work import UnitOfWork
from orgflow.models.leave import LeaveRequest, LeaveStatus, LeaveType, LeaveDecision, LedgerEntry
from orgflow.models.user import User, Role
from orgflow.services import approval_ledger_service
from orgflow.services.audit_service import log_audit
from orgflow.services.notification_service import Publisher
from orgflow.services.org_hierarchy_service import next_approver
from orgflow.services.permission_service import Permission, has_permission

logger = logging.getLogger(__name__)

# Flat deduction per approved request, independent of the date range
LEAVE_DEDUCTION = 1

_DECISION_ALIASES = {
    "APPROVE": LeaveDecision.APPROVED,
    "APPROVED": LeaveDecision.APPROVED,
    "REJECT": LeaveDecision.REJECTED,
    "REJECTED": LeaveDecision.REJECTED,
}


def parse_decision(value: Union[str, LeaveDecision, None]) -> LeaveDecision:
    """Map an inbound decision string onto the closed LeaveDecision set"""
    if isinstance(value, LeaveDecision):
        return value
    decision = _DECISION_ALIASES.get((value or "").strip().upper())
    if decision is None:
        raise InvalidAction(f"Invalid leave decision '{value}'. Use APPROVED or REJECTED")
    return decision


def parse_leave_type(value: Union[str, LeaveType, None]) -> LeaveType:
    if isinstance(value, LeaveType):
        return value
    if not value:
        return LeaveType.OTHERS
    try:
        return LeaveType(value.strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid leave type '{value}'")


def parse_date(value: Union[str, date, None], field_name: str) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    value = value.strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    # Full ISO timestamps are accepted and truncated to their calendar date
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format")


def validate_date_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    """
    Raises:
        ValidationError: If either date is missing or start is after end
    """
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")


def _decrement_balance(db: Session, user_id: int) -> None:
    # Clamped SQL-side so concurrent approvals cannot lose an update or go negative
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            leave_balance=case(
                (User.leave_balance >= LEAVE_DEDUCTION, User.leave_balance - LEAVE_DEDUCTION),
                else_=0,
            )
        )
        .execution_options(synchronize_session=False)
    )


def _get_leave(db: Session, leave_request_id: int) -> LeaveRequest:
    leave_request = db.query(LeaveRequest).filter(LeaveRequest.id == leave_request_id).first()
    if not leave_request:
        raise NotFound(f"Leave request with id {leave_request_id} not found")
    return leave_request


def _lock_leave(db: Session, leave_request_id: int) -> LeaveRequest:
    leave_request = (
        db.query(LeaveRequest)
        .filter(LeaveRequest.id == leave_request_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not leave_request:
        raise NotFound(f"Leave request with id {leave_request_id} not found")
    return leave_request


def _lock_user(db: Session, user_id: int) -> User:
    return (
        db.query(User)
        .filter(User.id == user_id)
        .with_for_update()
        .populate_existing()
        .one()
    )


def can_act_on(leave_request: LeaveRequest, actor: User) -> bool:
    """Current approver, or a leave-override role acting on anyone's request"""
    if leave_request.current_approver_id == actor.id:
        return True
    return Role(actor.role) in LEAVE_OVERRIDE_ROLES


def _check_respondable(leave_request: LeaveRequest, actor: User) -> None:
    if leave_request.is_terminal:
        raise AlreadyProcessed(
            f"Leave request {leave_request.id} is already {leave_request.status.value}"
        )
    if leave_request.requester_id == actor.id:
        raise NotAuthorized("You cannot respond to your own leave request")
    if not has_permission(actor, Permission.LEAVE_APPROVE):
        raise NotAuthorized(f"Access denied. Required permission: {Permission.LEAVE_APPROVE.value}")
    if not can_act_on(leave_request, actor):
        raise NotAuthorized("You are not the current approver for this leave request")


def submit_leave(
    db: Session,
    requester: User,
    start_date: Union[str, date, None],
    end_date: Union[str, date, None],
    reason: Optional[str] = None,
    leave_type: Union[str, LeaveType, None] = None,
    publish: Optional[Publisher] = None,
) -> LeaveRequest:
    """
    Submit a leave request and route it to the first approver

    A requester holding a role with nobody above it (ADMIN, CEO) has the
    request approved on submission. Any other requester for whom no approver
    resolves is refused.

    Args:
        db: Database session
        requester: Employee applying for leave
        start_date: First day of leave
        end_date: Last day of leave
        reason: Free-text reason
        leave_type: ANNUAL, SICK or OTHERS (defaults to OTHERS)
        publish: Post-commit notification publisher

    Returns:
        Created LeaveRequest instance

    Raises:
        ValidationError: Missing/invalid dates, insufficient balance or no
            approval path for a non-terminal requester
    """
    start_date = parse_date(start_date, "start_date")
    end_date = parse_date(end_date, "end_date")
    validate_date_range(start_date, end_date)
    parsed_type = parse_leave_type(leave_type)
    if (requester.leave_balance or 0) < LEAVE_DEDUCTION:
        raise ValidationError(
            f"Insufficient leave balance. Available: {requester.leave_balance}"
        )

    approver = next_approver(db, requester)
    if approver is None and Role(requester.role) not in RESOLVER_TERMINAL_ROLES:
        logger.warning(
            "no approval path: requester_id=%s role=%s", requester.id, requester.role
        )
        raise ValidationError(
            "No valid approval path found. Ask an administrator to assign an approver."
        )

    with UnitOfWork(db, publish) as uow:
        leave_request = LeaveRequest(
            requester_id=requester.id,
            leave_type=parsed_type,
            start_date=start_date,
            end_date=end_date,
            reason=(reason or "").strip(),
        )
        if approver is not None:
            leave_request.status = LeaveStatus.PENDING
            leave_request.current_approver_id = approver.id
        else:
            leave_request.status = LeaveStatus.APPROVED
            leave_request.current_approver_id = None
        db.add(leave_request)
        db.flush()

        if approver is None:
            _decrement_balance(db, requester.id)
            logger.info(
                "leave status transition: leave_request_id=%s before=NONE after=APPROVED action=auto_approve",
                leave_request.id,
            )
        else:
            logger.info(
                "leave submitted: leave_request_id=%s requester_id=%s approver_id=%s",
                leave_request.id, requester.id, approver.id,
            )

        log_audit(
            db=db,
            actor_id=requester.id,
            action="LEAVE_SUBMIT" if approver is not None else "LEAVE_AUTO_APPROVE",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={
                "leave_type": parsed_type.value,
                "start_date": start_date,
                "end_date": end_date,
                "approver_id": approver.id if approver else None,
            },
        )

        period = f"{start_date.isoformat()} to {end_date.isoformat()}"
        if approver is not None:
            uow.notify(
                approver.id,
                "New leave request",
                f"{requester.name} requested {parsed_type.value.lower()} leave ({period}).",
                type="LEAVE_PENDING",
                payload={"leave_request_id": leave_request.id},
                actor_id=requester.id,
            )
            uow.notify(
                requester.id,
                "Leave request submitted",
                f"Your leave request ({period}) is awaiting approval from {approver.name}.",
                type="LEAVE_SUBMITTED",
                payload={"leave_request_id": leave_request.id},
            )
        else:
            uow.notify(
                requester.id,
                "Leave request approved",
                f"Your leave request ({period}) was approved.",
                type="LEAVE_APPROVED",
                payload={"leave_request_id": leave_request.id},
            )

    db.refresh(leave_request)
    return leave_request


def respond_to_leave(
    db: Session,
    approver: User,
    leave_request_id: int,
    decision: Union[str, LeaveDecision],
    note: Optional[str] = None,
    publish: Optional[Publisher] = None,
) -> LeaveRequest:
    """
    Approve or reject a pending leave request

    Args:
        db: Database session
        approver: Employee acting on the request
        leave_request_id: ID of the leave request
        decision: APPROVED or REJECTED
        note: Optional remarks recorded on the ledger
        publish: Post-commit notification publisher

    Returns:
        Updated LeaveRequest instance

    Raises:
        InvalidAction: Unknown decision
        NotFound: Request does not exist
        AlreadyProcessed: Request is already APPROVED or REJECTED
        NotAuthorized: Caller lacks leave:approve, or is neither the current
            approver nor an override role
    """
    parsed = parse_decision(decision)

    # Fail fast before taking any locks
    _check_respondable(_get_leave(db, leave_request_id), approver)

    with UnitOfWork(db, publish) as uow:
        leave_request = _lock_leave(db, leave_request_id)
        _check_respondable(leave_request, approver)
        requester = _lock_user(db, leave_request.requester_id)
        before_status = leave_request.status.value

        approval_ledger_service.append_entry(db, leave_request, approver, parsed, note)

        if parsed == LeaveDecision.REJECTED:
            leave_request.status = LeaveStatus.REJECTED
            leave_request.current_approver_id = None
            action = "LEAVE_REJECT"
            uow.notify(
                requester.id,
                "Leave request rejected",
                f"Your leave request was rejected by {approver.name}."
                + (f" Remarks: {note}" if note else ""),
                type="LEAVE_REJECTED",
                payload={"leave_request_id": leave_request.id},
                actor_id=approver.id,
            )
        else:
            escalate_to = None
            if Role(approver.role) not in TERMINAL_APPROVAL_ROLES:
                escalate_to = next_approver(db, approver)
                if escalate_to is not None and escalate_to.id in (
                    approver.id, requester.id, leave_request.current_approver_id,
                ):
                    escalate_to = None

            if escalate_to is None:
                leave_request.status = LeaveStatus.APPROVED
                leave_request.current_approver_id = None
                _decrement_balance(db, requester.id)
                action = "LEAVE_APPROVE"
                uow.notify(
                    requester.id,
                    "Leave request approved",
                    f"Your leave request was approved by {approver.name}.",
                    type="LEAVE_APPROVED",
                    payload={"leave_request_id": leave_request.id},
                    actor_id=approver.id,
                )
            else:
                leave_request.current_approver_id = escalate_to.id
                action = "LEAVE_ESCALATE"
                uow.notify(
                    escalate_to.id,
                    "Leave request awaiting your approval",
                    f"A leave request from {requester.name} was approved by "
                    f"{approver.name} and needs your decision.",
                    type="LEAVE_PENDING",
                    payload={"leave_request_id": leave_request.id},
                    actor_id=approver.id,
                )
                uow.notify(
                    requester.id,
                    "Leave request escalated",
                    f"{approver.name} approved your leave request; it now awaits {escalate_to.name}.",
                    type="LEAVE_ESCALATED",
                    payload={"leave_request_id": leave_request.id},
                    actor_id=approver.id,
                )

        logger.info(
            "leave status transition: leave_request_id=%s before=%s after=%s action=%s approver_id=%s",
            leave_request.id, before_status, leave_request.status.value, action.lower(),
            leave_request.current_approver_id,
        )
        log_audit(
            db=db,
            actor_id=approver.id,
            action=action,
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={
                "requester_id": requester.id,
                "decision": parsed.value,
                "next_approver_id": leave_request.current_approver_id,
                "remarks": note,
            },
        )

    db.refresh(leave_request)
    return leave_request


def _check_visible(leave_request: LeaveRequest, viewer: User) -> None:
    if viewer.id in (leave_request.requester_id, leave_request.current_approver_id):
        return
    if Role(viewer.role) in LEAVE_OVERRIDE_ROLES or has_permission(viewer, Permission.LEAVE_VIEW_ALL):
        return
    raise NotAuthorized("You are not allowed to view this leave request")


def get_leave(db: Session, viewer: User, leave_request_id: int) -> LeaveRequest:
    """
    Load a request with its approval history

    Visible to the requester, the current approver, override roles and
    holders of leave:view_all.
    """
    leave_request = (
        db.query(LeaveRequest)
        .options(joinedload(LeaveRequest.approval_history))
        .filter(LeaveRequest.id == leave_request_id)
        .first()
    )
    if not leave_request:
        raise NotFound(f"Leave request with id {leave_request_id} not found")
    _check_visible(leave_request, viewer)
    return leave_request


def get_leave_history(db: Session, viewer: User, leave_request_id: int) -> List[LedgerEntry]:
    """Ledger entries for a request, oldest first; same visibility as get_leave"""
    _check_visible(_get_leave(db, leave_request_id), viewer)
    return approval_ledger_service.entries_for(db, leave_request_id)


def list_pending_for_approver(db: Session, current_user: User) -> List[LeaveRequest]:
    """Pending requests currently assigned to current_user, oldest first"""
    return (
        db.query(LeaveRequest)
        .filter(
            LeaveRequest.status == LeaveStatus.PENDING,
            LeaveRequest.current_approver_id == current_user.id,
        )
        .order_by(LeaveRequest.created_at.asc(), LeaveRequest.id.asc())
        .all()
    )


def list_my_leaves(db: Session, current_user: User) -> List[LeaveRequest]:
    return (
        db.query(LeaveRequest)
        .filter(LeaveRequest.requester_id == current_user.id)
        .order_by(LeaveRequest.id.desc())
        .all()
    )
