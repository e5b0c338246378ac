"""
Disciplinary ticket service - issuance, response and resolution

Penalties are applied to the target's conduct score in the same transaction
that moves the ticket to RESOLVED. Only one resolution can ever apply: the
ticket row is re-read under lock and carries an optimistic version, so a
concurrent resolver fails with AlreadyProcessed instead of penalizing twice.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from orgflow.constants import (
    SUPER_AUTHORITY_ROLES,
    TICKET_ISSUE_BYPASS_ROLES,
    TICKET_ISSUE_DENIED_ROLES,
)
from orgflow.core.exceptions import (
    AlreadyProcessed,
    Forbidden,
    InvalidAction,
    NotAuthorized,
    NotFound,
    ValidationError,
)
from orgflow.db.unit_of_work import UnitOfWork
from orgflow.models.ticket import Ticket, TicketAction, TicketSeverity, TicketStatus
from orgflow.models.user import User, Role
from orgflow.services.audit_service import log_audit
from orgflow.services.notification_service import Publisher
from orgflow.services.permission_service import Permission, has_permission
from orgflow.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


def parse_action(value: Union[str, TicketAction, None]) -> TicketAction:
    if isinstance(value, TicketAction):
        return value
    try:
        return TicketAction((value or "").strip().upper())
    except ValueError:
        raise InvalidAction(
            f"Invalid action '{value}'. Use one of: {', '.join(a.value for a in TicketAction)}"
        )


def parse_severity(value: Union[str, int, TicketSeverity, None]) -> TicketSeverity:
    """Accept a severity member, its name ("HIGH") or its numeric value (10)"""
    if isinstance(value, TicketSeverity):
        return value
    if value is None:
        return TicketSeverity.LOW
    if isinstance(value, str):
        key = value.strip().upper()
        if key in TicketSeverity.__members__:
            return TicketSeverity[key]
        if key.isdigit():
            value = int(key)
    try:
        return TicketSeverity(value)
    except ValueError:
        raise ValidationError(
            f"Invalid severity '{value}'. Use one of: {', '.join(s.name for s in TicketSeverity)}"
        )


def is_super_authority(user: User) -> bool:
    return Role(user.role) in SUPER_AUTHORITY_ROLES


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound(f"User with id {user_id} not found")
    return user


def _get_ticket(db: Session, ticket_id: int) -> Ticket:
    ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first()
    if not ticket:
        raise NotFound(f"Ticket with id {ticket_id} not found")
    return ticket


def _check_issuer(issuer: User, target: User, is_anonymous: bool) -> None:
    if target.id == issuer.id:
        raise Forbidden("You cannot issue a ticket to yourself")
    if is_anonymous:
        return
    role = Role(issuer.role)
    if role in TICKET_ISSUE_DENIED_ROLES:
        raise Forbidden(
            "General staff cannot issue named tickets. Use an anonymous report instead."
        )
    if role in TICKET_ISSUE_BYPASS_ROLES:
        return
    if target.reports_to_id != issuer.id:
        raise Forbidden("You can only issue tickets to your direct reports")


def issue_ticket(
    db: Session,
    issuer: User,
    target_user_id: int,
    title: str,
    description: str,
    severity: Union[str, int, TicketSeverity, None] = None,
    is_anonymous: bool = False,
    publish: Optional[Publisher] = None,
) -> Ticket:
    """
    Issue a disciplinary ticket against target_user_id

    Args:
        db: Database session
        issuer: User filing the ticket (recorded even when anonymous)
        target_user_id: User the ticket is filed against
        title: Short summary
        description: Details of the incident
        severity: LOW, MEDIUM, HIGH or CRITICAL
        is_anonymous: Hide the issuer from the target and from readers
        publish: Post-commit notification publisher

    Returns:
        Created Ticket instance

    Raises:
        NotFound: Target does not exist
        Forbidden: Issuer may not ticket this target
        ValidationError: Empty title/description or unknown severity
    """
    target = _get_user(db, target_user_id)
    _check_issuer(issuer, target, is_anonymous)

    title = (title or "").strip()
    description = (description or "").strip()
    if not title or not description:
        raise ValidationError("title and description are required")
    parsed_severity = parse_severity(severity)

    with UnitOfWork(db, publish) as uow:
        ticket = Ticket(
            issuer_id=issuer.id,
            target_user_id=target.id,
            title=title,
            description=description,
            severity=parsed_severity,
            status=TicketStatus.OPEN,
            is_anonymous=bool(is_anonymous),
        )
        db.add(ticket)
        db.flush()

        log_audit(
            db=db,
            actor_id=issuer.id,
            action="TICKET_ISSUE",
            entity_type="tickets",
            entity_id=ticket.id,
            meta={
                "target_user_id": target.id,
                "severity": parsed_severity.name,
                "is_anonymous": bool(is_anonymous),
            },
        )
        logger.info(
            "ticket issued: ticket_id=%s target_user_id=%s severity=%s anonymous=%s",
            ticket.id, target.id, parsed_severity.name, bool(is_anonymous),
        )

        from_label = "an anonymous reporter" if is_anonymous else issuer.name
        uow.notify(
            target.id,
            "Disciplinary ticket issued",
            f"A {parsed_severity.name.lower()} severity ticket \"{title}\" was filed by {from_label}. "
            "Please acknowledge or contest it.",
            type="TICKET_ISSUED",
            payload={"ticket_id": ticket.id},
            actor_id=None if is_anonymous else issuer.id,
        )
        if not is_anonymous:
            uow.notify(
                issuer.id,
                "Ticket filed",
                f"Your ticket \"{title}\" against {target.name} was filed.",
                type="TICKET_RECEIPT",
                payload={"ticket_id": ticket.id},
            )

    db.refresh(ticket)
    return ticket


def _check_response(ticket: Ticket, actor: User, action: TicketAction) -> None:
    is_target = ticket.target_user_id == actor.id
    is_authority = is_super_authority(actor)
    if not is_target and not is_authority:
        raise NotAuthorized("This ticket is not addressed to you")

    if ticket.is_terminal:
        raise AlreadyProcessed(f"Ticket {ticket.id} is already {ticket.status.value}")

    if action in (TicketAction.ACKNOWLEDGE, TicketAction.CONTEST) and not is_target:
        raise NotAuthorized(f"Only the ticket's target can {action.value.lower()} it")
    if action in (TicketAction.RESOLVE, TicketAction.VOID) and not is_authority:
        raise NotAuthorized(f"Only a super-authority can {action.value.lower()} a ticket")
    if action == TicketAction.CONTEST and ticket.status != TicketStatus.OPEN:
        raise AlreadyProcessed(f"Ticket {ticket.id} has already been contested")


def _apply_penalty(db: Session, user_id: int, penalty: int) -> None:
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            conduct_score=case(
                (User.conduct_score >= penalty, User.conduct_score - penalty),
                else_=0.0,
            )
        )
        .execution_options(synchronize_session=False)
    )


def _super_authorities(db: Session) -> List[User]:
    return (
        db.query(User)
        .filter(User.role.in_([r.value for r in SUPER_AUTHORITY_ROLES]), User.active == True)  # noqa: E712
        .order_by(User.id.asc())
        .all()
    )


def respond_to_ticket(
    db: Session,
    actor: User,
    ticket_id: int,
    action: Union[str, TicketAction],
    contest_note: Optional[str] = None,
    publish: Optional[Publisher] = None,
) -> Dict[str, Any]:
    """
    Act on a ticket

    ACKNOWLEDGE (target) and RESOLVE (super-authority) resolve the ticket and
    apply the severity penalty. CONTEST (target, OPEN only) requires a note.
    VOID (super-authority) cancels the ticket without a penalty.

    Returns:
        {"status": ..., "current_score": ...}; current_score is the target's
        score after a resolution and None otherwise

    Raises:
        InvalidAction: Unknown action
        NotFound: Ticket does not exist
        NotAuthorized: Actor may not perform this action
        AlreadyProcessed: Ticket is RESOLVED/VOIDED, or already contested
        ValidationError: CONTEST without a note
    """
    parsed = parse_action(action)

    # Fail fast before taking any locks
    _check_response(_get_ticket(db, ticket_id), actor, parsed)
    note = (contest_note or "").strip()
    if parsed == TicketAction.CONTEST and not note:
        raise ValidationError("You must provide a reason/note to contest a ticket")

    current_score = None
    with UnitOfWork(db, publish) as uow:
        ticket = (
            db.query(Ticket)
            .filter(Ticket.id == ticket_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not ticket:
            raise NotFound(f"Ticket with id {ticket_id} not found")
        _check_response(ticket, actor, parsed)
        target = (
            db.query(User)
            .filter(User.id == ticket.target_user_id)
            .with_for_update()
            .populate_existing()
            .one()
        )
        before_status = ticket.status.value

        if parsed in (TicketAction.ACKNOWLEDGE, TicketAction.RESOLVE):
            ticket.status = TicketStatus.RESOLVED
            ticket.resolved_by_id = actor.id
            ticket.resolved_at = now_utc()
            # Flush first so a concurrent resolver loses on the version check before any penalty
            db.flush()
            _apply_penalty(db, target.id, ticket.penalty)
            db.expire(target, ["conduct_score"])
            current_score = target.conduct_score
            if parsed == TicketAction.RESOLVE:
                uow.notify(
                    target.id,
                    "Ticket resolved",
                    f"Ticket \"{ticket.title}\" was upheld. Your conduct score is now {current_score:g}.",
                    type="TICKET_RESOLVED",
                    payload={"ticket_id": ticket.id, "current_score": current_score},
                    actor_id=actor.id,
                )
            if not ticket.is_anonymous and ticket.issuer_id not in (None, actor.id):
                uow.notify(
                    ticket.issuer_id,
                    "Ticket resolved",
                    f"Ticket \"{ticket.title}\" against {target.name} was resolved.",
                    type="TICKET_RESOLVED",
                    payload={"ticket_id": ticket.id},
                    actor_id=actor.id,
                )

        elif parsed == TicketAction.CONTEST:
            ticket.status = TicketStatus.CONTESTED
            ticket.contest_note = note
            recipients = [u.id for u in _super_authorities(db)]
            if not ticket.is_anonymous and ticket.issuer_id is not None:
                recipients.insert(0, ticket.issuer_id)
            for recipient_id in dict.fromkeys(recipients):
                if recipient_id == target.id:
                    continue
                uow.notify(
                    recipient_id,
                    "Ticket contested",
                    f"{target.name} contested ticket \"{ticket.title}\": {note}",
                    type="TICKET_CONTESTED",
                    payload={"ticket_id": ticket.id},
                    actor_id=target.id,
                )

        else:
            ticket.status = TicketStatus.VOIDED
            ticket.resolved_by_id = actor.id
            ticket.resolved_at = now_utc()
            uow.notify(
                target.id,
                "Ticket voided",
                f"Ticket \"{ticket.title}\" was voided. No penalty was applied.",
                type="TICKET_VOIDED",
                payload={"ticket_id": ticket.id},
                actor_id=actor.id,
            )
            if ticket.issuer_id not in (None, actor.id):
                uow.notify(
                    ticket.issuer_id,
                    "Ticket voided",
                    f"Your ticket \"{ticket.title}\" against {target.name} was voided.",
                    type="TICKET_VOIDED",
                    payload={"ticket_id": ticket.id},
                    actor_id=actor.id,
                )

        logger.info(
            "ticket status transition: ticket_id=%s before=%s after=%s action=%s actor_id=%s",
            ticket.id, before_status, ticket.status.value, parsed.value.lower(), actor.id,
        )
        log_audit(
            db=db,
            actor_id=actor.id,
            action=f"TICKET_{parsed.value}",
            entity_type="tickets",
            entity_id=ticket.id,
            meta={
                "target_user_id": target.id,
                "severity": TicketSeverity(ticket.severity).name,
                "before": before_status,
                "after": ticket.status.value,
                "current_score": current_score,
                "contest_note": note or None,
            },
        )
        result_status = ticket.status

    return {"status": result_status, "current_score": current_score}


def ticket_view(ticket: Ticket) -> Dict[str, Any]:
    """Serialize a ticket; the issuer is hidden on anonymous tickets"""
    return {
        "id": ticket.id,
        "issuer_id": None if ticket.is_anonymous else ticket.issuer_id,
        "target_user_id": ticket.target_user_id,
        "title": ticket.title,
        "description": ticket.description,
        "severity": TicketSeverity(ticket.severity).name,
        "penalty": ticket.penalty,
        "status": ticket.status,
        "is_anonymous": ticket.is_anonymous,
        "contest_note": ticket.contest_note,
        "resolved_by_id": ticket.resolved_by_id,
        "resolved_at": ticket.resolved_at,
        "created_at": ticket.created_at,
    }


def get_ticket(db: Session, viewer: User, ticket_id: int) -> Dict[str, Any]:
    """
    Visible to the target, the named issuer, super-authorities and holders of
    ticket:manage.
    """
    ticket = _get_ticket(db, ticket_id)
    allowed = (
        viewer.id == ticket.target_user_id
        or (viewer.id == ticket.issuer_id and not ticket.is_anonymous)
        or is_super_authority(viewer)
        or has_permission(viewer, Permission.TICKET_MANAGE)
    )
    if not allowed:
        raise NotAuthorized("You are not allowed to view this ticket")
    return ticket_view(ticket)


def list_tickets_for_user(db: Session, viewer: User) -> List[Dict[str, Any]]:
    tickets = (
        db.query(Ticket)
        .filter(Ticket.target_user_id == viewer.id)
        .order_by(Ticket.id.desc())
        .all()
    )
    return [ticket_view(t) for t in tickets]


def purge_ticket(db: Session, actor: User, ticket_id: int) -> None:
    """
    Permanently delete a ticket. Requires ticket:delete.

    A penalty already applied to the target's conduct score is not restored.
    """
    if not has_permission(actor, Permission.TICKET_DELETE):
        raise NotAuthorized("You do not have permission to delete tickets")
    with UnitOfWork(db):
        ticket = _get_ticket(db, ticket_id)
        log_audit(
            db=db,
            actor_id=actor.id,
            action="TICKET_PURGE",
            entity_type="tickets",
            entity_id=ticket.id,
            meta={
                "target_user_id": ticket.target_user_id,
                "status": ticket.status.value,
                "severity": TicketSeverity(ticket.severity).name,
            },
        )
        db.delete(ticket)
    logger.info("ticket purged: ticket_id=%s actor_id=%s", ticket_id, actor.id)
