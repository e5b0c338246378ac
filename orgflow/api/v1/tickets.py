"""
Disciplinary ticket endpoints
"""
from fastapi import APIRouter, Depends, status, Response
from sqlalchemy.orm import Session

from orgflow.core.deps import get_db, get_current_user, get_publisher
from orgflow.models.user import User
from orgflow.schemas.ticket import (
    TicketCreateRequest,
    TicketRespondRequest,
    TicketRespondResponse,
    TicketOut,
    TicketListResponse,
)
from orgflow.services import ticket_service
from orgflow.services.notification_service import Publisher

router = APIRouter()


@router.post("", response_model=TicketOut, status_code=status.HTTP_201_CREATED)
async def issue_ticket_endpoint(
    ticket_data: TicketCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    publish: Publisher = Depends(get_publisher),
):
    """
    Issue a disciplinary ticket

    Named tickets: CEO/MD may ticket anyone; other managers only their
    direct reports; general staff may not. Anonymous reports are open to all.
    """
    ticket = ticket_service.issue_ticket(
        db=db,
        issuer=current_user,
        target_user_id=ticket_data.target_user_id,
        title=ticket_data.title,
        description=ticket_data.description,
        severity=ticket_data.severity,
        is_anonymous=ticket_data.is_anonymous,
        publish=publish,
    )
    return ticket_service.ticket_view(ticket)


@router.get("/my", response_model=TicketListResponse)
async def my_tickets_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Tickets filed against the current user"""
    items = ticket_service.list_tickets_for_user(db, current_user)
    return TicketListResponse(items=items, total=len(items))


@router.get("/{ticket_id}", response_model=TicketOut)
async def get_ticket_endpoint(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ticket_service.get_ticket(db, current_user, ticket_id)


@router.patch("/{ticket_id}/respond", response_model=TicketRespondResponse)
async def respond_to_ticket_endpoint(
    ticket_id: int,
    body: TicketRespondRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    publish: Publisher = Depends(get_publisher),
):
    """
    Act on a ticket: ACKNOWLEDGE or CONTEST (target), RESOLVE or VOID
    (CEO/MD/ADMIN)
    """
    return ticket_service.respond_to_ticket(
        db=db,
        actor=current_user,
        ticket_id=ticket_id,
        action=body.action,
        contest_note=body.contest_note,
        publish=publish,
    )


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def purge_ticket_endpoint(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Permanently delete a ticket (requires ticket:delete)"""
    ticket_service.purge_ticket(db, current_user, ticket_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
