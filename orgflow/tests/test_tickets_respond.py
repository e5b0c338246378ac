"""
Tests for ticket acknowledgement, contest, resolution and voiding
"""
import pytest
from fastapi import status
from orgflow.core.exceptions import AlreadyProcessed, NotAuthorized, ValidationError
from orgflow.models.audit_log import AuditLog
from orgflow.models.ticket import Ticket, TicketStatus
from orgflow.models.user import Role
from orgflow.services.ticket_service import issue_ticket, respond_to_ticket


@pytest.fixture
def head(make_user):
    return make_user("Dee Head", Role.DEPARTMENT_HEAD)


@pytest.fixture
def target(make_user, head):
    return make_user("Tom Target", Role.GENERAL_STAFF, reports_to=head)


@pytest.fixture
def high_ticket(db, head, target, publish, notifications):
    ticket = issue_ticket(db, head, target.id, "Missed deadline", "Report was 3 days late", "HIGH", publish=publish)
    notifications.clear()
    return ticket


def _respond(client, auth, actor, ticket, action, contest_note=None):
    body = {"action": action}
    if contest_note is not None:
        body["contest_note"] = contest_note
    return client.patch(f"/api/v1/tickets/{ticket.id}/respond", json=body, headers=auth(actor))


def test_target_acknowledges_high_ticket(client, db, target, high_ticket, auth):
    response = _respond(client, auth, target, high_ticket, "ACKNOWLEDGE")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "RESOLVED", "current_score": 90.0}
    db.refresh(target)
    assert target.conduct_score == 90.0
    db.refresh(high_ticket)
    assert high_ticket.status == TicketStatus.RESOLVED
    assert high_ticket.resolved_by_id == target.id


def test_super_authority_resolves_ticket(db, org, target, high_ticket, publish, notifications):
    result = respond_to_ticket(db, org["admin"], high_ticket.id, "RESOLVE", publish=publish)

    assert result == {"status": TicketStatus.RESOLVED, "current_score": 90.0}
    assert [e.type for e in notifications.for_recipient(target.id)] == ["TICKET_RESOLVED"]


def test_penalty_clamps_at_zero(db, make_user, head, publish):
    fragile = make_user("Fay Fragile", Role.GENERAL_STAFF, reports_to=head, conduct_score=4.0)
    ticket = issue_ticket(db, head, fragile.id, "Title", "Details", "CRITICAL", publish=publish)

    result = respond_to_ticket(db, fragile, ticket.id, "ACKNOWLEDGE", publish=publish)

    assert result["current_score"] == 0.0
    db.refresh(fragile)
    assert fragile.conduct_score == 0.0


def test_contest_requires_note(client, db, target, high_ticket, auth):
    response = _respond(client, auth, target, high_ticket, "CONTEST", contest_note="   ")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["kind"] == "VALIDATION_ERROR"
    db.refresh(high_ticket)
    assert high_ticket.status == TicketStatus.OPEN


def test_contest_notifies_issuer_and_super_authorities(client, db, org, head, target, high_ticket, auth, notifications):
    response = _respond(client, auth, target, high_ticket, "CONTEST", contest_note="I was on approved leave")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "CONTESTED", "current_score": None}
    db.refresh(high_ticket)
    assert high_ticket.contest_note == "I was on approved leave"
    db.refresh(target)
    assert target.conduct_score == 100.0

    recipients = {e.recipient_id for e in notifications.events if e.type == "TICKET_CONTESTED"}
    assert recipients == {head.id, org["ceo"].id, org["md"].id, org["admin"].id}


def test_contest_on_anonymous_ticket_does_not_reveal_issuer(db, org, make_user, publish, notifications):
    reporter = make_user("Sam Staff", Role.GENERAL_STAFF)
    colleague = make_user("Cole Colleague", Role.GENERAL_STAFF)
    ticket = issue_ticket(db, reporter, colleague.id, "Title", "Details", "LOW", is_anonymous=True, publish=publish)
    notifications.clear()

    respond_to_ticket(db, colleague, ticket.id, "CONTEST", contest_note="Not me", publish=publish)

    assert notifications.for_recipient(reporter.id) == []


def test_contested_ticket_cannot_be_contested_again(db, target, high_ticket, publish):
    respond_to_ticket(db, target, high_ticket.id, "CONTEST", contest_note="Disagree", publish=publish)

    with pytest.raises(AlreadyProcessed):
        respond_to_ticket(db, target, high_ticket.id, "CONTEST", contest_note="Still disagree", publish=publish)


def test_contested_ticket_can_be_resolved_by_super_authority(db, org, target, high_ticket, publish):
    respond_to_ticket(db, target, high_ticket.id, "CONTEST", contest_note="Disagree", publish=publish)

    result = respond_to_ticket(db, org["md"], high_ticket.id, "RESOLVE", publish=publish)

    assert result["status"] == TicketStatus.RESOLVED
    assert result["current_score"] == 90.0


def test_void_notifies_both_parties_without_penalty(client, db, org, head, target, high_ticket, auth, notifications):
    response = _respond(client, auth, org["admin"], high_ticket, "VOID")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "VOIDED"
    db.refresh(target)
    assert target.conduct_score == 100.0
    assert [e.type for e in notifications.for_recipient(target.id)] == ["TICKET_VOIDED"]
    assert [e.type for e in notifications.for_recipient(head.id)] == ["TICKET_VOIDED"]


def test_stranger_cannot_respond(client, make_user, high_ticket, auth):
    stranger = make_user("Stan Stranger", Role.GENERAL_STAFF)

    response = _respond(client, auth, stranger, high_ticket, "ACKNOWLEDGE")

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["kind"] == "NOT_AUTHORIZED"


def test_issuer_manager_cannot_resolve(db, head, high_ticket, publish):
    with pytest.raises(NotAuthorized):
        respond_to_ticket(db, head, high_ticket.id, "RESOLVE", publish=publish)


def test_target_cannot_void(db, target, high_ticket, publish):
    with pytest.raises(NotAuthorized):
        respond_to_ticket(db, target, high_ticket.id, "VOID", publish=publish)


def test_super_authority_cannot_acknowledge_for_target(db, org, high_ticket, publish):
    with pytest.raises(NotAuthorized):
        respond_to_ticket(db, org["ceo"], high_ticket.id, "ACKNOWLEDGE", publish=publish)


def test_unknown_action_is_invalid(client, target, high_ticket, auth):
    response = _respond(client, auth, target, high_ticket, "APPEAL")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["kind"] == "INVALID_ACTION"


@pytest.mark.parametrize("action", ["ACKNOWLEDGE", "CONTEST"])
def test_resolved_ticket_is_already_processed(db, target, high_ticket, publish, action):
    respond_to_ticket(db, target, high_ticket.id, "ACKNOWLEDGE", publish=publish)

    with pytest.raises(AlreadyProcessed):
        respond_to_ticket(db, target, high_ticket.id, action, contest_note="late", publish=publish)

    db.refresh(target)
    assert target.conduct_score == 90.0


def test_voided_ticket_is_already_processed_for_everyone(client, db, org, target, high_ticket, auth, publish):
    respond_to_ticket(db, org["admin"], high_ticket.id, "VOID", publish=publish)

    assert _respond(client, auth, target, high_ticket, "ACKNOWLEDGE").status_code == status.HTTP_409_CONFLICT
    assert _respond(client, auth, org["ceo"], high_ticket, "RESOLVE").status_code == status.HTTP_409_CONFLICT


def test_contest_note_checked_after_authorization(db, make_user, high_ticket, publish):
    stranger = make_user("Stan Stranger", Role.GENERAL_STAFF)

    with pytest.raises(NotAuthorized):
        respond_to_ticket(db, stranger, high_ticket.id, "CONTEST", publish=publish)


def test_resolution_writes_audit_row(db, target, high_ticket, publish):
    respond_to_ticket(db, target, high_ticket.id, "ACKNOWLEDGE", publish=publish)

    audit = db.query(AuditLog).filter(AuditLog.action == "TICKET_ACKNOWLEDGE").one()
    assert audit.entity_id == high_ticket.id
    assert audit.meta_json["before"] == "OPEN"
    assert audit.meta_json["after"] == "RESOLVED"
    assert audit.meta_json["current_score"] == 90.0


def test_get_ticket_redacts_anonymous_issuer(client, db, org, make_user, auth, publish):
    reporter = make_user("Sam Staff", Role.GENERAL_STAFF)
    colleague = make_user("Cole Colleague", Role.GENERAL_STAFF)
    ticket = issue_ticket(db, reporter, colleague.id, "Title", "Details", "LOW", is_anonymous=True, publish=publish)

    for viewer in (colleague, org["admin"]):
        response = client.get(f"/api/v1/tickets/{ticket.id}", headers=auth(viewer))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["issuer_id"] is None

    # The anonymous reporter is not a recognised viewer either
    response = client.get(f"/api/v1/tickets/{ticket.id}", headers=auth(reporter))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_my_tickets_lists_tickets_against_caller(client, target, high_ticket, auth):
    response = client.get("/api/v1/tickets/my", headers=auth(target))

    assert response.status_code == status.HTTP_200_OK
    assert [t["id"] for t in response.json()["items"]] == [high_ticket.id]


def test_purge_requires_ticket_delete_permission(client, db, org, head, high_ticket, auth):
    response = client.delete(f"/api/v1/tickets/{high_ticket.id}", headers=auth(head))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(f"/api/v1/tickets/{high_ticket.id}", headers=auth(org["admin"]))
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert db.query(Ticket).count() == 0
    assert db.query(AuditLog).filter(AuditLog.action == "TICKET_PURGE").count() == 1


def test_contest_with_missing_note_is_validation_error(db, target, high_ticket, publish):
    with pytest.raises(ValidationError):
        respond_to_ticket(db, target, high_ticket.id, "CONTEST", publish=publish)
