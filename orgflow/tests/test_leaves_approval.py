"""
Tests for leave approval escalation and rejection
"""
import pytest
from fastapi import status
from orgflow.core.exceptions import AlreadyProcessed, InvalidAction, NotAuthorized, NotFound
from orgflow.models.leave import LeaveRequest, LeaveStatus, LedgerEntry
from orgflow.models.user import Role
from orgflow.services.leave_service import submit_leave, respond_to_leave


@pytest.fixture
def staff(make_user, make_department):
    dept = make_department("Operations")
    return make_user("Sam Staff", Role.GENERAL_STAFF, department=dept)


@pytest.fixture
def pending_leave(db, org, staff, publish):
    return submit_leave(db, staff, "2026-11-02", "2026-11-06", reason="Holiday", publish=publish)


def _assert_pending_invariant(db):
    for leave in db.query(LeaveRequest).all():
        assert (leave.status == LeaveStatus.PENDING) == (leave.current_approver_id is not None)


def test_staff_request_escalates_hr_to_md_then_approves(client, db, org, staff, pending_leave, auth, notifications):
    assert pending_leave.current_approver_id == org["hr"].id

    response = client.post(
        f"/api/v1/leave/{pending_leave.id}/respond",
        json={"status": "APPROVED", "remarks": "ok from HR"},
        headers=auth(org["hr"]),
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["current_approver_id"] == org["md"].id
    _assert_pending_invariant(db)

    response = client.post(
        f"/api/v1/leave/{pending_leave.id}/respond",
        json={"status": "APPROVED"},
        headers=auth(org["md"]),
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "APPROVED"
    assert data["current_approver_id"] is None

    db.refresh(staff)
    assert staff.leave_balance == 19
    entries = db.query(LedgerEntry).order_by(LedgerEntry.id).all()
    assert [e.summary for e in entries] == [
        "Approved by Hana HR (HR)",
        "Approved by Max MD (MD)",
    ]
    assert entries[0].note == "ok from HR"
    assert "LEAVE_PENDING" in [e.type for e in notifications.for_recipient(org["md"].id)]
    assert notifications.for_recipient(staff.id)[-1].type == "LEAVE_APPROVED"
    _assert_pending_invariant(db)


def test_admin_override_rejects_request_assigned_to_someone_else(client, db, org, staff, pending_leave, auth):
    response = client.post(
        f"/api/v1/leave/{pending_leave.id}/respond",
        json={"status": "REJECTED", "remarks": "Blackout period"},
        headers=auth(org["admin"]),
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "REJECTED"
    assert data["current_approver_id"] is None
    db.refresh(staff)
    assert staff.leave_balance == 20
    entries = db.query(LedgerEntry).all()
    assert len(entries) == 1
    assert entries[0].summary == "Rejected by Ada Admin (ADMIN)"


def test_department_head_approval_escalates_to_hr(db, org, make_user, make_department, publish):
    dept = make_department("Engineering")
    head = make_user("Dee Head", Role.DEPARTMENT_HEAD, department=dept)
    dept.head_id = head.id
    db.commit()
    engineer = make_user("Eve Engineer", Role.GENERAL_STAFF, department=dept)

    leave = submit_leave(db, engineer, "2026-11-02", "2026-11-02", publish=publish)
    assert leave.current_approver_id == head.id

    leave = respond_to_leave(db, head, leave.id, "APPROVE", publish=publish)

    assert leave.status == LeaveStatus.PENDING
    assert leave.current_approver_id == org["hr"].id


def test_hr_approval_is_final_when_nobody_is_above(db, make_user, publish):
    hr = make_user("Solo HR", Role.HR)
    staff = make_user("Sam Staff", Role.GENERAL_STAFF)
    leave = submit_leave(db, staff, "2026-11-02", "2026-11-03", publish=publish)

    leave = respond_to_leave(db, hr, leave.id, "APPROVED", publish=publish)

    assert leave.status == LeaveStatus.APPROVED
    db.refresh(staff)
    assert staff.leave_balance == 19


def test_non_approver_gets_403(client, db, org, make_user, pending_leave, auth):
    outsider = make_user("Olive Other", Role.DEPARTMENT_HEAD)

    response = client.post(
        f"/api/v1/leave/{pending_leave.id}/respond",
        json={"status": "APPROVED"},
        headers=auth(outsider),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["kind"] == "NOT_AUTHORIZED"
    db.refresh(pending_leave)
    assert pending_leave.status == LeaveStatus.PENDING
    assert db.query(LedgerEntry).count() == 0


def test_requester_cannot_respond_to_own_request(db, org, make_user, publish):
    md = org["md"]
    leave = submit_leave(db, md, "2026-11-02", "2026-11-03", publish=publish)
    assert leave.current_approver_id == org["admin"].id

    with pytest.raises(NotAuthorized):
        respond_to_leave(db, md, leave.id, "APPROVED", publish=publish)


def test_unknown_decision_is_invalid_action(client, org, pending_leave, auth):
    response = client.post(
        f"/api/v1/leave/{pending_leave.id}/respond",
        json={"status": "MAYBE"},
        headers=auth(org["hr"]),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["kind"] == "INVALID_ACTION"


def test_missing_request_is_not_found(db, org):
    with pytest.raises(NotFound):
        respond_to_leave(db, org["admin"], 9999, "APPROVED")


def test_responding_twice_is_already_processed(client, db, org, staff, pending_leave, auth, publish):
    respond_to_leave(db, org["admin"], pending_leave.id, "REJECTED", publish=publish)

    response = client.post(
        f"/api/v1/leave/{pending_leave.id}/respond",
        json={"status": "APPROVED"},
        headers=auth(org["ceo"]),
    )

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["kind"] == "ALREADY_PROCESSED"
    db.refresh(pending_leave)
    assert pending_leave.status == LeaveStatus.REJECTED
    assert db.query(LedgerEntry).count() == 1
    db.refresh(staff)
    assert staff.leave_balance == 20


def test_approval_never_drives_balance_negative(db, org, make_user, publish):
    staff = make_user("Sam Staff", Role.GENERAL_STAFF, leave_balance=1)
    first = submit_leave(db, staff, "2026-11-02", "2026-11-02", publish=publish)
    second = submit_leave(db, staff, "2026-11-09", "2026-11-09", publish=publish)

    respond_to_leave(db, org["admin"], first.id, "APPROVED", publish=publish)
    respond_to_leave(db, org["admin"], second.id, "APPROVED", publish=publish)

    db.refresh(staff)
    assert staff.leave_balance == 0


def test_repeated_approvals_terminate_within_five_hops(db, org, make_user, make_department, publish):
    dept = make_department("Engineering")
    head = make_user("Dee Head", Role.DEPARTMENT_HEAD, department=dept)
    dept.head_id = head.id
    db.commit()
    engineer = make_user("Eve Engineer", Role.GENERAL_STAFF, department=dept)
    leave = submit_leave(db, engineer, "2026-11-02", "2026-11-02", publish=publish)

    hops = 0
    while leave.status == LeaveStatus.PENDING:
        approver = db.get(type(engineer), leave.current_approver_id)
        leave = respond_to_leave(db, approver, leave.id, "APPROVED", publish=publish)
        hops += 1
        assert hops <= 5

    assert leave.status == LeaveStatus.APPROVED
    assert db.query(LedgerEntry).count() == hops == 3


def test_pending_inbox_lists_only_assigned_requests(client, org, pending_leave, auth):
    response = client.get("/api/v1/leave/pending", headers=auth(org["hr"]))
    assert response.status_code == status.HTTP_200_OK
    assert [item["id"] for item in response.json()["items"]] == [pending_leave.id]

    response = client.get("/api/v1/leave/pending", headers=auth(org["md"]))
    assert response.json()["total"] == 0


def test_get_leave_includes_history(client, db, org, staff, pending_leave, auth, publish):
    respond_to_leave(db, org["hr"], pending_leave.id, "APPROVED", note="fine", publish=publish)

    response = client.get(f"/api/v1/leave/{pending_leave.id}", headers=auth(staff))

    assert response.status_code == status.HTTP_200_OK
    history = response.json()["approval_history"]
    assert len(history) == 1
    assert history[0]["decision"] == "APPROVED"
    assert history[0]["summary"] == "Approved by Hana HR (HR)"


def test_get_leave_hidden_from_unrelated_staff(client, org, make_user, pending_leave, auth):
    outsider = make_user("Olive Other", Role.GENERAL_STAFF)

    response = client.get(f"/api/v1/leave/{pending_leave.id}", headers=auth(outsider))

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_already_processed_is_raised_by_service(db, org, pending_leave, publish):
    respond_to_leave(db, org["admin"], pending_leave.id, "APPROVED", publish=publish)

    with pytest.raises(AlreadyProcessed):
        respond_to_leave(db, org["admin"], pending_leave.id, "REJECTED", publish=publish)


def test_invalid_decision_raised_before_lookup(db, org):
    with pytest.raises(InvalidAction):
        respond_to_leave(db, org["admin"], 9999, "ESCALATE")


@pytest.fixture
def staff_headed_department(db, make_user, make_department):
    """Department whose head holds no approval permission of their own"""
    dept = make_department("Warehouse")
    head = make_user("Greg Lead", Role.GENERAL_STAFF, department=dept)
    dept.head_id = head.id
    db.commit()
    picker = make_user("Pia Picker", Role.GENERAL_STAFF, department=dept)
    return head, picker


def test_approver_without_leave_approve_permission_gets_403(client, db, org, staff_headed_department, auth, publish):
    head, picker = staff_headed_department
    leave = submit_leave(db, picker, "2026-11-02", "2026-11-03", publish=publish)
    assert leave.current_approver_id == head.id

    response = client.post(
        f"/api/v1/leave/{leave.id}/respond",
        json={"status": "APPROVED"},
        headers=auth(head),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert "leave:approve" in response.json()["detail"]
    db.refresh(leave)
    assert leave.status == LeaveStatus.PENDING
    assert db.query(LedgerEntry).count() == 0


def test_granted_leave_approve_permission_lets_approver_respond(db, org, staff_headed_department, publish):
    from orgflow.services.permission_service import grant_permission

    head, picker = staff_headed_department
    leave = submit_leave(db, picker, "2026-11-02", "2026-11-03", publish=publish)
    grant_permission(db, org["admin"], head.id, "leave:approve")

    leave = respond_to_leave(db, head, leave.id, "APPROVED", publish=publish)

    assert leave.status == LeaveStatus.PENDING
    assert leave.current_approver_id == org["hr"].id


def test_history_endpoint_lists_decisions_in_order(client, db, org, staff, pending_leave, auth, publish):
    respond_to_leave(db, org["hr"], pending_leave.id, "APPROVED", note="ok by HR", publish=publish)
    respond_to_leave(db, org["md"], pending_leave.id, "REJECTED", note="blackout", publish=publish)

    response = client.get(f"/api/v1/leave/{pending_leave.id}/history", headers=auth(staff))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] == 2
    assert [item["summary"] for item in data["items"]] == [
        "Approved by Hana HR (HR)",
        "Rejected by Max MD (MD)",
    ]


def test_history_endpoint_hidden_from_unrelated_staff(client, make_user, pending_leave, auth):
    outsider = make_user("Olive Other", Role.GENERAL_STAFF)

    response = client.get(f"/api/v1/leave/{pending_leave.id}/history", headers=auth(outsider))

    assert response.status_code == status.HTTP_403_FORBIDDEN
