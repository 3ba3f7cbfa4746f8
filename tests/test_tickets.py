"""
Tests for the ticket API: creation, scoping, comments and workflow.
"""

import logging
from datetime import datetime

from portal.models_ticket import Ticket


def _create(client, headers, user, **payload):
    body = {"title": "Checkout page returns an error", "description": "Customers see a 500."}
    body.update(payload)
    return client.post("/tickets", json=body, headers=headers(user))


class TestCreateTicket:
    """Tests for POST /tickets."""

    def test_client_creates_ticket_in_own_org(self, client, headers, client_user, client_org):
        response = _create(client, headers, client_user)
        assert response.status_code == 201
        data = response.json()
        assert data["organization_id"] == client_org.id
        assert data["status"] == "new"
        assert data["ticket_number"] == f"TKT-{data['id']:05d}"

    def test_category_and_priority_inferred(self, client, headers, client_user):
        """Without a category the heuristic classifier fills category, priority and estimate."""
        data = _create(client, headers, client_user).json()
        assert data["category"] == "technical-support"
        assert data["priority"] == "medium"
        assert data["estimated_hours"] == 2

    def test_sla_deadlines_set(self, client, headers, client_user):
        data = _create(client, headers, client_user, priority="high", category="bug-report").json()
        created = datetime.fromisoformat(data["created_at"])
        first_due = datetime.fromisoformat(data["first_response_due_at"])
        resolution_due = datetime.fromisoformat(data["sla_due_at"])
        assert round((first_due - created).total_seconds() / 3600) == 4
        assert round((resolution_due - created).total_seconds() / 3600) == 24

    def test_priority_client_gets_halved_windows(self, client, headers, client_user, client_org, db):
        client_org.is_priority = True
        db.commit()
        data = _create(client, headers, client_user, priority="high", category="bug-report").json()
        created = datetime.fromisoformat(data["created_at"])
        first_due = datetime.fromisoformat(data["first_response_due_at"])
        assert round((first_due - created).total_seconds() / 3600) == 2

    def test_urgent_ticket_flagged_in_log(self, client, headers, client_user, caplog):
        caplog.set_level(logging.WARNING, logger="portal.domain.tickets.service")
        data = _create(client, headers, client_user, priority="critical", category="bug-report").json()
        assert f"Critical ticket {data['ticket_number']}: first response due in 1 hour" in caplog.text

    def test_client_cannot_target_other_org(self, client, headers, client_user, other_org):
        response = _create(client, headers, client_user, organization_id=other_org.id)
        assert response.status_code == 403

    def test_client_cannot_assign(self, client, headers, client_user, staff):
        response = _create(client, headers, client_user, assigned_to=staff.id)
        assert response.status_code == 403

    def test_invalid_priority_rejected(self, client, headers, client_user):
        response = _create(client, headers, client_user, priority="whenever")
        assert response.status_code == 422

    def test_requires_authentication(self, client):
        response = client.post("/tickets", json={"title": "x"})
        assert response.status_code in (401, 403)


class TestTicketScoping:
    """Tests for visibility of tickets across organizations."""

    def test_other_org_client_gets_404(self, client, headers, client_user, other_client):
        ticket_id = _create(client, headers, client_user).json()["id"]
        response = client.get(f"/tickets/{ticket_id}", headers=headers(other_client))
        assert response.status_code == 404

    def test_list_only_shows_scope(self, client, headers, client_user, other_client, staff):
        _create(client, headers, client_user)
        _create(client, headers, other_client)
        assert len(client.get("/tickets", headers=headers(client_user)).json()) == 1
        assert len(client.get("/tickets", headers=headers(other_client)).json()) == 1
        # staff is assigned to the client org only
        assert len(client.get("/tickets", headers=headers(staff)).json()) == 1

    def test_super_admin_sees_everything(self, client, headers, client_user, other_client, super_admin):
        _create(client, headers, client_user)
        _create(client, headers, other_client)
        assert len(client.get("/tickets", headers=headers(super_admin)).json()) == 2


class TestComments:
    """Tests for public comments, internal notes and first response tracking."""

    def test_staff_reply_records_first_response(self, client, headers, client_user, staff, db):
        ticket_id = _create(client, headers, client_user).json()["id"]
        response = client.post(
            f"/tickets/{ticket_id}/comments", json={"content": "Looking into it"}, headers=headers(staff)
        )
        assert response.status_code == 201
        ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first()
        assert ticket.first_response_at is not None

    def test_internal_note_does_not_count_as_response(self, client, headers, client_user, staff, db):
        ticket_id = _create(client, headers, client_user).json()["id"]
        client.post(
            f"/tickets/{ticket_id}/comments",
            json={"content": "Probably the payment provider", "is_internal": True},
            headers=headers(staff),
        )
        ticket = db.query(Ticket).filter(Ticket.id == ticket_id).first()
        assert ticket.first_response_at is None

    def test_client_cannot_post_internal_note(self, client, headers, client_user):
        ticket_id = _create(client, headers, client_user).json()["id"]
        response = client.post(
            f"/tickets/{ticket_id}/comments",
            json={"content": "secret", "is_internal": True},
            headers=headers(client_user),
        )
        assert response.status_code == 403

    def test_client_does_not_see_internal_notes(self, client, headers, client_user, staff):
        ticket_id = _create(client, headers, client_user).json()["id"]
        client.post(f"/tickets/{ticket_id}/comments", json={"content": "Public"}, headers=headers(staff))
        client.post(
            f"/tickets/{ticket_id}/comments",
            json={"content": "Internal", "is_internal": True},
            headers=headers(staff),
        )
        client_view = client.get(f"/tickets/{ticket_id}/comments", headers=headers(client_user)).json()
        staff_view = client.get(f"/tickets/{ticket_id}/comments", headers=headers(staff)).json()
        assert [c["content"] for c in client_view] == ["Public"]
        assert len(staff_view) == 2


class TestWorkflow:
    """Tests for status transitions, closing and assignment."""

    def test_client_can_close(self, client, headers, client_user):
        ticket_id = _create(client, headers, client_user).json()["id"]
        response = client.post(f"/tickets/{ticket_id}/close", json={"note": "Fixed now"}, headers=headers(client_user))
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "closed"
        assert data["resolved_at"] is not None

    def test_client_cannot_move_to_in_progress(self, client, headers, client_user):
        ticket_id = _create(client, headers, client_user).json()["id"]
        response = client.post(
            f"/tickets/{ticket_id}/status", json={"status": "in_progress"}, headers=headers(client_user)
        )
        assert response.status_code == 403

    def test_closed_is_terminal(self, client, headers, client_user, staff):
        ticket_id = _create(client, headers, client_user).json()["id"]
        client.post(f"/tickets/{ticket_id}/close", json={}, headers=headers(client_user))
        response = client.post(f"/tickets/{ticket_id}/status", json={"status": "open"}, headers=headers(staff))
        assert response.status_code == 400

    def test_invalid_transition_rejected(self, client, headers, client_user, staff):
        ticket_id = _create(client, headers, client_user).json()["id"]
        client.post(f"/tickets/{ticket_id}/status", json={"status": "in_progress"}, headers=headers(staff))
        response = client.post(f"/tickets/{ticket_id}/status", json={"status": "open"}, headers=headers(staff))
        assert response.status_code == 400

    def test_assign_to_staff_opens_ticket(self, client, headers, client_user, staff):
        ticket_id = _create(client, headers, client_user).json()["id"]
        response = client.post(f"/tickets/{ticket_id}/assign", json={"assigned_to": staff.id}, headers=headers(staff))
        assert response.status_code == 200
        assert response.json()["assigned_to"] == staff.id
        assert response.json()["status"] == "open"

    def test_cannot_assign_to_client(self, client, headers, client_user, staff):
        ticket_id = _create(client, headers, client_user).json()["id"]
        response = client.post(
            f"/tickets/{ticket_id}/assign", json={"assigned_to": client_user.id}, headers=headers(staff)
        )
        assert response.status_code == 400

    def test_sla_endpoint(self, client, headers, client_user):
        ticket_id = _create(client, headers, client_user).json()["id"]
        data = client.get(f"/tickets/{ticket_id}/sla", headers=headers(client_user)).json()
        assert data["first_response"]["status"] == "on-track"
        assert data["combined"]["status"] == "on-track"
