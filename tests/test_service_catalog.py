"""
Tests for the service catalog and the service request workflow.
"""

import pytest

from portal.models import Notification
from portal.models_service import ServiceRequest
from portal.models_ticket import Ticket


@pytest.fixture
def web_service(client, headers, staff):
    response = client.post(
        "/services",
        json={"name": "Landing page", "description": "One-page site", "rate_type": "fixed", "base_rate": 150000},
        headers=headers(staff),
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def service_request(client, headers, client_user, web_service):
    response = client.post(
        "/service-requests",
        json={"service_id": web_service["id"], "priority": "urgent", "details": {"notes": "Launch in May"}},
        headers=headers(client_user),
    )
    assert response.status_code == 201
    return response.json()


# =============================================================================
# Catalog
# =============================================================================


class TestCatalog:
    """Tests for catalog visibility and management."""

    def test_global_service_visible_to_every_client(self, client, headers, web_service, client_user, other_client):
        for user in (client_user, other_client):
            names = [s["name"] for s in client.get("/services", headers=headers(user)).json()]
            assert names == ["Landing page"]

    def test_org_service_hidden_from_other_clients(self, client, headers, staff, client_org, client_user, other_client):
        created = client.post(
            "/services", json={"name": "Acme retainer", "organization_id": client_org.id}, headers=headers(staff)
        ).json()
        assert [s["id"] for s in client.get("/services", headers=headers(client_user)).json()] == [created["id"]]
        assert client.get("/services", headers=headers(other_client)).json() == []
        assert client.get(f"/services/{created['id']}", headers=headers(other_client)).status_code == 404

    def test_inactive_service_hidden_from_clients(self, client, headers, staff, client_user, web_service):
        client.patch(f"/services/{web_service['id']}", json={"is_active": False}, headers=headers(staff))
        assert client.get("/services", headers=headers(client_user)).json() == []
        assert len(client.get("/services", headers=headers(staff)).json()) == 1

    def test_client_cannot_manage_catalog(self, client, headers, client_user, web_service):
        assert client.post("/services", json={"name": "Free work"}, headers=headers(client_user)).status_code == 403
        response = client.patch(f"/services/{web_service['id']}", json={"base_rate": 0}, headers=headers(client_user))
        assert response.status_code == 403

    def test_invalid_rate_type(self, client, headers, staff):
        response = client.post("/services", json={"name": "SEO", "rate_type": "weekly"}, headers=headers(staff))
        assert response.status_code == 422

    def test_delete_unused_service(self, client, headers, staff, web_service):
        assert client.delete(f"/services/{web_service['id']}", headers=headers(staff)).status_code == 200
        assert client.get("/services", headers=headers(staff)).json() == []

    def test_delete_requested_service_conflicts(self, client, headers, staff, web_service, service_request):
        assert client.delete(f"/services/{web_service['id']}", headers=headers(staff)).status_code == 409


# =============================================================================
# Requests
# =============================================================================


class TestServiceRequests:
    """Tests for the request, response and conversion workflow."""

    def test_request_starts_pending(self, service_request, client_user, client_org):
        assert service_request["status"] == "pending"
        assert service_request["organization_id"] == client_org.id
        assert service_request["requested_by"] == client_user.id
        assert service_request["service"]["name"] == "Landing page"

    def test_service_without_approval_is_approved_on_request(self, client, headers, staff, client_user):
        service = client.post(
            "/services", json={"name": "Content update", "requires_approval": False}, headers=headers(staff)
        ).json()
        response = client.post("/service-requests", json={"service_id": service["id"]}, headers=headers(client_user))
        assert response.json()["status"] == "approved"

    def test_inactive_service_cannot_be_requested(self, client, headers, staff, client_user, web_service):
        client.patch(f"/services/{web_service['id']}", json={"is_active": False}, headers=headers(staff))
        response = client.post(
            "/service-requests", json={"service_id": web_service["id"]}, headers=headers(client_user)
        )
        assert response.status_code == 400

    def test_other_org_service_cannot_be_requested(self, client, headers, super_admin, other_org, client_user):
        service = client.post(
            "/services", json={"name": "Globex only", "organization_id": other_org.id}, headers=headers(super_admin)
        ).json()
        response = client.post("/service-requests", json={"service_id": service["id"]}, headers=headers(client_user))
        assert response.status_code == 404

    def test_requests_visible_to_requester_and_staff_only(self, client, headers, service_request, staff, other_client):
        listed = client.get("/service-requests", headers=headers(staff)).json()
        assert [r["id"] for r in listed] == [service_request["id"]]
        assert client.get("/service-requests", headers=headers(other_client)).json() == []
        response = client.get(f"/service-requests/{service_request['id']}", headers=headers(other_client))
        assert response.status_code == 404

    def test_respond_then_approve_then_convert(self, client, headers, db, staff, client_user, service_request):
        request_id = service_request["id"]

        responded = client.post(
            f"/service-requests/{request_id}/respond",
            json={"response_text": "We can start on the 5th", "response_metadata": {"quote": 150000}},
            headers=headers(staff),
        ).json()
        assert responded["status"] == "responded"
        assert responded["response_count"] == 1
        assert responded["latest_response_by"] == staff.id
        assert db.query(Notification).filter(Notification.user_id == client_user.id).count() == 1

        approved = client.post(
            f"/service-requests/{request_id}/feedback",
            json={"response_text": "Sounds good", "is_approval": True},
            headers=headers(client_user),
        ).json()
        assert approved["status"] == "approved"
        assert approved["approved_by"] == client_user.id
        assert [r["response_type"] for r in approved["responses"]] == ["admin_response", "client_feedback"]
        assert db.query(Notification).filter(Notification.user_id == staff.id).count() == 1

        converted = client.post(f"/service-requests/{request_id}/convert", headers=headers(staff))
        assert converted.status_code == 200
        assert converted.json()["status"] == "converted"
        ticket = db.query(Ticket).filter(Ticket.id == converted.json()["converted_ticket_id"]).one()
        assert ticket.title == "Service request: Landing page"
        assert ticket.category == "feature-request"
        assert ticket.priority == "critical"
        assert "Launch in May" in ticket.description

    def test_feedback_without_approval_keeps_request_open(self, client, headers, staff, client_user, service_request):
        request_id = service_request["id"]
        client.post(
            f"/service-requests/{request_id}/respond", json={"response_text": "Quote attached"}, headers=headers(staff)
        )
        body = client.post(
            f"/service-requests/{request_id}/feedback",
            json={"response_text": "Can you lower the price?"},
            headers=headers(client_user),
        ).json()
        assert body["status"] == "responded"
        assert body["response_count"] == 2

    def test_feedback_before_response_rejected(self, client, headers, client_user, service_request):
        response = client.post(
            f"/service-requests/{service_request['id']}/feedback",
            json={"response_text": "Any news?"},
            headers=headers(client_user),
        )
        assert response.status_code == 400

    def test_only_approved_requests_convert(self, client, headers, staff, service_request):
        response = client.post(f"/service-requests/{service_request['id']}/convert", headers=headers(staff))
        assert response.status_code == 400

    def test_client_cannot_respond(self, client, headers, client_user, service_request):
        response = client.post(
            f"/service-requests/{service_request['id']}/respond",
            json={"response_text": "Approved by me"},
            headers=headers(client_user),
        )
        assert response.status_code == 403

    def test_reject_closes_request(self, client, headers, db, partner, service_request):
        response = client.post(
            f"/service-requests/{service_request['id']}/reject",
            json={"reason": "Out of scope"},
            headers=headers(partner),
        )
        assert response.json()["status"] == "rejected"
        assert db.get(ServiceRequest, service_request["id"]).rejection_reason == "Out of scope"
        again = client.post(
            f"/service-requests/{service_request['id']}/respond",
            json={"response_text": "Reconsidered"},
            headers=headers(partner),
        )
        assert again.status_code == 400

    def test_requester_cancels(self, client, headers, staff, client_user, service_request):
        url = f"/service-requests/{service_request['id']}/cancel"
        assert client.post(url, headers=headers(staff)).status_code == 403
        response = client.post(url, headers=headers(client_user))
        assert response.json()["status"] == "cancelled"
