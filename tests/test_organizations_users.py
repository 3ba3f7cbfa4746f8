"""
Tests for organization management, staff assignment and user administration.
"""

from portal.models import AuditLog


# =============================================================================
# Organizations
# =============================================================================


class TestOrganizations:
    """Tests for the /organizations endpoints."""

    def test_list_is_scoped(self, client, headers, partner, partner_org, client_org, other_org):
        response = client.get("/organizations", headers=headers(partner))
        assert response.status_code == 200
        assert {org["id"] for org in response.json()} == {partner_org.id, client_org.id}

    def test_super_admin_creates_client_under_partner(self, client, headers, db, super_admin, partner_org):
        response = client.post(
            "/organizations",
            json={"name": "Initech", "slug": "initech", "parent_id": partner_org.id},
            headers=headers(super_admin),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["org_type"] == "client"
        assert body["parent_id"] == partner_org.id
        assert body["status"] == "active"
        assert db.query(AuditLog).filter(AuditLog.action == "organization.create").count() == 1

    def test_duplicate_slug_conflict(self, client, headers, super_admin, client_org):
        response = client.post(
            "/organizations", json={"name": "Acme Again", "slug": "acme"}, headers=headers(super_admin)
        )
        assert response.status_code == 409

    def test_parent_must_be_partner(self, client, headers, super_admin, other_org):
        response = client.post(
            "/organizations",
            json={"name": "Sub", "slug": "sub", "parent_id": other_org.id},
            headers=headers(super_admin),
        )
        assert response.status_code == 400

    def test_invalid_slug_rejected(self, client, headers, super_admin):
        response = client.post(
            "/organizations", json={"name": "Bad", "slug": "Bad Slug"}, headers=headers(super_admin)
        )
        assert response.status_code == 422

    def test_partner_cannot_create(self, client, headers, partner):
        response = client.post("/organizations", json={"name": "X", "slug": "x-co"}, headers=headers(partner))
        assert response.status_code == 403

    def test_partner_updates_child(self, client, headers, partner, client_org):
        response = client.patch(
            f"/organizations/{client_org.id}", json={"name": "Acme Inc"}, headers=headers(partner)
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Acme Inc"

    def test_partner_cannot_toggle_priority(self, client, headers, partner, client_org):
        response = client.patch(
            f"/organizations/{client_org.id}", json={"is_priority": True}, headers=headers(partner)
        )
        assert response.status_code == 403

    def test_slack_url_must_be_slack(self, client, headers, super_admin, client_org):
        response = client.patch(
            f"/organizations/{client_org.id}",
            json={"slack_webhook_url": "https://example.com/hook"},
            headers=headers(super_admin),
        )
        assert response.status_code == 422

    def test_client_cannot_read_other_org(self, client, headers, client_user, other_org):
        response = client.get(f"/organizations/{other_org.id}", headers=headers(client_user))
        assert response.status_code == 404


class TestStaffAssignments:
    """Tests for assigning staff to client organizations."""

    def test_assign_grants_access(self, client, headers, super_admin, unassigned_staff, other_org):
        assert client.get(f"/organizations/{other_org.id}", headers=headers(unassigned_staff)).status_code == 404

        response = client.post(
            f"/organizations/{other_org.id}/staff",
            json={"staff_id": unassigned_staff.id},
            headers=headers(super_admin),
        )
        assert response.status_code == 201
        assert client.get(f"/organizations/{other_org.id}", headers=headers(unassigned_staff)).status_code == 200

        staff_list = client.get(f"/organizations/{other_org.id}/staff", headers=headers(super_admin)).json()
        assert [row["staff_id"] for row in staff_list] == [unassigned_staff.id]

    def test_duplicate_assignment_conflict(self, client, headers, super_admin, staff, client_org):
        response = client.post(
            f"/organizations/{client_org.id}/staff", json={"staff_id": staff.id}, headers=headers(super_admin)
        )
        assert response.status_code == 409

    def test_only_staff_can_be_assigned(self, client, headers, super_admin, client_user, other_org):
        response = client.post(
            f"/organizations/{other_org.id}/staff", json={"staff_id": client_user.id}, headers=headers(super_admin)
        )
        assert response.status_code == 400

    def test_remove_assignment(self, client, headers, super_admin, staff, client_org):
        response = client.delete(f"/organizations/{client_org.id}/staff/{staff.id}", headers=headers(super_admin))
        assert response.status_code == 200
        assert client.get(f"/organizations/{client_org.id}", headers=headers(staff)).status_code == 404


# =============================================================================
# Users
# =============================================================================


class TestSelfService:
    """Tests for /users/me."""

    def test_get_me(self, client, headers, client_user):
        response = client.get("/users/me", headers=headers(client_user))
        assert response.status_code == 200
        assert response.json()["email"] == "jane@acme.test"

    def test_preferences_are_merged(self, client, headers, client_user):
        client.patch("/users/me", json={"notification_preferences": {"email": False}}, headers=headers(client_user))
        response = client.patch(
            "/users/me",
            json={"full_name": "Jane Doe", "notification_preferences": {"in_app": True}},
            headers=headers(client_user),
        )
        body = response.json()
        assert body["full_name"] == "Jane Doe"
        assert body["notification_preferences"] == {"email": False, "in_app": True}

    def test_my_permissions(self, client, headers, client_user):
        body = client.get("/users/me/permissions", headers=headers(client_user)).json()
        assert body["role"] == "client"
        assert "contracts.sign" in body["permissions"]
        assert "invoices.create" not in body["permissions"]


class TestUserAdministration:
    """Tests for inviting users and managing their permissions."""

    def test_partner_invites_client(self, client, headers, partner, client_org):
        response = client.post(
            "/users",
            json={"email": "New.Person@Acme.example.com", "role": "client", "organization_id": client_org.id},
            headers=headers(partner),
        )
        assert response.status_code == 201
        assert response.json()["email"] == "new.person@acme.example.com"

    def test_partner_cannot_invite_staff(self, client, headers, partner):
        response = client.post(
            "/users", json={"email": "who@example.com", "role": "staff"}, headers=headers(partner)
        )
        assert response.status_code == 403

    def test_partner_cannot_invite_outside_scope(self, client, headers, partner, other_org):
        response = client.post(
            "/users",
            json={"email": "who@example.com", "role": "client", "organization_id": other_org.id},
            headers=headers(partner),
        )
        assert response.status_code == 404

    def test_duplicate_email_conflict(self, client, headers, super_admin, client_org):
        payload = {"email": "dup@example.com", "organization_id": client_org.id}
        assert client.post("/users", json=payload, headers=headers(super_admin)).status_code == 201

        payload["email"] = "DUP@example.com"
        response = client.post("/users", json=payload, headers=headers(super_admin))
        assert response.status_code == 409

    def test_admin_cannot_demote_self(self, client, headers, super_admin):
        response = client.patch(f"/users/{super_admin.id}", json={"role": "staff"}, headers=headers(super_admin))
        assert response.status_code == 400

    def test_admin_deactivates_user(self, client, headers, super_admin, client_user):
        response = client.patch(f"/users/{client_user.id}", json={"is_active": False}, headers=headers(super_admin))
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_client_list_is_forbidden(self, client, headers, client_user):
        response = client.get("/users", headers=headers(client_user))
        assert response.status_code == 403

    def test_permission_override_round_trip(self, client, headers, super_admin, client_user):
        url = f"/users/{client_user.id}/permissions/reports.view"
        granted = client.put(url, json={"granted": True}, headers=headers(super_admin))
        assert granted.status_code == 200
        sources = {p["permission"]: p["source"] for p in granted.json()["permissions"]}
        assert sources["reports.view"] == "user_override"
        assert client.get("/reports/summary", headers=headers(client_user)).status_code == 200

        cleared = client.delete(url, headers=headers(super_admin))
        assert cleared.status_code == 200
        assert client.get("/reports/summary", headers=headers(client_user)).status_code == 403

    def test_unknown_permission_override(self, client, headers, super_admin, client_user):
        response = client.put(
            f"/users/{client_user.id}/permissions/rockets.launch", json={"granted": True}, headers=headers(super_admin)
        )
        assert response.status_code == 400

    def test_staff_cannot_manage_overrides(self, client, headers, staff, client_user):
        response = client.get(f"/users/{client_user.id}/permissions", headers=headers(staff))
        assert response.status_code == 403
