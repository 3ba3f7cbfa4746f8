"""
Tests for support plans, assignments and time tracking.
"""

import pytest

from portal.domain.plans.service import calculate_overage


class TestOverage:
    """Tests for allowance overage."""

    def test_within_allowance(self):
        assert calculate_overage(4, 2, 10) == 0.0

    def test_crossing_allowance(self):
        assert calculate_overage(8, 4, 10) == 2.0

    def test_already_over_reports_running_total(self):
        assert calculate_overage(12, 1.5, 10) == 3.5

    def test_no_allowance(self):
        assert calculate_overage(0, 0.25, 0) == 0.25


@pytest.fixture
def assignment(client, headers, super_admin, client_org):
    plan = client.post(
        "/plans",
        json={"name": "Care", "support_hours_included": 10, "dev_hours_included": 5, "monthly_fee": 50000},
        headers=headers(super_admin),
    )
    assert plan.status_code == 201
    response = client.post(
        "/plans/assignments",
        json={"organization_id": client_org.id, "plan_id": plan.json()["id"]},
        headers=headers(super_admin),
    )
    assert response.status_code == 201
    return response.json()


def _log(client, headers, user, assignment_id, hours, work_type="support"):
    return client.post(
        f"/plans/assignments/{assignment_id}/time-entries",
        json={"hours": hours, "work_type": work_type, "description": "Maintenance"},
        headers=headers(user),
    )


class TestPlansAPI:
    """Tests for plan management."""

    def test_only_super_admin_creates_plans(self, client, headers, staff):
        assert client.post("/plans", json={"name": "Basic"}, headers=headers(staff)).status_code == 403

    def test_clients_cannot_list_plans(self, client, headers, client_user, assignment):
        assert client.get("/plans", headers=headers(client_user)).status_code == 403

    def test_deactivated_plan_cannot_be_assigned(self, client, headers, super_admin, other_org):
        plan_id = client.post("/plans", json={"name": "Old"}, headers=headers(super_admin)).json()["id"]
        client.delete(f"/plans/{plan_id}", headers=headers(super_admin))
        response = client.post(
            "/plans/assignments",
            json={"organization_id": other_org.id, "plan_id": plan_id},
            headers=headers(super_admin),
        )
        assert response.status_code == 400


class TestTimeTracking:
    """Tests for logging time against a plan assignment."""

    def test_log_within_allowance(self, client, headers, staff, assignment):
        response = _log(client, headers, staff, assignment["id"], 8)
        assert response.status_code == 201
        body = response.json()
        assert body["time_entry"]["is_overage"] is False
        assert body["hours_summary"]["support_hours_remaining"] == 2
        assert body["hours_summary"]["will_exceed_limit"] is False

    def test_overage_flagged(self, client, headers, staff, assignment):
        _log(client, headers, staff, assignment["id"], 8)
        body = _log(client, headers, staff, assignment["id"], 4).json()
        assert body["time_entry"]["is_overage"] is True
        assert body["time_entry"]["overage_hours"] == 2.0
        assert body["hours_summary"]["support_hours_used"] == 12
        assert body["hours_summary"]["support_hours_remaining"] == 0

    def test_dev_hours_tracked_separately(self, client, headers, staff, assignment):
        _log(client, headers, staff, assignment["id"], 3, work_type="dev")
        usage = client.get(f"/plans/assignments/{assignment['id']}/usage", headers=headers(staff)).json()
        assert usage["dev_hours_used"] == 3
        assert usage["support_hours_used"] == 0
        assert usage["plan_name"] == "Care"

    def test_only_staff_log_time(self, client, headers, client_user, partner, assignment):
        assert _log(client, headers, client_user, assignment["id"], 1).status_code == 403
        assert _log(client, headers, partner, assignment["id"], 1).status_code == 403

    def test_paused_assignment_rejects_time(self, client, headers, super_admin, staff, assignment):
        client.patch(
            f"/plans/assignments/{assignment['id']}", json={"status": "paused"}, headers=headers(super_admin)
        )
        assert _log(client, headers, staff, assignment["id"], 1).status_code == 400

    def test_invalid_hours(self, client, headers, staff, assignment):
        assert _log(client, headers, staff, assignment["id"], 0).status_code == 422
        assert _log(client, headers, staff, assignment["id"], 1, work_type="design").status_code == 422

    def test_usage_scoped_to_organization(self, client, headers, client_user, other_client, assignment):
        url = f"/plans/assignments/{assignment['id']}/usage"
        assert client.get(url, headers=headers(client_user)).status_code == 200
        assert client.get(url, headers=headers(other_client)).status_code == 404
