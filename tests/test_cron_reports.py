"""
Tests for the cron triggers, report exports, the audit trail and health checks.
"""

from datetime import datetime, timedelta

import pytest

from portal.audit import log_action
from portal.security_headers import build_security_headers
from portal.models_invoice import Invoice
from portal.models_ticket import Ticket

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


@pytest.fixture
def breached_ticket(db, client_org, client_user):
    created = datetime.utcnow() - timedelta(days=3)
    ticket = Ticket(
        organization_id=client_org.id,
        created_by=client_user.id,
        ticket_number="TKT-00900",
        title="Production is down",
        priority="critical",
        status="open",
        first_response_due_at=created + timedelta(hours=1),
        sla_due_at=created + timedelta(hours=8),
        created_at=created,
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    return ticket


@pytest.fixture
def outstanding_invoice(db, client_org):
    invoice = Invoice(
        organization_id=client_org.id,
        invoice_number="INV-3001",
        status="sent",
        issue_date=datetime.utcnow() - timedelta(days=45),
        due_date=datetime.utcnow() - timedelta(days=15),
        total=12500,
        balance_due=12500,
    )
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


# =============================================================================
# Cron
# =============================================================================


class TestCronTriggers:
    """Tests for the /cron endpoints."""

    def test_missing_secret_header_rejected(self, client):
        response = client.post("/cron/overdue-invoices")
        assert response.status_code == 401

    def test_wrong_secret_rejected(self, client):
        response = client.post("/cron/overdue-invoices", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_overdue_sweep(self, client, db, outstanding_invoice):
        response = client.post("/cron/overdue-invoices", headers=CRON_HEADERS)
        assert response.status_code == 200
        assert response.json() == {"marked_overdue": 1}

        db.refresh(outstanding_invoice)
        assert outstanding_invoice.status == "overdue"

    def test_calendar_sync_with_no_integrations(self, client):
        response = client.post("/cron/calendar-sync", headers=CRON_HEADERS)
        assert response.status_code == 200
        assert response.json() == {"synced": 0, "failed": 0}

    def test_sla_monitor_reports_breach_once(self, client, breached_ticket):
        first = client.post("/cron/sla-monitor", headers=CRON_HEADERS)
        assert first.status_code == 200
        assert first.json()["checked"] == 1
        assert first.json()["breaches_sent"] == 1

        second = client.post("/cron/sla-monitor", headers=CRON_HEADERS).json()
        assert second["breaches_sent"] == 0


# =============================================================================
# Reports
# =============================================================================


class TestReportSummary:
    """Tests for GET /reports/summary."""

    def test_staff_summary(self, client, headers, staff, breached_ticket, outstanding_invoice):
        response = client.get("/reports/summary", headers=headers(staff))
        assert response.status_code == 200
        data = response.json()
        assert data["open_tickets"] == 1
        assert data["open_tickets_by_priority"]["critical"] == 1
        assert data["sla_breaches"] == 1
        assert data["outstanding_balance"] == 12500
        assert data["hours_logged_this_month"] == 0

    def test_client_cannot_view_reports(self, client, headers, client_user):
        response = client.get("/reports/summary", headers=headers(client_user))
        assert response.status_code == 403

    def test_unassigned_staff_sees_nothing(self, client, headers, unassigned_staff, breached_ticket):
        data = client.get("/reports/summary", headers=headers(unassigned_staff)).json()
        assert data["open_tickets"] == 0

    def test_foreign_org_filter_is_404(self, client, headers, staff, other_org):
        response = client.get(f"/reports/summary?organization_id={other_org.id}", headers=headers(staff))
        assert response.status_code == 404


class TestCsvExports:
    """Tests for the CSV export endpoints."""

    def test_ticket_export(self, client, headers, staff, breached_ticket):
        response = client.get("/reports/tickets.csv", headers=headers(staff))
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=tickets_export_" in response.headers["content-disposition"]

        lines = response.text.strip().splitlines()
        assert lines[0].startswith("Ticket,Organization,Title")
        assert "TKT-00900,Acme Corp,Production is down" in lines[1]
        assert "breach" in lines[1]

    def test_invoice_export_formats_amounts(self, client, headers, super_admin, outstanding_invoice):
        response = client.get("/reports/invoices.csv", headers=headers(super_admin))
        assert response.status_code == 200
        lines = response.text.strip().splitlines()
        assert len(lines) == 2
        assert lines[1].startswith("INV-3001,Acme Corp,sent")
        assert "125.00" in lines[1]

    def test_time_entry_export_header_only(self, client, headers, partner):
        response = client.get("/reports/time-entries.csv", headers=headers(partner))
        assert response.status_code == 200
        assert response.text.strip().startswith("ID,Organization ID,Staff ID")

    def test_client_cannot_export(self, client, headers, client_user):
        response = client.get("/reports/tickets.csv", headers=headers(client_user))
        assert response.status_code == 403


# =============================================================================
# Audit
# =============================================================================


class TestAuditTrail:
    """Tests for GET /audit."""

    @pytest.fixture
    def entries(self, db, super_admin, client_org, other_org):
        log_action(db, super_admin, "invoice.create", "invoice", 1, organization_id=client_org.id)
        log_action(db, super_admin, "invoice.create", "invoice", 2, organization_id=other_org.id)
        log_action(db, super_admin, "organization.update", "organization", client_org.id, organization_id=client_org.id)

    def test_super_admin_sees_everything(self, client, headers, super_admin, entries):
        response = client.get("/audit", headers=headers(super_admin))
        assert response.status_code == 200
        assert len(response.json()) == 3

    def test_partner_sees_child_orgs_only(self, client, headers, partner, client_org, entries):
        data = client.get("/audit", headers=headers(partner)).json()
        assert len(data) == 2
        assert {entry["organization_id"] for entry in data} == {client_org.id}

    def test_filter_by_action(self, client, headers, super_admin, entries):
        data = client.get("/audit?action=organization.update", headers=headers(super_admin)).json()
        assert len(data) == 1
        assert data[0]["resource_type"] == "organization"

    def test_client_forbidden(self, client, headers, client_user, entries):
        response = client.get("/audit", headers=headers(client_user))
        assert response.status_code == 403


# =============================================================================
# Health
# =============================================================================


class TestHealth:
    """Tests for the health endpoint and response headers."""

    def test_health_pings_database(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "ok", "rate_limit_backend": "memory"}

    def test_api_responses_carry_security_headers(self, client, headers, client_user):
        response = client.get("/users/me", headers=headers(client_user))
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "default-src 'none'" in response.headers["Content-Security-Policy"]
        assert response.headers["Cross-Origin-Resource-Policy"] == "same-site"
        assert response.headers["X-Robots-Tag"] == "noindex, nofollow"
        assert response.headers["Cache-Control"] == "no-store"

    def test_health_is_excluded(self, client):
        assert "X-Frame-Options" not in client.get("/health").headers

    def test_signing_links_never_leak_referrer(self, client):
        response = client.get("/contracts/sign/not-a-real-token")
        assert response.headers["Referrer-Policy"] == "no-referrer"
        assert response.headers["Cache-Control"] == "private, no-store, max-age=0"

    def test_csv_export_keeps_its_cache_policy(self, client, headers, staff):
        response = client.get("/reports/tickets.csv", headers=headers(staff))
        assert response.headers["Cache-Control"] == "no-cache"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestSecurityHeaderValues:
    """Tests for the per-path header set."""

    def test_hsts_only_in_production(self):
        assert "Strict-Transport-Security" not in build_security_headers("/tickets", production=False)
        assert build_security_headers("/tickets", production=True)["Strict-Transport-Security"].startswith(
            "max-age=31536000"
        )

    def test_api_paths_use_default_referrer_policy(self):
        assert build_security_headers("/contracts/12")["Referrer-Policy"] == "strict-origin-when-cross-origin"
