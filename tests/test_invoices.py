"""
Tests for invoice arithmetic, the invoice lifecycle and manual payments.
"""

import asyncio
from datetime import datetime, timedelta

from portal.domain.invoices.service import run_overdue_sweep
from portal.domain.invoices.totals import calculate_totals, dollars_to_cents, format_cents, line_amount
from portal.models_invoice import Invoice

# =============================================================================
# Totals
# =============================================================================


class TestTotals:
    """Tests for cent arithmetic with basis-point discounts and tax."""

    def test_percentage_discount_and_tax(self):
        totals = calculate_totals([(2, 5000)], "percentage", 1000, 825)
        assert totals == {
            "subtotal": 10000,
            "discount_amount": 1000,
            "tax_amount": 743,
            "total": 9743,
            "balance_due": 9743,
        }

    def test_fixed_discount_clamped_to_subtotal(self):
        totals = calculate_totals([(1, 2000)], "fixed", 5000, 0)
        assert totals["discount_amount"] == 2000
        assert totals["total"] == 0

    def test_no_discount_type_ignores_value(self):
        assert calculate_totals([(1, 2000)], None, 500)["discount_amount"] == 0

    def test_balance_reflects_payments(self):
        assert calculate_totals([(1, 2000)], amount_paid=500)["balance_due"] == 1500

    def test_line_amount_rounds_half_up(self):
        assert line_amount(1.5, 333) == 500

    def test_dollars_to_cents(self):
        assert dollars_to_cents(19.99) == 1999
        assert dollars_to_cents(0.005) == 1

    def test_format_cents(self):
        assert format_cents(123456) == "$1,234.56"
        assert format_cents(-500) == "-$5.00"
        assert format_cents(1200, "EUR") == "12.00 EUR"


# =============================================================================
# Lifecycle
# =============================================================================


def _invoice_payload(organization_id, **overrides):
    payload = {
        "organization_id": organization_id,
        "invoice_number": "INV-1001",
        "line_items": [
            {"description": "Support retainer", "quantity": 1, "unit_price": 100000},
            {"description": "Extra dev hours", "quantity": 2.5, "unit_price": 15000},
        ],
        "tax_rate": 1000,
    }
    payload.update(overrides)
    return payload


def _create(client, headers, user, organization_id, **overrides):
    return client.post("/invoices", json=_invoice_payload(organization_id, **overrides), headers=headers(user))


class TestInvoiceLifecycle:
    """Tests for create, send, edit and void."""

    def test_account_manager_creates_draft(self, client, headers, staff, client_org):
        response = _create(client, headers, staff, client_org.id)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "draft"
        assert data["subtotal"] == 137500
        assert data["tax_amount"] == 13750
        assert data["total"] == 151250
        assert data["balance_due"] == 151250
        assert [item["sort_order"] for item in data["line_items"]] == [0, 1]

    def test_default_due_date_is_net_30(self, client, headers, staff, client_org):
        data = _create(client, headers, staff, client_org.id).json()
        issue = datetime.fromisoformat(data["issue_date"])
        due = datetime.fromisoformat(data["due_date"])
        assert (due - issue).days == 30

    def test_duplicate_number_conflicts(self, client, headers, staff, client_org):
        _create(client, headers, staff, client_org.id)
        assert _create(client, headers, staff, client_org.id).status_code == 409

    def test_client_cannot_create(self, client, headers, client_user, client_org):
        assert _create(client, headers, client_user, client_org.id).status_code == 403

    def test_non_account_manager_staff_cannot_create(self, client, headers, unassigned_staff, client_org):
        assert _create(client, headers, unassigned_staff, client_org.id).status_code == 403

    def test_client_cannot_see_drafts(self, client, headers, staff, client_user, client_org):
        invoice_id = _create(client, headers, staff, client_org.id).json()["id"]
        assert client.get(f"/invoices/{invoice_id}", headers=headers(client_user)).status_code == 404
        assert client.get("/invoices", headers=headers(client_user)).json() == []

    def test_send_makes_visible_to_client(self, client, headers, staff, client_user, client_org):
        invoice_id = _create(client, headers, staff, client_org.id).json()["id"]
        response = client.post(f"/invoices/{invoice_id}/send", headers=headers(staff))
        assert response.status_code == 200
        assert response.json()["status"] == "sent"
        assert response.json()["sent_at"] is not None
        assert client.get(f"/invoices/{invoice_id}", headers=headers(client_user)).status_code == 200

    def test_sent_invoice_only_accepts_notes_and_due_date(self, client, headers, staff, client_org):
        invoice_id = _create(client, headers, staff, client_org.id).json()["id"]
        client.post(f"/invoices/{invoice_id}/send", headers=headers(staff))
        blocked = client.patch(f"/invoices/{invoice_id}", json={"tax_rate": 0}, headers=headers(staff))
        assert blocked.status_code == 400
        allowed = client.patch(f"/invoices/{invoice_id}", json={"notes": "Thanks!"}, headers=headers(staff))
        assert allowed.status_code == 200
        assert allowed.json()["notes"] == "Thanks!"

    def test_draft_edit_recalculates(self, client, headers, staff, client_org):
        invoice_id = _create(client, headers, staff, client_org.id).json()["id"]
        response = client.patch(
            f"/invoices/{invoice_id}",
            json={"line_items": [{"description": "Audit", "quantity": 1, "unit_price": 50000}], "tax_rate": 0},
            headers=headers(staff),
        )
        assert response.status_code == 200
        assert response.json()["total"] == 50000

    def test_pdf_download(self, client, headers, staff, client_org):
        invoice_id = _create(client, headers, staff, client_org.id).json()["id"]
        response = client.get(f"/invoices/{invoice_id}/pdf", headers=headers(staff))
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")


# =============================================================================
# Payments
# =============================================================================


class TestManualPayments:
    """Tests for balance and status rules on recorded payments."""

    def _sent_invoice(self, client, headers, staff, client_org):
        invoice_id = _create(client, headers, staff, client_org.id, tax_rate=0).json()["id"]
        client.post(f"/invoices/{invoice_id}/send", headers=headers(staff))
        return invoice_id

    def test_partial_then_full_payment(self, client, headers, staff, client_org):
        invoice_id = self._sent_invoice(client, headers, staff, client_org)

        first = client.post(
            f"/invoices/{invoice_id}/payments",
            json={"amount": 375.00, "payment_method": "bank_transfer"},
            headers=headers(staff),
        )
        assert first.status_code == 201
        assert first.json()["invoice"]["status"] == "partial"
        assert first.json()["invoice"]["balance_due"] == 100000

        second = client.post(
            f"/invoices/{invoice_id}/payments",
            json={"amount": 1000.00, "payment_method": "check"},
            headers=headers(staff),
        )
        assert second.status_code == 201
        invoice = second.json()["invoice"]
        assert invoice["status"] == "paid"
        assert invoice["balance_due"] == 0
        assert invoice["paid_at"] is not None

        payments = client.get(f"/invoices/{invoice_id}/payments", headers=headers(staff)).json()
        assert len(payments) == 2

    def test_overpayment_rejected(self, client, headers, staff, client_org):
        invoice_id = self._sent_invoice(client, headers, staff, client_org)
        response = client.post(
            f"/invoices/{invoice_id}/payments",
            json={"amount": 5000, "payment_method": "cash"},
            headers=headers(staff),
        )
        assert response.status_code == 400

    def test_payment_on_draft_rejected(self, client, headers, staff, client_org):
        invoice_id = _create(client, headers, staff, client_org.id).json()["id"]
        response = client.post(
            f"/invoices/{invoice_id}/payments",
            json={"amount": 10, "payment_method": "cash"},
            headers=headers(staff),
        )
        assert response.status_code == 400

    def test_unknown_method_rejected(self, client, headers, staff, client_org):
        invoice_id = self._sent_invoice(client, headers, staff, client_org)
        response = client.post(
            f"/invoices/{invoice_id}/payments",
            json={"amount": 10, "payment_method": "barter"},
            headers=headers(staff),
        )
        assert response.status_code == 400

    def test_paid_invoice_cannot_be_voided(self, client, headers, staff, client_org):
        invoice_id = self._sent_invoice(client, headers, staff, client_org)
        client.post(
            f"/invoices/{invoice_id}/payments",
            json={"amount": 1375, "payment_method": "cash"},
            headers=headers(staff),
        )
        assert client.post(f"/invoices/{invoice_id}/void", headers=headers(staff)).status_code == 400

    def test_void_sent_invoice(self, client, headers, staff, client_org):
        invoice_id = self._sent_invoice(client, headers, staff, client_org)
        response = client.post(f"/invoices/{invoice_id}/void", headers=headers(staff))
        assert response.status_code == 200
        assert response.json()["status"] == "void"


class TestOverdueSweep:
    """Tests for the daily overdue sweep."""

    def test_marks_past_due_invoices(self, db, client_org):
        now = datetime.utcnow()
        past_due = Invoice(
            organization_id=client_org.id,
            invoice_number="INV-1",
            status="sent",
            issue_date=now - timedelta(days=40),
            due_date=now - timedelta(days=10),
            total=1000,
            balance_due=1000,
        )
        not_due = Invoice(
            organization_id=client_org.id,
            invoice_number="INV-2",
            status="sent",
            issue_date=now,
            due_date=now + timedelta(days=30),
            total=1000,
            balance_due=1000,
        )
        draft = Invoice(
            organization_id=client_org.id,
            invoice_number="INV-3",
            status="draft",
            issue_date=now - timedelta(days=40),
            due_date=now - timedelta(days=10),
        )
        db.add_all([past_due, not_due, draft])
        db.commit()

        result = asyncio.run(run_overdue_sweep(db))

        assert result == {"marked_overdue": 1}
        db.refresh(past_due)
        db.refresh(not_due)
        db.refresh(draft)
        assert past_due.status == "overdue"
        assert not_due.status == "sent"
        assert draft.status == "draft"
