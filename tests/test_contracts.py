"""
Tests for contract templates, rendering and the e-signature flow.
"""

import pytest

from portal.domain.contracts.rendering import render_template
from portal.domain.contracts.service import create_signing_token
from portal.models_contract import Contract


class TestRenderTemplate:
    """Tests for placeholder substitution."""

    def test_metadata_overrides_default(self):
        variables = [{"name": "amount", "default": "$500"}]
        assert render_template("<p>{{amount}}</p>", variables, {"amount": "$900"}) == "<p>$900</p>"
        assert render_template("<p>{{amount}}</p>", variables, {}) == "<p>$500</p>"

    def test_unknown_placeholder_is_blank(self):
        assert render_template("<p>Hello {{ nobody }}!</p>", [], None) == "<p>Hello !</p>"

    def test_values_are_escaped(self):
        rendered = render_template("<p>{{name}}</p>", [], {"name": "<img src=x onerror=alert(1)>"})
        assert "<img" not in rendered
        assert "&lt;img" in rendered

    def test_template_markup_is_sanitized(self):
        rendered = render_template('<p onclick="x()">Terms</p><script>steal()</script>', [], {})
        assert "<script>" not in rendered
        assert "onclick" not in rendered
        assert "<p>Terms</p>" in rendered


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def template(client, headers, staff):
    response = client.post(
        "/contracts/templates",
        json={
            "name": "Retainer",
            "content": "<p>Agreement with {{ client_name }} for {{ amount }}</p><script>x()</script>",
            "variables": [{"name": "client_name"}, {"name": "amount", "default": "$1,000"}],
        },
        headers=headers(staff),
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def draft(client, headers, staff, client_org, template):
    response = client.post(
        "/contracts",
        json={
            "organization_id": client_org.id,
            "title": "Retainer 2026",
            "template_id": template["id"],
            "metadata": {"client_name": "Acme <Corp>"},
        },
        headers=headers(staff),
    )
    assert response.status_code == 201
    return response.json()


def _send(client, headers, staff, contract_id):
    return client.post(
        f"/contracts/{contract_id}/send",
        json={
            "signers": [
                {"name": "Jane Client", "email": "jane@acme.example.com", "signing_order": 1},
                {"name": "Sam Agency", "email": "sam@agency.example.com", "role": "contractor", "signing_order": 2},
            ]
        },
        headers=headers(staff),
    )


def _tokens(db, contract_id):
    contract = db.query(Contract).filter(Contract.id == contract_id).one()
    return [create_signing_token(contract, signer) for signer in sorted(contract.signers, key=lambda s: s.signing_order)]


class TestContracts:
    """Tests for creating and sending contracts."""

    def test_rendered_from_template(self, draft):
        assert draft["status"] == "draft"
        assert "Agreement with Acme &lt;Corp&gt; for $1,000" in draft["content"]
        assert "<script>" not in draft["content"]

    def test_requires_template_or_content(self, client, headers, staff, client_org):
        response = client.post(
            "/contracts", json={"organization_id": client_org.id, "title": "Empty"}, headers=headers(staff)
        )
        assert response.status_code == 422

    def test_only_staff_create(self, client, headers, client_user, client_org):
        response = client.post(
            "/contracts",
            json={"organization_id": client_org.id, "title": "Mine", "content": "<p>x</p>"},
            headers=headers(client_user),
        )
        assert response.status_code == 403

    def test_client_sees_own_contracts(self, client, headers, draft, client_user, other_client):
        assert [c["id"] for c in client.get("/contracts", headers=headers(client_user)).json()] == [draft["id"]]
        assert client.get(f"/contracts/{draft['id']}", headers=headers(other_client)).status_code == 404

    def test_send_for_signature(self, client, headers, staff, draft):
        response = _send(client, headers, staff, draft["id"])
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "pending_signature"
        assert [s["signing_order"] for s in body["signers"]] == [1, 2]
        assert _send(client, headers, staff, draft["id"]).status_code == 400

    def test_duplicate_signer_emails_rejected(self, client, headers, staff, draft):
        response = client.post(
            f"/contracts/{draft['id']}/send",
            json={"signers": [{"name": "A", "email": "a@example.com"}, {"name": "B", "email": "A@example.com"}]},
            headers=headers(staff),
        )
        assert response.status_code == 400


class TestSigning:
    """Tests for the public signing flow."""

    def test_signing_in_order_completes_contract(self, client, headers, db, staff, draft):
        _send(client, headers, staff, draft["id"])
        first, second = _tokens(db, draft["id"])

        preview = client.get(f"/contracts/sign/{first}")
        assert preview.status_code == 200
        assert preview.json()["signer_name"] == "Jane Client"

        response = client.post(f"/contracts/sign/{first}", json={"signature_name": "Jane Client"})
        assert response.status_code == 200
        assert response.json()["status"] == "pending_signature"

        response = client.post(f"/contracts/sign/{second}", json={"signature_name": "Sam Agency"})
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "signed"
        assert body["signed_at"] is not None
        assert all(s["status"] == "signed" for s in body["signers"])

    def test_out_of_order_signature_rejected(self, client, headers, db, staff, draft):
        _send(client, headers, staff, draft["id"])
        _, second = _tokens(db, draft["id"])
        response = client.post(f"/contracts/sign/{second}", json={"signature_name": "Sam"})
        assert response.status_code == 409

    def test_signing_twice_rejected(self, client, headers, db, staff, draft):
        _send(client, headers, staff, draft["id"])
        first, _ = _tokens(db, draft["id"])
        client.post(f"/contracts/sign/{first}", json={"signature_name": "Jane"})
        assert client.post(f"/contracts/sign/{first}", json={"signature_name": "Jane"}).status_code == 409

    def test_must_agree(self, client, headers, db, staff, draft):
        _send(client, headers, staff, draft["id"])
        first, _ = _tokens(db, draft["id"])
        response = client.post(f"/contracts/sign/{first}", json={"signature_name": "Jane", "agree": False})
        assert response.status_code == 422

    def test_tampered_token_rejected(self, client):
        assert client.get("/contracts/sign/not-a-real-token").status_code == 400

    def test_cancelled_contract_cannot_be_signed(self, client, headers, db, staff, draft):
        _send(client, headers, staff, draft["id"])
        first, _ = _tokens(db, draft["id"])
        client.post(f"/contracts/{draft['id']}/cancel", headers=headers(staff))
        assert client.post(f"/contracts/sign/{first}", json={"signature_name": "Jane"}).status_code == 400
