"""
Tests for bearer token verification and resolving the signed-in user.
"""

from types import SimpleNamespace

from conftest import make_token

from portal.models import User


def _bearer(sub: str, email: str, expires_in: int = 3600) -> dict:
    token = make_token(SimpleNamespace(auth_uid=sub, email=email), expires_in=expires_in)
    return {"Authorization": f"Bearer {token}"}


class TestTokenVerification:
    """Tests for rejecting bad tokens."""

    def test_missing_token(self, client):
        assert client.get("/users/me").status_code == 401

    def test_malformed_token(self, client):
        response = client.get("/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_token(self, client, client_user):
        response = client.get("/users/me", headers=_bearer(client_user.auth_uid, client_user.email, -60))
        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"

    def test_inactive_user_forbidden(self, client, db, headers, client_user):
        client_user.is_active = False
        db.commit()
        assert client.get("/users/me", headers=headers(client_user)).status_code == 403


class TestUserResolution:
    """Tests for matching a token to a local user."""

    def test_invited_user_linked_on_first_sign_in(self, client, db, client_org):
        invited = User(email="invitee@acme.test", role="client", organization_id=client_org.id)
        db.add(invited)
        db.commit()

        response = client.get("/users/me", headers=_bearer("uid-invitee", "Invitee@Acme.test"))
        assert response.status_code == 200
        assert response.json()["id"] == invited.id

        db.refresh(invited)
        assert invited.auth_uid == "uid-invitee"
        assert invited.last_login_at is not None

    def test_linked_email_not_taken_over_by_new_identity(self, client, db, client_user):
        response = client.get("/users/me", headers=_bearer("uid-someone-else", "JANE@acme.test"))
        assert response.status_code == 409

        db.refresh(client_user)
        assert client_user.auth_uid == "uid-jane@acme.test"
        assert db.query(User).count() == 1

    def test_unknown_identity_becomes_client(self, client, db):
        response = client.get("/users/me", headers=_bearer("uid-fresh", "Fresh@Example.com"))
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "client"
        assert body["email"] == "fresh@example.com"
        assert body["organization_id"] is None
