"""
Test configuration - in-memory SQLite, role fixtures and signed bearer tokens.

Environment is pinned before the application is imported so config picks up
the test database, JWT secret and shared secrets.
"""

import os
import time

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
for name in ("REDIS_URL", "RESEND_API_KEY", "ANTHROPIC_API_KEY", "S3_BUCKET_NAME"):
    os.environ.pop(name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from portal import rate_limiter  # noqa: E402
from portal.database import Base, SessionLocal, engine  # noqa: E402
from portal.main import app  # noqa: E402
from portal.models import Organization, StaffAssignment, User  # noqa: E402

JWT_SECRET = "test-jwt-secret"


def make_token(user: User, expires_in: int = 3600) -> str:
    claims = {
        "sub": user.auth_uid,
        "email": user.email,
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {make_token(user)}"}


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(autouse=True)
def reset_state():
    """Fresh schema and empty rate-limit windows for every test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.memory_cache.clear()
    yield
    rate_limiter.memory_cache.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


# =============================================================================
# Organizations
# =============================================================================


def _org(db, name: str, slug: str, org_type: str, parent_id=None, **kwargs) -> Organization:
    org = Organization(name=name, slug=slug, org_type=org_type, parent_id=parent_id, **kwargs)
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture
def agency_org(db):
    return _org(db, "Agency", "agency", "internal")


@pytest.fixture
def partner_org(db, agency_org):
    return _org(db, "Partner Agency", "partner-agency", "partner", parent_id=agency_org.id)


@pytest.fixture
def client_org(db, partner_org):
    return _org(db, "Acme Corp", "acme", "client", parent_id=partner_org.id)


@pytest.fixture
def other_org(db, agency_org):
    return _org(db, "Globex", "globex", "client", parent_id=agency_org.id)


# =============================================================================
# Users
# =============================================================================


def _user(db, email: str, role: str, organization_id=None, **kwargs) -> User:
    user = User(
        auth_uid=f"uid-{email}",
        email=email,
        full_name=email.split("@")[0].title(),
        role=role,
        organization_id=organization_id,
        **kwargs,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def super_admin(db, agency_org):
    return _user(db, "admin@agency.test", "super_admin", agency_org.id)


@pytest.fixture
def staff(db, agency_org, client_org):
    user = _user(db, "staff@agency.test", "staff", agency_org.id, is_account_manager=True)
    db.add(StaffAssignment(staff_id=user.id, organization_id=client_org.id))
    db.commit()
    return user


@pytest.fixture
def unassigned_staff(db, agency_org):
    return _user(db, "floater@agency.test", "staff", agency_org.id)


@pytest.fixture
def partner(db, partner_org):
    return _user(db, "owner@partner.test", "partner", partner_org.id)


@pytest.fixture
def client_user(db, client_org):
    return _user(db, "jane@acme.test", "client", client_org.id)


@pytest.fixture
def other_client(db, other_org):
    return _user(db, "bob@globex.test", "client", other_org.id)


@pytest.fixture
def headers():
    return auth_header
