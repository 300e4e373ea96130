"""
Shared fixtures: an in-memory SQLite database seeded with one organization
and a user per role, plus logged-in TestClients.
"""

import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="clm-uploads-"))
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

import app.models  # noqa: F401
from app.core.config import settings
from app.core.database import Base, SessionLocal, engine
from app.core.security import hash_password
from app.main import app as backend_app
from app.models.organization import FeatureFlag, Organization
from app.models.template import Annexure, Template
from app.models.user import User
from app.services.seed_service import ensure_user, sync_permissions_and_roles

PASSWORD = "Password@123"
_PASSWORD_HASH = hash_password(PASSWORD)

USERS = {
    "admin": ("admin@example.com", "Entity Admin", "ENTITY_ADMIN"),
    "legal_head": ("legal.head@example.com", "Legal Head", "LEGAL_HEAD"),
    "legal": ("legal@example.com", "Legal Manager", "LEGAL_MANAGER"),
    "finance": ("finance@example.com", "Finance Manager", "FINANCE_MANAGER"),
    "business": ("user@example.com", "Business User", "BUSINESS_USER"),
    "super": ("root@example.com", "Super Admin", "SUPER_ADMIN"),
}

TEMPLATE_CONTENT = (
    "<h1>Service Agreement</h1>"
    "<p>Between {{COMPANY_NAME}} and {{COUNTERPARTY_NAME}}.</p>"
    "<p>Fee: {{CONTRACT_VALUE}}</p>"
)


def _seed():
    db = SessionLocal()
    try:
        sync_permissions_and_roles(db)

        acme = Organization(code="ACME", name="Acme Corp", org_type="ENTITY", settings={}, is_active=True)
        other = Organization(code="GLOBEX", name="Globex Inc", org_type="ENTITY", settings={}, is_active=True)
        db.add_all([acme, other])
        db.flush()
        db.add(FeatureFlag(organization_id=acme.id, feature_code="FINANCE_WORKFLOW", is_enabled=True))

        ids = {"org": acme.id, "other_org": other.id}
        members = [(key, email, name, role, acme) for key, (email, name, role) in USERS.items()]
        members.append(("outsider", "outsider@example.com", "Globex User", "BUSINESS_USER", other))
        for key, email, name, role, org in members:
            # pre-hashed rows keep bcrypt out of every test; ensure_user only adds the role
            db.add(User(email=email, name=name, password_hash=_PASSWORD_HASH, is_active=True))
            db.flush()
            ids[key] = ensure_user(db, email, name, PASSWORD, org, [role]).id

        template = Template(
            name="Service Agreement",
            code="SERVICE_AGREEMENT",
            category="SERVICES",
            base_content=TEMPLATE_CONTENT,
            variables_config=[],
            is_global=True,
            is_active=True,
        )
        template.annexures = [
            Annexure(name="Scope", title="Annexure A", content="<p>{{SCOPE_OF_WORK}} for {{COMPANY_NAME}}</p>", order=1)
        ]
        db.add(template)
        db.flush()
        ids["template"] = template.id

        db.commit()
        return ids
    finally:
        db.close()


@pytest.fixture(autouse=True)
def seeded(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    return _seed()


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


def login(email: str, password: str = PASSWORD) -> TestClient:
    """TestClient holding a session cookie and the matching CSRF header"""
    client = TestClient(backend_app)
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text

    client.get("/api/v1/health")
    client.headers[settings.CSRF_HEADER_NAME] = client.cookies[settings.CSRF_COOKIE_NAME]
    return client


@pytest.fixture
def anonymous():
    return TestClient(backend_app)


@pytest.fixture
def admin_client():
    return login(USERS["admin"][0])


@pytest.fixture
def business_client():
    return login(USERS["business"][0])


@pytest.fixture
def legal_client():
    return login(USERS["legal"][0])


@pytest.fixture
def legal_head_client():
    return login(USERS["legal_head"][0])


@pytest.fixture
def finance_client():
    return login(USERS["finance"][0])


@pytest.fixture
def super_client():
    return login(USERS["super"][0])


@pytest.fixture
def outsider_client():
    return login("outsider@example.com")


def contract_payload(template_id: int, **overrides) -> dict:
    payload = {
        "template_id": template_id,
        "title": "Website Maintenance",
        "counterparty_name": "Initech",
        "counterparty_email": "contracts@initech.example.com",
        "start_date": "2026-01-01",
        "end_date": "2026-12-31",
        "amount": "1000",
        "currency": "usd",
        "field_data": {"COMPANY_NAME": "Acme Corp", "COUNTERPARTY_NAME": "Initech"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_contract(business_client, seeded):
    def _make(**overrides):
        response = business_client.post("/api/v1/contracts", json=contract_payload(seeded["template"], **overrides))
        assert response.status_code == 201, response.text
        return response.json()["contract"]
    return _make
