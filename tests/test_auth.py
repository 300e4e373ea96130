from app.core.database import SessionLocal
from app.core.security import hash_token
from app.models.organization import Organization
from app.models.user import User, UserSession
from app.services.auth_service import AuthService
from app.services.seed_service import ensure_user

from conftest import PASSWORD, USERS, login


def _login(client, email, password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestLogin:
    def test_login_returns_profile_and_cookie(self, anonymous, seeded):
        response = _login(anonymous, "Admin@Example.com")
        assert response.status_code == 200
        body = response.json()

        assert body["success"] is True
        assert body["user"]["id"] == seeded["admin"]
        assert body["role"] == "ENTITY_ADMIN"
        assert body["current_organization"]["code"] == "ACME"
        assert "contract:create" in body["permissions"]
        assert body["token_type"] == "bearer"
        assert anonymous.cookies.get("session_token") == body["access_token"]

    def test_bearer_token_is_accepted(self, anonymous):
        token = _login(anonymous, USERS["legal"][0]).json()["access_token"]
        anonymous.cookies.clear()

        response = anonymous.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["role"] == "LEGAL_MANAGER"

    def test_wrong_password(self, anonymous):
        response = _login(anonymous, USERS["admin"][0], "nope")
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_unknown_user(self, anonymous):
        response = _login(anonymous, "ghost@example.com")
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_lockout_after_repeated_failures(self, anonymous, seeded, db):
        email = USERS["business"][0]
        for _ in range(5):
            assert _login(anonymous, email, "wrong").status_code == 401

        response = _login(anonymous, email)
        assert response.status_code == 401
        assert response.json()["detail"].startswith("Account is locked")

        user = db.query(User).filter(User.id == seeded["business"]).first()
        assert user.account_locked_until is not None

    def test_deactivated_account(self, anonymous, seeded):
        with SessionLocal() as session:
            session.query(User).filter(User.id == seeded["finance"]).update({User.is_active: False})
            session.commit()

        response = _login(anonymous, USERS["finance"][0])
        assert response.status_code == 401
        assert response.json()["detail"] == "Account is deactivated"

    def test_default_organization_follows_role_priority(self, anonymous, seeded):
        # Legal manager in ACME, entity admin in GLOBEX: GLOBEX wins
        with SessionLocal() as session:
            globex = session.query(Organization).filter(Organization.id == seeded["other_org"]).first()
            ensure_user(session, USERS["legal"][0], "Legal Manager", PASSWORD, globex, ["ENTITY_ADMIN"])
            session.commit()

        body = _login(anonymous, USERS["legal"][0]).json()
        assert body["current_organization"]["code"] == "GLOBEX"
        assert body["role"] == "ENTITY_ADMIN"
        assert {o["code"] for o in body["organizations"]} == {"ACME", "GLOBEX"}


class TestSession:
    def test_me_requires_session(self, anonymous):
        assert anonymous.get("/api/v1/auth/me").status_code == 401

    def test_logout_revokes_session(self, admin_client):
        response = admin_client.post("/api/v1/auth/logout")
        assert response.status_code == 200
        assert response.json()["redirect_url"] == "/login"
        assert admin_client.get("/api/v1/auth/me").status_code == 401

    def test_revoked_session_rejected(self, seeded, admin_client, db):
        token = admin_client.cookies.get("session_token")
        session = db.query(UserSession).filter(UserSession.token_hash == hash_token(token)).first()
        assert session is not None
        db.query(UserSession).filter(UserSession.id == session.id).update(
            {UserSession.revoked_at: session.created_at}
        )
        db.commit()
        db.close()

        assert admin_client.get("/api/v1/auth/me").status_code == 401


class TestSwitchOrganization:
    def test_switch_to_member_organization(self, seeded):
        with SessionLocal() as session:
            globex = session.query(Organization).filter(Organization.id == seeded["other_org"]).first()
            ensure_user(session, USERS["business"][0], "Business User", PASSWORD, globex, ["FINANCE_MANAGER"])
            session.commit()

        client = login(USERS["business"][0])
        response = client.post("/api/v1/auth/switch-org", json={"organization_id": seeded["other_org"]})
        assert response.status_code == 200
        assert response.json()["role"] == "FINANCE_MANAGER"

        me = client.get("/api/v1/auth/me").json()
        assert me["current_organization"]["code"] == "GLOBEX"

    def test_switch_to_foreign_organization(self, business_client, seeded):
        response = business_client.post("/api/v1/auth/switch-org", json={"organization_id": seeded["other_org"]})
        assert response.status_code == 403


class TestPasswordReset:
    def test_forgot_password_answers_the_same(self, anonymous):
        known = anonymous.post("/api/v1/auth/forgot-password", json={"email": USERS["admin"][0]})
        unknown = anonymous.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()

    def test_reset_password_flow(self, anonymous, admin_client):
        with SessionLocal() as session:
            _, token = AuthService.create_password_reset(session, USERS["admin"][0])

        response = anonymous.post(
            "/api/v1/auth/reset-password", json={"token": token, "new_password": "NewPassw0rd"}
        )
        assert response.status_code == 200

        # existing logins end with the reset
        assert admin_client.get("/api/v1/auth/me").status_code == 401
        assert _login(anonymous, USERS["admin"][0]).status_code == 401
        assert _login(anonymous, USERS["admin"][0], "NewPassw0rd").status_code == 200

        reused = anonymous.post(
            "/api/v1/auth/reset-password", json={"token": token, "new_password": "OtherPassw0rd"}
        )
        assert reused.status_code == 401

    def test_weak_password_rejected(self, anonymous):
        response = anonymous.post(
            "/api/v1/auth/reset-password", json={"token": "x" * 20, "new_password": "alllowercase1"}
        )
        assert response.status_code == 422


class TestCsrfToken:
    def test_csrf_token_endpoint(self, anonymous):
        response = anonymous.get("/api/v1/auth/csrf-token")
        token = response.json()["csrf_token"]
        assert len(token) == 32
        assert anonymous.cookies.get("XSRF-TOKEN") == token
