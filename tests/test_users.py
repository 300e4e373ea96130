from app.models.user import User

from conftest import USERS, login


class TestListUsers:
    def test_members_sorted_by_name(self, admin_client):
        body = admin_client.get("/api/v1/users").json()
        names = [u["name"] for u in body["users"]]
        assert names == sorted(names, key=str.lower)
        assert body["total"] == len(USERS)
        assert "Globex User" not in names

    def test_get_member(self, admin_client, seeded):
        body = admin_client.get(f"/api/v1/users/{seeded['legal']}").json()
        assert body["email"] == "legal@example.com"
        assert body["roles"] == ["LEGAL_MANAGER"]

    def test_non_member_not_found(self, admin_client, seeded):
        response = admin_client.get(f"/api/v1/users/{seeded['outsider']}")
        assert response.status_code == 404
        assert response.json()["detail"] == "User not found in this organization"

    def test_business_user_denied(self, business_client):
        assert business_client.get("/api/v1/users").status_code == 403


class TestCreateUser:
    def test_new_account(self, admin_client, db):
        response = admin_client.post("/api/v1/users", json={
            "email": "New.Hire@Example.com",
            "name": "New Hire",
            "role_code": "business_user",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "User created successfully"
        assert body["user"]["email"] == "new.hire@example.com"
        assert body["user"]["must_change_password"] is True
        assert body["user"]["roles"] == ["BUSINESS_USER"]

        user = db.query(User).filter(User.email == "new.hire@example.com").first()
        assert user.password_hash

    def test_existing_account_joins_organization(self, admin_client, seeded):
        response = admin_client.post("/api/v1/users", json={
            "email": "outsider@example.com",
            "name": "Globex User",
            "role_code": "FINANCE_MANAGER",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Existing user added to organization"
        assert body["user"]["id"] == seeded["outsider"]
        assert body["user"]["must_change_password"] is False

    def test_existing_member_conflict(self, admin_client):
        response = admin_client.post("/api/v1/users", json={
            "email": USERS["legal"][0],
            "name": "Legal Manager",
            "role_code": "LEGAL_HEAD",
        })
        assert response.status_code == 409

    def test_unknown_role(self, admin_client):
        response = admin_client.post("/api/v1/users", json={
            "email": "someone@example.com", "name": "Someone", "role_code": "JANITOR"
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown role: JANITOR"

    def test_only_super_admin_grants_super_admin(self, admin_client, super_client):
        payload = {"email": "root2@example.com", "name": "Second Root", "role_code": "SUPER_ADMIN"}
        assert admin_client.post("/api/v1/users", json=payload).status_code == 403
        assert super_client.post("/api/v1/users", json=payload).status_code == 201


class TestRoles:
    def test_assign_role(self, admin_client, seeded):
        response = admin_client.post(f"/api/v1/users/{seeded['legal']}/roles", json={"role_code": "legal_head"})
        assert response.status_code == 200
        assert response.json()["user"]["roles"] == ["LEGAL_HEAD", "LEGAL_MANAGER"]

        again = admin_client.post(f"/api/v1/users/{seeded['legal']}/roles", json={"role_code": "LEGAL_HEAD"})
        assert again.status_code == 409

    def test_remove_role(self, admin_client, seeded):
        response = admin_client.delete(f"/api/v1/users/{seeded['finance']}/roles/FINANCE_MANAGER")
        assert response.status_code == 200
        assert response.json()["user"]["roles"] == []

        missing = admin_client.delete(f"/api/v1/users/{seeded['finance']}/roles/FINANCE_MANAGER")
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Role assignment not found"

    def test_cannot_remove_own_role(self, admin_client, seeded):
        response = admin_client.delete(f"/api/v1/users/{seeded['admin']}/roles/ENTITY_ADMIN")
        assert response.status_code == 400


class TestActivation:
    def test_deactivate_ends_sessions(self, admin_client, seeded):
        target = login(USERS["business"][0])
        assert target.get("/api/v1/auth/me").status_code == 200

        response = admin_client.post(f"/api/v1/users/{seeded['business']}/deactivate")
        assert response.status_code == 200
        assert response.json()["message"] == "User deactivated"
        assert target.get("/api/v1/auth/me").status_code == 401

        listed = admin_client.get("/api/v1/users").json()["users"]
        assert seeded["business"] not in [u["id"] for u in listed]

        reactivated = admin_client.post(f"/api/v1/users/{seeded['business']}/activate")
        assert reactivated.json()["message"] == "User activated"
        assert login(USERS["business"][0]).get("/api/v1/auth/me").status_code == 200

    def test_cannot_deactivate_self(self, admin_client, seeded):
        response = admin_client.post(f"/api/v1/users/{seeded['admin']}/deactivate")
        assert response.status_code == 400

    def test_user_changes_are_audited(self, admin_client, seeded):
        admin_client.post(f"/api/v1/users/{seeded['finance']}/deactivate")
        body = admin_client.get("/api/v1/audit", params={"action": "USER_DEACTIVATED"}).json()
        assert body["total"] == 1
        assert body["logs"][0]["module"] == "USERS"
