from app.models.organization import Organization
from app.models.user import User, UserOrganizationRole
from app.services.seed_service import permission_name, seed_demo_data, sync_permissions_and_roles


class TestOrganizations:
    def test_super_admin_creates_organization(self, super_client):
        response = super_client.post("/api/v1/admin/organizations", json={
            "name": "Initech Holdings", "code": "initech", "org_type": "parent"
        })
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["code"] == "INITECH"
        assert data["org_type"] == "PARENT"

        duplicate = super_client.post("/api/v1/admin/organizations", json={"name": "Again", "code": "INITECH"})
        assert duplicate.status_code == 409

    def test_invalid_code(self, super_client):
        response = super_client.post("/api/v1/admin/organizations", json={"name": "Bad", "code": "no-dash"})
        assert response.status_code == 422

    def test_entity_admin_cannot_create(self, admin_client):
        response = admin_client.post("/api/v1/admin/organizations", json={"name": "Mine", "code": "MINE"})
        assert response.status_code == 403

    def test_list_is_scoped_to_memberships(self, admin_client, super_client):
        codes = [o["code"] for o in admin_client.get("/api/v1/admin/organizations").json()["data"]]
        assert codes == ["ACME"]

        all_codes = [o["code"] for o in super_client.get("/api/v1/admin/organizations").json()["data"]]
        assert all_codes == ["ACME", "GLOBEX"]

    def test_update_own_organization(self, admin_client, seeded):
        response = admin_client.put(f"/api/v1/admin/organizations/{seeded['org']}", json={"name": "Acme Corporation"})
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Acme Corporation"

    def test_update_other_organization(self, admin_client, seeded):
        response = admin_client.put(f"/api/v1/admin/organizations/{seeded['other_org']}", json={"name": "Taken"})
        assert response.status_code == 403

    def test_own_parent_rejected(self, super_client, seeded):
        response = super_client.put(
            f"/api/v1/admin/organizations/{seeded['org']}", json={"parent_id": seeded["org"]}
        )
        assert response.status_code == 400

    def test_deactivate(self, super_client, db, seeded):
        response = super_client.delete(f"/api/v1/admin/organizations/{seeded['other_org']}")
        assert response.status_code == 200
        org = db.query(Organization).filter(Organization.id == seeded["other_org"]).first()
        assert org.is_active is False

        listed = super_client.get("/api/v1/admin/organizations").json()["data"]
        assert [o["code"] for o in listed] == ["ACME"]


class TestFeatures:
    def test_list_features(self, admin_client, seeded):
        data = admin_client.get(f"/api/v1/admin/organizations/{seeded['org']}/features").json()["data"]
        flags = {f["code"]: f["is_enabled"] for f in data}
        assert flags["FINANCE_WORKFLOW"] is True
        assert flags["OCR"] is False

    def test_toggle_feature(self, admin_client, seeded):
        response = admin_client.put(
            f"/api/v1/admin/organizations/{seeded['org']}/features/ocr", json={"is_enabled": True}
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Feature OCR enabled"

        body = admin_client.get("/api/v1/audit", params={"action": "FEATURE_TOGGLED"}).json()
        assert body["logs"][0]["module"] == "ADMIN"

    def test_unknown_feature(self, admin_client, seeded):
        response = admin_client.put(
            f"/api/v1/admin/organizations/{seeded['org']}/features/TELEPORT", json={"is_enabled": True}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid feature code: TELEPORT"

    def test_other_organization_features(self, admin_client, seeded):
        response = admin_client.get(f"/api/v1/admin/organizations/{seeded['other_org']}/features")
        assert response.status_code == 403

    def test_business_user_denied(self, business_client, seeded):
        response = business_client.get(f"/api/v1/admin/organizations/{seeded['org']}/features")
        assert response.status_code == 403


class TestRoles:
    def test_roles_with_grouped_permissions(self, admin_client):
        roles = {r["code"]: r for r in admin_client.get("/api/v1/admin/roles").json()["data"]}
        assert set(roles) == {
            "SUPER_ADMIN", "ENTITY_ADMIN", "LEGAL_HEAD", "LEGAL_MANAGER", "FINANCE_MANAGER", "BUSINESS_USER"
        }
        legal_head = roles["LEGAL_HEAD"]
        assert "approval:legal:escalate" in legal_head["permissions"]
        assert "approval:legal:escalate" not in roles["LEGAL_MANAGER"]["permissions"]
        assert sum(len(codes) for codes in legal_head["permissions_by_module"].values()) == len(
            legal_head["permissions"]
        )
        assert not any(code.startswith("approval:") for code in roles["ENTITY_ADMIN"]["permissions"])


class TestSeeding:
    def test_permission_name(self):
        assert permission_name("approval:legal:act") == "Approval Legal Act"

    def test_sync_is_idempotent(self, db):
        summary = sync_permissions_and_roles(db)
        assert summary["grants_added"] == 0
        assert summary["roles"] == 6

    def test_demo_data(self, db):
        seed_demo_data(db)
        db.commit()

        demo = db.query(Organization).filter(Organization.code == "DEMO").first()
        assert demo.parent.code == "DEMOGRP"
        admin = db.query(User).filter(User.email == "admin@clm-platform.com").first()
        membership = db.query(UserOrganizationRole).filter(UserOrganizationRole.user_id == admin.id).one()
        assert membership.organization_id == demo.id
        assert membership.role.code == "ENTITY_ADMIN"

        # running again adds nothing
        assert seed_demo_data(db)["grants_added"] == 0
