from datetime import date, datetime

from app.core.database import SessionLocal
from app.models.contract import Contract
from app.models.organization import Organization
from app.services.analytics_service import AnalyticsService, format_status, month_keys
from app.services.seed_service import ensure_permission, ensure_role, ensure_user, grant_permission

from conftest import PASSWORD, login


def _set_status(contract_id, status):
    with SessionLocal() as session:
        session.query(Contract).filter(Contract.id == contract_id).update({Contract.status: status})
        session.commit()


def _submit(client, contract):
    response = client.post(f"/api/v1/contracts/{contract['id']}/submit")
    return {a["approval_type"]: a["id"] for a in response.json()["approvals"]}


class TestHelpers:
    def test_format_status(self):
        assert format_status("SENT_TO_COUNTERPARTY") == "Sent To Counterparty"

    def test_month_keys_cross_year(self):
        assert month_keys(date(2026, 2, 15)) == [
            date(2025, 9, 1), date(2025, 10, 1), date(2025, 11, 1),
            date(2025, 12, 1), date(2026, 1, 1), date(2026, 2, 1),
        ]


class TestContractAnalytics:
    def test_summary(self, legal_client, business_client, make_contract):
        make_contract()
        _submit(business_client, make_contract())
        active = make_contract(amount="2500.50")
        _set_status(active["id"], "ACTIVE")

        response = legal_client.get("/api/v1/analytics/contracts/summary")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 3
        assert data["draft"] == 1
        assert data["pending_approval"] == 1
        assert data["active"] == 1
        assert float(data["active_value"]) == 2500.5
        assert data["by_status"] == {"DRAFT": 1, "IN_REVIEW": 1, "ACTIVE": 1}

    def test_by_status_labels(self, finance_client, business_client, make_contract):
        _submit(business_client, make_contract())
        data = finance_client.get("/api/v1/analytics/contracts/by-status").json()["data"]
        assert data == [{"status": "IN_REVIEW", "count": 1, "label": "In Review"}]

    def test_trend_counts_current_month(self, legal_client, make_contract):
        make_contract()
        make_contract()

        data = legal_client.get("/api/v1/analytics/contracts/trend").json()["data"]
        assert len(data) == 6
        assert data[-1]["month"] == datetime.utcnow().strftime("%Y-%m")
        assert data[-1]["count"] == 2
        assert sum(m["count"] for m in data[:-1]) == 0

    def test_approval_metrics(self, admin_client, business_client, legal_client, finance_client, make_contract):
        approvals = _submit(business_client, make_contract())
        legal_client.post(f"/api/v1/approvals/{approvals['LEGAL']}/approve")
        finance_client.post(f"/api/v1/approvals/{approvals['FINANCE']}/reject", json={"comment": "Over budget"})
        _submit(business_client, make_contract())

        data = admin_client.get("/api/v1/analytics/approvals/metrics").json()["data"]
        assert data["pending_count"] == 2
        assert data["completed_count"] == 2
        assert data["approval_rate"] == 0.5
        assert data["average_approval_hours"] is not None

    def test_activity_newest_first(self, legal_client, make_contract):
        make_contract(title="First lease")
        second = make_contract(title="Second lease")

        data = legal_client.get("/api/v1/analytics/activity", params={"limit": 1}).json()["data"]
        assert [item["id"] for item in data] == [second["id"]]
        assert data[0]["type"] == "contract"

    def test_other_organization_not_counted(self, make_contract, db, seeded):
        make_contract()
        assert AnalyticsService.contracts_summary(db, seeded["other_org"])["total"] == 0
        assert AnalyticsService.contracts_summary(db, seeded["org"])["total"] == 1

    def test_business_user_has_no_dashboard(self, business_client):
        assert business_client.get("/api/v1/analytics/contracts/summary").status_code == 403

    def test_requires_login(self, anonymous):
        assert anonymous.get("/api/v1/analytics/contracts/summary").status_code == 401


class TestScopedAnalytics:
    def test_analytics_only_role_sees_own_contracts(self, make_contract, db, seeded):
        make_contract()

        role = ensure_role(db, "ANALYST", "Analyst")
        grant_permission(db, role, ensure_permission(db, "analytics:view"))
        acme = db.query(Organization).filter(Organization.id == seeded["org"]).one()
        ensure_user(db, "analyst@example.com", "Analyst", PASSWORD, acme, ["ANALYST"])
        db.commit()
        db.close()

        client = login("analyst@example.com")
        data = client.get("/api/v1/analytics/contracts/summary").json()["data"]
        assert data["total"] == 0


class TestAdminStats:
    def test_super_admin(self, super_client, make_contract):
        make_contract()
        data = super_client.get("/api/v1/analytics/admin/stats").json()["data"]
        assert data["total_organizations"] == 2
        assert data["total_contracts"] == 1
        assert data["total_templates"] == 1
        assert data["total_users"] == 7

    def test_entity_admin_refused(self, admin_client):
        response = admin_client.get("/api/v1/analytics/admin/stats")
        assert response.status_code == 403
