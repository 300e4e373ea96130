from types import SimpleNamespace

import pytest

from app.services.approval_service import aggregate_status


def _submit(client, contract):
    response = client.post(f"/api/v1/contracts/{contract['id']}/submit")
    assert response.status_code == 200, response.text
    return {a["approval_type"]: a["id"] for a in response.json()["approvals"]}


def _status(client, contract):
    return client.get(f"/api/v1/contracts/{contract['id']}").json()["contract"]["status"]


class TestAggregateStatus:
    @staticmethod
    def approval(id, approval_type, status):
        return SimpleNamespace(id=id, approval_type=approval_type, status=status)

    def test_no_approvals(self):
        assert aggregate_status([]) is None

    def test_all_approved(self):
        approvals = [self.approval(1, "LEGAL", "APPROVED"), self.approval(2, "FINANCE", "APPROVED")]
        assert aggregate_status(approvals) == "APPROVED"

    def test_legal_only_workflow(self):
        assert aggregate_status([self.approval(1, "LEGAL", "APPROVED")]) == "APPROVED"

    @pytest.mark.parametrize("approved_type", ["LEGAL", "FINANCE"])
    def test_partial(self, approved_type):
        other = "FINANCE" if approved_type == "LEGAL" else "LEGAL"
        approvals = [self.approval(1, approved_type, "APPROVED"), self.approval(2, other, "PENDING")]
        assert aggregate_status(approvals) == f"{approved_type}_APPROVED"

    def test_nothing_approved(self):
        approvals = [self.approval(1, "LEGAL", "PENDING"), self.approval(2, "FINANCE", "PENDING")]
        assert aggregate_status(approvals) is None

    def test_partial_after_rejection_is_unchanged(self):
        approvals = [self.approval(1, "LEGAL", "APPROVED"), self.approval(2, "FINANCE", "REJECTED")]
        assert aggregate_status(approvals) is None

    def test_partial_with_escalated_sibling(self):
        approvals = [self.approval(1, "LEGAL", "ESCALATED"), self.approval(2, "FINANCE", "APPROVED")]
        assert aggregate_status(approvals) == "FINANCE_APPROVED"

    def test_latest_round_wins(self):
        approvals = [
            self.approval(1, "LEGAL", "REJECTED"),
            self.approval(2, "FINANCE", "APPROVED"),
            self.approval(3, "LEGAL", "APPROVED"),
        ]
        assert aggregate_status(approvals) == "APPROVED"


class TestPendingApprovals:
    def test_legal_sees_only_legal(self, business_client, legal_client, make_contract):
        _submit(business_client, make_contract())
        body = legal_client.get("/api/v1/approvals/pending").json()
        assert body["total"] == 1
        assert body["approvals"][0]["approval_type"] == "LEGAL"
        assert body["approvals"][0]["contract"]["status"] == "IN_REVIEW"

    def test_finance_cannot_filter_legal(self, business_client, finance_client, make_contract):
        _submit(business_client, make_contract())
        response = finance_client.get("/api/v1/approvals/pending", params={"type": "LEGAL"})
        assert response.status_code == 403

    def test_business_user_has_no_queue(self, business_client):
        assert business_client.get("/api/v1/approvals/pending").status_code == 403

    def test_other_organization_queue_is_separate(self, business_client, outsider_client, make_contract):
        _submit(business_client, make_contract())
        # outsider is a business user: no approval rights anywhere
        assert outsider_client.get("/api/v1/approvals/pending").status_code == 403


class TestDecisions:
    def test_reject_requires_comment(self, business_client, legal_client, make_contract):
        approvals = _submit(business_client, make_contract())
        response = legal_client.post(f"/api/v1/approvals/{approvals['LEGAL']}/reject", json={"comment": "  "})
        assert response.status_code == 422

    def test_reject(self, business_client, legal_client, make_contract):
        contract = make_contract()
        approvals = _submit(business_client, contract)
        response = legal_client.post(
            f"/api/v1/approvals/{approvals['LEGAL']}/reject", json={"comment": "Liability clause missing"}
        )
        assert response.status_code == 200
        assert response.json()["approval"]["status"] == "REJECTED"
        assert _status(business_client, contract) == "REJECTED"

        notifications = business_client.get("/api/v1/notifications").json()["notifications"]
        assert notifications[0]["type"] == "CONTRACT_REJECTED"
        assert notifications[0]["message"] == "Liability clause missing"

    def test_request_revision_then_resubmit(self, business_client, legal_client, finance_client, make_contract):
        contract = make_contract()
        approvals = _submit(business_client, contract)
        finance_client.post(f"/api/v1/approvals/{approvals['FINANCE']}/approve")

        response = legal_client.post(
            f"/api/v1/approvals/{approvals['LEGAL']}/request-revision", json={"comment": "Fix the term"}
        )
        assert response.status_code == 200
        assert _status(business_client, contract) == "REVISION_REQUESTED"

        # editable again, and a fresh round starts on resubmit
        updated = business_client.put(f"/api/v1/contracts/{contract['id']}", json={"end_date": "2026-06-30"})
        assert updated.status_code == 200
        second = _submit(business_client, contract)
        assert second["LEGAL"] != approvals["LEGAL"]

        legal_client.post(f"/api/v1/approvals/{second['LEGAL']}/approve")
        finance_client.post(f"/api/v1/approvals/{second['FINANCE']}/approve")
        assert _status(business_client, contract) == "APPROVED"

    def test_rejected_contract_cannot_be_approved_later(self, business_client, legal_client, finance_client, make_contract):
        contract = make_contract()
        approvals = _submit(business_client, contract)
        rejected = finance_client.post(
            f"/api/v1/approvals/{approvals['FINANCE']}/reject", json={"comment": "Over budget"}
        )
        assert rejected.status_code == 200

        # the legal approval left the queue with the rejection
        assert legal_client.get("/api/v1/approvals/pending").json()["total"] == 0
        late = legal_client.post(f"/api/v1/approvals/{approvals['LEGAL']}/approve")
        assert late.status_code in (403, 404)
        assert _status(business_client, contract) == "REJECTED"

    def test_revision_request_withdraws_other_approval(self, business_client, legal_client, finance_client, make_contract):
        contract = make_contract()
        approvals = _submit(business_client, contract)
        legal_client.post(
            f"/api/v1/approvals/{approvals['LEGAL']}/request-revision", json={"comment": "Fix the term"}
        )

        assert finance_client.get("/api/v1/approvals/pending").json()["total"] == 0
        late = finance_client.post(f"/api/v1/approvals/{approvals['FINANCE']}/approve")
        assert late.status_code in (403, 404)
        assert _status(business_client, contract) == "REVISION_REQUESTED"

    def test_partial_approval_leaves_approved_at_unset(self, business_client, legal_client, finance_client, make_contract):
        contract = make_contract()
        approvals = _submit(business_client, contract)

        legal_client.post(f"/api/v1/approvals/{approvals['LEGAL']}/approve")
        partial = business_client.get(f"/api/v1/contracts/{contract['id']}").json()["contract"]
        assert partial["status"] == "LEGAL_APPROVED"
        assert partial["approved_at"] is None

        finance_client.post(f"/api/v1/approvals/{approvals['FINANCE']}/approve")
        approved = business_client.get(f"/api/v1/contracts/{contract['id']}").json()["contract"]
        assert approved["status"] == "APPROVED"
        assert approved["approved_at"] is not None

    def test_cannot_decide_twice(self, business_client, legal_client, make_contract):
        approvals = _submit(business_client, make_contract())
        legal_client.post(f"/api/v1/approvals/{approvals['LEGAL']}/approve")
        again = legal_client.post(f"/api/v1/approvals/{approvals['LEGAL']}/approve")
        assert again.status_code == 403
        assert again.json()["detail"] == "Approval is already APPROVED"

    def test_legal_cannot_act_on_finance(self, business_client, legal_client, make_contract):
        approvals = _submit(business_client, make_contract())
        response = legal_client.post(f"/api/v1/approvals/{approvals['FINANCE']}/approve")
        assert response.status_code == 403

    def test_unknown_approval(self, legal_client):
        assert legal_client.post("/api/v1/approvals/999/approve").status_code == 404


class TestEscalation:
    def test_escalate_to_legal_head(self, business_client, legal_client, legal_head_client, seeded, make_contract):
        contract = make_contract()
        approvals = _submit(business_client, contract)

        response = legal_client.post(
            f"/api/v1/approvals/contracts/{contract['id']}/escalate-to-legal-head",
            json={"reason": "Unusual indemnity"}
        )
        assert response.status_code == 200
        assert [h["id"] for h in response.json()["escalated_to"]] == [seeded["legal_head"]]

        notifications = legal_head_client.get("/api/v1/notifications").json()["notifications"]
        assert any(n["type"] == "ESCALATION" for n in notifications)

        # the legal head decides the escalated approval
        decided = legal_head_client.post(f"/api/v1/approvals/{approvals['LEGAL']}/approve")
        assert decided.status_code == 200
        assert _status(business_client, contract) == "LEGAL_APPROVED"

    def test_escalated_approval_closed_to_other_managers(self, business_client, legal_client, make_contract):
        contract = make_contract()
        approvals = _submit(business_client, contract)
        legal_client.post(f"/api/v1/approvals/contracts/{contract['id']}/escalate-to-legal-head")

        response = legal_client.post(f"/api/v1/approvals/{approvals['LEGAL']}/approve")
        assert response.status_code == 403
        assert response.json()["detail"] == "Approval is already ESCALATED"

    def test_escalate_without_pending_legal(self, business_client, legal_client, make_contract):
        contract = make_contract()
        response = legal_client.post(f"/api/v1/approvals/contracts/{contract['id']}/escalate-to-legal-head")
        assert response.status_code == 400

    def test_escalate_to_member(self, business_client, legal_head_client, seeded, make_contract):
        approvals = _submit(business_client, make_contract())
        response = legal_head_client.post(
            f"/api/v1/approvals/{approvals['LEGAL']}/escalate",
            json={"escalated_to": seeded["admin"], "comment": "Please review"}
        )
        assert response.status_code == 200
        approval = response.json()["approval"]
        assert approval["status"] == "ESCALATED"
        assert approval["escalated_to"] == seeded["admin"]

    def test_escalate_to_outsider(self, business_client, legal_head_client, seeded, make_contract):
        approvals = _submit(business_client, make_contract())
        response = legal_head_client.post(
            f"/api/v1/approvals/{approvals['LEGAL']}/escalate",
            json={"escalated_to": seeded["outsider"]}
        )
        assert response.status_code == 400

    def test_manager_cannot_escalate_directly(self, business_client, legal_client, seeded, make_contract):
        approvals = _submit(business_client, make_contract())
        response = legal_client.post(
            f"/api/v1/approvals/{approvals['LEGAL']}/escalate",
            json={"escalated_to": seeded["legal_head"]}
        )
        assert response.status_code == 403
