import re
from datetime import datetime

from app.models.contract import Contract, ContractVersion

from conftest import contract_payload

PDF_FILE = {"file": ("signed.pdf", b"%PDF-1.4 signed copy", "application/pdf")}


def _approval_ids(response):
    return {a["approval_type"]: a["id"] for a in response.json()["approvals"]}


class TestCreateContract:
    def test_create_renders_template(self, business_client, seeded):
        response = business_client.post("/api/v1/contracts", json=contract_payload(seeded["template"]))
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        contract = body["contract"]

        assert contract["status"] == "DRAFT"
        assert contract["currency"] == "USD"
        assert contract["organization_id"] == seeded["org"]
        assert contract["created_by"] == seeded["business"]
        assert "Between Acme Corp and Initech." in contract["content"]
        # no value supplied, placeholder kept
        assert "{{CONTRACT_VALUE}}" in contract["content"]

        yymm = datetime.utcnow().strftime("%y%m")
        assert re.fullmatch(rf"ACME-{yymm}-[A-Z0-9]{{6}}", contract["reference"])

    def test_create_records_first_version(self, business_client, make_contract):
        contract = make_contract()
        versions = business_client.get(f"/api/v1/contracts/{contract['id']}/versions").json()
        assert versions["total"] == 1
        assert versions["versions"][0]["version_number"] == 1
        assert versions["versions"][0]["change_log"]["summary"] == "Initial version created"

    def test_annexure_is_sanitized(self, make_contract):
        contract = make_contract(annexure_data="<p>Annex</p><script>alert(1)</script>")
        assert contract["annexure_data"] == "<p>Annex</p>"

    def test_end_date_must_follow_start(self, business_client, seeded):
        payload = contract_payload(seeded["template"], start_date="2026-05-01", end_date="2026-04-01")
        response = business_client.post("/api/v1/contracts", json=payload)
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation failed"

    def test_unknown_template(self, business_client):
        response = business_client.post("/api/v1/contracts", json=contract_payload(9999))
        assert response.status_code == 400

    def test_finance_cannot_create(self, finance_client, seeded):
        response = finance_client.post("/api/v1/contracts", json=contract_payload(seeded["template"]))
        assert response.status_code == 403

    def test_requires_login(self, anonymous, seeded):
        anonymous.get("/api/v1/health")
        anonymous.headers["x-csrf-token"] = anonymous.cookies["XSRF-TOKEN"]
        response = anonymous.post("/api/v1/contracts", json=contract_payload(seeded["template"]))
        assert response.status_code == 401


class TestListAndGet:
    def test_list_with_pagination(self, business_client, make_contract):
        for index in range(3):
            make_contract(title=f"Contract number {index}")

        response = business_client.get("/api/v1/contracts", params={"limit": 2})
        body = response.json()
        assert len(body["contracts"]) == 2
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}

    def test_search_and_status_filter(self, business_client, make_contract):
        make_contract(title="Cleaning services")
        make_contract(title="Security services")

        found = business_client.get("/api/v1/contracts", params={"search": "Cleaning"}).json()
        assert [c["title"] for c in found["contracts"]] == ["Cleaning services"]

        active = business_client.get("/api/v1/contracts", params={"status": "ACTIVE"}).json()
        assert active["pagination"]["total"] == 0

    def test_get_includes_versions_and_creator(self, business_client, make_contract):
        contract = make_contract()
        body = business_client.get(f"/api/v1/contracts/{contract['id']}").json()["contract"]
        assert body["creator"]["name"] == "Business User"
        assert len(body["versions"]) == 1
        assert body["approvals"] == []

    def test_other_organization_is_denied(self, outsider_client, make_contract):
        contract = make_contract()
        response = outsider_client.get(f"/api/v1/contracts/{contract['id']}")
        assert response.status_code == 403

    def test_other_organization_list_is_empty(self, outsider_client, make_contract):
        make_contract()
        body = outsider_client.get("/api/v1/contracts").json()
        assert body["contracts"] == []

    def test_missing_contract(self, business_client):
        assert business_client.get("/api/v1/contracts/4242").status_code == 404


class TestUpdateContract:
    def test_update_creates_version(self, business_client, make_contract):
        contract = make_contract()
        response = business_client.put(
            f"/api/v1/contracts/{contract['id']}", json={"title": "Website Support"}
        )
        body = response.json()
        assert response.status_code == 200
        assert body["message"] == "Contract updated successfully"
        assert body["contract"]["title"] == "Website Support"
        assert body["version"]["version_number"] == 2
        assert body["version"]["change_log"]["summary"] == "Updated contract title"

    def test_unchanged_values_make_no_version(self, business_client, make_contract):
        contract = make_contract()
        response = business_client.put(
            f"/api/v1/contracts/{contract['id']}",
            json={"title": contract["title"], "amount": "1000.00"}
        )
        body = response.json()
        assert body["message"] == "No changes made"
        assert body["version"] is None

    def test_field_data_rerenders_content(self, business_client, make_contract):
        contract = make_contract()
        response = business_client.put(
            f"/api/v1/contracts/{contract['id']}",
            json={"field_data": {"COMPANY_NAME": "Acme Corp", "COUNTERPARTY_NAME": "Initech", "CONTRACT_VALUE": "$1,000"}}
        )
        body = response.json()
        assert "Fee: $1,000" in body["contract"]["content"]
        assert body["version"]["change_log"]["summary"] == "Content updated"

    def test_update_rejected_after_submit(self, business_client, make_contract):
        contract = make_contract()
        business_client.post(f"/api/v1/contracts/{contract['id']}/submit")
        response = business_client.put(f"/api/v1/contracts/{contract['id']}", json={"title": "Too late"})
        assert response.status_code == 403

    def test_dates_checked_against_stored_values(self, business_client, make_contract):
        contract = make_contract()
        response = business_client.put(f"/api/v1/contracts/{contract['id']}", json={"end_date": "2025-06-01"})
        assert response.status_code == 400
        assert response.json()["detail"] == "End date must be after start date"


class TestDeleteContract:
    def test_delete_draft(self, business_client, make_contract, db):
        contract = make_contract()
        response = business_client.delete(f"/api/v1/contracts/{contract['id']}")
        assert response.status_code == 200

        assert business_client.get(f"/api/v1/contracts/{contract['id']}").status_code == 404
        row = db.query(Contract).filter(Contract.id == contract["id"]).first()
        assert row.is_deleted is True
        assert row.deleted_at is not None

    def test_cannot_delete_in_review(self, business_client, make_contract):
        contract = make_contract()
        business_client.post(f"/api/v1/contracts/{contract['id']}/submit")
        response = business_client.delete(f"/api/v1/contracts/{contract['id']}")
        assert response.status_code == 403

    def test_delete_cancelled(self, business_client, make_contract):
        contract = make_contract()
        business_client.post(f"/api/v1/contracts/{contract['id']}/cancel", json={"reason": "Deal fell through"})
        assert business_client.delete(f"/api/v1/contracts/{contract['id']}").status_code == 200


class TestLifecycle:
    def test_full_approval_to_activation(
        self, business_client, legal_client, finance_client, legal_head_client, make_contract
    ):
        contract = make_contract()
        contract_id = contract["id"]

        submitted = business_client.post(f"/api/v1/contracts/{contract_id}/submit")
        assert submitted.status_code == 200
        assert submitted.json()["contract"]["status"] == "IN_REVIEW"
        approvals = _approval_ids(submitted)
        assert set(approvals) == {"LEGAL", "FINANCE"}

        # sending before approval is refused
        assert business_client.post(f"/api/v1/contracts/{contract_id}/send").status_code == 403

        legal = legal_client.post(f"/api/v1/approvals/{approvals['LEGAL']}/approve", json={"comment": "Fine"})
        assert legal.status_code == 200
        status_now = business_client.get(f"/api/v1/contracts/{contract_id}").json()["contract"]["status"]
        assert status_now == "LEGAL_APPROVED"

        finance = finance_client.post(f"/api/v1/approvals/{approvals['FINANCE']}/approve")
        assert finance.status_code == 200
        status_now = business_client.get(f"/api/v1/contracts/{contract_id}").json()["contract"]["status"]
        assert status_now == "APPROVED"

        sent = business_client.post(f"/api/v1/contracts/{contract_id}/send")
        assert sent.status_code == 200
        assert sent.json()["contract"]["status"] == "SENT_TO_COUNTERPARTY"

        signed = business_client.post(f"/api/v1/contracts/{contract_id}/upload-signed", files=PDF_FILE)
        assert signed.status_code == 200
        body = signed.json()
        assert body["contract"]["status"] == "ACTIVE"
        assert body["attachment"]["category"] == "SIGNED_CONTRACT"
        assert body["contract"]["field_data"]["signed_contract_key"].startswith("contracts/")

        # business users may not reopen an active contract
        assert business_client.post(f"/api/v1/contracts/{contract_id}/revert").status_code == 403

        reverted = legal_head_client.post(f"/api/v1/contracts/{contract_id}/revert", json={"reason": "Renegotiate"})
        assert reverted.status_code == 200
        assert reverted.json()["contract"]["status"] == "DRAFT"
        assert reverted.json()["contract"]["signed_at"] is None

    def test_finance_step_skipped_when_disabled(self, admin_client, business_client, seeded, make_contract):
        toggled = admin_client.put(
            f"/api/v1/admin/organizations/{seeded['org']}/features/FINANCE_WORKFLOW",
            json={"is_enabled": False}
        )
        assert toggled.status_code == 200

        contract = make_contract()
        submitted = business_client.post(f"/api/v1/contracts/{contract['id']}/submit")
        assert set(_approval_ids(submitted)) == {"LEGAL"}

    def test_upload_signed_requires_sent_status(self, business_client, make_contract):
        contract = make_contract()
        response = business_client.post(f"/api/v1/contracts/{contract['id']}/upload-signed", files=PDF_FILE)
        assert response.status_code == 403

    def test_cancel(self, business_client, make_contract):
        contract = make_contract()
        business_client.post(f"/api/v1/contracts/{contract['id']}/submit")
        response = business_client.post(f"/api/v1/contracts/{contract['id']}/cancel", json={"reason": "No budget"})
        body = response.json()
        assert body["contract"]["status"] == "CANCELLED"
        assert body["contract"]["cancellation_reason"] == "No budget"

        again = business_client.post(f"/api/v1/contracts/{contract['id']}/cancel", json={"reason": "Twice"})
        assert again.status_code == 403

    def test_submit_notifies_approvers(self, business_client, legal_client, make_contract):
        contract = make_contract()
        business_client.post(f"/api/v1/contracts/{contract['id']}/submit")

        body = legal_client.get("/api/v1/notifications").json()
        assert body["unread_count"] == 1
        assert body["notifications"][0]["link"] == f"/dashboard/contracts/{contract['id']}"


class TestDocuments:
    def test_upload_document_opens_version(self, business_client, make_contract, db):
        contract = make_contract()
        response = business_client.post(
            f"/api/v1/contracts/{contract['id']}/documents",
            files={"file": ("draft.docx", b"draft bytes", "application/octet-stream")}
        )
        body = response.json()
        assert response.status_code == 200
        assert body["attachment"]["category"] == "MAIN_DOCUMENT"
        assert body["attachment"]["file_size"] == len(b"draft bytes")
        assert body["version"]["change_log"]["summary"] == "Uploaded draft document"

        version = db.query(ContractVersion).filter(ContractVersion.id == body["version"]["id"]).first()
        assert '"ocr_status": "PENDING"' in version.content_snapshot

    def test_no_document_upload_during_review(self, business_client, make_contract):
        contract = make_contract()
        business_client.post(f"/api/v1/contracts/{contract['id']}/submit")

        response = business_client.post(
            f"/api/v1/contracts/{contract['id']}/documents",
            files={"file": ("late.docx", b"late bytes", "application/octet-stream")}
        )
        assert response.status_code == 403
        assert business_client.get(f"/api/v1/contracts/{contract['id']}/attachments").json()["attachments"] == []

    def test_download_attachment(self, business_client, make_contract):
        contract = make_contract()
        uploaded = business_client.post(
            f"/api/v1/contracts/{contract['id']}/documents",
            files={"file": ("notes.txt", b"hello", "text/plain")}
        ).json()

        listed = business_client.get(f"/api/v1/contracts/{contract['id']}/attachments").json()
        assert [a["file_name"] for a in listed["attachments"]] == ["notes.txt"]

        download = business_client.get(
            f"/api/v1/contracts/{contract['id']}/attachments/{uploaded['attachment']['id']}/download"
        )
        assert download.status_code == 200
        assert download.content == b"hello"

    def test_export_docx(self, business_client, make_contract):
        contract = make_contract()
        response = business_client.get(f"/api/v1/contracts/{contract['id']}/export", params={"format": "docx"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        )
        assert contract["reference"] in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"


class TestVersions:
    def _two_versions(self, client, make_contract):
        contract = make_contract()
        client.put(f"/api/v1/contracts/{contract['id']}", json={"title": "Website Support"})
        versions = client.get(f"/api/v1/contracts/{contract['id']}/versions").json()["versions"]
        by_number = {v["version_number"]: v["id"] for v in versions}
        return contract, by_number

    def test_versions_newest_first(self, business_client, make_contract):
        contract, _ = self._two_versions(business_client, make_contract)
        versions = business_client.get(f"/api/v1/contracts/{contract['id']}/versions").json()["versions"]
        assert [v["version_number"] for v in versions] == [2, 1]

    def test_changelog(self, business_client, make_contract):
        contract, ids = self._two_versions(business_client, make_contract)
        body = business_client.get(f"/api/v1/contracts/{contract['id']}/versions/{ids[2]}/changelog").json()
        assert body["version_number"] == 2
        assert body["previous_version_number"] == 1
        assert body["change_log"]["changes"][0]["new_value"] == "Website Support"

    def test_compare(self, business_client, make_contract):
        contract, ids = self._two_versions(business_client, make_contract)
        body = business_client.get(
            f"/api/v1/contracts/{contract['id']}/compare",
            params={"from_version_id": ids[1], "to_version_id": ids[2]}
        ).json()
        assert body["field_changes"][0]["field"] == "title"
        assert body["from_version"]["version_number"] == 1
        assert body["to_version"]["version_number"] == 2

    def test_version_of_another_contract(self, business_client, make_contract):
        first, ids = self._two_versions(business_client, make_contract)
        second = make_contract()
        response = business_client.get(f"/api/v1/contracts/{second['id']}/versions/{ids[1]}/changelog")
        assert response.status_code == 404

    def test_restore(self, business_client, make_contract):
        contract, ids = self._two_versions(business_client, make_contract)
        response = business_client.post(f"/api/v1/contracts/{contract['id']}/versions/{ids[1]}/restore")
        body = response.json()
        assert response.status_code == 200
        assert body["message"] == "Restored from version 1"
        assert body["contract"]["title"] == "Website Maintenance"
        assert body["version"]["version_number"] == 3
        assert body["version"]["change_log"]["restored_from"] == 1

    def test_restore_only_on_draft(self, business_client, make_contract):
        contract, ids = self._two_versions(business_client, make_contract)
        business_client.post(f"/api/v1/contracts/{contract['id']}/submit")
        response = business_client.post(f"/api/v1/contracts/{contract['id']}/versions/{ids[1]}/restore")
        assert response.status_code == 403


class TestContractAudit:
    def test_actions_recorded(self, business_client, make_contract):
        contract = make_contract()
        business_client.put(f"/api/v1/contracts/{contract['id']}", json={"title": "Website Support"})

        body = business_client.get(f"/api/v1/contracts/{contract['id']}/audit").json()
        actions = [entry["action"] for entry in body["logs"]]
        assert "CONTRACT_CREATED" in actions
        assert "CONTRACT_UPDATED" in actions
