from app.models.search import SavedSearch


def _search(client, **params):
    response = client.get("/api/v1/search/contracts", params=params)
    assert response.status_code == 200, response.text
    return response.json()


class TestContractSearch:
    def test_text_matches_title_reference_and_counterparty(self, business_client, make_contract):
        lease = make_contract(title="Office Lease", counterparty_name="Landlord Ltd")
        make_contract(title="Cleaning Services")

        assert [c["id"] for c in _search(business_client, q="lease")["data"]] == [lease["id"]]
        assert [c["id"] for c in _search(business_client, q="landlord")["data"]] == [lease["id"]]
        assert [c["id"] for c in _search(business_client, q=lease["reference"])["data"]] == [lease["id"]]

    def test_status_filter_is_comma_separated(self, business_client, make_contract):
        draft = make_contract()
        submitted = make_contract()
        business_client.post(f"/api/v1/contracts/{submitted['id']}/submit")

        assert [c["id"] for c in _search(business_client, status="in_review")["data"]] == [submitted["id"]]
        both = _search(business_client, status="DRAFT, IN_REVIEW")
        assert {c["id"] for c in both["data"]} == {draft["id"], submitted["id"]}

    def test_counterparty_and_template_filters(self, business_client, make_contract, seeded):
        make_contract(counterparty_name="Initech")
        make_contract(counterparty_name="Hooli")

        body = _search(business_client, counterparty="hoo", template_id=seeded["template"])
        assert [c["counterparty_name"] for c in body["data"]] == ["Hooli"]
        assert body["data"][0]["template"] == {"name": "Service Agreement", "category": "SERVICES"}

    def test_date_range(self, business_client, make_contract):
        make_contract()
        assert _search(business_client, date_from="2000-01-01")["pagination"]["total"] == 1
        assert _search(business_client, date_to="2000-01-01")["pagination"]["total"] == 0

    def test_inverted_date_range(self, business_client):
        response = business_client.get(
            "/api/v1/search/contracts", params={"date_from": "2026-05-01", "date_to": "2026-04-01"}
        )
        assert response.status_code == 400

    def test_pagination(self, business_client, make_contract):
        for _ in range(3):
            make_contract()
        body = _search(business_client, page=2, limit=2)
        assert len(body["data"]) == 1
        assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}

    def test_limit_capped(self, business_client):
        assert _search(business_client, limit=500)["pagination"]["limit"] == 100

    def test_other_organization_hidden(self, outsider_client, make_contract):
        make_contract()
        assert _search(outsider_client)["data"] == []

    def test_requires_login(self, anonymous):
        assert anonymous.get("/api/v1/search/contracts").status_code == 401


class TestFilterOptions:
    def test_templates_and_status_counts(self, business_client, make_contract, seeded):
        make_contract()
        make_contract()
        body = business_client.get("/api/v1/search/filters").json()
        assert body["templates"] == [{"id": seeded["template"], "name": "Service Agreement", "category": "SERVICES"}]
        assert body["statuses"] == [{"value": "DRAFT", "label": "DRAFT", "count": 2}]


class TestSavedSearches:
    def test_save_and_list(self, business_client):
        response = business_client.post("/api/v1/search/saved", json={
            "name": "Open leases",
            "query": "lease",
            "filters": {"status": ["draft", "in_review"]},
        })
        assert response.status_code == 201
        saved = response.json()["saved_search"]
        assert saved["query"] == {"search_text": "lease"}
        assert saved["filters"]["status"] == ["DRAFT", "IN_REVIEW"]

        listed = business_client.get("/api/v1/search/saved").json()["saved_searches"]
        assert [s["name"] for s in listed] == ["Open leases"]

    def test_single_default(self, business_client):
        business_client.post("/api/v1/search/saved", json={"name": "First", "is_default": True})
        business_client.post("/api/v1/search/saved", json={"name": "Second", "is_default": True})
        business_client.post("/api/v1/search/saved", json={"name": "Third"})

        listed = business_client.get("/api/v1/search/saved").json()["saved_searches"]
        assert listed[0]["name"] == "Second"
        assert [s["name"] for s in listed if s["is_default"]] == ["Second"]

    def test_saved_searches_are_private(self, business_client, legal_client):
        business_client.post("/api/v1/search/saved", json={"name": "Mine"})
        assert legal_client.get("/api/v1/search/saved").json()["saved_searches"] == []

    def test_delete(self, business_client, legal_client, db):
        saved_id = business_client.post("/api/v1/search/saved", json={"name": "Mine"}).json()["saved_search"]["id"]

        assert legal_client.delete(f"/api/v1/search/saved/{saved_id}").status_code == 404
        assert business_client.delete(f"/api/v1/search/saved/{saved_id}").status_code == 200
        assert db.query(SavedSearch).count() == 0

    def test_blank_name(self, business_client):
        response = business_client.post("/api/v1/search/saved", json={"name": "   "})
        assert response.status_code == 422
