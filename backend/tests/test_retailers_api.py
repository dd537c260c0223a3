# Overview: Pytest coverage for retailer policies, API-key protection and deadline recomputation.

from datetime import datetime

from retoro.models import RetailerPolicy, ReturnItem
from retoro.services import retailer_service, return_item_service
from retoro.services.retailer_service import slugify

from conftest import make_item, api_key_headers


class TestRetailerReads:

    def test_list_sorted_by_name(self, client, db_session, zara, nordstrom):
        body = client.get('/api/retailers').get_json()
        assert [r["id"] for r in body] == ["nordstrom", "zara"]

    def test_get_one(self, client, db_session, zara):
        body = client.get('/api/retailers/zara').get_json()
        assert body["return_window_days"] == 30

    def test_get_missing(self, client, db_session):
        assert client.get('/api/retailers/nope').status_code == 404


class TestRetailerCreate:

    def test_create_derives_slug(self, client, db_session):
        response = client.post('/api/retailers', json={"name": "Banana Republic", "return_window_days": 30})

        assert response.status_code == 201
        assert response.get_json()["id"] == "banana-republic"
        assert response.get_json()["has_free_returns"] is False

    def test_duplicate_name_case_insensitive(self, client, db_session, zara):
        response = client.post('/api/retailers', json={"name": "ZARA", "return_window_days": 14})

        assert response.status_code == 409
        assert response.get_json()["retailer_id"] == "zara"

    def test_negative_window(self, client, db_session):
        response = client.post('/api/retailers', json={"name": "Shop", "return_window_days": -5})
        assert response.status_code == 400

    def test_missing_window(self, client, db_session):
        response = client.post('/api/retailers', json={"name": "Shop"})
        assert response.status_code == 400

    def test_slugify(self):
        assert slugify("H&M") == "h-m"
        assert slugify("  Old Navy ") == "old-navy"
        assert slugify("Macy's") == "macy-s"


class TestRetailerUpdate:

    def test_requires_api_key(self, client, db_session, zara):
        response = client.put('/api/retailers/zara', json={"return_window_days": 60})
        assert response.status_code == 401

        response = client.put('/api/retailers/zara', json={"return_window_days": 60},
                              headers=api_key_headers("wrong"))
        assert response.status_code == 401

    def test_rejected_when_key_not_configured(self, app, client, db_session, zara):
        original = app.config["RETORO_API_KEY"]
        app.config["RETORO_API_KEY"] = None
        try:
            response = client.put('/api/retailers/zara', json={"return_window_days": 60},
                                  headers=api_key_headers(""))
        finally:
            app.config["RETORO_API_KEY"] = original

        assert response.status_code == 401

    def test_update_policy(self, client, db_session, zara):
        response = client.put('/api/retailers/zara', headers=api_key_headers(), json={
            "return_window_days": 60, "has_free_returns": True,
        })

        body = response.get_json()
        assert response.status_code == 200
        assert body["return_window_days"] == 60
        assert body["has_free_returns"] is True

    def test_update_requires_a_field(self, client, db_session, zara):
        response = client.put('/api/retailers/zara', headers=api_key_headers(), json={})

        assert response.status_code == 400
        assert response.get_json()["error"] == "At least one field must be provided for update"

    def test_update_rejects_negative_window(self, client, db_session, zara):
        response = client.put('/api/retailers/zara', headers=api_key_headers(), json={"return_window_days": -1})

        assert response.status_code == 400
        assert response.get_json()["error"] == "return_window_days must be a non-negative number"

    def test_update_missing_retailer(self, client, db_session):
        response = client.put('/api/retailers/nope', headers=api_key_headers(), json={"return_window_days": 5})
        assert response.status_code == 404

    def test_existing_deadlines_kept_until_recomputed(self, db_session, zara):
        item = make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-a")

        retailer_service.update_policy("zara", {"return_window_days": 10})
        db_session.expire_all()
        assert db_session.get(ReturnItem, item.id).return_deadline == datetime(2024, 1, 31)

        assert return_item_service.recompute_deadlines() == 1
        db_session.expire_all()
        assert db_session.get(ReturnItem, item.id).return_deadline == datetime(2024, 1, 11)


class TestRetailerCheck:

    def test_lookup_by_name(self, client, db_session, zara):
        body = client.get('/api/integrations/retailer-check?name=zArA', headers=api_key_headers()).get_json()
        assert [r["id"] for r in body] == ["zara"]

    def test_lookup_no_match(self, client, db_session, zara):
        body = client.get('/api/integrations/retailer-check?name=Unknown', headers=api_key_headers()).get_json()
        assert body == []

    def test_lookup_requires_name(self, client, db_session):
        response = client.get('/api/integrations/retailer-check', headers=api_key_headers())
        assert response.status_code == 400

    def test_lookup_requires_key(self, client, db_session, zara):
        assert client.get('/api/integrations/retailer-check?name=Zara').status_code == 401

    def test_result_callback(self, client, db_session):
        response = client.post('/api/integrations/retailer-check', headers=api_key_headers(),
                               json={"retailer_name": "Zara", "status": "verified"})
        assert response.get_json() == {"success": True}


class TestSeed:

    def test_seed_is_idempotent(self, db_session):
        added = retailer_service.seed_default_retailers()

        assert added == len(retailer_service.DEFAULT_RETAILERS)
        assert retailer_service.seed_default_retailers() == 0
        assert db_session.get(RetailerPolicy, "nordstrom").return_window_days == 0
