# Overview: Pytest coverage for the return item API and ownership rules.

"""
Return Item API Tests

SECURITY TESTS: prove that one identity cannot read or change another
identity's items, and that "not found" is decided before "not yours".
"""

from datetime import datetime, timedelta
from decimal import Decimal

import requests

from retoro.models import ReturnItem
from retoro.time_utils import utcnow

from conftest import make_item, login


def _create(client, **body):
    payload = {"retailer_id": "zara", "purchase_date": "2024-01-01", **body}
    return client.post('/api/return-items', json=payload)


class TestCreateItem:

    def test_anonymous_visitor_gets_cookie_and_owns_item(self, client, db_session, zara):
        response = _create(client, name="Coat", price=120)

        assert response.status_code == 201
        body = response.get_json()
        assert body["return_deadline"] == "2024-01-31T00:00:00Z"
        assert body["retailer"]["name"] == "Zara"
        assert body["status"] in ("active", "kept")

        cookie = client.get_cookie("retoro_anonymous_user_id")
        assert cookie is not None
        assert body["user_id"] == cookie.value

    def test_cookie_identity_is_reused(self, client, db_session, zara):
        client.set_cookie("retoro_anonymous_user_id", "anon-known")

        response = _create(client)

        assert response.status_code == 201
        assert response.get_json()["user_id"] == "anon-known"

    def test_converts_price_to_usd(self, client, db_session, zara):
        response = _create(client, price="50.00", currency="eur")

        body = response.get_json()
        assert response.status_code == 201
        assert body["original_currency"] == "EUR"
        assert body["currency_symbol"] == "€"
        assert body["price"] == 50.0
        assert body["price_usd"] == 100.0

    def test_rate_failure_degrades_to_one_to_one(self, client, db_session, zara, exchange_rates):
        exchange_rates.http.get.side_effect = requests.ConnectionError("down")

        response = _create(client, price=40, currency="GEL")

        assert response.status_code == 201
        assert response.get_json()["price_usd"] == 40.0

    def test_no_deadline_retailer(self, client, db_session, nordstrom):
        response = _create(client, retailer_id="nordstrom", purchase_date="2024-02-29")

        assert response.status_code == 201
        assert response.get_json()["return_deadline"] == "2034-03-01T00:00:00Z"

    def test_missing_fields(self, client, db_session, zara):
        response = client.post('/api/return-items', json={"name": "Coat"})

        assert response.status_code == 400
        assert "Missing required fields" in response.get_json()["error"]

    def test_bad_currency(self, client, db_session, zara):
        response = _create(client, price=10, currency="EURO")
        assert response.status_code == 400

    def test_negative_price(self, client, db_session, zara):
        response = _create(client, price=-1)
        assert response.status_code == 400
        assert response.get_json()["error"] == "price must be >= 0"

    def test_huge_price_rejected(self, client, db_session, zara):
        response = _create(client, price="1e30")

        assert response.status_code == 400
        assert response.get_json()["error"] == "price cannot exceed 99,999,999.99"
        assert db_session.query(ReturnItem).count() == 0

    def test_bad_date(self, client, db_session, zara):
        response = _create(client, purchase_date="yesterday")
        assert response.status_code == 400

    def test_unknown_retailer(self, client, db_session, zara):
        response = _create(client, retailer_id="nope")
        assert response.status_code == 404
        assert db_session.query(ReturnItem).count() == 0

    def test_logged_in_user_owns_item(self, client, db_session, zara, user_a):
        login(client, user_a.email)

        response = _create(client, user_id="spoofed")

        body = response.get_json()
        assert response.status_code == 201
        assert body["user_id"] == user_a.id
        db_session.expire_all()
        assert db_session.get(ReturnItem, body["id"]).owner_type == ReturnItem.OWNER_USER


class TestOwnership:

    def test_not_found_before_forbidden(self, client, db_session):
        client.set_cookie("retoro_anonymous_user_id", "anon-a")

        assert client.get('/api/return-items/missing').status_code == 404
        assert client.delete('/api/return-items/missing').status_code == 404
        assert client.patch('/api/return-items/missing', json={"is_returned": True}).status_code == 404

    def test_other_identity_is_forbidden(self, client, db_session, zara):
        item = make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-owner")
        client.set_cookie("retoro_anonymous_user_id", "anon-intruder")

        for response in (
            client.get(f'/api/return-items/{item.id}'),
            client.patch(f'/api/return-items/{item.id}', json={"is_returned": True}),
            client.put(f'/api/return-items/{item.id}', json={"retailer_id": "zara", "purchase_date": "2024-02-01"}),
            client.delete(f'/api/return-items/{item.id}'),
        ):
            assert response.status_code == 403
            assert response.get_json() == {"error": "Unauthorized"}

        db_session.expire_all()
        assert db_session.get(ReturnItem, item.id).is_returned is False

    def test_anonymous_key_cannot_reach_user_item(self, client, db_session, zara, user_a):
        item = make_item(db_session, zara, ReturnItem.OWNER_USER, user_a.id)
        client.set_cookie("retoro_anonymous_user_id", user_a.id)

        assert client.get(f'/api/return-items/{item.id}').status_code == 403

    def test_list_only_shows_own_items(self, client, db_session, zara):
        make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-a", name="Mine")
        make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-b", name="Theirs")
        client.set_cookie("retoro_anonymous_user_id", "anon-a")

        body = client.get('/api/return-items').get_json()

        assert body["user_id"] == "anon-a"
        assert [item["name"] for item in body["items"]] == ["Mine"]


class TestUpdateAndStatus:

    def test_update_recomputes_deadline(self, client, db_session, zara, nordstrom):
        item = make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-a")
        client.set_cookie("retoro_anonymous_user_id", "anon-a")

        response = client.put(f'/api/return-items/{item.id}', json={
            "retailer_id": "nordstrom",
            "purchase_date": "2024-06-01",
            "name": "Boots",
        })

        body = response.get_json()
        assert response.status_code == 200
        assert body["retailer_id"] == "nordstrom"
        assert body["return_deadline"] == "2034-06-01T00:00:00Z"
        assert body["name"] == "Boots"

    def test_mark_returned_then_kept(self, client, db_session, zara):
        item = make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-a")
        client.set_cookie("retoro_anonymous_user_id", "anon-a")

        returned = client.patch(f'/api/return-items/{item.id}', json={"is_returned": True}).get_json()
        assert returned["item"]["is_returned"] is True
        assert returned["item"]["returned_date"] is not None
        assert returned["item"]["status"] == "returned"

        kept = client.patch(f'/api/return-items/{item.id}', json={"is_returned": False}).get_json()
        assert kept["item"]["is_returned"] is False
        assert kept["item"]["returned_date"] is None

    def test_status_must_be_boolean(self, client, db_session, zara):
        item = make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-a")
        client.set_cookie("retoro_anonymous_user_id", "anon-a")

        response = client.patch(f'/api/return-items/{item.id}', json={"is_returned": "yes"})

        assert response.status_code == 400

    def test_delete(self, client, db_session, zara):
        item = make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-a")
        item_id = item.id
        client.set_cookie("retoro_anonymous_user_id", "anon-a")

        assert client.delete(f'/api/return-items/{item_id}').status_code == 200
        assert client.get(f'/api/return-items/{item_id}').status_code == 404


class TestFiltersAndStats:

    def _seed(self, db_session, zara):
        now = utcnow()
        make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-a", name="Active",
                  purchase_date=now - timedelta(days=1), price=Decimal("10.00"), price_usd=Decimal("10.00"))
        make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-a", name="Kept",
                  purchase_date=datetime(2020, 1, 1), price=Decimal("20.00"), price_usd=Decimal("20.00"))
        make_item(db_session, zara, ReturnItem.OWNER_ANONYMOUS, "anon-a", name="Returned",
                  purchase_date=now - timedelta(days=3), is_returned=True, returned_date=now,
                  price=Decimal("30.00"), price_usd=Decimal("30.00"))

    def test_status_filter(self, client, db_session, zara):
        self._seed(db_session, zara)
        client.set_cookie("retoro_anonymous_user_id", "anon-a")

        def names(status):
            body = client.get(f'/api/return-items?status={status}').get_json()
            return [item["name"] for item in body["items"]]

        assert names("active") == ["Active"]
        assert names("kept") == ["Kept"]
        assert names("returned") == ["Returned"]
        assert sorted(names("all")) == ["Active", "Kept", "Returned"]

    def test_invalid_status_filter(self, client, db_session):
        assert client.get('/api/return-items?status=lost').status_code == 400

    def test_stats(self, client, db_session, zara):
        self._seed(db_session, zara)
        client.set_cookie("retoro_anonymous_user_id", "anon-a")

        stats = client.get('/api/return-items/stats').get_json()

        assert stats == {
            "total_items": 3,
            "active_items": 1,
            "returned_items": 1,
            "kept_items": 1,
            "total_value_usd": 60.0,
            "returned_value_usd": 30.0,
        }
