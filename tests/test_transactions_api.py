"""Integration tests for the /transactions endpoints."""

import pytest
from bson import ObjectId

from storefront.models import Role


@pytest.fixture()
def product_ids(db):
    res = db["products"].insert_many(
        [
            {"name": "Widget", "price": 10.0, "stock": 5, "category": None, "image": "w.png"},
            {"name": "Gadget", "price": 25.0, "stock": 2, "category": None, "image": "g.png"},
        ]
    )
    return [str(i) for i in res.inserted_ids]


def _place_order(client, headers, product_ids, **extra):
    body = {
        "cart": [
            {"productId": product_ids[0], "quantity": 2},
            {"productId": product_ids[1], "quantity": 1},
        ],
        "totalAmount": 45.0,
    }
    body.update(extra)
    res = client.post("/transactions", json=body, headers=headers)
    assert res.status_code == 200, res.json()
    return res.json()["id"]


class TestCreateTransaction:
    def test_requires_authentication(self, client, product_ids):
        res = client.post("/transactions", json={"cart": [], "totalAmount": 1})
        assert res.status_code == 401

    def test_creates_pending_transaction_owned_by_caller(self, client, db, login_as, product_ids):
        user_id, headers = login_as("guest")
        res = client.post(
            "/transactions",
            json={"cart": [{"productId": product_ids[0], "quantity": 3}], "totalAmount": 30},
            headers=headers,
        )

        assert res.status_code == 200
        assert res.json()["message"] == "Transaction has been added!"

        doc = db["transactions"].find_one({"_id": ObjectId(res.json()["id"])})
        assert doc["user"] == ObjectId(user_id)
        assert doc["status"] == "pending"
        assert doc["totalAmount"] == 30
        assert doc["products"] == [{"product": ObjectId(product_ids[0]), "quantity": 3}]
        assert "createdAt" in doc

    def test_body_user_is_ignored(self, client, db, login_as, product_ids):
        other_id, _ = login_as("other")
        user_id, headers = login_as("guest")

        tid = _place_order(client, headers, product_ids, user=other_id)

        doc = db["transactions"].find_one({"_id": ObjectId(tid)})
        assert doc["user"] == ObjectId(user_id)

    def test_total_is_not_recomputed(self, client, db, login_as, product_ids):
        _, headers = login_as("guest")
        tid = _place_order(client, headers, product_ids, totalAmount=1.5)
        assert db["transactions"].find_one({"_id": ObjectId(tid)})["totalAmount"] == 1.5

    @pytest.mark.parametrize(
        "cart",
        [
            [],
            [{"productId": "507f1f77bcf86cd799439011", "quantity": 0}],
            [{"productId": "not-an-id", "quantity": 1}],
        ],
        ids=["empty", "zero-quantity", "bad-product-id"],
    )
    def test_invalid_cart_is_rejected(self, client, db, login_as, cart):
        _, headers = login_as("guest")
        res = client.post("/transactions", json={"cart": cart, "totalAmount": 10}, headers=headers)

        assert res.status_code == 400
        assert "error" in res.json()
        assert db["transactions"].count_documents({}) == 0

    def test_missing_total_is_rejected(self, client, login_as, product_ids):
        _, headers = login_as("guest")
        res = client.post(
            "/transactions",
            json={"cart": [{"productId": product_ids[0], "quantity": 1}]},
            headers=headers,
        )
        assert res.status_code == 400

    def test_resubmitting_creates_a_second_order(self, client, db, login_as, product_ids):
        _, headers = login_as("guest")
        _place_order(client, headers, product_ids)
        _place_order(client, headers, product_ids)
        assert db["transactions"].count_documents({}) == 2


class TestUpdateStatus:
    def test_non_admin_is_forbidden_even_for_missing_transaction(self, client, login_as, product_ids):
        _, headers = login_as("guest")
        tid = _place_order(client, headers, product_ids)

        for trans_id in (tid, str(ObjectId())):
            res = client.put("/transactions", json={"TransId": trans_id, "status": "completed"}, headers=headers)
            assert res.status_code == 400
            assert res.json()["error"] == "You are not allowed to do this!"

    def test_admin_updates_any_transaction(self, client, db, login_as, product_ids):
        _, user_headers = login_as("guest")
        _, admin_headers = login_as("root", role=Role.ADMIN)
        tid = _place_order(client, user_headers, product_ids)

        res = client.put("/transactions", json={"TransId": tid, "status": "completed"}, headers=admin_headers)

        assert res.status_code == 200
        assert res.json()["message"] == "Transaction has been updated!"
        assert db["transactions"].find_one({"_id": ObjectId(tid)})["status"] == "completed"

    def test_any_transition_is_accepted(self, client, db, login_as, product_ids):
        _, user_headers = login_as("guest")
        _, admin_headers = login_as("root", role=Role.ADMIN)
        tid = _place_order(client, user_headers, product_ids)

        for status in ("completed", "pending", "canceled", "pending"):
            res = client.put("/transactions", json={"TransId": tid, "status": status}, headers=admin_headers)
            assert res.status_code == 200
        assert db["transactions"].find_one({"_id": ObjectId(tid)})["status"] == "pending"

    def test_unknown_transaction(self, client, login_as):
        _, headers = login_as("root", role=Role.ADMIN)
        for trans_id in (str(ObjectId()), "bogus"):
            res = client.put("/transactions", json={"TransId": trans_id, "status": "completed"}, headers=headers)
            assert res.status_code == 400
            assert res.json()["error"] == "Transaction doesn't exist!"

    def test_unknown_status(self, client, db, login_as, product_ids):
        _, user_headers = login_as("guest")
        _, admin_headers = login_as("root", role=Role.ADMIN)
        tid = _place_order(client, user_headers, product_ids)

        res = client.put("/transactions", json={"TransId": tid, "status": "shipped"}, headers=admin_headers)

        assert res.status_code == 400
        assert db["transactions"].find_one({"_id": ObjectId(tid)})["status"] == "pending"


class TestReadTransactions:
    def test_lists_own_transactions_with_products(self, client, login_as, product_ids):
        user_id, headers = login_as("guest")
        _, other_headers = login_as("other")
        _place_order(client, headers, product_ids)
        _place_order(client, other_headers, product_ids)

        res = client.get(f"/transactions/{user_id}", headers=headers)

        assert res.status_code == 200
        body = res.json()
        assert len(body) == 1
        assert body[0]["user"] == user_id
        items = body[0]["products"]
        assert [i["product"]["name"] for i in items] == ["Widget", "Gadget"]
        assert [i["quantity"] for i in items] == [2, 1]

    def test_listing_someone_else_is_forbidden(self, client, login_as):
        other_id, _ = login_as("other")
        _, headers = login_as("guest")

        res = client.get(f"/transactions/{other_id}", headers=headers)
        assert res.status_code == 400
        assert res.json()["error"] == "You are not allowed to check this!"

    def test_admin_does_not_bypass_ownership(self, client, login_as):
        other_id, _ = login_as("other")
        _, admin_headers = login_as("root", role=Role.ADMIN)

        res = client.get(f"/transactions/{other_id}", headers=admin_headers)
        assert res.status_code == 400

    def test_get_one_resolves_owner_and_products(self, client, login_as, product_ids):
        user_id, headers = login_as("guest")
        tid = _place_order(client, headers, product_ids)

        res = client.get(f"/transactions/{user_id}/{tid}", headers=headers)

        assert res.status_code == 200
        body = res.json()
        assert body["_id"] == tid
        assert body["status"] == "pending"
        assert body["user"]["name"] == "guest"
        assert "password" not in body["user"]
        assert body["products"][0]["product"]["_id"] == product_ids[0]

    def test_get_one_of_another_user_is_forbidden(self, client, login_as, product_ids):
        other_id, other_headers = login_as("other")
        tid = _place_order(client, other_headers, product_ids)
        _, headers = login_as("guest")

        res = client.get(f"/transactions/{other_id}/{tid}", headers=headers)
        assert res.status_code == 400

    def test_get_one_not_found_is_null(self, client, login_as, product_ids):
        user_id, headers = login_as("guest")
        other_id, other_headers = login_as("other")
        foreign_tid = _place_order(client, other_headers, product_ids)

        for tid in (str(ObjectId()), foreign_tid):
            res = client.get(f"/transactions/{user_id}/{tid}", headers=headers)
            assert res.status_code == 200
            assert res.json() is None

    def test_deleted_product_resolves_to_null(self, client, db, login_as, product_ids):
        user_id, headers = login_as("guest")
        _place_order(client, headers, product_ids)
        db["products"].delete_one({"_id": ObjectId(product_ids[0])})

        body = client.get(f"/transactions/{user_id}", headers=headers).json()
        assert body[0]["products"][0]["product"] is None
        assert body[0]["products"][1]["product"]["name"] == "Gadget"

    def test_full_listing_is_admin_only(self, client, login_as, product_ids):
        _, headers = login_as("guest")
        _, admin_headers = login_as("root", role=Role.ADMIN)
        _place_order(client, headers, product_ids)

        assert client.get("/transactions", headers=headers).status_code == 403

        res = client.get("/transactions", headers=admin_headers)
        assert res.status_code == 200
        assert [t["user"]["name"] for t in res.json()] == ["guest"]
