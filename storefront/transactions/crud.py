"""Transactions (orders).

Ownership rules:

- A transaction always belongs to the user whose token created it. Any user
  id in the request body is ignored.
- Only the owner can read their transactions; being an admin does not widen
  that.
- Only an admin can change a transaction's status, whoever owns it.

Known gaps, kept on purpose until the intended behavior is decided:

- product ids, stock and totalAmount are not checked against the catalog
- any status can follow any other (completed -> pending is accepted)
- creating is not idempotent; a resubmitted cart is a second order
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from pymongo.database import Database

from storefront.auth.crud import public_user
from storefront.catalog.crud import resolve_products
from storefront.db import parse_object_id, to_json
from storefront.errors import BadRequest, Forbidden, NotFound
from storefront.models import LineItem, Role, TransactionStatus
from storefront.schema import TRANSACTIONS, USERS
from storefront.util.time import utcnow


def _line_items_doc(cart: Iterable[LineItem]) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    for item in cart:
        oid = parse_object_id(item.product_id)
        if oid is None:
            raise BadRequest(f"Invalid product id: {item.product_id}")
        if int(item.quantity) < 1:
            raise BadRequest("Quantity must be at least 1")
        items.append({"product": oid, "quantity": int(item.quantity)})
    if not items:
        raise BadRequest("Cart cannot be empty!")
    return items


def create_transaction(
    db: Database,
    *,
    user_id: str,
    cart: Iterable[LineItem],
    total_amount: float,
) -> Dict[str, Any]:
    """Persist a new pending transaction owned by `user_id` (from the token)."""
    owner = parse_object_id(user_id)
    if owner is None:
        # Only reachable with a token minted for a non-ObjectId subject.
        raise BadRequest("Invalid user id")

    doc = {
        "user": owner,
        "products": _line_items_doc(cart),
        "totalAmount": total_amount,
        "status": TransactionStatus.PENDING.value,
        "createdAt": utcnow(),
    }
    doc["_id"] = db[TRANSACTIONS].insert_one(doc).inserted_id
    return to_json(doc)


def update_status(
    db: Database,
    *,
    caller_role: Role,
    transaction_id: Any,
    status: str,
) -> None:
    # Role first: a non-admin learns nothing about which ids exist.
    if caller_role is not Role.ADMIN:
        raise Forbidden("You are not allowed to do this!")

    try:
        new_status = TransactionStatus(status)
    except ValueError:
        raise BadRequest(f"Invalid status: {status}")

    oid = parse_object_id(transaction_id)
    if oid is None:
        raise NotFound("Transaction doesn't exist!")

    res = db[TRANSACTIONS].update_one({"_id": oid}, {"$set": {"status": new_status.value}})
    if res.matched_count == 0:
        raise NotFound("Transaction doesn't exist!")


def _check_owner(caller_id: str, requested_user_id: str) -> None:
    if str(caller_id) != str(requested_user_id):
        raise Forbidden("You are not allowed to check this!")


def _populate(db: Database, transactions: List[Dict[str, Any]], *, with_user: bool) -> List[Dict[str, Any]]:
    """Resolve product references (and optionally the owner) in place of ids."""
    product_ids = [li.get("product") for t in transactions for li in t.get("products") or []]
    products = resolve_products(db, product_ids)

    users: Dict[Any, Dict[str, Any]] = {}
    if with_user:
        owner_ids = list({t.get("user") for t in transactions if t.get("user") is not None})
        if owner_ids:
            users = {u["_id"]: public_user(u) for u in db[USERS].find({"_id": {"$in": owner_ids}})}

    out = []
    for t in transactions:
        t = dict(t)
        t["products"] = [
            {**li, "product": products.get(li.get("product"))} for li in t.get("products") or []
        ]
        if with_user:
            t["user"] = users.get(t.get("user"))
        out.append(to_json(t))
    return out


def list_for_user(db: Database, *, caller_id: str, requested_user_id: str) -> List[Dict[str, Any]]:
    _check_owner(caller_id, requested_user_id)
    owner = parse_object_id(requested_user_id)
    if owner is None:
        return []
    return _populate(db, list(db[TRANSACTIONS].find({"user": owner})), with_user=False)


def get_one(
    db: Database,
    *,
    caller_id: str,
    requested_user_id: str,
    transaction_id: Any,
) -> Optional[Dict[str, Any]]:
    _check_owner(caller_id, requested_user_id)
    owner = parse_object_id(requested_user_id)
    oid = parse_object_id(transaction_id)
    if owner is None or oid is None:
        return None
    doc = db[TRANSACTIONS].find_one({"_id": oid, "user": owner})
    if doc is None:
        return None
    return _populate(db, [doc], with_user=True)[0]


def list_all(db: Database) -> List[Dict[str, Any]]:
    return _populate(db, list(db[TRANSACTIONS].find()), with_user=True)
