"""Categories and products.

Plain CRUD over the store. Products reference a category by id; deleting a
category detaches its products (category set to null) rather than deleting
them.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from storefront.db import parse_object_id, public_doc, to_json
from storefront.errors import BadRequest, Conflict, NotFound
from storefront.schema import CATEGORIES, PRODUCTS
from storefront.util.time import utcnow


def _require_id(value: Any) -> ObjectId:
    oid = parse_object_id(value)
    if oid is None:
        raise BadRequest("Invalid id")
    return oid


def _optional_category_id(value: Any) -> Optional[ObjectId]:
    if value is None or value == "":
        return None
    return _require_id(value)


# -----------------------------
# Categories
# -----------------------------


def list_categories(db: Database) -> List[Dict[str, Any]]:
    return [to_json(c) for c in db[CATEGORIES].find()]


def get_category(db: Database, category_id: Any) -> Optional[Dict[str, Any]]:
    return public_doc(db[CATEGORIES].find_one({"_id": _require_id(category_id)}))


def create_category(db: Database, *, name: str, description: Optional[str] = None) -> Dict[str, Any]:
    if not name:
        raise BadRequest("Category name cannot be empty!")
    if db[CATEGORIES].find_one({"name": name}) is not None:
        raise Conflict("Category already exist!")
    doc = {"name": name, "description": description}
    try:
        doc["_id"] = db[CATEGORIES].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise Conflict("Category already exist!")
    return to_json(doc)


def update_category(
    db: Database,
    category_id: Any,
    *,
    name: str,
    description: Optional[str] = None,
) -> None:
    oid = _require_id(category_id)
    if db[CATEGORIES].find_one({"_id": oid}) is None:
        raise NotFound("Category not found!")
    try:
        db[CATEGORIES].update_one({"_id": oid}, {"$set": {"name": name, "description": description}})
    except DuplicateKeyError:
        raise Conflict("Category already exist!")


def delete_category(db: Database, category_id: Any) -> None:
    oid = _require_id(category_id)
    if db[CATEGORIES].find_one({"_id": oid}) is None:
        raise NotFound("Category not found!")
    db[PRODUCTS].update_many({"category": oid}, {"$set": {"category": None}})
    db[CATEGORIES].delete_one({"_id": oid})


# -----------------------------
# Products
# -----------------------------


def _with_categories(db: Database, products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Replace each product's category id with the category document."""
    ids = {p.get("category") for p in products if isinstance(p.get("category"), ObjectId)}
    by_id: Dict[ObjectId, Dict[str, Any]] = {}
    if ids:
        by_id = {c["_id"]: c for c in db[CATEGORIES].find({"_id": {"$in": list(ids)}})}
    out = []
    for p in products:
        p = dict(p)
        p["category"] = by_id.get(p.get("category"))
        out.append(to_json(p))
    return out


def list_products(db: Database) -> List[Dict[str, Any]]:
    return _with_categories(db, list(db[PRODUCTS].find()))


def list_products_by_category(db: Database, category_id: Any) -> List[Dict[str, Any]]:
    oid = _require_id(category_id)
    return _with_categories(db, list(db[PRODUCTS].find({"category": oid})))


def get_product(db: Database, product_id: Any) -> Optional[Dict[str, Any]]:
    doc = db[PRODUCTS].find_one({"_id": _require_id(product_id)})
    if doc is None:
        return None
    return _with_categories(db, [doc])[0]


def create_product(
    db: Database,
    *,
    name: str,
    description: Optional[str],
    price: float,
    stock: int,
    category: Any,
    image: str,
) -> Dict[str, Any]:
    if not name:
        raise BadRequest("Product name cannot be empty!")
    if db[PRODUCTS].find_one({"name": name}) is not None:
        raise Conflict("Product already exist!")
    doc = {
        "name": name,
        "description": description,
        "price": price,
        "stock": stock,
        "category": _optional_category_id(category),
        "image": image,
        "createdAt": utcnow(),
    }
    try:
        doc["_id"] = db[PRODUCTS].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise Conflict("Product already exist!")
    return to_json(doc)


def update_product(
    db: Database,
    product_id: Any,
    *,
    name: str,
    description: Optional[str],
    price: float,
    stock: int,
    category: Any,
    image: str,
) -> None:
    oid = _require_id(product_id)
    if db[PRODUCTS].find_one({"_id": oid}) is None:
        raise NotFound("Product doesn't exist!")
    fields = {
        "name": name,
        "description": description,
        "price": price,
        "stock": stock,
        "category": _optional_category_id(category),
        "image": image,
    }
    try:
        db[PRODUCTS].update_one({"_id": oid}, {"$set": fields})
    except DuplicateKeyError:
        raise Conflict("Product already exist!")


def delete_product(db: Database, product_id: Any) -> None:
    oid = _require_id(product_id)
    res = db[PRODUCTS].delete_one({"_id": oid})
    if res.deleted_count == 0:
        raise NotFound("Product not found!")


def resolve_products(db: Database, product_ids: Iterable[Any]) -> Dict[ObjectId, Dict[str, Any]]:
    """Fetch products by id for read-only joins. Unknown ids are simply absent."""
    ids = [oid for oid in (parse_object_id(p) for p in product_ids) if oid is not None]
    if not ids:
        return {}
    return {p["_id"]: p for p in db[PRODUCTS].find({"_id": {"$in": list(set(ids))}})}
