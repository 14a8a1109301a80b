from __future__ import annotations

from typing import Any, Dict, List, Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from storefront.config import Config
from storefront.db import parse_object_id, to_json
from storefront.errors import BadRequest, Conflict, NotFound, Unauthorized
from storefront.models import Role
from storefront.schema import USERS
from storefront.util.time import utcnow

from .security import create_access_token, dummy_verify, hash_password, verify_password


def public_user(doc: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = to_json(dict(doc))
    d.pop("password", None)
    return d


def normalize_name(name: Optional[str]) -> str:
    return (name or "").strip()


def get_user_by_name(db: Database, name: str) -> Optional[Dict[str, Any]]:
    name = normalize_name(name)
    if not name:
        return None
    return db[USERS].find_one({"name": name})


def get_user_by_id(db: Database, user_id: Any) -> Optional[Dict[str, Any]]:
    oid = parse_object_id(user_id)
    if oid is None:
        return None
    return db[USERS].find_one({"_id": oid})


def list_users(db: Database) -> List[Dict[str, Any]]:
    return [public_user(u) for u in db[USERS].find()]


def create_user(
    db: Database,
    *,
    name: str,
    email: str,
    password: str,
    role: Role = Role.USER,
) -> Dict[str, Any]:
    name = normalize_name(name)
    if not name or not password:
        raise BadRequest("Username / Password cannot be empty!")

    if get_user_by_name(db, name) is not None:
        raise Conflict("User already exist!")

    doc = {
        "name": name,
        "email": (email or "").strip(),
        "password": hash_password(password),
        "role": Role(role).value,
        "createdAt": utcnow(),
    }
    try:
        doc["_id"] = db[USERS].insert_one(doc).inserted_id
    except DuplicateKeyError:
        # Lost a race with a concurrent registration of the same name.
        raise Conflict("User already exist!")
    return public_user(doc)


def login(db: Database, cfg: Config, *, name: str, password: str) -> str:
    """Check credentials and issue an access token."""
    name = normalize_name(name)
    if not name or not password:
        raise BadRequest("Username / Password cannot be empty!")

    user = get_user_by_name(db, name)
    if user is None:
        # Same hashing cost as a wrong password, so response time does not reveal names.
        dummy_verify()
        raise NotFound("User not found")
    if not verify_password(password, str(user.get("password") or "")):
        raise Unauthorized("Invalid credentials")

    try:
        role = Role(user.get("role") or Role.USER.value)
    except ValueError:
        role = Role.USER

    return create_access_token(
        secret=cfg.SECRET_KEY,
        user_id=str(user["_id"]),
        name=str(user["name"]),
        role=role,
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )


def bootstrap_admin_if_needed(db: Database, cfg: Config) -> Optional[Dict[str, Any]]:
    """Create the first admin user if the users collection is empty.

    Controlled via environment variables so a fresh deployment has a
    deterministic way to get an elevated account:

    - AUTH_BOOTSTRAP_ADMIN_NAME (default: admin)
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD (no default; unset means no bootstrap)

    This only runs when there are 0 documents in `users`.
    """

    if db[USERS].find_one({}, {"_id": 1}) is not None:
        return None

    name = normalize_name(cfg.AUTH_BOOTSTRAP_ADMIN_NAME)
    password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD or ""

    # If env explicitly clears these, don't create anything.
    if not name or not password:
        return None

    return create_user(db, name=name, email="", password=password, role=Role.ADMIN)
