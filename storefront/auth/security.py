from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from storefront.errors import InvalidToken
from storefront.models import Claims, Role


# Salted and deliberately slow; the round count is fixed by the scheme defaults.
_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except Exception:
        # Unknown or corrupt hash format counts as a mismatch.
        return False


def dummy_verify() -> None:
    """Spend about as long as a real verify; used when there is no stored hash."""
    _pwd.dummy_verify()


def create_access_token(
    *,
    secret: str,
    user_id: str,
    name: str,
    role: Role,
    expires_minutes: int = 60,
) -> str:
    if not secret:
        raise ValueError("jwt_secret_blank")

    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        # Same value as `sub`; older clients read the user id from here.
        "id": str(user_id),
        "name": name,
        "role": Role(role).value,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    if not token:
        raise ValueError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    return jwt.decode(
        token,
        secret,
        algorithms=[_JWT_ALG],
        options={"require": ["sub", "exp"]},
    )


def verify_access_token(*, token: str, secret: str) -> Claims:
    """Decode and validate a token into Claims.

    Every failure (bad structure, bad signature, expired, unknown role) raises
    the same InvalidToken so callers can't tell the cases apart. The reason is
    only logged.
    """
    try:
        payload = decode_access_token(token=token, secret=secret)
        return Claims(
            user_id=str(payload["sub"]),
            name=str(payload.get("name") or ""),
            role=Role(payload.get("role")),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        )
    except jwt.ExpiredSignatureError:
        _debug("rejected token: expired")
    except jwt.InvalidTokenError as e:
        _debug(f"rejected token: {type(e).__name__}")
    except (KeyError, TypeError, ValueError) as e:
        _debug(f"rejected token: bad claims ({type(e).__name__})")
    raise InvalidToken("Invalid Token")
