from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

from storefront.config import Config
from storefront.errors import InvalidToken, ServiceError, Unauthenticated
from storefront.models import Claims

from .security import verify_access_token


_bearer = HTTPBearer(auto_error=False)


def _reject(e: ServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message, headers={"WWW-Authenticate": "Bearer"})


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=500, detail="database_not_ready")
    return db


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_config),
) -> Claims:
    """Authenticate a request from its `Authorization: Bearer <jwt>` header.

    - no bearer token: 401 "Access Denied"
    - token present but not valid (any reason): 400 "Invalid Token"

    Only the token is checked; the user document is not loaded.
    """

    token = credentials.credentials if credentials is not None else None
    if not token:
        raise _reject(Unauthenticated("Access Denied"))

    try:
        claims = verify_access_token(token=token, secret=cfg.SECRET_KEY)
    except InvalidToken as e:
        raise _reject(e)

    request.state.user = claims
    return claims


def require_admin(user: Claims = Depends(get_current_user)) -> Claims:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="admin_required")
    return user
