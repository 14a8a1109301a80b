from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pymongo import MongoClient
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront import __version__
from storefront.config import Config, load_config
from storefront.db import create_client, init_db
from storefront.errors import ServiceError
from storefront.models import Claims, LineItem

from storefront.auth import get_current_user, require_admin
from storefront.auth.crud import (
    bootstrap_admin_if_needed,
    create_user,
    get_user_by_id,
    list_users,
    login,
    public_user,
)
from storefront.auth.deps import get_config, get_db
from storefront.catalog import crud as catalog
from storefront.transactions import crud as transactions


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def _http_error(e: ServiceError, status_code: Optional[int] = None) -> HTTPException:
    """Translate a service failure, optionally pinning the status for this endpoint."""
    return HTTPException(status_code=status_code or e.status_code, detail=e.message)


# -----------------------------
# Request bodies
# -----------------------------


class LoginRequest(BaseModel):
    # Missing, null and blank fields all get the same error message.
    name: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class CartItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    quantity: int


class CreateTransactionRequest(BaseModel):
    # A client-supplied `user` field is ignored; the owner comes from the token.
    model_config = ConfigDict(populate_by_name=True)

    cart: List[CartItem]
    total_amount: float = Field(alias="totalAmount")


class UpdateTransactionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_id: str = Field(alias="TransId")
    status: str


class CategoryRequest(BaseModel):
    name: str = ""
    description: Optional[str] = None


class CategoryUpdateRequest(CategoryRequest):
    id: str


class ProductRequest(BaseModel):
    name: str = ""
    description: Optional[str] = None
    price: float
    stock: int
    category: Optional[str] = None
    image: str


class ProductUpdateRequest(ProductRequest):
    id: str


# -----------------------------
# App factory
# -----------------------------


def create_app(cfg: Optional[Config] = None, *, client: Optional[MongoClient] = None) -> FastAPI:
    """Build the API.

    `cfg` is loaded from the environment when omitted. `client` lets callers
    (tests, scripts) supply their own MongoClient; otherwise one is created
    on startup and closed on shutdown.
    """

    cfg = cfg or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if cfg.SECRET_KEY == "dev_change_me":
            _debug("WARNING: SECRET_KEY is the development default; set SECRET_KEY in production")

        owns_client = client is None
        mongo = client if client is not None else create_client(cfg.MONGO_URI)
        db = mongo[cfg.MONGO_DB_NAME]
        app.state.db = db

        init_db(db)

        # Bootstrap first admin if needed (only when users collection is empty)
        boot = bootstrap_admin_if_needed(db, cfg)
        if boot:
            _debug(f"Bootstrapped initial admin user: name={boot.get('name')} role={boot.get('role')}")

        _debug(f"Ready (db={cfg.MONGO_DB_NAME})")
        try:
            yield
        finally:
            app.state.db = None
            if owns_client:
                mongo.close()

    app = FastAPI(title="Storefront API", version=__version__, lifespan=lifespan)
    app.state.cfg = cfg
    app.state.db = None

    origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _install_error_handlers(app)
    _register_routes(app)
    return app


def _install_error_handlers(app: FastAPI) -> None:
    # Every error body is {"error": message}.

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        parts = []
        for err in exc.errors():
            loc = ".".join(str(x) for x in err.get("loc", ()) if x != "body")
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return JSONResponse(status_code=400, content={"error": "; ".join(parts) or "Invalid request"})

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        _debug(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc)})


def _register_routes(app: FastAPI) -> None:

    # -----------------------------
    # Health
    # -----------------------------

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    # -----------------------------
    # Auth
    # -----------------------------

    @app.post("/login")
    def auth_login(
        payload: LoginRequest,
        cfg: Config = Depends(get_config),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        try:
            token = login(db, cfg, name=payload.name or "", password=payload.password or "")
        except ServiceError as e:
            # Every credential failure is a 400 on this endpoint.
            raise _http_error(e, 400)
        return {"token": token}

    @app.post("/register")
    def auth_register(payload: RegisterRequest, db: Database = Depends(get_db)) -> Dict[str, Any]:
        try:
            create_user(
                db,
                name=payload.name or "",
                email=payload.email or "",
                password=payload.password or "",
            )
        except ServiceError as e:
            # Duplicate names have always been reported as 401 here.
            raise _http_error(e, 401 if e.status_code == 409 else None)
        return {"message": "User has been added!"}

    @app.get("/user")
    def current_user(
        user: Claims = Depends(get_current_user),
        db: Database = Depends(get_db),
    ) -> Optional[Dict[str, Any]]:
        doc = get_user_by_id(db, user.user_id)
        return public_user(doc) if doc is not None else None

    @app.get("/users")
    def admin_list_users(
        _admin: Claims = Depends(require_admin),
        db: Database = Depends(get_db),
    ) -> List[Dict[str, Any]]:
        return list_users(db)

    # -----------------------------
    # Transactions
    # -----------------------------

    @app.get("/transactions")
    def admin_list_transactions(
        _admin: Claims = Depends(require_admin),
        db: Database = Depends(get_db),
    ) -> List[Dict[str, Any]]:
        return transactions.list_all(db)

    @app.post("/transactions")
    def create_transaction(
        payload: CreateTransactionRequest,
        user: Claims = Depends(get_current_user),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        cart = [LineItem(product_id=i.product_id, quantity=i.quantity) for i in payload.cart]
        try:
            t = transactions.create_transaction(
                db,
                user_id=user.user_id,
                cart=cart,
                total_amount=payload.total_amount,
            )
        except ServiceError as e:
            raise _http_error(e)
        return {"message": "Transaction has been added!", "id": t["_id"]}

    @app.put("/transactions")
    def update_transaction(
        payload: UpdateTransactionRequest,
        user: Claims = Depends(get_current_user),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        try:
            transactions.update_status(
                db,
                caller_role=user.role,
                transaction_id=payload.transaction_id,
                status=payload.status,
            )
        except ServiceError as e:
            # Role and lookup failures share the 400 of the original contract.
            raise _http_error(e, 400)
        return {"message": "Transaction has been updated!"}

    @app.get("/transactions/{user_id}")
    def list_user_transactions(
        user_id: str,
        user: Claims = Depends(get_current_user),
        db: Database = Depends(get_db),
    ) -> List[Dict[str, Any]]:
        try:
            return transactions.list_for_user(db, caller_id=user.user_id, requested_user_id=user_id)
        except ServiceError as e:
            raise _http_error(e, 400)

    @app.get("/transactions/{user_id}/{transaction_id}")
    def get_user_transaction(
        user_id: str,
        transaction_id: str,
        user: Claims = Depends(get_current_user),
        db: Database = Depends(get_db),
    ) -> Optional[Dict[str, Any]]:
        try:
            return transactions.get_one(
                db,
                caller_id=user.user_id,
                requested_user_id=user_id,
                transaction_id=transaction_id,
            )
        except ServiceError as e:
            raise _http_error(e, 400)

    # -----------------------------
    # Categories
    # -----------------------------

    @app.get("/categories")
    def list_categories(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
        return catalog.list_categories(db)

    @app.get("/categories/{category_id}")
    def get_category(category_id: str, db: Database = Depends(get_db)) -> Optional[Dict[str, Any]]:
        try:
            return catalog.get_category(db, category_id)
        except ServiceError as e:
            raise _http_error(e)

    @app.post("/categories")
    def create_category(payload: CategoryRequest, db: Database = Depends(get_db)) -> Dict[str, Any]:
        try:
            catalog.create_category(db, name=payload.name, description=payload.description)
        except ServiceError as e:
            raise _http_error(e, 401 if e.status_code == 409 else None)
        return {"message": "Category has been added!"}

    @app.put("/categories")
    def update_category(payload: CategoryUpdateRequest, db: Database = Depends(get_db)) -> Dict[str, Any]:
        try:
            catalog.update_category(db, payload.id, name=payload.name, description=payload.description)
        except ServiceError as e:
            raise _http_error(e)
        return {"message": "Category has been updated!"}

    @app.delete("/categories/{category_id}")
    def delete_category(category_id: str, db: Database = Depends(get_db)) -> Dict[str, Any]:
        try:
            catalog.delete_category(db, category_id)
        except ServiceError as e:
            raise _http_error(e)
        return {"message": "Category has been deleted!"}

    # -----------------------------
    # Products
    # -----------------------------

    @app.get("/products")
    def list_products(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
        return catalog.list_products(db)

    @app.get("/products/category/{category_id}")
    def list_products_by_category(category_id: str, db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
        try:
            return catalog.list_products_by_category(db, category_id)
        except ServiceError as e:
            raise _http_error(e)

    @app.get("/products/{product_id}")
    def get_product(product_id: str, db: Database = Depends(get_db)) -> Optional[Dict[str, Any]]:
        try:
            return catalog.get_product(db, product_id)
        except ServiceError as e:
            raise _http_error(e)

    @app.post("/products")
    def create_product(payload: ProductRequest, db: Database = Depends(get_db)) -> Dict[str, Any]:
        try:
            catalog.create_product(
                db,
                name=payload.name,
                description=payload.description,
                price=payload.price,
                stock=payload.stock,
                category=payload.category,
                image=payload.image,
            )
        except ServiceError as e:
            raise _http_error(e, 401 if e.status_code == 409 else None)
        return {"message": "Product has been added!"}

    @app.put("/products")
    def update_product(payload: ProductUpdateRequest, db: Database = Depends(get_db)) -> Dict[str, Any]:
        try:
            catalog.update_product(
                db,
                payload.id,
                name=payload.name,
                description=payload.description,
                price=payload.price,
                stock=payload.stock,
                category=payload.category,
                image=payload.image,
            )
        except ServiceError as e:
            # A missing product has always been a 401 on this endpoint.
            raise _http_error(e, 401 if e.status_code == 404 else None)
        return {"message": "Product has been updated!"}

    @app.delete("/products/{product_id}")
    def delete_product(product_id: str, db: Database = Depends(get_db)) -> Dict[str, Any]:
        try:
            catalog.delete_product(db, product_id)
        except ServiceError as e:
            raise _http_error(e)
        return {"message": "Product has been deleted!"}


app = create_app()
