import mongomock
import pytest
from fastapi.testclient import TestClient

from storefront.api.server import create_app
from storefront.auth.crud import create_user
from storefront.config import Config
from storefront.models import Role

SECRET = "test-secret-0123456789abcdef0123456789"


@pytest.fixture()
def cfg():
    return Config(
        MONGO_URI="mongodb://localhost:27017",
        MONGO_DB_NAME="storefront_test",
        SECRET_KEY=SECRET,
        AUTH_TOKEN_EXPIRE_MINUTES=60,
        AUTH_BOOTSTRAP_ADMIN_NAME=None,
        AUTH_BOOTSTRAP_ADMIN_PASSWORD=None,
        CORS_ALLOW_ORIGINS="*",
    )


@pytest.fixture()
def mongo():
    return mongomock.MongoClient()


@pytest.fixture()
def db(mongo, cfg):
    return mongo[cfg.MONGO_DB_NAME]


@pytest.fixture()
def client(cfg, mongo):
    app = create_app(cfg, client=mongo)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def login_as(client, db):
    """Create a user (if needed), log in, and return (user_id, headers)."""

    def _login_as(name, password="secret", role=Role.USER):
        existing = db["users"].find_one({"name": name})
        if existing is None:
            user = create_user(db, name=name, email=f"{name}@example.com", password=password, role=role)
            user_id = user["_id"]
        else:
            user_id = str(existing["_id"])
        res = client.post("/login", json={"name": name, "password": password})
        assert res.status_code == 200, res.json()
        return user_id, {"Authorization": f"Bearer {res.json()['token']}"}

    return _login_as
