import os

# Point the app at a throwaway database before settings are loaded
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings
from database import Base, get_db
from main import app
from models.users import User
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token

API = settings.API_PREFIX
PASSWORD = "secret123"

# bcrypt is slow on purpose; hash the shared test password once
PASSWORD_HASH = get_password_hash(PASSWORD)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.email, "user_id": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db):
    def _make(email, role="user", status="active", name="Test User"):
        user = User(name=name, email=email, password_hash=PASSWORD_HASH, role=role, status=status)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@inventory.com", role="admin", name="Admin")


@pytest.fixture
def staff(make_user):
    return make_user("staff@inventory.com", role="user", name="Staff Member")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def user_headers(staff):
    return auth_headers(staff)


@pytest.fixture
def make_category(client, admin_headers):
    counter = {"n": 0}

    def _make(name=None, description="Test category"):
        counter["n"] += 1
        payload = {"name": name or f"Category {counter['n']}", "description": description}
        resp = client.post(f"{API}/categories", json=payload, headers=admin_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]
    return _make


@pytest.fixture
def make_supplier(client, admin_headers):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        payload = {
            "name": f"Supplier {counter['n']}",
            "email": f"supplier{counter['n']}@supplies.com",
            "phone": "+1-555-0100",
            "address": "100 Warehouse Road, Springfield",
            "contact_person": "Jordan Lee",
        }
        payload.update(overrides)
        resp = client.post(f"{API}/suppliers", json=payload, headers=admin_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]
    return _make


@pytest.fixture
def product_payload(make_category, make_supplier):
    category = make_category()
    supplier = make_supplier()

    def _payload(**overrides):
        payload = {
            "name": "Widget",
            "description": "A standard widget",
            "sku": "WID-001",
            "category_id": category["id"],
            "supplier_id": supplier["id"],
            "price": "9.99",
            "quantity": 0,
            "low_stock_threshold": 10,
        }
        payload.update(overrides)
        return payload
    return _payload


@pytest.fixture
def make_product(client, admin_headers, product_payload):
    def _make(**overrides):
        resp = client.post(f"{API}/products", json=product_payload(**overrides), headers=admin_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]
    return _make
