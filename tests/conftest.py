from datetime import datetime, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from config import Settings, get_settings
from main import app
from tenancy import resolver

TEST_SETTINGS = Settings(
    database_name="innexora",
    jwt_secret="test-secret",
    mail_user="sales-bot@innexora.test",
    contact_email="sales@innexora.test",
)


@pytest.fixture
def mongo():
    return mongomock.MongoClient()


@pytest.fixture
def tenant_db(mongo):
    return mongo["hotel_grand"]


@pytest.fixture
def hotel(mongo):
    mongo["innexora"]["hotel"].insert_one(
        {"name": "Grand Plaza", "subdomain": "grand", "status": "Active", "currency": "INR"}
    )
    return mongo["innexora"]["hotel"].find_one({"subdomain": "grand"})


@pytest.fixture
def guest(tenant_db):
    result = tenant_db["guest"].insert_one(
        {
            "name": "Test Guest",
            "email": "test@example.com",
            "phone": "1234567890",
            "room_number": "101",
            "check_in_date": datetime.now(timezone.utc),
            "checked_out": False,
        }
    )
    return tenant_db["guest"].find_one({"_id": result.inserted_id})


@pytest.fixture
def api(mongo):
    resolver.clear_all()
    app.dependency_overrides[database.get_client] = lambda: mongo
    app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    resolver.clear_all()


@pytest.fixture
def tenant_headers(hotel):
    return {"X-Tenant-Subdomain": "grand"}


@pytest.fixture
def staff_headers(api, tenant_headers):
    res = api.post(
        "/auth/register",
        json={"name": "Maya Manager", "email": "maya@grand.test", "password": "secret123"},
        headers=tenant_headers,
    )
    assert res.status_code == 201
    return {**tenant_headers, "Authorization": f"Bearer {res.json()['token']}"}
