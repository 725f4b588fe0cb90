"""
Pytest configuration for the citizen engagement backend.
Points the app at a throwaway SQLite database and upload directory.
"""

import asyncio
import os
import tempfile
from types import SimpleNamespace

# Must be set before any app import reads the settings
_test_dir = tempfile.mkdtemp(prefix="citizen_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_dir}/test.db"
os.environ["UPLOAD_DIR"] = os.path.join(_test_dir, "uploads")
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from app.config.database import AsyncSessionLocal, engine
from app.main import app
from app.models.base import Base
from app.models.user import UserRole
from app.services.user_service import user_service

PASSWORD = "secret123"


async def _reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _set_role(user_id: int, role: UserRole, categories):
    async with AsyncSessionLocal() as db:
        await user_service.set_role(db, user_id, role, categories)


@pytest.fixture
def empty_db():
    """Drop and recreate every table"""
    asyncio.run(_reset_schema())


@pytest.fixture
def client(empty_db):
    """A TestClient over an empty database"""
    with TestClient(app) as c:
        yield c


def register(client, email: str, first_name: str = "Test", last_name: str = "User", **extra) -> int:
    res = client.post("/auth/register", json={
        "email": email,
        "password": PASSWORD,
        "first_name": first_name,
        "last_name": last_name,
        **extra,
    })
    assert res.status_code == 200, res.text
    return res.json()["data"]["id"]


def login(client, email: str) -> dict:
    res = client.post("/auth/token", data={"username": email, "password": PASSWORD})
    assert res.status_code == 200, res.text
    return {"Authorization": f"Bearer {res.json()['data']['access_token']}"}


def make_account(client, email: str, role: UserRole = UserRole.USER, categories=None, **names):
    """Register, optionally promote, and log in an account"""
    user_id = register(client, email, **names)
    if role != UserRole.USER:
        asyncio.run(_set_role(user_id, role, categories or []))
    return SimpleNamespace(id=user_id, email=email, headers=login(client, email))


@pytest.fixture
def citizen(client):
    return make_account(client, "alice@example.rw", first_name="Alice", last_name="Uwase")


@pytest.fixture
def other_citizen(client):
    return make_account(client, "bob@example.rw", first_name="Bob", last_name="Mugisha")


@pytest.fixture
def water_staff(client):
    return make_account(client, "water@example.rw", UserRole.STAFF, ["Water"], first_name="Wasac", last_name="Officer")


@pytest.fixture
def health_staff(client):
    return make_account(client, "health@example.rw", UserRole.STAFF, ["Healthcare"], first_name="Health", last_name="Officer")


@pytest.fixture
def admin(client):
    return make_account(client, "admin@example.rw", UserRole.ADMIN, first_name="System", last_name="Admin")


def ticket_payload(**overrides) -> dict:
    payload = {
        "title": "No water since Monday",
        "description": "The whole street has had no water supply for three days.",
        "type": "Complaint",
        "category": "Water",
        "subcategory": "Supply Interruption",
        "isAnonymous": False,
        "isPublic": True,
        "location": {
            "country": "Rwanda",
            "province": "Kigali City",
            "district": "Gasabo",
            "sector": "Remera",
        },
    }
    payload.update(overrides)
    return payload


def create_ticket(client, headers=None, **overrides) -> dict:
    res = client.post("/api/feedback", json=ticket_payload(**overrides), headers=headers or {})
    assert res.status_code == 200, res.text
    return res.json()["data"]


def change_status(client, ticket_id: int, headers: dict, status: str, note: str = "Update"):
    return client.post(
        f"/api/feedback/{ticket_id}/status",
        json={"status": status, "note": note},
        headers=headers,
    )
