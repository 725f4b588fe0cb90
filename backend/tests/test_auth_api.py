"""Sessions, route access, user administration and dashboard"""

import asyncio

from sqlalchemy import update

from app.config.database import AsyncSessionLocal
from app.models.feedback import Feedback
from conftest import PASSWORD, change_status, create_ticket, login, register


def kind(res):
    return res.json()["data"]["kind"]


def test_register_login_me(client):
    user_id = register(client, "carol@example.rw", first_name="Carol", phone_number="+250788123456")

    headers = login(client, "carol@example.rw")
    data = client.get("/auth/me", headers=headers).json()["data"]
    assert data["id"] == user_id
    assert data["role"] == "user"
    assert data["phoneNumber"] == "+250****3456"


def test_duplicate_email_is_rejected(client):
    register(client, "dup@example.rw")
    res = client.post("/auth/register", json={"email": "DUP@example.rw", "password": PASSWORD})
    assert res.status_code == 400
    assert kind(res) == "ValidationFailed"


def test_bad_credentials(client):
    register(client, "eve@example.rw")
    res = client.post("/auth/token", data={"username": "eve@example.rw", "password": "wrong-password"})
    assert res.status_code == 401


def test_invalid_and_revoked_tokens(client, citizen):
    assert client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401

    assert client.post("/auth/logout", headers=citizen.headers).status_code == 200
    res = client.get("/auth/me", headers=citizen.headers)
    assert res.status_code == 401
    assert kind(res) == "Unauthorized"


def test_role_is_read_from_the_database(client, citizen, admin):
    ticket = create_ticket(client, citizen.headers, category="Roads", subcategory="Maintenance")
    assert change_status(client, ticket["id"], citizen.headers, "in-progress", "self").status_code == 403

    res = client.patch(
        f"/api/users/{citizen.id}/role",
        json={"role": "staff", "categories": ["roads"]},
        headers=admin.headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["categories"] == ["Roads"]

    # Same token, new role
    assert change_status(client, ticket["id"], citizen.headers, "in-progress", "now staff").status_code == 200


def test_user_admin_is_admin_only(client, citizen, water_staff, admin):
    assert client.get("/api/users", headers=water_staff.headers).status_code == 403
    assert client.get("/api/users", headers=citizen.headers).status_code == 403

    data = client.get("/api/users", params={"role": "staff"}, headers=admin.headers).json()["data"]
    assert [u["email"] for u in data["items"]] == ["water@example.rw"]

    res = client.patch(f"/api/users/{citizen.id}/role", json={"role": "staff"}, headers=admin.headers)
    assert res.status_code == 400

    res = client.patch("/api/users/9999/role", json={"role": "admin"}, headers=admin.headers)
    assert res.status_code == 404


def test_route_access(client, citizen, water_staff):
    res = client.get("/auth/route-access", params={"path": "/admin/tickets"}, headers=citizen.headers)
    assert res.json()["data"] == {"allowed": False, "redirect": "/auth"}

    res = client.get("/auth/route-access", params={"path": "/admin/tickets"}, headers=water_staff.headers)
    assert res.json()["data"] == {"allowed": True, "redirect": None}

    res = client.get("/auth/route-access", params={"path": "/"})
    assert res.json()["data"]["redirect"] == "/auth"


def test_dashboard_stats(client, citizen, water_staff, admin):
    create_ticket(client, citizen.headers, isAnonymous=True)
    resolved = create_ticket(client, citizen.headers)
    create_ticket(client, citizen.headers, category="Healthcare", subcategory="Staff", type="Positive")

    change_status(client, resolved["id"], admin.headers, "in-progress", "a")
    change_status(client, resolved["id"], admin.headers, "resolved", "b")
    client.post(f"/api/feedback/{resolved['id']}/rating", json={"value": 4}, headers=citizen.headers)

    stats = client.get("/api/dashboard/stats", headers=admin.headers).json()["data"]
    assert stats["total"] == 3
    assert stats["byStatus"] == {"open": 2, "in-progress": 0, "resolved": 1, "closed": 0}
    assert stats["byType"]["Positive"] == 1
    assert stats["byCategory"] == {"Healthcare": 1, "Water": 2}
    assert stats["anonymous"] == 1
    assert stats["rated"] == 1
    assert stats["averageRating"] == 4.0

    stats = client.get("/api/dashboard/stats", headers=water_staff.headers).json()["data"]
    assert stats["total"] == 2

    assert client.get("/api/dashboard/stats", headers=citizen.headers).status_code == 403


async def _store_category(ticket_id: int, category: str):
    async with AsyncSessionLocal() as db:
        await db.execute(update(Feedback).where(Feedback.id == ticket_id).values(category=category))
        await db.commit()


def test_dashboard_merges_category_spellings(client, citizen, water_staff, admin):
    lower = create_ticket(client, citizen.headers, category="water")
    assert lower["category"] == "Water"
    create_ticket(client, citizen.headers, category=" WATER ")
    legacy = create_ticket(client, citizen.headers)
    asyncio.run(_store_category(legacy["id"], "wAtEr"))
    create_ticket(client, citizen.headers, category="Street Lights")

    stats = client.get("/api/dashboard/stats", headers=admin.headers).json()["data"]
    assert stats["byCategory"] == {"Street Lights": 1, "Water": 3}

    stats = client.get("/api/dashboard/stats", headers=water_staff.headers).json()["data"]
    assert stats["byCategory"] == {"Water": 3}
