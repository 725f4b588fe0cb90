"""Capability checks, redaction and page access"""

from types import SimpleNamespace

import pytest

from app.core.errors import CategoryAccessDenied, Unauthorized
from app.models.user import UserRole
from app.services.access_policy import (
    Actor, Capability, authorize, can_see_identity, redact_ticket, route_redirect,
)

ADMIN = Actor(id=1, role=UserRole.ADMIN, name="Admin")
WATER_STAFF = Actor(id=2, role=UserRole.STAFF, categories=("water",), name="Water Officer")
HEALTH_STAFF = Actor(id=3, role=UserRole.STAFF, categories=("Healthcare",), name="Health Officer")
OWNER = Actor(id=4, role=UserRole.USER, name="Alice")
CITIZEN = Actor(id=5, role=UserRole.USER, name="Bob")


def ticket(is_public=True, is_anonymous=False, category="Water", author_id=OWNER.id):
    return SimpleNamespace(category=category, is_public=is_public, is_anonymous=is_anonymous, author_id=author_id)


def test_admin_holds_every_capability():
    for capability in Capability:
        authorize(ADMIN, capability, ticket(is_public=False, category="Roads"))


def test_staff_category_match_is_case_insensitive():
    authorize(WATER_STAFF, Capability.CHANGE_STATUS, ticket())
    authorize(WATER_STAFF, Capability.RESPOND, ticket(is_public=False))


def test_staff_outside_category():
    with pytest.raises(CategoryAccessDenied) as exc:
        authorize(HEALTH_STAFF, Capability.RESPOND, ticket())
    assert exc.value.http_status == 403


def test_staff_cannot_manage_users():
    with pytest.raises(Unauthorized):
        authorize(WATER_STAFF, Capability.MANAGE_USERS)


def test_citizen_capabilities():
    authorize(CITIZEN, Capability.VIEW, ticket())
    authorize(CITIZEN, Capability.COMMENT, ticket())
    with pytest.raises(Unauthorized):
        authorize(CITIZEN, Capability.RESPOND, ticket())
    with pytest.raises(Unauthorized):
        authorize(CITIZEN, Capability.CHANGE_STATUS, ticket())


def test_private_ticket_visible_to_owner_only_among_citizens():
    private = ticket(is_public=False)
    authorize(OWNER, Capability.VIEW, private)
    with pytest.raises(Unauthorized):
        authorize(CITIZEN, Capability.VIEW, private)


def test_guest_reads_public_only():
    authorize(None, Capability.VIEW, ticket())
    with pytest.raises(Unauthorized) as exc:
        authorize(None, Capability.VIEW, ticket(is_public=False))
    assert exc.value.http_status == 401
    with pytest.raises(Unauthorized):
        authorize(None, Capability.COMMENT, ticket())


def test_identity_visibility_on_anonymous_ticket():
    anonymous = ticket(is_anonymous=True)
    assert can_see_identity(anonymous, OWNER)
    assert can_see_identity(anonymous, WATER_STAFF)
    assert can_see_identity(anonymous, ADMIN)
    assert not can_see_identity(anonymous, CITIZEN)
    assert not can_see_identity(anonymous, None)
    assert can_see_identity(ticket(), None)


def test_redaction_strips_identity_and_author_comments():
    payload = {
        "author": {"id": OWNER.id, "name": "Alice"},
        "citizenName": "Alice",
        "email": "alice@example.rw",
        "phone": "+250788000000",
        "comments": [
            {"authorId": OWNER.id, "authorName": "Alice", "message": "any news?"},
            {"authorId": WATER_STAFF.id, "authorName": "Water Officer", "message": "on it"},
        ],
    }
    redacted = redact_ticket(payload, ticket(is_anonymous=True), CITIZEN)

    assert redacted["author"] is None
    assert redacted["citizenName"] is None
    assert redacted["email"] is None
    assert redacted["phone"] is None
    assert redacted["comments"][0]["authorId"] is None
    assert redacted["comments"][0]["authorName"] == "Anonymous"
    assert redacted["comments"][1]["authorName"] == "Water Officer"


def test_redaction_drops_author_from_like_lists():
    response = {"responseId": 1, "likes": 2, "likedBy": [OWNER.id, CITIZEN.id]}
    payload = {
        "author": {"id": OWNER.id, "name": "Alice"},
        "likes": 2,
        "likedBy": [OWNER.id, CITIZEN.id],
        "followers": [CITIZEN.id],
        "response": dict(response),
        "responses": [dict(response)],
        "comments": [
            {"authorId": WATER_STAFF.id, "authorName": "Water Officer", "likes": 1, "likedBy": [OWNER.id]},
        ],
    }

    redacted = redact_ticket(payload, ticket(is_anonymous=True), CITIZEN)
    assert redacted["likedBy"] == [CITIZEN.id]
    assert redacted["likes"] == 2
    assert redacted["followers"] == [CITIZEN.id]
    assert redacted["response"]["likedBy"] == [CITIZEN.id]
    assert redacted["responses"][0]["likedBy"] == [CITIZEN.id]
    assert redacted["comments"][0]["likedBy"] == []
    assert redacted["comments"][0]["likes"] == 1

    payload = {"likedBy": [OWNER.id]}
    assert redact_ticket(payload, ticket(is_anonymous=True), WATER_STAFF)["likedBy"] == [OWNER.id]


@pytest.mark.parametrize("path,actor,expected", [
    ("/", None, "/auth"),
    ("/", ADMIN, "/admin"),
    ("/", WATER_STAFF, "/admin"),
    ("/", CITIZEN, "/user/dashboard"),
    ("/admin/tickets", None, "/auth"),
    ("/admin/tickets", CITIZEN, "/auth"),
    ("/admin/tickets", WATER_STAFF, None),
    ("/admin", ADMIN, None),
    ("/user/dashboard", ADMIN, "/auth"),
    ("/user/dashboard", CITIZEN, None),
    ("/auth/login", None, None),
    ("/api/feedback", None, None),
    ("/_next/static/chunk.js", None, None),
    ("/logo.png", None, None),
    ("/about", None, None),
])
def test_route_redirect(path, actor, expected):
    assert route_redirect(path, actor) == expected
