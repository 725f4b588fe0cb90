"""
Access policy
---------------------------------
Features:
- `Actor`: the server-verified identity of the caller (id, role, categories)
- `authorize()`: capability check per role, with category scoping for staff
- `can_see_identity()` / `redact_ticket()`: read-time redaction of anonymous tickets
- `route_redirect()`: page access decision mirroring the web client's route guard

Rules:
- admin: every capability, any category
- staff: view / comment / respond / change status only inside assigned categories
- user: own tickets always, others only when public; never respond or change status
- no session: public tickets are readable, nothing else
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple
import enum

from ..core.errors import Unauthorized, CategoryAccessDenied
from ..models.user import UserRole
from ..utils.ticket_utils import same_category


class Capability(str, enum.Enum):
    VIEW = "view"
    COMMENT = "comment"          # also covers follow and like
    RESPOND = "respond"
    CHANGE_STATUS = "changeStatus"  # also covers assignment
    MANAGE_USERS = "manageUsers"


STAFF_CAPABILITIES = {Capability.VIEW, Capability.COMMENT, Capability.RESPOND, Capability.CHANGE_STATUS}
USER_CAPABILITIES = {Capability.VIEW, Capability.COMMENT}

# Fields withheld from anonymous tickets
IDENTITY_FIELDS = ("author", "citizenName", "email", "phone")


@dataclass(frozen=True)
class Actor:
    """Caller identity, always built from the database row"""
    id: int
    role: UserRole
    categories: Tuple[str, ...] = field(default_factory=tuple)
    name: str = ""

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(
            id=user.id,
            role=UserRole(user.role),
            categories=tuple(user.categories or ()),
            name=user.full_name or user.email,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.STAFF

    @property
    def is_staff_or_admin(self) -> bool:
        return self.role in (UserRole.STAFF, UserRole.ADMIN)

    def covers_category(self, category: str) -> bool:
        if self.is_admin:
            return True
        return any(same_category(c, category) for c in self.categories)


def require_actor(actor: Optional[Actor]) -> Actor:
    if actor is None:
        raise Unauthorized("You must be logged in", authenticated=False)
    return actor


def is_owner(ticket, actor: Optional[Actor]) -> bool:
    return actor is not None and ticket.author_id is not None and ticket.author_id == actor.id


def authorize(actor: Optional[Actor], capability: Capability, ticket=None) -> None:
    """
    Raise unless `actor` holds `capability` on `ticket`

    Args:
        actor: caller, None when there is no session
        capability: what the caller wants to do
        ticket: object with `category`, `is_public`, `author_id`
            (None for ticket-independent capabilities)

    Raises:
        Unauthorized: capability not held (401 without a session)
        CategoryAccessDenied: staff acting outside their categories
    """
    if actor is None:
        if capability == Capability.VIEW and ticket is not None and ticket.is_public:
            return
        raise Unauthorized("You must be logged in", authenticated=False)

    if actor.is_admin:
        return

    if actor.is_staff:
        if capability not in STAFF_CAPABILITIES:
            raise Unauthorized(f"Staff accounts cannot {capability.value}")
        if ticket is not None and not actor.covers_category(ticket.category):
            raise CategoryAccessDenied(
                f"Access denied to category {ticket.category!r}",
                context={"actor_id": actor.id, "category": ticket.category},
            )
        return

    if capability not in USER_CAPABILITIES:
        raise Unauthorized(f"Citizens cannot {capability.value}")
    if ticket is not None and not ticket.is_public and not is_owner(ticket, actor):
        raise Unauthorized("This feedback is private")


def can_see_identity(ticket, actor: Optional[Actor]) -> bool:
    """Anonymous tickets reveal the citizen only to the owner and to staff/admin"""
    if not ticket.is_anonymous:
        return True
    if actor is None:
        return False
    return actor.is_staff_or_admin or is_owner(ticket, actor)


def redact_ticket(payload: dict, ticket, actor: Optional[Actor]) -> dict:
    """
    Null out identity fields of an anonymous ticket for other viewers

    The stored row is untouched; `payload` is the camelCase dict about to be returned.
    Comments written by the anonymous author are stripped of author identity too,
    and the author's id is dropped from every like and follower list; counts stay.
    """
    if can_see_identity(ticket, actor):
        return payload

    for key in IDENTITY_FIELDS:
        payload[key] = None
    author_id = ticket.author_id
    if author_id is None:
        return payload

    for comment in payload.get("comments") or []:
        if comment.get("authorId") == author_id:
            comment["authorId"] = None
            comment["authorName"] = "Anonymous"
    subjects = [payload, payload.get("response"), *(payload.get("responses") or []), *(payload.get("comments") or [])]
    for subject in subjects:
        if subject and subject.get("likedBy"):
            subject["likedBy"] = [uid for uid in subject["likedBy"] if uid != author_id]
    if payload.get("followers"):
        payload["followers"] = [uid for uid in payload["followers"] if uid != author_id]
    return payload


# Page access ----------------------------------------------------------------

PROTECTED_ROUTES = {
    "/admin": (UserRole.ADMIN, UserRole.STAFF),
    "/user": (UserRole.USER,),
}
SIGN_IN_PATH = "/auth"
HOME_BY_ROLE = {
    UserRole.ADMIN: "/admin",
    UserRole.STAFF: "/admin",
    UserRole.USER: "/user/dashboard",
}


def route_redirect(pathname: str, actor: Optional[Actor]) -> Optional[str]:
    """
    Decide page access for a path

    Returns:
        None when the page may be shown, otherwise the path to redirect to
    """
    if (
        pathname.startswith(SIGN_IN_PATH)
        or pathname.startswith("/_next")
        or pathname.startswith("/api")
        or "." in pathname
    ):
        return None

    if pathname == "/":
        if actor is None:
            return SIGN_IN_PATH
        return HOME_BY_ROLE[actor.role]

    for prefix, roles in PROTECTED_ROUTES.items():
        if pathname == prefix or pathname.startswith(prefix + "/"):
            if actor is None or actor.role not in roles:
                return SIGN_IN_PATH
            return None

    return None
