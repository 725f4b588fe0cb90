"""Status state machine, history and rating guards"""

import pytest

from app.core.errors import (
    CategoryAccessDenied, InvalidState, InvalidTransition, TicketClosed, Unauthorized, ValidationFailed,
)
from app.models.feedback import Feedback, FeedbackType, TicketStatus
from app.models.user import UserRole
from app.services import lifecycle
from app.services.access_policy import Actor

STAFF = Actor(id=10, role=UserRole.STAFF, categories=("Water",), name="Water Officer")
OTHER_STAFF = Actor(id=11, role=UserRole.STAFF, categories=("Healthcare",), name="Health Officer")
ADMIN = Actor(id=1, role=UserRole.ADMIN, name="Admin")
AUTHOR = Actor(id=20, role=UserRole.USER, name="Alice")
STRANGER = Actor(id=21, role=UserRole.USER, name="Bob")


def make_ticket(status=TicketStatus.OPEN, category="Water") -> Feedback:
    ticket = Feedback(
        ticket_number="CT-123456",
        title="Leak",
        description="Pipe leaking",
        type=FeedbackType.COMPLAINT,
        category=category,
        is_public=True,
        is_anonymous=False,
        author_id=AUTHOR.id,
    )
    ticket.status = status
    return ticket


@pytest.mark.parametrize("current,target", [
    (TicketStatus.OPEN, TicketStatus.IN_PROGRESS),
    (TicketStatus.OPEN, TicketStatus.CLOSED),
    (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED),
    (TicketStatus.IN_PROGRESS, TicketStatus.CLOSED),
    (TicketStatus.RESOLVED, TicketStatus.CLOSED),
])
def test_allowed_edges(current, target):
    ticket = make_ticket(current)
    entry = lifecycle.transition(ticket, STAFF, target, "moving on")

    assert ticket.status == target
    assert ticket.status_history == [entry]
    assert entry.status == target
    assert entry.changed_by == "Water Officer"
    assert entry.note == "moving on"


@pytest.mark.parametrize("current,target", [
    (TicketStatus.OPEN, TicketStatus.RESOLVED),
    (TicketStatus.OPEN, TicketStatus.OPEN),
    (TicketStatus.RESOLVED, TicketStatus.IN_PROGRESS),
    (TicketStatus.CLOSED, TicketStatus.OPEN),
    (TicketStatus.CLOSED, TicketStatus.CLOSED),
])
def test_rejected_edges_leave_ticket_untouched(current, target):
    ticket = make_ticket(current)
    with pytest.raises(InvalidTransition):
        lifecycle.transition(ticket, ADMIN, target, "nope")
    assert ticket.status == current
    assert ticket.status_history == []


def test_status_aliases_are_accepted():
    ticket = make_ticket()
    lifecycle.transition(ticket, STAFF, "InProgress", "picked up")
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert lifecycle.parse_status("In Progress") == TicketStatus.IN_PROGRESS


def test_unknown_status_is_an_invalid_transition():
    with pytest.raises(InvalidTransition):
        lifecycle.transition(make_ticket(), STAFF, "escalated", "note")


@pytest.mark.parametrize("note", [None, "", "   "])
def test_note_is_required(note):
    ticket = make_ticket()
    with pytest.raises(InvalidTransition):
        lifecycle.transition(ticket, STAFF, TicketStatus.IN_PROGRESS, note)
    assert ticket.status == TicketStatus.OPEN


def test_missing_actor_is_an_invalid_transition():
    with pytest.raises(InvalidTransition):
        lifecycle.transition(make_ticket(), None, TicketStatus.IN_PROGRESS, "note")


def test_staff_outside_category_is_denied():
    ticket = make_ticket()
    with pytest.raises(CategoryAccessDenied):
        lifecycle.transition(ticket, OTHER_STAFF, TicketStatus.IN_PROGRESS, "note")
    assert ticket.status == TicketStatus.OPEN


def test_citizen_cannot_change_status():
    with pytest.raises(Unauthorized):
        lifecycle.transition(make_ticket(), AUTHOR, TicketStatus.CLOSED, "done")


def test_history_grows_by_one_per_transition():
    ticket = make_ticket()
    lifecycle.transition(ticket, STAFF, TicketStatus.IN_PROGRESS, "a")
    lifecycle.transition(ticket, STAFF, TicketStatus.RESOLVED, "b")
    lifecycle.transition(ticket, ADMIN, TicketStatus.CLOSED, "c")

    assert [h.status for h in ticket.status_history] == [
        TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED,
    ]
    assert ticket.status_history[-1].status == ticket.status


def test_closed_ticket_is_not_commentable():
    lifecycle.ensure_commentable(make_ticket(TicketStatus.RESOLVED))
    with pytest.raises(TicketClosed):
        lifecycle.ensure_commentable(make_ticket(TicketStatus.CLOSED))


def test_rating_rules():
    with pytest.raises(InvalidState):
        lifecycle.check_rating(make_ticket(TicketStatus.IN_PROGRESS), AUTHOR, 4)
    with pytest.raises(Unauthorized):
        lifecycle.check_rating(make_ticket(TicketStatus.RESOLVED), STRANGER, 4)
    with pytest.raises(ValidationFailed):
        lifecycle.check_rating(make_ticket(TicketStatus.RESOLVED), AUTHOR, 6)

    lifecycle.check_rating(make_ticket(TicketStatus.RESOLVED), AUTHOR, 5)
    lifecycle.check_rating(make_ticket(TicketStatus.CLOSED), AUTHOR, 1)
