"""
Ticket lifecycle engine
---------------------------------
Features:
- Status state machine: open → in-progress → resolved → closed, plus the
  administrative shortcuts open → closed and in-progress → closed
- `transition()`: validates a status change and appends exactly one history entry
- `seed_history()`: the initial "open" entry written at creation
- Guards for commenting (not once closed) and rating (only once resolved/closed)

Usage:
- The service loads the ticket, calls these functions, then commits;
  they never touch the database themselves
"""

from datetime import datetime
from typing import Optional, Union

from ..core.errors import InvalidTransition, InvalidState, TicketClosed, Unauthorized, ValidationFailed
from ..models.feedback import StatusHistory, TicketStatus
from .access_policy import Actor, Capability, authorize, is_owner

ALLOWED_TRANSITIONS = {
    TicketStatus.OPEN: {TicketStatus.IN_PROGRESS, TicketStatus.CLOSED},
    TicketStatus.IN_PROGRESS: {TicketStatus.RESOLVED, TicketStatus.CLOSED},
    TicketStatus.RESOLVED: {TicketStatus.CLOSED},
    TicketStatus.CLOSED: set(),
}

RATEABLE_STATUSES = {TicketStatus.RESOLVED, TicketStatus.CLOSED}
RATING_MIN = 1
RATING_MAX = 5


def parse_status(value: Union[str, TicketStatus, None]) -> TicketStatus:
    """Parse a status name, raising InvalidTransition for unknown names"""
    if isinstance(value, TicketStatus):
        return value
    try:
        return TicketStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unknown status: {value!r}")


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def seed_history(ticket, changed_by: str, changed_by_id: Optional[int], now: datetime) -> None:
    """Force a new ticket to open and write its first history entry"""
    ticket.status = TicketStatus.OPEN
    ticket.status_history.append(StatusHistory(
        status=TicketStatus.OPEN,
        changed_by=changed_by,
        changed_by_id=changed_by_id,
        note="Feedback submitted",
        timestamp=now,
    ))


def transition(
    ticket,
    actor: Optional[Actor],
    new_status: Union[str, TicketStatus, None],
    note: Optional[str],
    now: Optional[datetime] = None,
) -> StatusHistory:
    """
    Move a ticket to `new_status`

    Checks, in order: actor present, actor allowed (staff in category or
    admin), note present, edge allowed.

    Returns:
        the appended history entry

    Raises:
        InvalidTransition: no actor, blank note, unknown or unreachable status
        Unauthorized / CategoryAccessDenied: actor may not change this ticket
    """
    if actor is None:
        raise InvalidTransition("A status change needs an acting staff member")
    authorize(actor, Capability.CHANGE_STATUS, ticket)

    if not note or not note.strip():
        raise InvalidTransition("A status change needs a note")

    target = parse_status(new_status)
    current = ticket.status
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move from {current.value} to {target.value}",
            context={"ticket": ticket.ticket_number},
        )

    entry = StatusHistory(
        status=target,
        changed_by=actor.name,
        changed_by_id=actor.id,
        note=note.strip(),
        timestamp=now or datetime.utcnow(),
    )
    ticket.status = target
    ticket.status_history.append(entry)
    return entry


def ensure_commentable(ticket) -> None:
    if ticket.status == TicketStatus.CLOSED:
        raise TicketClosed(f"Feedback {ticket.ticket_number} is closed")


def check_rating(ticket, actor: Optional[Actor], value: int) -> None:
    """
    Raise unless `actor` may rate `ticket` with `value`

    Only the ticket author rates, and only once the ticket is resolved or closed.
    Re-rating is allowed; the latest value is stored.
    """
    if actor is None:
        raise Unauthorized("You must be logged in", authenticated=False)
    if not is_owner(ticket, actor):
        raise Unauthorized("Only the author can rate this feedback")
    if ticket.status not in RATEABLE_STATUSES:
        raise InvalidState(
            f"Feedback can be rated once resolved (current status: {ticket.status.value})"
        )
    if not RATING_MIN <= value <= RATING_MAX:
        raise ValidationFailed(f"Rating must be between {RATING_MIN} and {RATING_MAX}")
