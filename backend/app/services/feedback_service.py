"""
Feedback ticket service
---------------------------------
Features:
- Create tickets (ticket number, initial history, derived priority) and author edits
- Status changes, official responses (edit / delete), comments, ratings, assignment
- Filtered, paginated listing scoped to what the caller may see
- Serialization to the canonical `TicketOut` shape with anonymity redaction

Usage:
- Routers call the static methods with an `AsyncSession` and the caller's `Actor`
- Every method raises `CitizenError` subclasses; nothing is retried here

Concurrency:
- `Feedback.version` is checked on every ORM UPDATE of a ticket; a lost race
  surfaces as ConflictingUpdate. Comments and responses touch the ticket so
  they serialize against status changes as well.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, update, delete, func, or_, false
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..config.settings import MAX_PAGE_SIZE
from ..core.errors import (
    ConflictingUpdate, NotFound, TicketClosed, Unauthorized, ValidationFailed,
)
from ..models.feedback import (
    Feedback, Comment, Response, Like, FeedbackFollower,
    FeedbackType, TicketStatus, AuthorType, LikeSubject, PRIORITY_BY_TYPE,
)
from ..models.feedback_schema import (
    FeedbackCreate, FeedbackUpdate, TicketOut, CommentOut, ResponseOut, StatusHistoryOut, LocationOut, AuthorOut,
)
from ..models.user import User
from ..utils.location_utils import validate_location
from ..utils.logger import log
from ..utils.phone_utils import validate_phone_number
from ..utils.ticket_utils import canonical_category, generate_ticket_number, parse_ticket_ref, validate_subcategory
from . import lifecycle
from .access_policy import Actor, Capability, authorize, is_owner, redact_ticket, require_actor
from .engagement_service import engagement_service

TICKET_NUMBER_ATTEMPTS = 20


class FeedbackService:
    """Ticket lifecycle operations"""

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @staticmethod
    async def get_ticket(db: AsyncSession, ticket_id: int) -> Feedback:
        """Load a ticket with fresh state, NotFound if missing"""
        result = await db.execute(
            select(Feedback)
            .where(Feedback.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        ticket = result.scalar_one_or_none()
        if not ticket:
            raise NotFound("Feedback not found")
        return ticket

    @staticmethod
    async def get_by_ref(db: AsyncSession, ref: str) -> Feedback:
        """Load by numeric id or by ticket number (CT-XXXXXX)"""
        ticket_id, ticket_number = parse_ticket_ref(ref)
        if ticket_id is not None:
            return await FeedbackService.get_ticket(db, ticket_id)
        if ticket_number is None:
            raise NotFound(f"No feedback matches {ref!r}")

        result = await db.execute(
            select(Feedback)
            .where(Feedback.ticket_number == ticket_number)
            .execution_options(populate_existing=True)
        )
        ticket = result.scalar_one_or_none()
        if not ticket:
            raise NotFound(f"Feedback {ticket_number} not found")
        return ticket

    @staticmethod
    async def _commit(db: AsyncSession, ticket: Feedback) -> None:
        """Commit, translating a lost optimistic-lock race"""
        # rollback expires the instance; read what the log needs first
        ticket_number = ticket.ticket_number
        try:
            await db.commit()
        except StaleDataError:
            await db.rollback()
            log.warning(f"Concurrent update lost on {ticket_number}")
            raise ConflictingUpdate(
                f"Feedback {ticket_number} was changed by someone else; reload and retry"
            )

    @staticmethod
    def _check_version(ticket: Feedback, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != ticket.version:
            raise ConflictingUpdate(
                f"Feedback {ticket.ticket_number} is at version {ticket.version}, not {expected_version}"
            )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @staticmethod
    async def _unique_ticket_number(db: AsyncSession) -> str:
        for _ in range(TICKET_NUMBER_ATTEMPTS):
            candidate = generate_ticket_number()
            result = await db.execute(select(Feedback.id).where(Feedback.ticket_number == candidate))
            if result.scalar_one_or_none() is None:
                return candidate
        raise ConflictingUpdate("Could not allocate a ticket number, please retry")

    @staticmethod
    async def create_ticket(db: AsyncSession, data: FeedbackCreate, user: Optional[User]) -> Feedback:
        """
        Create a ticket from a citizen submission

        Anonymous tickets may be submitted without a session; named tickets need one.
        Status is always forced to open and the history seeded.
        """
        if not data.is_anonymous and user is None:
            raise Unauthorized("You must be logged in for non-anonymous feedback", authenticated=False)

        ok, message = validate_subcategory(data.category, data.subcategory)
        if not ok:
            raise ValidationFailed(message)

        location = data.location
        if location is not None:
            ok, message = validate_location(location.country, location.province, location.district, location.sector)
            if not ok:
                raise ValidationFailed(message)

        phone = data.phone or (user.phone_number if user else None)
        if data.phone and not validate_phone_number(data.phone):
            raise ValidationFailed("Invalid phone number format")

        now = datetime.utcnow()
        ticket = Feedback(
            ticket_number=await FeedbackService._unique_ticket_number(db),
            title=data.title.strip(),
            description=data.description,
            type=data.type,
            category=canonical_category(data.category),
            subcategory=data.subcategory,
            priority=PRIORITY_BY_TYPE[data.type],
            is_public=data.is_public,
            is_anonymous=data.is_anonymous,
            author_id=user.id if user else None,
            citizen_name=data.citizen_name or (user.full_name if user else None),
            email=data.email or (user.email if user else None),
            phone=phone,
            country=location.country if location else None,
            province=location.province if location else None,
            district=location.district if location else None,
            sector=location.sector if location else None,
            location_details=location.other_details if location else None,
            attachments=list(data.attachments),
            views=0,
            created_at=now,
            updated_at=now,
        )
        lifecycle.seed_history(ticket, changed_by="Citizen", changed_by_id=user.id if user else None, now=now)

        db.add(ticket)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictingUpdate("Ticket number collision, please retry")

        log.info(
            f"Created {ticket.ticket_number} ({ticket.type.value}/{ticket.category}) "
            f"by {'anonymous' if ticket.is_anonymous else f'user {ticket.author_id}'}"
        )
        return await FeedbackService.get_ticket(db, ticket.id)

    @staticmethod
    async def update_ticket(
        db: AsyncSession,
        ticket_id: int,
        actor: Optional[Actor],
        data: FeedbackUpdate,
    ) -> Feedback:
        """
        Edit the content of a ticket

        Only the author (or an admin) may edit, and not once the ticket is closed.
        Type, category and status are not editable here; status goes through
        `change_status`.
        """
        ticket = await FeedbackService.get_ticket(db, ticket_id)
        actor = require_actor(actor)
        if not is_owner(ticket, actor) and not actor.is_admin:
            raise Unauthorized("Not authorized to update this feedback")
        if ticket.status == TicketStatus.CLOSED:
            raise TicketClosed(f"Feedback {ticket.ticket_number} is closed")
        FeedbackService._check_version(ticket, data.expected_version)

        changes = data.model_dump(exclude_unset=True, exclude={"expected_version"})
        if "subcategory" in changes:
            ok, message = validate_subcategory(ticket.category, data.subcategory)
            if not ok:
                raise ValidationFailed(message)
            ticket.subcategory = data.subcategory
        if "location" in changes:
            location = data.location
            if location is not None:
                ok, message = validate_location(
                    location.country, location.province, location.district, location.sector
                )
                if not ok:
                    raise ValidationFailed(message)
            ticket.country = location.country if location else None
            ticket.province = location.province if location else None
            ticket.district = location.district if location else None
            ticket.sector = location.sector if location else None
            ticket.location_details = location.other_details if location else None
        if data.title is not None:
            ticket.title = data.title.strip()
        if data.description is not None:
            ticket.description = data.description
        if data.is_public is not None:
            ticket.is_public = data.is_public
        if data.attachments is not None:
            ticket.attachments = list(data.attachments)

        ticket.updated_at = datetime.utcnow()
        await FeedbackService._commit(db, ticket)

        log.info(f"{ticket.ticket_number}: edited ({', '.join(sorted(changes)) or 'no fields'}) by user {actor.id}")
        return await FeedbackService.get_ticket(db, ticket_id)

    # ------------------------------------------------------------------
    # Status / responses
    # ------------------------------------------------------------------

    @staticmethod
    async def change_status(
        db: AsyncSession,
        ticket_id: int,
        actor: Optional[Actor],
        new_status: Optional[str],
        note: Optional[str],
        expected_version: Optional[int] = None,
    ) -> Feedback:
        """Apply one lifecycle transition; see `lifecycle.transition`"""
        ticket = await FeedbackService.get_ticket(db, ticket_id)
        require_actor(actor)
        previous = ticket.status

        lifecycle.transition(ticket, actor, new_status, note)
        FeedbackService._check_version(ticket, expected_version)
        await FeedbackService._commit(db, ticket)

        log.info(f"{ticket.ticket_number}: {previous.value} -> {ticket.status.value} by user {actor.id}")
        return await FeedbackService.get_ticket(db, ticket_id)

    @staticmethod
    async def add_response(
        db: AsyncSession,
        ticket_id: int,
        actor: Optional[Actor],
        message: str,
        status_update: Optional[str] = None,
        note: Optional[str] = None,
        attachments: Optional[List[str]] = None,
        expected_version: Optional[int] = None,
    ) -> Response:
        """
        Post an official response, optionally moving the ticket

        A `status_update` equal to the current status is recorded on the
        response without a transition.
        """
        ticket = await FeedbackService.get_ticket(db, ticket_id)
        actor = require_actor(actor)
        authorize(actor, Capability.RESPOND, ticket)
        if ticket.status == TicketStatus.CLOSED:
            raise TicketClosed(f"Feedback {ticket.ticket_number} is closed")

        if status_update is not None:
            target = lifecycle.parse_status(status_update)
            if target != ticket.status:
                lifecycle.transition(ticket, actor, target, note or message)
        FeedbackService._check_version(ticket, expected_version)

        response = Response(
            feedback_id=ticket.id,
            by_id=actor.id,
            by_name=actor.name,
            message=message,
            attachments=list(attachments or []),
            status_update=ticket.status,
            created_at=datetime.utcnow(),
        )
        ticket.responses.append(response)
        ticket.updated_at = datetime.utcnow()
        await FeedbackService._commit(db, ticket)

        log.info(f"{ticket.ticket_number}: response {response.id} by user {actor.id}")
        return response

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    @staticmethod
    async def add_comment(
        db: AsyncSession,
        ticket_id: int,
        actor: Optional[Actor],
        message: str,
        parent_id: Optional[int] = None,
    ) -> Comment:
        """Append a comment; the author comes from the session only"""
        ticket = await FeedbackService.get_ticket(db, ticket_id)
        actor = require_actor(actor)
        authorize(actor, Capability.COMMENT, ticket)
        lifecycle.ensure_commentable(ticket)

        if parent_id is not None and not any(c.id == parent_id for c in ticket.comments):
            raise NotFound("Parent comment not found on this feedback")

        comment = Comment(
            feedback_id=ticket.id,
            parent_id=parent_id,
            author_id=actor.id,
            author_type=AuthorType.ADMIN if actor.is_staff_or_admin else AuthorType.CITIZEN,
            author_name=actor.name,
            message=message,
            created_at=datetime.utcnow(),
        )
        ticket.comments.append(comment)
        ticket.updated_at = datetime.utcnow()
        await FeedbackService._commit(db, ticket)

        log.info(f"{ticket.ticket_number}: comment {comment.id} by user {actor.id}")
        return comment

    @staticmethod
    async def _comment_with_ticket(db: AsyncSession, comment_id: int) -> Tuple[Comment, Feedback]:
        result = await db.execute(select(Comment).where(Comment.id == comment_id))
        comment = result.scalar_one_or_none()
        if not comment:
            raise NotFound("Comment not found")
        return comment, await FeedbackService.get_ticket(db, comment.feedback_id)

    @staticmethod
    async def update_comment(db: AsyncSession, comment_id: int, actor: Optional[Actor], message: str) -> Comment:
        comment, ticket = await FeedbackService._comment_with_ticket(db, comment_id)
        actor = require_actor(actor)
        if comment.author_id != actor.id:
            raise Unauthorized("Not authorized to update this comment")
        lifecycle.ensure_commentable(ticket)

        comment.message = message
        comment.updated_at = datetime.utcnow()
        await db.commit()
        return comment

    @staticmethod
    async def delete_comment(db: AsyncSession, comment_id: int, actor: Optional[Actor]) -> None:
        comment, ticket = await FeedbackService._comment_with_ticket(db, comment_id)
        actor = require_actor(actor)
        if comment.author_id != actor.id and not actor.is_admin:
            raise Unauthorized("Not authorized to delete this comment")

        await db.execute(
            delete(Like).where(Like.subject_type == LikeSubject.COMMENT, Like.subject_id == comment_id)
        )
        ticket.comments.remove(comment)
        await db.delete(comment)
        await db.commit()
        log.info(f"{ticket.ticket_number}: comment {comment_id} deleted by user {actor.id}")

    @staticmethod
    async def _response_with_ticket(db: AsyncSession, response_id: int) -> Tuple[Response, Feedback]:
        result = await db.execute(select(Response).where(Response.id == response_id))
        response = result.scalar_one_or_none()
        if not response:
            raise NotFound("Response not found")
        return response, await FeedbackService.get_ticket(db, response.feedback_id)

    @staticmethod
    async def update_response(db: AsyncSession, response_id: int, actor: Optional[Actor], message: str) -> Response:
        """Only the staff member who posted a response may reword it"""
        response, ticket = await FeedbackService._response_with_ticket(db, response_id)
        actor = require_actor(actor)
        if response.by_id != actor.id:
            raise Unauthorized("Not authorized to update this response")
        if ticket.status == TicketStatus.CLOSED:
            raise TicketClosed(f"Feedback {ticket.ticket_number} is closed")

        response.message = message
        ticket.updated_at = datetime.utcnow()
        await FeedbackService._commit(db, ticket)

        log.info(f"{ticket.ticket_number}: response {response_id} edited by user {actor.id}")
        return response

    @staticmethod
    async def delete_response(db: AsyncSession, response_id: int, actor: Optional[Actor]) -> None:
        """The poster or an admin removes a response; status history is kept"""
        response, ticket = await FeedbackService._response_with_ticket(db, response_id)
        actor = require_actor(actor)
        if response.by_id != actor.id and not actor.is_admin:
            raise Unauthorized("Not authorized to delete this response")

        await db.execute(
            delete(Like).where(Like.subject_type == LikeSubject.RESPONSE, Like.subject_id == response_id)
        )
        ticket.responses.remove(response)
        ticket.updated_at = datetime.utcnow()
        await FeedbackService._commit(db, ticket)
        log.info(f"{ticket.ticket_number}: response {response_id} deleted by user {actor.id}")

    # ------------------------------------------------------------------
    # Rating / assignment / views
    # ------------------------------------------------------------------

    @staticmethod
    async def rate(db: AsyncSession, ticket_id: int, actor: Optional[Actor], value: int) -> Feedback:
        """Store the author's rating (latest wins)"""
        ticket = await FeedbackService.get_ticket(db, ticket_id)
        lifecycle.check_rating(ticket, actor, value)

        ticket.rating = value
        await FeedbackService._commit(db, ticket)

        log.info(f"{ticket.ticket_number}: rated {value} by user {actor.id}")
        return await FeedbackService.get_ticket(db, ticket_id)

    @staticmethod
    async def assign(
        db: AsyncSession,
        ticket_id: int,
        actor: Optional[Actor],
        assigned_to: Optional[int],
        assigned_agency: Optional[str],
    ) -> Feedback:
        """Assign a staff member and/or agency"""
        ticket = await FeedbackService.get_ticket(db, ticket_id)
        actor = require_actor(actor)
        authorize(actor, Capability.CHANGE_STATUS, ticket)

        if assigned_to is not None:
            result = await db.execute(select(User).where(User.id == assigned_to))
            assignee = result.scalar_one_or_none()
            if not assignee:
                raise NotFound("Assignee not found")
            handler = Actor.from_user(assignee)
            if not handler.is_staff_or_admin or not handler.covers_category(ticket.category):
                raise ValidationFailed(f"User {assigned_to} cannot handle category {ticket.category!r}")

        ticket.assigned_to_id = assigned_to
        ticket.assigned_agency = assigned_agency
        await FeedbackService._commit(db, ticket)

        log.info(f"{ticket.ticket_number}: assigned to user {assigned_to} / {assigned_agency!r} by user {actor.id}")
        return await FeedbackService.get_ticket(db, ticket_id)

    @staticmethod
    async def record_view(db: AsyncSession, ticket: Feedback) -> Feedback:
        """Increment the view counter in place (not a versioned change)"""
        await db.execute(
            update(Feedback)
            .where(Feedback.id == ticket.id)
            .values(views=Feedback.views + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return await FeedbackService.get_ticket(db, ticket.id)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    @staticmethod
    def visibility_clause(actor: Optional[Actor]):
        if actor is None:
            return Feedback.is_public.is_(True)
        if actor.is_admin:
            return None
        if actor.is_staff:
            if not actor.categories:
                return false()
            return func.lower(Feedback.category).in_([c.strip().lower() for c in actor.categories])
        return or_(Feedback.is_public.is_(True), Feedback.author_id == actor.id)

    @staticmethod
    async def list_tickets(
        db: AsyncSession,
        actor: Optional[Actor],
        category: Optional[str] = None,
        status: Optional[str] = None,
        feedback_type: Optional[str] = None,
        is_anonymous: Optional[bool] = None,
        owner_only: bool = False,
        followed: bool = False,
        liked: bool = False,
        assigned_to_me: bool = False,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[Feedback], int]:
        """
        Tickets visible to `actor`, newest first

        Returns:
            (page of tickets, total matching)
        """
        conditions = []
        visibility = FeedbackService.visibility_clause(actor)
        if visibility is not None:
            conditions.append(visibility)

        if owner_only:
            actor = require_actor(actor)
            conditions.append(Feedback.author_id == actor.id)
        if followed:
            actor = require_actor(actor)
            conditions.append(Feedback.id.in_(
                select(FeedbackFollower.feedback_id).where(FeedbackFollower.user_id == actor.id)
            ))
        if liked:
            actor = require_actor(actor)
            conditions.append(Feedback.id.in_(
                select(Like.subject_id).where(Like.subject_type == LikeSubject.FEEDBACK, Like.user_id == actor.id)
            ))
        if assigned_to_me:
            actor = require_actor(actor)
            conditions.append(Feedback.assigned_to_id == actor.id)
        if category:
            conditions.append(func.lower(Feedback.category) == category.strip().lower())
        if status:
            try:
                conditions.append(Feedback.status == TicketStatus(status))
            except ValueError:
                raise ValidationFailed(f"Invalid status: {status!r}")
        if feedback_type:
            try:
                conditions.append(Feedback.type == FeedbackType(feedback_type))
            except ValueError:
                raise ValidationFailed(f"Invalid type: {feedback_type!r}")
        if is_anonymous is not None:
            conditions.append(Feedback.is_anonymous.is_(is_anonymous))

        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)

        query = (
            select(Feedback)
            .where(*conditions)
            .order_by(Feedback.created_at.desc(), Feedback.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(query)
        tickets = list(result.scalars().all())

        count_result = await db.execute(select(func.count(Feedback.id)).where(*conditions))
        return tickets, count_result.scalar_one()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @staticmethod
    async def serialize_tickets(db: AsyncSession, tickets: List[Feedback], actor: Optional[Actor]) -> List[dict]:
        """Canonical camelCase dicts, redacted for `actor`"""
        if not tickets:
            return []

        ticket_ids = [t.id for t in tickets]
        followers = await engagement_service.followers_by_ticket(db, ticket_ids)
        likers = await engagement_service.likers_by_subject(db, {
            LikeSubject.FEEDBACK: ticket_ids,
            LikeSubject.COMMENT: [c.id for t in tickets for c in t.comments],
            LikeSubject.RESPONSE: [r.id for t in tickets for r in t.responses],
        })

        author_ids = {t.author_id for t in tickets if t.author_id is not None}
        names = {}
        if author_ids:
            result = await db.execute(select(User).where(User.id.in_(author_ids)))
            names = {u.id: (u.full_name or u.email) for u in result.scalars().all()}

        payloads = []
        for t in tickets:
            responses = [
                ResponseOut(
                    response_id=r.id,
                    by=r.by_name,
                    message=r.message,
                    timestamp=r.created_at,
                    attachments=r.attachments or [],
                    status_update=r.status_update.value,
                    likes=len(likers.get((LikeSubject.RESPONSE, r.id), [])),
                    liked_by=likers.get((LikeSubject.RESPONSE, r.id), []),
                )
                for r in t.responses
            ]
            out = TicketOut(
                id=t.id,
                ticket_number=t.ticket_number,
                title=t.title,
                description=t.description,
                type=t.type.value,
                category=t.category,
                subcategory=t.subcategory,
                status=t.status.value,
                priority=t.priority.value,
                is_public=t.is_public,
                is_anonymous=t.is_anonymous,
                author=AuthorOut(id=t.author_id, name=names.get(t.author_id, "")) if t.author_id else None,
                citizen_name=t.citizen_name,
                email=t.email,
                phone=t.phone,
                location=LocationOut(
                    country=t.country,
                    province=t.province,
                    district=t.district,
                    sector=t.sector,
                    other_details=t.location_details,
                ),
                attachments=t.attachments or [],
                assigned_agency=t.assigned_agency,
                assigned_to=t.assigned_to_id,
                followers=followers.get(t.id, []),
                follower_count=len(followers.get(t.id, [])),
                likes=len(likers.get((LikeSubject.FEEDBACK, t.id), [])),
                liked_by=likers.get((LikeSubject.FEEDBACK, t.id), []),
                views=t.views,
                status_history=[
                    StatusHistoryOut(status=h.status.value, changed_by=h.changed_by, timestamp=h.timestamp, note=h.note)
                    for h in t.status_history
                ],
                response=responses[-1] if responses else None,
                responses=responses,
                comments=[FeedbackService.comment_out(c, likers) for c in t.comments],
                rating=t.rating,
                version=t.version,
                created_at=t.created_at,
                updated_at=t.updated_at,
            )
            payload = out.model_dump(by_alias=True, mode="json")
            payloads.append(redact_ticket(payload, t, actor))
        return payloads

    @staticmethod
    async def serialize_ticket(db: AsyncSession, ticket: Feedback, actor: Optional[Actor]) -> dict:
        return (await FeedbackService.serialize_tickets(db, [ticket], actor))[0]

    @staticmethod
    def comment_out(comment: Comment, likers: Optional[dict] = None) -> CommentOut:
        liked_by = (likers or {}).get((LikeSubject.COMMENT, comment.id), [])
        return CommentOut(
            comment_id=comment.id,
            author_type=comment.author_type.value,
            author_id=comment.author_id,
            author_name=comment.author_name,
            message=comment.message,
            timestamp=comment.created_at,
            likes=len(liked_by),
            liked_by=liked_by,
            parent_id=comment.parent_id,
        )

    @staticmethod
    def response_out(response: Response) -> ResponseOut:
        return ResponseOut(
            response_id=response.id,
            by=response.by_name,
            message=response.message,
            timestamp=response.created_at,
            attachments=response.attachments or [],
            status_update=response.status_update.value,
        )


# Singleton
feedback_service = FeedbackService()
