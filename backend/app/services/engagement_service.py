"""
Engagement service
---------------------------------
Features:
- Follow / unfollow a ticket
- Like / unlike a ticket, a comment or a response
- Membership lookups used when serializing tickets

Semantics:
- Each call carries an intent (follow / unfollow, like / unlike) or toggles
  when no intent is given; repeating an intent is a no-op, not an error
- Writes are conditional: insert guarded by a unique constraint, delete by
  WHERE; counts are always counted from the membership rows
- The ticket author can never follow their own ticket
"""

from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, delete, func, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFound, SelfFollowNotAllowed, TicketClosed
from ..models.feedback import Feedback, Comment, Response, FeedbackFollower, Like, LikeSubject, TicketStatus
from ..models.feedback_schema import FollowState, LikeState
from ..utils.logger import log
from .access_policy import Actor, Capability, authorize, is_owner, require_actor


class EngagementService:
    """Follow and like toggles"""

    @staticmethod
    async def _ticket(db: AsyncSession, ticket_id: int) -> Feedback:
        result = await db.execute(select(Feedback).where(Feedback.id == ticket_id))
        ticket = result.scalar_one_or_none()
        if not ticket:
            raise NotFound("Feedback not found")
        return ticket

    @staticmethod
    async def _insert_if_absent(db: AsyncSession, row) -> bool:
        """Insert a membership row; False when a concurrent duplicate won"""
        db.add(row)
        try:
            await db.commit()
            return True
        except IntegrityError:
            await db.rollback()
            return False

    @staticmethod
    async def follower_count(db: AsyncSession, ticket_id: int) -> int:
        result = await db.execute(
            select(func.count(FeedbackFollower.id)).where(FeedbackFollower.feedback_id == ticket_id)
        )
        return result.scalar_one()

    @staticmethod
    async def toggle_follow(
        db: AsyncSession,
        ticket_id: int,
        actor: Optional[Actor],
        follow: Optional[bool] = None,
    ) -> FollowState:
        """
        Follow or unfollow a ticket

        Args:
            ticket_id: ticket
            actor: caller
            follow: True follow, False unfollow, None toggle

        Returns:
            the caller's following flag and the follower count after the write
        """
        ticket = await EngagementService._ticket(db, ticket_id)
        actor = require_actor(actor)
        authorize(actor, Capability.COMMENT, ticket)
        if is_owner(ticket, actor):
            raise SelfFollowNotAllowed("You cannot follow your own feedback")

        result = await db.execute(
            select(FeedbackFollower.id).where(
                FeedbackFollower.feedback_id == ticket_id,
                FeedbackFollower.user_id == actor.id,
            )
        )
        currently = result.scalar_one_or_none() is not None
        wanted = (not currently) if follow is None else follow
        # a lost insert race rolls back and expires `ticket`
        ticket_number = ticket.ticket_number

        if wanted and not currently:
            if ticket.status == TicketStatus.CLOSED:
                raise TicketClosed(f"Feedback {ticket_number} is closed")
            await EngagementService._insert_if_absent(
                db, FeedbackFollower(feedback_id=ticket_id, user_id=actor.id)
            )
            log.info(f"User {actor.id} follows {ticket_number}")
        elif not wanted and currently:
            await db.execute(
                delete(FeedbackFollower).where(
                    FeedbackFollower.feedback_id == ticket_id,
                    FeedbackFollower.user_id == actor.id,
                )
            )
            await db.commit()
            log.info(f"User {actor.id} unfollows {ticket_number}")

        return FollowState(
            is_following=wanted,
            follower_count=await EngagementService.follower_count(db, ticket_id),
        )

    @staticmethod
    async def _subject_ticket(db: AsyncSession, subject: LikeSubject, subject_id: int) -> Feedback:
        """The ticket a like subject belongs to"""
        if subject == LikeSubject.FEEDBACK:
            return await EngagementService._ticket(db, subject_id)

        model = Comment if subject == LikeSubject.COMMENT else Response
        result = await db.execute(select(model.feedback_id).where(model.id == subject_id))
        feedback_id = result.scalar_one_or_none()
        if feedback_id is None:
            raise NotFound(f"{subject.value.capitalize()} not found")
        return await EngagementService._ticket(db, feedback_id)

    @staticmethod
    async def likes_count(db: AsyncSession, subject: LikeSubject, subject_id: int) -> int:
        result = await db.execute(
            select(func.count(Like.id)).where(Like.subject_type == subject, Like.subject_id == subject_id)
        )
        return result.scalar_one()

    @staticmethod
    async def toggle_like(
        db: AsyncSession,
        subject: LikeSubject,
        subject_id: int,
        actor: Optional[Actor],
        like: Optional[bool] = None,
    ) -> LikeState:
        """
        Like or unlike a ticket, comment or response

        Args:
            subject: what is liked
            subject_id: its id
            actor: caller
            like: True like, False unlike, None toggle

        Returns:
            the caller's like flag and the like count after the write
        """
        ticket = await EngagementService._subject_ticket(db, subject, subject_id)
        actor = require_actor(actor)
        authorize(actor, Capability.COMMENT, ticket)

        result = await db.execute(
            select(Like.id).where(
                Like.subject_type == subject,
                Like.subject_id == subject_id,
                Like.user_id == actor.id,
            )
        )
        currently = result.scalar_one_or_none() is not None
        wanted = (not currently) if like is None else like

        if wanted and not currently:
            if ticket.status == TicketStatus.CLOSED:
                raise TicketClosed(f"Feedback {ticket.ticket_number} is closed")
            await EngagementService._insert_if_absent(
                db, Like(subject_type=subject, subject_id=subject_id, user_id=actor.id)
            )
            log.info(f"User {actor.id} likes {subject.value} {subject_id}")
        elif not wanted and currently:
            await db.execute(
                delete(Like).where(
                    Like.subject_type == subject,
                    Like.subject_id == subject_id,
                    Like.user_id == actor.id,
                )
            )
            await db.commit()
            log.info(f"User {actor.id} unlikes {subject.value} {subject_id}")

        return LikeState(
            has_liked=wanted,
            likes_count=await EngagementService.likes_count(db, subject, subject_id),
        )

    @staticmethod
    async def followers_by_ticket(db: AsyncSession, ticket_ids: Iterable[int]) -> Dict[int, List[int]]:
        ids = list(ticket_ids)
        followers: Dict[int, List[int]] = {i: [] for i in ids}
        if not ids:
            return followers
        result = await db.execute(
            select(FeedbackFollower.feedback_id, FeedbackFollower.user_id)
            .where(FeedbackFollower.feedback_id.in_(ids))
            .order_by(FeedbackFollower.id)
        )
        for feedback_id, user_id in result.all():
            followers[feedback_id].append(user_id)
        return followers

    @staticmethod
    async def likers_by_subject(
        db: AsyncSession,
        subjects: Dict[LikeSubject, Iterable[int]],
    ) -> Dict[Tuple[LikeSubject, int], List[int]]:
        """{(subject, id): [user ids]} for every requested subject"""
        clauses = []
        for subject, ids in subjects.items():
            ids = list(ids)
            if ids:
                clauses.append(and_(Like.subject_type == subject, Like.subject_id.in_(ids)))

        likers: Dict[Tuple[LikeSubject, int], List[int]] = {}
        if not clauses:
            return likers
        result = await db.execute(
            select(Like.subject_type, Like.subject_id, Like.user_id).where(or_(*clauses)).order_by(Like.id)
        )
        for subject, subject_id, user_id in result.all():
            likers.setdefault((subject, subject_id), []).append(user_id)
        return likers


# Singleton
engagement_service = EngagementService()
