"""
Feedback ticket data models
---------------------------------
Features:
- `Feedback`: the citizen ticket (ticket number, type, category, status,
  anonymity, contact fields, location, attachments, assignment, views,
  rating, optimistic `version`)
- `StatusHistory`: append-only record of every status change
- `Comment` / `Response`: citizen comments and official staff responses
- `FeedbackFollower` / `Like`: membership rows, unique per (subject, user)

Usage:
- Status changes go through `services.lifecycle` and `services.feedback_service`
- Follower/like counts are always counted from membership rows
"""

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Enum, Boolean, JSON, ForeignKey, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from .base import Base


def _normalize(value: str) -> str:
    return "".join(ch for ch in value.lower() if ch.isalnum())


class TicketStatus(str, enum.Enum):
    """Ticket status; serialized in the GraphQL-backed spelling"""
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"

    @classmethod
    def _missing_(cls, value):
        # Accept "InProgress", "In Progress", "in_progress", "OPEN", ...
        if isinstance(value, str):
            wanted = _normalize(value)
            for member in cls:
                if _normalize(member.value) == wanted:
                    return member
        return None


class FeedbackType(str, enum.Enum):
    """Kind of feedback"""
    COMPLAINT = "Complaint"
    POSITIVE = "Positive"
    SUGGESTION = "Suggestion"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


PRIORITY_BY_TYPE = {
    FeedbackType.COMPLAINT: Priority.HIGH,
    FeedbackType.SUGGESTION: Priority.MEDIUM,
    FeedbackType.POSITIVE: Priority.LOW,
}


class AuthorType(str, enum.Enum):
    CITIZEN = "Citizen"
    ADMIN = "Admin"


class LikeSubject(str, enum.Enum):
    """What a like row points at"""
    FEEDBACK = "feedback"
    COMMENT = "comment"
    RESPONSE = "response"


class Feedback(Base):
    """Citizen feedback ticket"""
    __tablename__ = "feedbacks"

    id = Column(Integer, primary_key=True, index=True, comment="Feedback ID")
    ticket_number = Column(String(16), unique=True, index=True, nullable=False, comment="CT-XXXXXX")
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    type = Column(Enum(FeedbackType), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    subcategory = Column(String(100), nullable=True)
    status = Column(Enum(TicketStatus), default=TicketStatus.OPEN, nullable=False, index=True)
    priority = Column(Enum(Priority), default=Priority.MEDIUM, nullable=False)
    is_public = Column(Boolean, default=True, nullable=False)
    is_anonymous = Column(Boolean, default=False, nullable=False, index=True)

    # Owner; kept for anonymous tickets too, withheld on read
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    citizen_name = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)

    country = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    sector = Column(String(100), nullable=True)
    location_details = Column(String(500), nullable=True)

    attachments = Column(JSON, default=list, nullable=False)
    assigned_agency = Column(String(200), nullable=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    views = Column(Integer, default=0, nullable=False)
    rating = Column(Integer, nullable=True, comment="1-5, only once resolved")
    version = Column(Integer, default=1, nullable=False, comment="Optimistic concurrency token")

    created_at = Column(DateTime, default=datetime.utcnow, comment="Created at")
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, comment="Updated at")

    status_history = relationship(
        "StatusHistory", order_by="StatusHistory.id", lazy="selectin", cascade="all, delete-orphan",
    )
    comments = relationship(
        "Comment", order_by="Comment.id", lazy="selectin", cascade="all, delete-orphan",
    )
    responses = relationship(
        "Response", order_by="Response.id", lazy="selectin", cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_feedbacks_category_status", "category", "status"),
    )
    # Every ORM UPDATE checks and bumps `version`; a lost race raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Feedback(id={self.id}, ticket={self.ticket_number}, status={self.status.value})>"


class StatusHistory(Base):
    """One entry per status change, the first one written at creation"""
    __tablename__ = "feedback_status_history"

    id = Column(Integer, primary_key=True, index=True)
    feedback_id = Column(Integer, ForeignKey("feedbacks.id", ondelete="CASCADE"), index=True, nullable=False)
    status = Column(Enum(TicketStatus), nullable=False)
    changed_by = Column(String(200), nullable=False, comment="Display name or 'Citizen'")
    changed_by_id = Column(Integer, nullable=True)
    note = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)


class Comment(Base):
    """Comment on a ticket"""
    __tablename__ = "feedback_comments"

    id = Column(Integer, primary_key=True, index=True)
    feedback_id = Column(Integer, ForeignKey("feedbacks.id", ondelete="CASCADE"), index=True, nullable=False)
    parent_id = Column(Integer, ForeignKey("feedback_comments.id", ondelete="SET NULL"), nullable=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    author_type = Column(Enum(AuthorType), nullable=False)
    author_name = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Response(Base):
    """Official staff/admin response"""
    __tablename__ = "feedback_responses"

    id = Column(Integer, primary_key=True, index=True)
    feedback_id = Column(Integer, ForeignKey("feedbacks.id", ondelete="CASCADE"), index=True, nullable=False)
    by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    by_name = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    attachments = Column(JSON, default=list, nullable=False)
    status_update = Column(Enum(TicketStatus), nullable=False, comment="Ticket status after this response")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class FeedbackFollower(Base):
    """User following a ticket"""
    __tablename__ = "feedback_followers"

    id = Column(Integer, primary_key=True)
    feedback_id = Column(Integer, ForeignKey("feedbacks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("feedback_id", "user_id", name="uq_feedback_follower"),
    )


class Like(Base):
    """Like on a ticket, comment or response"""
    __tablename__ = "likes"

    id = Column(Integer, primary_key=True)
    subject_type = Column(Enum(LikeSubject), nullable=False)
    subject_id = Column(Integer, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("subject_type", "subject_id", "user_id", name="uq_like_subject_user"),
        Index("ix_likes_subject", "subject_type", "subject_id"),
    )
