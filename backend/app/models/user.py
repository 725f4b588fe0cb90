"""
User and session models
---------------------------------
Features:
- `User`: account with role (user / staff / admin) and, for staff, the
  categories they are scoped to
- `UserSession`: server-side session row referenced by the bearer token

Usage:
- Role and categories are always read from these tables, never from the client
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, ForeignKey
from datetime import datetime
import enum

from .base import Base


class UserRole(str, enum.Enum):
    """Account roles"""
    USER = "user"
    STAFF = "staff"
    ADMIN = "admin"


class User(Base):
    """User account"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, comment="User ID")
    email = Column(String(255), unique=True, index=True, nullable=False, comment="Login email")
    hashed_password = Column(String(255), nullable=False, comment="bcrypt hash")
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone_number = Column(String(20), nullable=True, comment="Contact phone")
    role = Column(String(16), default=UserRole.USER.value, nullable=False, comment="user / staff / admin")
    # Staff only: categories this account may triage
    categories = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, comment="Created at")
    last_login = Column(DateTime, nullable=True, comment="Last login")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class UserSession(Base):
    """Server-side login session"""
    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    token_id = Column(String(64), unique=True, index=True, nullable=False, comment="Opaque session id")
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)

    def is_valid(self, now: datetime) -> bool:
        return self.revoked_at is None and now < self.expires_at
