"""
Authentication service
---------------------------------
Features:
- Password hashing (bcrypt)
- Session creation / revocation (server-side `user_sessions` rows)
- JWT access tokens that carry only `user_id` and the session id `sid`
- FastAPI dependencies resolving the caller to a `User` and an `Actor`

Usage:
- `current_user: User = Depends(get_current_user)` for endpoints that need a login
- `actor: Actor | None = Depends(get_actor_optional)` for endpoints open to guests

Role and categories never come from the token or the client: they are read
from the `users` row on every request.
"""

from datetime import datetime, timedelta
import secrets

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_db
from ..config.settings import JWT_SECRET_KEY, JWT_ALGORITHM, JWT_EXPIRE_MINUTES
from ..core.errors import Unauthorized
from ..models.user import User, UserSession
from ..utils.logger import log
from .access_policy import Actor

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: dict, expires_minutes: int = JWT_EXPIRE_MINUTES) -> str:
    """
    Sign a JWT

    Args:
        data: claims, e.g. {"user_id": 1, "sid": "..."}
        expires_minutes: lifetime

    Returns:
        encoded token
    """
    payload = dict(data)
    payload["exp"] = datetime.utcnow() + timedelta(minutes=expires_minutes)
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode a JWT, None if invalid or expired"""
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        log.debug(f"Rejected token: {e}")
        return None


async def create_session(user: User, db: AsyncSession) -> str:
    """Open a session for `user` and return its bearer token"""
    now = datetime.utcnow()
    session = UserSession(
        user_id=user.id,
        token_id=secrets.token_urlsafe(32),
        created_at=now,
        expires_at=now + timedelta(minutes=JWT_EXPIRE_MINUTES),
    )
    db.add(session)
    await db.flush()
    return create_access_token({"user_id": user.id, "sid": session.token_id})


async def revoke_session(token: str, db: AsyncSession) -> bool:
    payload = decode_access_token(token)
    if not payload:
        return False
    result = await db.execute(select(UserSession).where(UserSession.token_id == payload.get("sid")))
    session = result.scalar_one_or_none()
    if not session or session.revoked_at is not None:
        return False
    session.revoked_at = datetime.utcnow()
    await db.commit()
    return True


async def resolve_user(token: str | None, db: AsyncSession) -> User | None:
    """
    Map a bearer token to an active user

    The token must decode, its session must exist, be unexpired and not
    revoked, and the user must be active. Anything else is "no user".
    """
    if not token:
        return None

    payload = decode_access_token(token)
    if not payload:
        return None

    user_id = payload.get("user_id")
    sid = payload.get("sid")
    if not user_id or not sid:
        return None

    result = await db.execute(
        select(UserSession).where(UserSession.token_id == sid, UserSession.user_id == user_id)
    )
    session = result.scalar_one_or_none()
    if not session or not session.is_valid(datetime.utcnow()):
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        return None
    return user


async def get_current_user_optional(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> User | None:
    """Dependency: current user or None"""
    return await resolve_user(token, db)


async def get_current_user(
    user: User | None = Depends(get_current_user_optional),
) -> User:
    """Dependency: current user, 401 without a valid session"""
    if user is None:
        raise Unauthorized("You must be logged in", authenticated=False)
    return user


async def get_actor_optional(
    user: User | None = Depends(get_current_user_optional),
) -> Actor | None:
    return Actor.from_user(user) if user else None


async def get_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(user)
