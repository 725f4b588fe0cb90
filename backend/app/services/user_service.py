"""
User service
---------------------------------
Features:
- Account registration and credential check
- Role and category assignment (admin operation, also used by grant_role.py)
- Profile serialization

Usage:
- `auth_router` registers and logs users in
- `user_router` and `grant_role.py` call `set_role`
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFound, Unauthorized, ValidationFailed
from ..models.user import User, UserRole
from ..utils.logger import log
from ..utils.phone_utils import validate_phone_number, mask_phone_number
from ..utils.ticket_utils import canonical_category, same_category
from .auth_service import hash_password, verify_password


class UserService:
    """Account management"""

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def register(
        db: AsyncSession,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> User:
        """Create a `user`-role account; the role can only be raised by an admin"""
        if phone_number and not validate_phone_number(phone_number):
            raise ValidationFailed("Invalid phone number format")
        if await UserService.get_by_email(db, email):
            raise ValidationFailed("This email is already registered")

        user = User(
            email=email.strip().lower(),
            hashed_password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
            role=UserRole.USER.value,
            categories=[],
            is_active=True,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)

        log.info(
            f"Registered user {user.id} ({user.email}"
            f"{', ' + mask_phone_number(phone_number) if phone_number else ''})"
        )
        return user

    @staticmethod
    async def authenticate(db: AsyncSession, email: str, password: str) -> User:
        user = await UserService.get_by_email(db, email)
        if not user or not verify_password(password, user.hashed_password):
            raise Unauthorized("Incorrect email or password", authenticated=False)
        if not user.is_active:
            raise Unauthorized("This account is disabled", authenticated=False)

        user.last_login = datetime.utcnow()
        return user

    @staticmethod
    async def set_role(
        db: AsyncSession,
        user_id: int,
        role: UserRole,
        categories: Optional[List[str]] = None,
    ) -> User:
        """
        Change a user's role

        Args:
            user_id: target user
            role: new role
            categories: staff categories; ignored (cleared) for other roles

        Returns:
            the updated user
        """
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFound("User not found")

        cleaned: List[str] = []
        if role == UserRole.STAFF:
            for category in categories or []:
                name = category.strip()
                if not name:
                    continue
                known = canonical_category(name)
                if not any(same_category(known, c) for c in cleaned):
                    cleaned.append(known)
            if not cleaned:
                raise ValidationFailed("Staff accounts need at least one category")

        user.role = role.value
        user.categories = cleaned
        await db.commit()
        await db.refresh(user)

        log.info(f"User {user.id} is now {user.role} {cleaned if cleaned else ''}".rstrip())
        return user

    @staticmethod
    async def list_users(db: AsyncSession, role: Optional[UserRole] = None) -> List[User]:
        query = select(User).order_by(User.id)
        if role is not None:
            query = query.where(User.role == role.value)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def profile(user: User) -> dict:
        return {
            "id": user.id,
            "email": user.email,
            "firstName": user.first_name,
            "lastName": user.last_name,
            "phoneNumber": mask_phone_number(user.phone_number) if user.phone_number else None,
            "role": user.role,
            "categories": list(user.categories or []),
            "isActive": user.is_active,
            "createdAt": user.created_at.isoformat() if user.created_at else None,
            "lastLogin": user.last_login.isoformat() if user.last_login else None,
        }


# Singleton
user_service = UserService()
