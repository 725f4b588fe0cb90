"""
Role assignment script
---------------------------------
Features:
- Promote an account to staff (scoped to categories) or admin, or demote it
- List staff and admin accounts

Usage:
python backend/grant_role.py <email> <role> [category ...]
python backend/grant_role.py --list

Examples:
python backend/grant_role.py officer@example.rw staff Water Sanitation
python backend/grant_role.py chief@example.rw admin
python backend/grant_role.py former@example.rw user
"""

import asyncio
import sys

from sqlalchemy import select

from app.config.database import AsyncSessionLocal
from app.core.errors import CitizenError
from app.models.user import User, UserRole
from app.services.user_service import user_service
from app.utils.logger import log


async def grant_role(email: str, role: UserRole, categories: list) -> bool:
    """Set the role of the account registered with `email`"""
    async with AsyncSessionLocal() as db:
        user = await user_service.get_by_email(db, email)
        if not user:
            log.error(f"No account for {email}")
            return False

        try:
            user = await user_service.set_role(db, user.id, role, categories)
        except CitizenError as e:
            log.error(f"{e.kind}: {e.message}")
            return False

        log.info(f"{user.email} is now {user.role}")
        if user.categories:
            log.info(f"   Categories: {', '.join(user.categories)}")
        return True


async def list_privileged_users():
    """List staff and admin accounts"""
    async with AsyncSessionLocal() as db:
        stmt = (
            select(User)
            .where(User.role.in_([UserRole.STAFF.value, UserRole.ADMIN.value]))
            .order_by(User.role, User.id)
        )
        result = await db.execute(stmt)
        users = result.scalars().all()

        if not users:
            log.info("No staff or admin accounts yet")
            return

        log.info(f"Staff and admin accounts ({len(users)}):")
        log.info("-" * 70)
        log.info(f"{'ID':<6} {'Email':<32} {'Role':<8} Categories")
        log.info("-" * 70)
        for user in users:
            log.info(f"{user.id:<6} {user.email:<32} {user.role:<8} {', '.join(user.categories or []) or '-'}")


def print_usage():
    print("""
Role assignment
==========================================

Usage:
  python backend/grant_role.py <email> <role> [category ...]
  python backend/grant_role.py --list

Arguments:
  email      account email
  role       user, staff or admin
  category   staff only, one or more categories (e.g. Water Health)

Options:
  --list     list staff and admin accounts
==========================================
    """)


async def main():
    if len(sys.argv) < 2:
        print_usage()
        return

    if sys.argv[1] == "--list":
        await list_privileged_users()
        return

    if len(sys.argv) < 3:
        print_usage()
        return

    email = sys.argv[1]
    try:
        role = UserRole(sys.argv[2].lower())
    except ValueError:
        log.error(f"Unknown role {sys.argv[2]!r}, expected one of: user, staff, admin")
        return

    await grant_role(email, role, sys.argv[3:])


if __name__ == "__main__":
    asyncio.run(main())
