"""
User administration routes
---------------------------------
Features:
- GET   /api/users              - list accounts (admin)
- PATCH /api/users/{id}/role    - set role and staff categories (admin)

Usage:
- Mounted in main.py via app.include_router
- Command-line equivalent: backend/grant_role.py
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_db
from ..models.feedback_schema import RoleUpdateRequest
from ..models.response_schema import ApiResponse
from ..models.user import UserRole
from ..services.access_policy import Actor, Capability, authorize
from ..services.auth_service import get_actor
from ..services.user_service import user_service
from ..utils.logger import log

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=ApiResponse)
async def list_users(
    role: Optional[UserRole] = None,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    List accounts

    Query:
    - role: only accounts with this role (user / staff / admin)
    """
    authorize(actor, Capability.MANAGE_USERS)
    users = await user_service.list_users(db, role)
    return ApiResponse.ok({
        "items": [user_service.profile(u) for u in users],
        "total": len(users),
    })


@router.patch("/{user_id}/role", response_model=ApiResponse)
async def update_role(
    user_id: int,
    req: RoleUpdateRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Set a user's role

    Body:
    - role: user / staff / admin
    - categories: required for staff, the categories they may handle
    """
    authorize(actor, Capability.MANAGE_USERS)
    user = await user_service.set_role(db, user_id, req.role, req.categories)
    log.info(f"Admin {actor.id} set role of user {user.id} to {user.role}")
    return ApiResponse.ok(user_service.profile(user))
