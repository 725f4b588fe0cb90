"""
Dashboard routes
---------------------------------
- GET /api/dashboard/stats - ticket statistics for staff and admins
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_db
from ..models.response_schema import ApiResponse
from ..services.access_policy import Actor
from ..services.auth_service import get_actor
from ..services.dashboard_service import dashboard_service

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=ApiResponse)
async def get_stats(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Ticket statistics

    Returns:
    - total, byStatus, byType, byCategory
    - anonymous, rated, averageRating

    Staff only see figures for their own categories.
    """
    return ApiResponse.ok(await dashboard_service.get_stats(db, actor))
