"""
Dashboard statistics
---------------------------------
Features:
- Ticket counts by status, type and category
- Anonymous ticket count, rated ticket count and average rating

Usage:
- Staff see figures for their categories only; admins see everything
"""

from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import Unauthorized
from ..models.feedback import Feedback, TicketStatus, FeedbackType
from ..utils.ticket_utils import canonical_category
from .access_policy import Actor, require_actor
from .feedback_service import FeedbackService


class DashboardService:
    """Aggregate views for staff and admins"""

    @staticmethod
    async def get_stats(db: AsyncSession, actor: Optional[Actor]) -> dict:
        actor = require_actor(actor)
        if not actor.is_staff_or_admin:
            raise Unauthorized("Only staff and admins can view the dashboard")

        visibility = FeedbackService.visibility_clause(actor)
        conditions = [visibility] if visibility is not None else []

        async def grouped(column) -> dict:
            result = await db.execute(
                select(column, func.count(Feedback.id)).where(*conditions).group_by(column)
            )
            return {key: count for key, count in result.all()}

        by_status = await grouped(Feedback.status)
        by_type = await grouped(Feedback.type)
        # case variants of one category count together, under its canonical spelling
        category_key = func.lower(Feedback.category)
        result = await db.execute(
            select(func.min(Feedback.category), func.count(Feedback.id))
            .where(*conditions)
            .group_by(category_key)
        )
        by_category = {canonical_category(name): count for name, count in result.all()}

        result = await db.execute(
            select(
                func.count(Feedback.id),
                func.count(Feedback.rating),
                func.avg(Feedback.rating),
            ).where(*conditions)
        )
        total, rated, average = result.one()

        result = await db.execute(
            select(func.count(Feedback.id)).where(*conditions, Feedback.is_anonymous.is_(True))
        )
        anonymous = result.scalar_one()

        return {
            "total": total,
            "byStatus": {s.value: by_status.get(s, 0) for s in TicketStatus},
            "byType": {t.value: by_type.get(t, 0) for t in FeedbackType},
            "byCategory": dict(sorted(by_category.items())),
            "anonymous": anonymous,
            "rated": rated,
            "averageRating": round(float(average), 2) if average is not None else None,
        }


dashboard_service = DashboardService()
