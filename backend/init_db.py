"""
Database initialization script
---------------------------------
Features:
- Creates the users and user_sessions tables
- Creates the feedbacks, feedback_status_history, feedback_comments,
  feedback_responses, feedback_followers and likes tables

Usage:
python backend/init_db.py            # create missing tables
python backend/init_db.py --reset    # drop and recreate every table
"""

import asyncio
import sys

from app.config.database import engine
from app.models.base import Base
# Importing the models registers them on Base.metadata
from app.models.user import User, UserSession  # noqa: F401
from app.models.feedback import (  # noqa: F401
    Feedback, StatusHistory, Comment, Response, FeedbackFollower, Like,
)
from app.utils.logger import log


async def init_database(reset: bool = False):
    """Create the tables"""
    log.info("Initializing database...")
    log.info(f"Connecting to: {engine.url.render_as_string(hide_password=True)}")

    async with engine.begin() as conn:
        if reset:
            log.warning("Dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    await engine.dispose()

    log.info("Tables created")
    log.info(f"   Tables: {', '.join(Base.metadata.tables.keys())}")


if __name__ == "__main__":
    asyncio.run(init_database(reset="--reset" in sys.argv[1:]))
