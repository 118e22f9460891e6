"""
Database initialization module.
Create the ledger tables.
"""

import asyncio
import logging

from qred.core.database import engine
from qred.models.base import Base
# Import all models to ensure they are registered
from qred.models.user import User  # noqa: F401
from qred.models.debt import Debt, Payment  # noqa: F401

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize database by creating all tables."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database tables ready: {sorted(Base.metadata.tables)}")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_db())
