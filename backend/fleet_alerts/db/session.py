from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from fleet_alerts.db.engine import async_session_factory


async def get_db() -> AsyncIterator[AsyncSession]:
    """One session and one transaction per request; commit on success."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
