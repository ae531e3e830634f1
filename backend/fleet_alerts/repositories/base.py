"""Base repository class."""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_alerts.core.exceptions import StoreError
from fleet_alerts.db.base import Base

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Base repository bound to one request-scoped session."""

    model: type[ModelT]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with a session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def get(self, id: uuid.UUID) -> ModelT | None:
        """Get a record by primary key, always reloading it from the database.

        Args:
            id: Primary key value.

        Returns:
            Model instance or None if not found.
        """
        async with self.store_errors("get"):
            stmt = (
                select(self.model)
                .where(self.model.id == id)
                .execution_options(populate_existing=True)
            )
            return await self.session.scalar(stmt)

    @asynccontextmanager
    async def store_errors(self, operation: str) -> AsyncIterator[None]:
        """Translate driver/ORM failures into an opaque StoreError."""
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error("%s.%s failed: %s", type(self).__name__, operation, exc, exc_info=True)
            raise StoreError() from exc
