"""
Generic async repository (data access layer).

Every database call is routed through ``journal_circuit_breaker`` so an
unreachable database fails fast instead of tying up request handlers until
the pool timeout. ``OperationalError`` on commit rolls the session back
before re-raising, so a broken transaction never leaks into the next call.
"""

import logging
from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from poolfund.core.resilience import journal_circuit_breaker

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository for SQLModel entities.

    Parameters
    ----------
    model : Type[ModelType]
        The SQLModel class this repository manages.
    db : AsyncSession
        An active async session (injected per request).
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def _guarded(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        return await journal_circuit_breaker.call(func, *args, **kwargs)

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except OperationalError:
            await self.db.rollback()
            logger.error("OperationalError committing %s", self.model.__name__)
            raise

    async def get(self, id: Any) -> Optional[ModelType]:
        """Fetch a single entity by primary key, or ``None``."""

        async def _get() -> Optional[ModelType]:
            return await self.db.get(self.model, id)

        return await self._guarded(_get)

    async def create_many(self, objs: Sequence[ModelType]) -> List[ModelType]:
        """Insert ``objs`` in one transaction."""

        async def _create_many() -> List[ModelType]:
            self.db.add_all(list(objs))
            await self._commit()
            return list(objs)

        return await self._guarded(_create_many)
