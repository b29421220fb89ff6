"""
Event journal repository — data-access layer for the ``fund_events`` table.
"""

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.future import select

from poolfund.engine.events import EventKind
from poolfund.models.fund_event import FundEventRecord
from poolfund.repositories.base import BaseRepository


class EventRepository(BaseRepository[FundEventRecord]):
    """Concrete repository for :class:`FundEventRecord` rows."""

    async def list_events(
        self,
        fund_address: str,
        kind: Optional[EventKind] = None,
        holder: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[FundEventRecord]:
        """
        Return a fund's journal in commit order, optionally filtered.

        Parameters
        ----------
        fund_address : str
            Fund whose events to return.
        kind : EventKind, optional
            Only events of this kind.
        holder : str, optional
            Only buy / sell events of this holder.
        skip, limit : int
            Offset pagination.
        """

        async def _list() -> List[FundEventRecord]:
            stmt = select(self.model).where(self.model.fund_address == fund_address)
            if kind is not None:
                stmt = stmt.where(self.model.kind == kind)
            if holder is not None:
                stmt = stmt.where(self.model.holder == holder)
            # created_at is the write time; a requeued batch lands late.
            stmt = stmt.order_by(self.model.sequence).offset(skip).limit(limit)
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._guarded(_list)

    async def last_sequence(self, fund_address: str) -> int:
        """Highest sequence journaled for ``fund_address``, or 0."""

        async def _last() -> int:
            stmt = select(func.max(self.model.sequence)).where(
                self.model.fund_address == fund_address
            )
            result = await self.db.execute(stmt)
            return result.scalar() or 0

        return await self._guarded(_last)
