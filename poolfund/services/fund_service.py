"""
Fund service — business logic layer between the API and the fund engine.

Every command runs the synchronous engine operation first and journals the
events it committed afterwards. The engine call contains no ``await``, so
two requests can never interleave inside a buy or a sell.

Journaling:
    A journal write that fails does not undo the fund operation, which has
    already moved money. The events go back to the front of the outbox and
    are written with the next successful request; the failure is logged at
    ERROR.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from poolfund.core.exceptions import NotFoundException
from poolfund.core.resilience import CircuitBreakerError
from poolfund.engine.events import (
    BuyFeeUpdated,
    EventKind,
    FeeCollectorUpdated,
    FundEvent,
    MinInvestmentUpdated,
    OwnershipTransferred,
    SellFeeUpdated,
    SharesBought,
    SharesSold,
)
from poolfund.engine.fund import FundSnapshot
from poolfund.models.fund_event import FundEventRecord
from poolfund.repositories.event_repo import EventRepository
from poolfund.services.fund_runtime import FundRuntime

logger = logging.getLogger(__name__)


class FundService:
    """Runs fund operations and journals the resulting events."""

    def __init__(self, runtime: FundRuntime, event_repo: EventRepository):
        self._runtime = runtime
        self._fund = runtime.fund
        self._repo = event_repo

    # ── Queries ──

    async def get_snapshot(self) -> FundSnapshot:
        return self._fund.snapshot()

    async def get_holder(self, holder: str) -> Tuple[int, int]:
        """Share balance and current value of ``holder``."""
        return self._fund.get_shares_balance(holder), self._fund.get_shares_value(holder)

    async def list_events(
        self,
        kind: Optional[EventKind] = None,
        holder: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[FundEventRecord]:
        await self._flush_journal()
        return await self._repo.list_events(
            self._fund.address, kind=kind, holder=holder, skip=skip, limit=limit
        )

    async def get_event(self, event_id: UUID) -> FundEventRecord:
        await self._flush_journal()
        record = await self._repo.get(event_id)
        if record is None or record.fund_address != self._fund.address:
            raise NotFoundException("Fund event", event_id)
        return record

    # ── Commands ──

    async def buy(self, holder: str, amount: int) -> SharesBought:
        event = self._fund.buy_shares(holder, amount)
        await self._flush_journal()
        return event

    async def sell(self, holder: str, shares: int) -> SharesSold:
        event = self._fund.sell_shares(holder, shares)
        await self._flush_journal()
        return event

    async def set_min_investment(self, caller: str, value: int) -> MinInvestmentUpdated:
        event = self._fund.set_min_investment(caller, value)
        await self._flush_journal()
        return event

    async def set_buy_fee(self, caller: str, fee_bps: int) -> BuyFeeUpdated:
        event = self._fund.set_buy_fee(caller, fee_bps)
        await self._flush_journal()
        return event

    async def set_sell_fee(self, caller: str, fee_bps: int) -> SellFeeUpdated:
        event = self._fund.set_sell_fee(caller, fee_bps)
        await self._flush_journal()
        return event

    async def set_fee_collector(self, caller: str, collector: str) -> FeeCollectorUpdated:
        event = self._fund.set_fee_collector(caller, collector)
        await self._flush_journal()
        return event

    async def transfer_ownership(self, caller: str, new_owner: str) -> OwnershipTransferred:
        event = self._fund.transfer_ownership(caller, new_owner)
        await self._flush_journal()
        return event

    async def deposit_to_yield(self, caller: str, amount: int) -> FundSnapshot:
        self._fund.deposit_to_yield(caller, amount)
        await self._flush_journal()
        return self._fund.snapshot()

    async def withdraw_from_yield(self, caller: str, amount: int) -> FundSnapshot:
        self._fund.withdraw_from_yield(caller, amount)
        await self._flush_journal()
        return self._fund.snapshot()

    async def refresh_yield_receipt(self, caller: str) -> FundSnapshot:
        self._fund.refresh_yield_receipt(caller)
        await self._flush_journal()
        return self._fund.snapshot()

    # ── Journal ──

    def _to_record(self, sequence: int, event: FundEvent) -> FundEventRecord:
        return FundEventRecord(
            fund_address=self._fund.address,
            sequence=sequence,
            kind=event.kind,
            holder=getattr(event, "holder", None),
            payload=event.payload(),
        )

    async def _flush_journal(self) -> None:
        pending = self._runtime.drain()
        if not pending:
            return
        records = [self._to_record(seq, event) for seq, event in pending]
        try:
            await self._repo.create_many(records)
        except (CircuitBreakerError, SQLAlchemyError, OSError) as exc:
            self._runtime.requeue(pending)
            logger.error(
                "Journal write failed, %d event(s) requeued: %s", len(pending), exc
            )
            return
        logger.debug("Journaled %d event(s)", len(records))
