"""
Fund runtime — the single fund instance this process serves.

Builds the fund and its in-memory collaborators from ``Settings`` and keeps
an outbox of committed engine events waiting to be journaled. The engine
publishes into the outbox synchronously as each operation commits; the
service layer drains it right after the call, before its first ``await``,
so events from two requests never mix.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, List, Optional, Tuple

from poolfund.adapters.lending import InMemoryLendingPool
from poolfund.adapters.token import InMemoryToken
from poolfund.core.config import Settings, settings
from poolfund.engine.capital import CapitalStrategy, HoldingStrategy
from poolfund.engine.events import FundEvent
from poolfund.engine.fund import ShareFund
from poolfund.engine.yield_routing import YieldRouting
from poolfund.models.fund_event import FundEventRecord
from poolfund.repositories.event_repo import EventRepository

logger = logging.getLogger(__name__)


@dataclass
class FundRuntime:
    fund: ShareFund
    asset: InMemoryToken
    venue: Optional[InMemoryLendingPool] = None
    outbox: Deque[Tuple[int, FundEvent]] = field(default_factory=deque)
    _sequence: int = 0

    def record(self, event: FundEvent) -> None:
        self._sequence += 1
        self.outbox.append((self._sequence, event))

    def drain(self) -> List[Tuple[int, FundEvent]]:
        events = list(self.outbox)
        self.outbox.clear()
        return events

    def requeue(self, events: List[Tuple[int, FundEvent]]) -> None:
        """Put back events whose journal write failed, ahead of newer ones."""
        self.outbox.extendleft(reversed(events))

    def resume_from(self, last_sequence: int) -> None:
        """Continue numbering after ``last_sequence`` (the journal's highest)."""
        if last_sequence > self._sequence:
            self._sequence = last_sequence
            logger.info("Journal sequence resumed after %d", last_sequence)


def build_runtime(cfg: Settings = settings) -> FundRuntime:
    """Create a fund backed by in-memory collaborators configured by ``cfg``."""
    asset = InMemoryToken(
        address=f"token:{cfg.ASSET_SYMBOL}",
        symbol=cfg.ASSET_SYMBOL,
        decimals=cfg.ASSET_DECIMALS,
    )

    venue: Optional[InMemoryLendingPool] = None
    strategy: CapitalStrategy
    if cfg.YIELD_ROUTING_ENABLED:
        venue = InMemoryLendingPool(address="venue:lending-pool")
        venue.list_reserve(asset)
        strategy = YieldRouting(venue)
    else:
        strategy = HoldingStrategy()

    fund = ShareFund(
        address=cfg.FUND_ADDRESS,
        asset=asset,
        owner=cfg.FUND_OWNER,
        min_investment=cfg.MIN_INVESTMENT,
        buy_fee_bps=cfg.BUY_FEE_BPS,
        sell_fee_bps=cfg.SELL_FEE_BPS,
        fee_collector=cfg.FEE_COLLECTOR,
        strategy=strategy,
    )
    runtime = FundRuntime(fund=fund, asset=asset, venue=venue)
    fund.subscribe(runtime.record)
    return runtime


_runtime: Optional[FundRuntime] = None


def get_runtime() -> FundRuntime:
    """Return the process-wide runtime, building it on first use."""
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
        logger.info("Fund runtime ready at %s", _runtime.fund.address)
    return _runtime


def reset_runtime() -> None:
    global _runtime
    _runtime = None


async def resume_journal(runtime: FundRuntime, session_factory: Callable[[], Any]) -> None:
    """Number new events after the highest sequence already journaled for the fund."""
    async with session_factory() as session:
        repo = EventRepository(FundEventRecord, session)
        last = await repo.last_sequence(runtime.fund.address)
    runtime.resume_from(last)
