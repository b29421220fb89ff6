"""
Events emitted by the fund engine.

Every successful mutating operation produces one or more of these. The
service layer persists them to the ``fund_events`` journal; tests use them
to assert exactly what an operation did.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional


class EventKind(str, Enum):
    SHARES_BOUGHT = "SharesBought"
    SHARES_SOLD = "SharesSold"
    MIN_INVESTMENT_UPDATED = "MinInvestmentUpdated"
    BUY_FEE_UPDATED = "BuyFeeUpdated"
    SELL_FEE_UPDATED = "SellFeeUpdated"
    FEE_COLLECTOR_UPDATED = "FeeCollectorUpdated"
    OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
    YIELD_RECEIPT_UPDATED = "YieldReceiptUpdated"
    YIELD_SUPPLIED = "YieldSupplied"
    YIELD_WITHDRAWN = "YieldWithdrawn"


@dataclass(frozen=True)
class FundEvent:
    kind: ClassVar[EventKind]

    def payload(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SharesBought(FundEvent):
    """Deposit settled: ``equity_change`` is what actually stayed in the fund."""

    kind: ClassVar[EventKind] = EventKind.SHARES_BOUGHT

    holder: str
    amount: int
    shares_minted: int
    equity_change: int
    fee_amount: int
    share_price: int


@dataclass(frozen=True)
class SharesSold(FundEvent):
    kind: ClassVar[EventKind] = EventKind.SHARES_SOLD

    holder: str
    shares_burned: int
    amount_paid: int
    fee_amount: int
    share_price: int


@dataclass(frozen=True)
class MinInvestmentUpdated(FundEvent):
    kind: ClassVar[EventKind] = EventKind.MIN_INVESTMENT_UPDATED

    old_value: int
    new_value: int


@dataclass(frozen=True)
class BuyFeeUpdated(FundEvent):
    kind: ClassVar[EventKind] = EventKind.BUY_FEE_UPDATED

    old_bps: int
    new_bps: int


@dataclass(frozen=True)
class SellFeeUpdated(FundEvent):
    kind: ClassVar[EventKind] = EventKind.SELL_FEE_UPDATED

    old_bps: int
    new_bps: int


@dataclass(frozen=True)
class FeeCollectorUpdated(FundEvent):
    kind: ClassVar[EventKind] = EventKind.FEE_COLLECTOR_UPDATED

    old_collector: str
    new_collector: str


@dataclass(frozen=True)
class OwnershipTransferred(FundEvent):
    kind: ClassVar[EventKind] = EventKind.OWNERSHIP_TRANSFERRED

    previous_owner: str
    new_owner: str


@dataclass(frozen=True)
class YieldReceiptUpdated(FundEvent):
    kind: ClassVar[EventKind] = EventKind.YIELD_RECEIPT_UPDATED

    old_receipt: Optional[str]
    new_receipt: Optional[str]


@dataclass(frozen=True)
class YieldSupplied(FundEvent):
    kind: ClassVar[EventKind] = EventKind.YIELD_SUPPLIED

    amount: int


@dataclass(frozen=True)
class YieldWithdrawn(FundEvent):
    kind: ClassVar[EventKind] = EventKind.YIELD_WITHDRAWN

    amount: int


EventListener = Callable[[FundEvent], None]


class EventBuffer:
    """
    Collects events for the operation in progress.

    Listeners only see events once the operation has committed; a
    rolled-back operation discards whatever it buffered.
    """

    def __init__(self) -> None:
        self._pending: List[FundEvent] = []
        self._listeners: List[EventListener] = []

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def emit(self, event: FundEvent) -> None:
        self._pending.append(event)

    def discard(self) -> None:
        self._pending.clear()

    def flush(self) -> List[FundEvent]:
        events, self._pending = self._pending, []
        for event in events:
            for listener in self._listeners:
                listener(event)
        return events
