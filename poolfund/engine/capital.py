"""
Capital strategies: where a fund keeps its base asset and how equity is measured.

A :class:`~poolfund.engine.fund.ShareFund` is given one strategy at
construction and delegates every equity read to it, together with the two
hooks around buy and sell. The default :class:`HoldingStrategy` keeps all
capital on hand; :class:`~poolfund.engine.yield_routing.YieldRouting` lends
it out.
"""

from typing import List, Optional

from poolfund.core.exceptions import YieldRoutingDisabled
from poolfund.engine.events import EventBuffer
from poolfund.engine.ports import BaseAsset, Journaled, ReceiptToken


class CapitalStrategy:
    """
    Base strategy. Equity is whatever the fund holds on hand.

    Subclasses that move capital elsewhere override :meth:`yield_balance`
    and the buy/sell hooks. The admin rebalancing operations are rejected
    unless a subclass supports them.
    """

    yield_routing = False

    def __init__(self) -> None:
        self._fund_address: Optional[str] = None
        self._asset: Optional[BaseAsset] = None
        self._events: Optional[EventBuffer] = None

    def bind(self, fund_address: str, asset: BaseAsset, events: EventBuffer) -> None:
        """Attach the strategy to the fund it serves. Called once by the fund."""
        if self._fund_address is not None:
            raise RuntimeError("capital strategy is already bound to a fund")
        self._fund_address = fund_address
        self._asset = asset
        self._events = events

    # ── Equity ──

    def on_hand(self) -> int:
        return self._asset.balance_of(self._fund_address)

    def yield_balance(self) -> int:
        return 0

    def equity(self) -> int:
        return self.on_hand() + self.yield_balance()

    # ── Hooks around buy / sell ──

    def after_buy(self) -> None:
        pass

    def before_sell(self, amount_to_pay: int) -> None:
        pass

    # ── Administrative rebalancing ──

    def receipt_address(self) -> Optional[str]:
        return None

    def supply(self, amount: int) -> None:
        raise YieldRoutingDisabled()

    def withdraw(self, amount: int) -> int:
        raise YieldRoutingDisabled()

    def set_receipt(self, receipt: Optional[ReceiptToken]) -> None:
        raise YieldRoutingDisabled()

    def refresh_receipt(self) -> None:
        raise YieldRoutingDisabled()

    def journaled(self) -> List[Journaled]:
        """Collaborators, besides the base asset, to checkpoint around operations."""
        return []


class HoldingStrategy(CapitalStrategy):
    """Keeps every unit of the base asset in the fund's own balance."""
