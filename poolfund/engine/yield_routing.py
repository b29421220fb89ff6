"""
Yield-routing capital strategy.

Idle capital is lent to an external venue in exchange for an
interest-bearing receipt token. Equity is the on-hand balance plus the live
receipt balance, so accrued interest shows up in the share price the moment
it accrues.

Around the fund's operations:
- after a buy, 100% of the on-hand balance is supplied to the venue
  (skipped while no receipt is resolved);
- before a sell, exactly the shortfall between the payout and the on-hand
  balance is withdrawn, never more.

The receipt token is discovered from the venue's reserve data when the
strategy is bound. Discovery is best effort: a venue that cannot answer
leaves the fund uninvested until the owner refreshes the receipt.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from poolfund.core.exceptions import (
    AppException,
    BusinessRuleViolation,
    TransferFailed,
    YieldVenueError,
)
from poolfund.engine.capital import CapitalStrategy
from poolfund.engine.events import EventBuffer, YieldReceiptUpdated, YieldSupplied, YieldWithdrawn
from poolfund.engine.ports import BaseAsset, Journaled, ReceiptToken, YieldVenue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptLookup:
    """Outcome of asking the venue for the asset's receipt token."""

    receipt: Optional[ReceiptToken] = None
    reason: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.receipt is not None


def lookup_receipt(venue: YieldVenue, asset_address: str) -> ReceiptLookup:
    """Ask ``venue`` for the receipt token of ``asset_address`` without raising."""
    try:
        reserve = venue.get_reserve_data(asset_address)
    except Exception as exc:
        return ReceiptLookup(reason=f"{type(exc).__name__}: {exc}")
    if reserve.receipt_token is None:
        return ReceiptLookup(reason="reserve has no receipt token")
    return ReceiptLookup(receipt=reserve.receipt_token)


class YieldRouting(CapitalStrategy):
    """Routes the fund's idle capital into a lending venue."""

    yield_routing = True

    def __init__(
        self,
        venue: YieldVenue,
        receipt: Optional[ReceiptToken] = None,
        referral_code: int = 0,
    ):
        super().__init__()
        self._venue = venue
        self._receipt = receipt
        self._referral_code = referral_code

    def bind(self, fund_address: str, asset: BaseAsset, events: EventBuffer) -> None:
        super().bind(fund_address, asset, events)
        if self._receipt is not None:
            return
        lookup = lookup_receipt(self._venue, asset.address)
        if lookup.resolved:
            self._receipt = lookup.receipt
            logger.info("Yield receipt resolved: %s", self._receipt.address)
        else:
            logger.warning(
                "Yield receipt unavailable (%s); equity counts on-hand balance only",
                lookup.reason,
            )

    @property
    def venue(self) -> YieldVenue:
        return self._venue

    def receipt_address(self) -> Optional[str]:
        return self._receipt.address if self._receipt is not None else None

    def yield_balance(self) -> int:
        if self._receipt is None:
            return 0
        return self._receipt.balance_of(self._fund_address)

    # ── Hooks ──

    def after_buy(self) -> None:
        if self._receipt is None:
            logger.debug("Yield receipt unresolved; deposit stays on hand")
            return
        idle = self.on_hand()
        if idle > 0:
            self.supply(idle)

    def before_sell(self, amount_to_pay: int) -> None:
        on_hand = self.on_hand()
        if on_hand >= amount_to_pay:
            return
        self.withdraw(amount_to_pay - on_hand)

    # ── Venue interaction ──

    def supply(self, amount: int) -> None:
        if amount <= 0:
            raise BusinessRuleViolation(f"Supply amount must be positive, got {amount}")
        if self._receipt is None:
            raise YieldVenueError("Yield receipt is unresolved; refresh it before supplying")
        if not self._asset.approve(self._fund_address, self._venue.address, amount):
            raise TransferFailed("approval", amount)
        try:
            self._venue.supply(
                self._asset.address,
                amount,
                self._fund_address,
                self._referral_code,
                caller=self._fund_address,
            )
        except AppException:
            raise
        except Exception as exc:
            raise YieldVenueError(f"Yield venue rejected supply of {amount}: {exc}") from exc
        self._events.emit(YieldSupplied(amount=amount))
        logger.info("Supplied %d to yield venue", amount)

    def withdraw(self, amount: int) -> int:
        if amount <= 0:
            raise BusinessRuleViolation(f"Withdraw amount must be positive, got {amount}")
        try:
            withdrawn = self._venue.withdraw(
                self._asset.address, amount, self._fund_address, caller=self._fund_address
            )
        except AppException:
            raise
        except Exception as exc:
            raise YieldVenueError(f"Yield venue rejected withdrawal of {amount}: {exc}") from exc
        if withdrawn < amount:
            raise YieldVenueError(
                f"Yield venue returned {withdrawn} of the {amount} requested"
            )
        self._events.emit(YieldWithdrawn(amount=withdrawn))
        logger.info("Withdrew %d from yield venue", withdrawn)
        return withdrawn

    def set_receipt(self, receipt: Optional[ReceiptToken]) -> None:
        old = self.receipt_address()
        self._receipt = receipt
        new = self.receipt_address()
        self._events.emit(YieldReceiptUpdated(old_receipt=old, new_receipt=new))
        logger.info("Yield receipt set: %s -> %s", old, new)

    def refresh_receipt(self) -> None:
        lookup = lookup_receipt(self._venue, self._asset.address)
        if not lookup.resolved:
            raise YieldVenueError(f"Yield receipt could not be resolved: {lookup.reason}")
        self.set_receipt(lookup.receipt)

    def journaled(self) -> List[Journaled]:
        return [
            c for c in (self._venue, self._receipt) if isinstance(c, Journaled)
        ]
