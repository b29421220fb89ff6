"""
Fund accounting state machine.

:class:`ShareFund` owns the fund's aggregate state (total shares, per-holder
balances, last share price, fee parameters) and is the only code that
mutates it. Prices and quantities come from :mod:`poolfund.engine.pricing`;
equity comes from the capital strategy chosen at construction.

Every mutating entry point runs inside :meth:`ShareFund._operation`, which:

1. rejects the call if another mutating call on the same fund is still in
   progress (a collaborator calling back into the fund mid-transfer);
2. snapshots the fund state and checkpoints every journaled collaborator;
3. on any exception restores both, discards buffered events and re-raises;
4. on success publishes the buffered events to subscribers.

Share balances, total shares and the last price are always finalized before
the fund pays anything out.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional

from poolfund.core.exceptions import (
    BelowMinInvestment,
    BusinessRuleViolation,
    FeeTooHigh,
    FundInsolvent,
    InsufficientShares,
    InvalidShareAmount,
    NothingToMint,
    NotOwner,
    ReentrantCallError,
    TransferFailed,
    ZeroAddress,
)
from poolfund.engine import pricing
from poolfund.engine.capital import CapitalStrategy, HoldingStrategy
from poolfund.engine.events import (
    BuyFeeUpdated,
    EventBuffer,
    EventListener,
    FeeCollectorUpdated,
    MinInvestmentUpdated,
    OwnershipTransferred,
    SellFeeUpdated,
    SharesBought,
    SharesSold,
)
from poolfund.engine.ports import BaseAsset, Journaled, ReceiptToken, is_zero_address

logger = logging.getLogger(__name__)


@dataclass
class FundState:
    """Aggregate fund state. ``total_shares`` always equals ``sum(shares_of.values())``."""

    decimals: int
    last_share_price: int
    min_investment: int
    buy_fee_bps: int
    sell_fee_bps: int
    fee_collector: str
    owner: str
    total_shares: int = 0
    shares_of: Dict[str, int] = field(default_factory=dict)

    def copy(self) -> "FundState":
        return replace(self, shares_of=dict(self.shares_of))


@dataclass(frozen=True)
class FundSnapshot:
    """Point-in-time view of a fund, with equity measured at capture time."""

    address: str
    asset: str
    decimals: int
    owner: str
    equity: int
    on_hand: int
    yield_balance: int
    total_shares: int
    share_price: int
    last_share_price: int
    min_investment: int
    buy_fee_bps: int
    sell_fee_bps: int
    fee_collector: str
    holder_count: int
    yield_routing: bool
    yield_receipt: Optional[str]


def _check_fee(fee_bps: int) -> None:
    if not 0 <= fee_bps <= pricing.MAX_FEE_BPS:
        raise FeeTooHigh(fee_bps, pricing.MAX_FEE_BPS)


class ShareFund:
    """
    Open-ended pooled fund over a single base asset.

    Parameters
    ----------
    address : str
        The fund's own account at the base asset.
    asset : BaseAsset
        The token the fund accepts and pays out.
    owner : str
        Account allowed to call the administrative operations.
    min_investment : int
        Smallest accepted deposit, in base-asset units.
    buy_fee_bps, sell_fee_bps : int
        Fees in basis points, each at most ``pricing.MAX_FEE_BPS``.
    fee_collector : str
        Account that receives buy and sell fees; defaults to ``owner``.
    strategy : CapitalStrategy, optional
        Where capital is kept; defaults to :class:`HoldingStrategy`.
    """

    def __init__(
        self,
        address: str,
        asset: BaseAsset,
        owner: str,
        min_investment: int = 0,
        buy_fee_bps: int = 0,
        sell_fee_bps: int = 0,
        fee_collector: Optional[str] = None,
        strategy: Optional[CapitalStrategy] = None,
    ):
        if is_zero_address(address):
            raise ZeroAddress("Fund address")
        if is_zero_address(owner):
            raise ZeroAddress("Owner")
        if fee_collector is None:
            fee_collector = owner
        if is_zero_address(fee_collector):
            raise ZeroAddress("Fee collector")
        if min_investment < 0:
            raise BusinessRuleViolation("Minimum investment must not be negative")
        _check_fee(buy_fee_bps)
        _check_fee(sell_fee_bps)

        decimals = asset.decimals()
        self.address = address
        self.asset = asset
        self._state = FundState(
            decimals=decimals,
            last_share_price=10**decimals,
            min_investment=min_investment,
            buy_fee_bps=buy_fee_bps,
            sell_fee_bps=sell_fee_bps,
            fee_collector=fee_collector,
            owner=owner,
        )
        self._events = EventBuffer()
        self._active: Optional[str] = None
        self._strategy = strategy if strategy is not None else HoldingStrategy()
        self._strategy.bind(address, asset, self._events)

        logger.info(
            "Fund %s created: asset=%s decimals=%d min_investment=%d "
            "buy_fee=%dbps sell_fee=%dbps yield_routing=%s",
            address,
            asset.address,
            decimals,
            min_investment,
            buy_fee_bps,
            sell_fee_bps,
            self._strategy.yield_routing,
        )

    # ── Operation scope ──

    def subscribe(self, listener: EventListener) -> None:
        """Receive every event of every committed operation, in order."""
        self._events.subscribe(listener)

    def _journaled(self) -> List[Journaled]:
        seen: Dict[int, Journaled] = {}
        for collaborator in [self.asset, *self._strategy.journaled()]:
            if isinstance(collaborator, Journaled):
                seen.setdefault(id(collaborator), collaborator)
        return list(seen.values())

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        if self._active is not None:
            logger.warning(
                "Rejected reentrant call to %s while %s is in progress", name, self._active
            )
            raise ReentrantCallError(name)

        self._active = name
        saved = self._state.copy()
        checkpoints = []
        try:
            for collaborator in self._journaled():
                checkpoints.append((collaborator, collaborator.checkpoint()))
            yield
        except Exception as exc:
            self._state = saved
            for collaborator, token in reversed(checkpoints):
                collaborator.rollback(token)
            self._events.discard()
            logger.warning("%s aborted, state rolled back: %s", name, exc)
            raise
        finally:
            self._active = None
        self._events.flush()

    @contextmanager
    def _admin(self, caller: str, name: str) -> Iterator[None]:
        with self._operation(name):
            if caller != self._state.owner:
                raise NotOwner(caller)
            yield

    # ── Collaborator helpers ──

    def _pull(self, holder: str, amount: int) -> None:
        if not self.asset.transfer_from(self.address, holder, self.address, amount):
            raise TransferFailed("deposit pull", amount)

    def _pay(self, to: str, amount: int, action: str) -> None:
        if not self.asset.transfer(self.address, to, amount):
            raise TransferFailed(action, amount)

    def _record_price(self, new_price: int) -> None:
        # A price can floor to zero after a catastrophic loss; keep the last
        # positive one so an emptied fund never falls back to a free price.
        if new_price > 0:
            self._state.last_share_price = new_price

    # ── Reads ──

    def get_equity(self) -> int:
        """Total fund equity in base-asset units, measured now."""
        return self._strategy.equity()

    def get_share_price(self) -> int:
        s = self._state
        return pricing.share_price(
            self.get_equity(), s.total_shares, s.last_share_price, s.decimals
        )

    def get_last_share_price(self) -> int:
        return self._state.last_share_price

    def get_total_shares(self) -> int:
        return self._state.total_shares

    def get_shares_balance(self, holder: str) -> int:
        return self._state.shares_of.get(holder, 0)

    def get_shares_value(self, holder: str) -> int:
        """What ``holder``'s shares are worth at the current price, before fees."""
        return self.get_shares_balance(holder) * self.get_share_price() // 10**self._state.decimals

    def holders(self) -> Dict[str, int]:
        return dict(self._state.shares_of)

    @property
    def decimals(self) -> int:
        return self._state.decimals

    @property
    def owner(self) -> str:
        return self._state.owner

    @property
    def strategy(self) -> CapitalStrategy:
        return self._strategy

    def snapshot(self) -> FundSnapshot:
        s = self._state
        on_hand = self._strategy.on_hand()
        yield_balance = self._strategy.yield_balance()
        equity = on_hand + yield_balance
        return FundSnapshot(
            address=self.address,
            asset=self.asset.address,
            decimals=s.decimals,
            owner=s.owner,
            equity=equity,
            on_hand=on_hand,
            yield_balance=yield_balance,
            total_shares=s.total_shares,
            share_price=pricing.share_price(
                equity, s.total_shares, s.last_share_price, s.decimals
            ),
            last_share_price=s.last_share_price,
            min_investment=s.min_investment,
            buy_fee_bps=s.buy_fee_bps,
            sell_fee_bps=s.sell_fee_bps,
            fee_collector=s.fee_collector,
            holder_count=len(s.shares_of),
            yield_routing=self._strategy.yield_routing,
            yield_receipt=self._strategy.receipt_address(),
        )

    # ── Buy / sell ──

    def buy_shares(self, holder: str, amount: int) -> SharesBought:
        """
        Deposit ``amount`` of the base asset from ``holder`` and mint shares.

        Shares are priced on the equity the deposit actually added once the
        buy fee has left the fund, never on the nominal ``amount``.
        """
        with self._operation("buy_shares"):
            s = self._state
            if is_zero_address(holder):
                raise ZeroAddress("Buyer")
            if amount <= 0 or amount < s.min_investment:
                raise BelowMinInvestment(amount, s.min_investment)

            fee_amount = pricing.fee(amount, s.buy_fee_bps)
            equity_before = self.get_equity()
            if s.total_shares > 0 and equity_before == 0:
                raise FundInsolvent()

            self._pull(holder, amount)
            if fee_amount > 0:
                self._pay(s.fee_collector, fee_amount, "buy fee transfer")

            equity_change = self.get_equity() - equity_before
            if equity_change <= 0:
                raise NothingToMint(equity_change)
            shares, new_price = pricing.shares_to_mint_and_price(
                equity_change,
                equity_before,
                s.total_shares,
                s.decimals,
                fallback_price=s.last_share_price,
            )
            if shares == 0:
                raise NothingToMint(equity_change)

            self._record_price(new_price)
            s.shares_of[holder] = s.shares_of.get(holder, 0) + shares
            s.total_shares += shares

            event = SharesBought(
                holder=holder,
                amount=amount,
                shares_minted=shares,
                equity_change=equity_change,
                fee_amount=fee_amount,
                share_price=s.last_share_price,
            )
            self._events.emit(event)
            logger.info(
                "Buy: holder=%s amount=%d fee=%d equity_change=%d shares=%d price=%d",
                holder,
                amount,
                fee_amount,
                equity_change,
                shares,
                s.last_share_price,
                extra={"holder": holder, "amount": amount, "shares": shares},
            )

            self._strategy.after_buy()
            return event

    def sell_shares(self, holder: str, shares: int) -> SharesSold:
        """
        Burn ``shares`` of ``holder`` and pay out their value net of the sell fee.

        The payout is priced at the equity measured during this call.
        """
        with self._operation("sell_shares"):
            s = self._state
            if shares <= 0:
                raise InvalidShareAmount(shares)
            balance = s.shares_of.get(holder, 0)
            if balance < shares:
                raise InsufficientShares(holder, shares, balance)

            scale = 10**s.decimals
            self._strategy.before_sell(shares * self.get_share_price() // scale)

            equity = self.get_equity()
            current_price = pricing.share_price(
                equity, s.total_shares, s.last_share_price, s.decimals
            )
            amount_to_pay, new_price = pricing.redemption_amount_and_price(
                shares, equity, s.total_shares, current_price, s.decimals
            )
            fee_amount = pricing.fee(amount_to_pay, s.sell_fee_bps)
            net_amount = pricing.amount_after_fee(amount_to_pay, s.sell_fee_bps)

            self._record_price(new_price)
            if balance == shares:
                del s.shares_of[holder]
            else:
                s.shares_of[holder] = balance - shares
            s.total_shares -= shares

            if fee_amount > 0:
                self._pay(s.fee_collector, fee_amount, "sell fee transfer")
            if net_amount > 0:
                self._pay(holder, net_amount, "redemption payout")

            event = SharesSold(
                holder=holder,
                shares_burned=shares,
                amount_paid=net_amount,
                fee_amount=fee_amount,
                share_price=s.last_share_price,
            )
            self._events.emit(event)
            logger.info(
                "Sell: holder=%s shares=%d payout=%d fee=%d price=%d",
                holder,
                shares,
                net_amount,
                fee_amount,
                s.last_share_price,
                extra={"holder": holder, "amount": net_amount, "shares": shares},
            )
            return event

    # ── Administration ──

    def set_min_investment(self, caller: str, value: int) -> MinInvestmentUpdated:
        with self._admin(caller, "set_min_investment"):
            if value < 0:
                raise BusinessRuleViolation("Minimum investment must not be negative")
            event = MinInvestmentUpdated(old_value=self._state.min_investment, new_value=value)
            self._state.min_investment = value
            self._events.emit(event)
            logger.info("Minimum investment: %d -> %d", event.old_value, value)
            return event

    def set_buy_fee(self, caller: str, fee_bps: int) -> BuyFeeUpdated:
        with self._admin(caller, "set_buy_fee"):
            _check_fee(fee_bps)
            event = BuyFeeUpdated(old_bps=self._state.buy_fee_bps, new_bps=fee_bps)
            self._state.buy_fee_bps = fee_bps
            self._events.emit(event)
            logger.info("Buy fee: %d -> %d bps", event.old_bps, fee_bps)
            return event

    def set_sell_fee(self, caller: str, fee_bps: int) -> SellFeeUpdated:
        with self._admin(caller, "set_sell_fee"):
            _check_fee(fee_bps)
            event = SellFeeUpdated(old_bps=self._state.sell_fee_bps, new_bps=fee_bps)
            self._state.sell_fee_bps = fee_bps
            self._events.emit(event)
            logger.info("Sell fee: %d -> %d bps", event.old_bps, fee_bps)
            return event

    def set_fee_collector(self, caller: str, collector: str) -> FeeCollectorUpdated:
        with self._admin(caller, "set_fee_collector"):
            if is_zero_address(collector):
                raise ZeroAddress("Fee collector")
            event = FeeCollectorUpdated(
                old_collector=self._state.fee_collector, new_collector=collector
            )
            self._state.fee_collector = collector
            self._events.emit(event)
            logger.info("Fee collector: %s -> %s", event.old_collector, collector)
            return event

    def transfer_ownership(self, caller: str, new_owner: str) -> OwnershipTransferred:
        with self._admin(caller, "transfer_ownership"):
            if is_zero_address(new_owner):
                raise ZeroAddress("New owner")
            event = OwnershipTransferred(previous_owner=self._state.owner, new_owner=new_owner)
            self._state.owner = new_owner
            self._events.emit(event)
            logger.info("Ownership: %s -> %s", event.previous_owner, new_owner)
            return event

    # ── Yield rebalancing (owner only; rejected unless yield routing is on) ──

    def deposit_to_yield(self, caller: str, amount: int) -> None:
        with self._admin(caller, "deposit_to_yield"):
            self._strategy.supply(amount)

    def withdraw_from_yield(self, caller: str, amount: int) -> int:
        with self._admin(caller, "withdraw_from_yield"):
            return self._strategy.withdraw(amount)

    def set_yield_receipt(self, caller: str, receipt: Optional[ReceiptToken]) -> None:
        with self._admin(caller, "set_yield_receipt"):
            self._strategy.set_receipt(receipt)

    def refresh_yield_receipt(self, caller: str) -> Optional[str]:
        """Re-run receipt discovery against the venue and adopt the result."""
        with self._admin(caller, "refresh_yield_receipt"):
            self._strategy.refresh_receipt()
            return self._strategy.receipt_address()

    def get_on_hand_balance(self) -> int:
        return self._strategy.on_hand()

    def get_yield_balance(self) -> int:
        return self._strategy.yield_balance()
