"""
Unit tests for the yield-routing capital strategy.

Covers:
- receipt discovery: resolved, unavailable, refreshed later
- sweep after buy and shortfall-only withdrawal before sell
- interest accrual flowing into the share price
- venue failures and calls back into the fund rolling back the whole operation
- owner-only rebalancing
"""

import logging
from unittest.mock import MagicMock

import pytest

from poolfund.adapters.lending import InMemoryLendingPool, LendingPoolError
from poolfund.core.exceptions import NotOwner, ReentrantCallError, YieldVenueError
from poolfund.engine.events import (
    EventKind,
    YieldReceiptUpdated,
    YieldSupplied,
    YieldWithdrawn,
)
from poolfund.engine.ports import ReserveData
from poolfund.engine.yield_routing import YieldRouting, lookup_receipt

from .conftest import ALICE, BOB, FUND, MALLORY, OWNER, UNIT, fund_wallet, make_fund


class ShortPool(InMemoryLendingPool):
    """Pays out one unit less than asked."""

    def withdraw(self, asset, amount, to, caller):
        return super().withdraw(asset, amount - 1, to, caller)


def _receipt(pool, token):
    return pool.get_reserve_data(token.address).receipt_token


# ────────────────────────────────────────────────────────────────────────────
# Receipt discovery
# ────────────────────────────────────────────────────────────────────────────


class TestReceiptDiscovery:
    def test_resolved_at_construction(self, yield_fund, pool, token):
        assert yield_fund.snapshot().yield_receipt == _receipt(pool, token).address

    def test_lookup_reports_venue_error(self, token):
        lookup = lookup_receipt(InMemoryLendingPool("venue:empty"), token.address)

        assert not lookup.resolved
        assert "LendingPoolError" in lookup.reason

    def test_lookup_reports_missing_receipt(self, token):
        venue = MagicMock()
        venue.get_reserve_data.return_value = ReserveData(asset=token.address, receipt_token=None)

        lookup = lookup_receipt(venue, token.address)

        assert lookup.receipt is None
        assert lookup.reason == "reserve has no receipt token"

    def test_unavailable_receipt_does_not_block_construction(self, token, caplog):
        venue = InMemoryLendingPool("venue:unlisted")

        with caplog.at_level(logging.WARNING, logger="poolfund.engine.yield_routing"):
            fund = make_fund(token, strategy=YieldRouting(venue))

        assert fund.snapshot().yield_receipt is None
        assert any("unavailable" in r.getMessage() for r in caplog.records)

    def test_unresolved_fund_keeps_deposits_on_hand(self, token):
        fund = make_fund(token, strategy=YieldRouting(InMemoryLendingPool("venue:unlisted")))
        fund_wallet(token, ALICE, UNIT)

        fund.buy_shares(ALICE, UNIT)

        assert fund.get_on_hand_balance() == UNIT
        assert fund.get_equity() == UNIT
        with pytest.raises(YieldVenueError):
            fund.deposit_to_yield(OWNER, UNIT)

    def test_refresh_adopts_receipt(self, token):
        venue = InMemoryLendingPool("venue:late")
        fund = make_fund(token, strategy=YieldRouting(venue))
        received = []
        fund.subscribe(received.append)
        fund_wallet(token, ALICE, UNIT)
        fund.buy_shares(ALICE, UNIT)
        receipt = venue.list_reserve(token)

        assert fund.refresh_yield_receipt(OWNER) == receipt.address
        fund.deposit_to_yield(OWNER, UNIT)

        assert fund.get_yield_balance() == UNIT
        assert fund.get_on_hand_balance() == 0
        assert YieldReceiptUpdated(old_receipt=None, new_receipt=receipt.address) in received

    def test_refresh_fails_while_unavailable(self, token):
        fund = make_fund(token, strategy=YieldRouting(InMemoryLendingPool("venue:unlisted")))
        with pytest.raises(YieldVenueError):
            fund.refresh_yield_receipt(OWNER)

    def test_explicit_receipt_skips_discovery(self, token, pool):
        venue = MagicMock(wraps=pool)
        venue.address = pool.address
        make_fund(token, strategy=YieldRouting(venue, receipt=_receipt(pool, token)))

        venue.get_reserve_data.assert_not_called()

    def test_clearing_receipt_drops_yield_from_equity(self, yield_fund, token, pool):
        fund_wallet(token, ALICE, UNIT)
        yield_fund.buy_shares(ALICE, UNIT)

        yield_fund.set_yield_receipt(OWNER, None)

        assert yield_fund.get_equity() == 0
        assert yield_fund.snapshot().yield_receipt is None


# ────────────────────────────────────────────────────────────────────────────
# Buy / sell hooks
# ────────────────────────────────────────────────────────────────────────────


class TestCapitalRouting:
    def test_buy_sweeps_everything_to_venue(self, yield_fund, token, pool):
        received = []
        yield_fund.subscribe(received.append)
        fund_wallet(token, ALICE, UNIT)

        yield_fund.buy_shares(ALICE, UNIT)

        assert yield_fund.get_on_hand_balance() == 0
        assert yield_fund.get_yield_balance() == UNIT
        assert yield_fund.get_equity() == UNIT
        assert token.balance_of(pool.address) == UNIT
        assert [e.kind for e in received] == [EventKind.SHARES_BOUGHT, EventKind.YIELD_SUPPLIED]

    def test_sweep_includes_stray_on_hand_balance(self, yield_fund, token):
        token.mint(FUND, 300_000)
        fund_wallet(token, ALICE, UNIT)

        yield_fund.buy_shares(ALICE, UNIT)

        assert yield_fund.get_yield_balance() == 1_300_000
        assert yield_fund.get_on_hand_balance() == 0

    def test_interest_raises_share_price(self, yield_fund, token, pool):
        fund_wallet(token, ALICE, UNIT)
        fund_wallet(token, BOB, 1_100_000)
        yield_fund.buy_shares(ALICE, UNIT)

        pool.accrue_interest(token.address, 1_000)

        assert yield_fund.get_equity() == 1_100_000
        assert yield_fund.get_share_price() == 1_100_000
        assert yield_fund.buy_shares(BOB, 1_100_000).shares_minted == UNIT

    def test_sell_withdraws_payout_after_accrual(self, yield_fund, token, pool):
        fund_wallet(token, ALICE, UNIT)
        yield_fund.buy_shares(ALICE, UNIT)
        pool.accrue_interest(token.address, 1_000)

        event = yield_fund.sell_shares(ALICE, 500_000)

        assert event.amount_paid == 550_000
        assert token.balance_of(ALICE) == 550_000
        assert yield_fund.get_yield_balance() == 550_000
        assert yield_fund.get_on_hand_balance() == 0
        assert yield_fund.get_last_share_price() == 1_100_000

    def test_sell_withdraws_only_shortfall(self, yield_fund, token):
        received = []
        yield_fund.subscribe(received.append)
        fund_wallet(token, ALICE, UNIT)
        yield_fund.buy_shares(ALICE, UNIT)
        token.mint(FUND, 200_000)

        yield_fund.sell_shares(ALICE, 500_000)

        assert YieldWithdrawn(amount=400_000) in received
        assert yield_fund.get_on_hand_balance() == 0
        assert yield_fund.get_yield_balance() == 600_000

    def test_sell_covered_on_hand_skips_venue(self, yield_fund, token):
        received = []
        yield_fund.subscribe(received.append)
        fund_wallet(token, ALICE, UNIT)
        yield_fund.buy_shares(ALICE, UNIT)
        token.mint(FUND, UNIT)

        yield_fund.sell_shares(ALICE, 100_000)

        assert not any(e.kind == EventKind.YIELD_WITHDRAWN for e in received)
        assert yield_fund.get_yield_balance() == UNIT


# ────────────────────────────────────────────────────────────────────────────
# Venue failures
# ────────────────────────────────────────────────────────────────────────────


class TestVenueFailures:
    def test_short_withdrawal_aborts_sell(self, token):
        pool = ShortPool("venue:short")
        pool.list_reserve(token)
        fund = make_fund(token, strategy=YieldRouting(pool))
        fund_wallet(token, ALICE, UNIT)
        fund.buy_shares(ALICE, UNIT)

        with pytest.raises(YieldVenueError):
            fund.sell_shares(ALICE, 500_000)

        assert fund.get_shares_balance(ALICE) == UNIT
        assert fund.get_yield_balance() == UNIT
        assert token.balance_of(pool.address) == UNIT
        assert token.balance_of(ALICE) == 0

    def test_paused_venue_aborts_buy(self, yield_fund, token, pool):
        fund_wallet(token, ALICE, UNIT)
        pool.paused = True

        with pytest.raises(YieldVenueError):
            yield_fund.buy_shares(ALICE, UNIT)

        assert token.balance_of(ALICE) == UNIT
        assert yield_fund.get_total_shares() == 0
        assert token.allowance(FUND, pool.address) == 0

    def test_supply_beyond_on_hand_rejected(self, yield_fund):
        with pytest.raises(YieldVenueError):
            yield_fund.deposit_to_yield(OWNER, UNIT)

    def test_reentry_during_venue_withdrawal_rolls_back(self, yield_fund, token, pool):
        fund_wallet(token, ALICE, 2 * UNIT)
        yield_fund.buy_shares(ALICE, UNIT)
        receipt = _receipt(pool, token)

        def reenter(sender, to, amount):
            if sender == pool.address and to == FUND:
                yield_fund.buy_shares(ALICE, UNIT)

        token.add_transfer_hook(reenter)

        with pytest.raises(ReentrantCallError):
            yield_fund.sell_shares(ALICE, UNIT)

        assert yield_fund.get_shares_balance(ALICE) == UNIT
        assert receipt.balance_of(FUND) == UNIT
        assert token.balance_of(pool.address) == UNIT
        assert token.balance_of(FUND) == 0
        assert token.balance_of(ALICE) == UNIT

    def test_reentry_during_venue_supply_rolls_back(self, yield_fund, token, pool):
        fund_wallet(token, ALICE, UNIT)
        yield_fund.buy_shares(ALICE, UNIT)
        yield_fund.withdraw_from_yield(OWNER, UNIT)
        receipt = _receipt(pool, token)

        def reenter(sender, to, amount):
            if sender == FUND and to == pool.address:
                yield_fund.sell_shares(ALICE, UNIT)

        token.add_transfer_hook(reenter)

        with pytest.raises(ReentrantCallError):
            yield_fund.deposit_to_yield(OWNER, UNIT)

        assert yield_fund.get_shares_balance(ALICE) == UNIT
        assert receipt.balance_of(FUND) == 0
        assert token.balance_of(FUND) == UNIT
        assert token.balance_of(pool.address) == 0


# ────────────────────────────────────────────────────────────────────────────
# Owner rebalancing
# ────────────────────────────────────────────────────────────────────────────


class TestRebalancing:
    def test_withdraw_then_redeposit(self, yield_fund, token):
        received = []
        yield_fund.subscribe(received.append)
        fund_wallet(token, ALICE, UNIT)
        yield_fund.buy_shares(ALICE, UNIT)

        assert yield_fund.withdraw_from_yield(OWNER, 300_000) == 300_000
        assert yield_fund.get_on_hand_balance() == 300_000
        assert yield_fund.get_equity() == UNIT

        yield_fund.deposit_to_yield(OWNER, 300_000)
        assert yield_fund.get_yield_balance() == UNIT
        assert received[-2:] == [YieldWithdrawn(amount=300_000), YieldSupplied(amount=300_000)]

    def test_rebalancing_is_owner_only(self, yield_fund):
        with pytest.raises(NotOwner):
            yield_fund.withdraw_from_yield(MALLORY, 1)
        with pytest.raises(NotOwner):
            yield_fund.deposit_to_yield(MALLORY, 1)

    def test_overdrawn_withdrawal_rejected(self, yield_fund, token):
        fund_wallet(token, ALICE, UNIT)
        yield_fund.buy_shares(ALICE, UNIT)

        with pytest.raises(YieldVenueError):
            yield_fund.withdraw_from_yield(OWNER, 2 * UNIT)
        assert yield_fund.get_yield_balance() == UNIT

    def test_strategy_cannot_serve_two_funds(self, token, pool):
        strategy = YieldRouting(pool)
        make_fund(token, strategy=strategy)
        with pytest.raises(RuntimeError):
            make_fund(token, strategy=strategy)

    def test_lending_pool_error_type(self, pool):
        with pytest.raises(LendingPoolError):
            pool.get_reserve_data("token:unknown")
