"""
Unit tests for the in-memory token and lending pool.
"""

import pytest

from poolfund.adapters.lending import WITHDRAW_ALL, InMemoryLendingPool, LendingPoolError
from poolfund.adapters.token import MAX_ALLOWANCE
from poolfund.engine.ports import Journaled

from .conftest import ALICE, BOB, FUND, UNIT


class TestInMemoryToken:
    def test_transfer_moves_balance(self, token):
        token.mint(ALICE, UNIT)

        assert token.transfer(ALICE, BOB, 400_000) is True
        assert token.balance_of(ALICE) == 600_000
        assert token.balance_of(BOB) == 400_000
        assert token.total_supply() == UNIT

    def test_insufficient_balance_returns_false(self, token):
        token.mint(ALICE, 10)
        assert token.transfer(ALICE, BOB, 11) is False
        assert token.balance_of(ALICE) == 10

    def test_frozen_account_returns_false(self, token):
        token.mint(ALICE, 10)
        token.frozen.add(BOB)
        assert token.transfer(ALICE, BOB, 1) is False

    def test_transfer_from_spends_allowance(self, token):
        token.mint(ALICE, UNIT)
        token.approve(ALICE, FUND, 600_000)

        assert token.transfer_from(FUND, ALICE, FUND, 500_000) is True
        assert token.allowance(ALICE, FUND) == 100_000
        assert token.transfer_from(FUND, ALICE, FUND, 200_000) is False

    def test_max_allowance_is_not_spent(self, token):
        token.mint(ALICE, UNIT)
        token.approve(ALICE, FUND, MAX_ALLOWANCE)

        token.transfer_from(FUND, ALICE, FUND, UNIT)
        assert token.allowance(ALICE, FUND) == MAX_ALLOWANCE

    def test_negative_approval_refused(self, token):
        assert token.approve(ALICE, FUND, -1) is False

    def test_burn_more_than_balance_raises(self, token):
        token.mint(ALICE, 5)
        with pytest.raises(ValueError):
            token.burn(ALICE, 6)

    def test_hooks_see_successful_transfers_only(self, token):
        seen = []
        token.add_transfer_hook(lambda sender, to, amount: seen.append((sender, to, amount)))
        token.mint(ALICE, 5)

        token.transfer(ALICE, BOB, 3)
        token.transfer(ALICE, BOB, 3)

        assert seen == [(ALICE, BOB, 3)]

    def test_checkpoint_and_rollback(self, token):
        assert isinstance(token, Journaled)
        token.mint(ALICE, UNIT)
        saved = token.checkpoint()

        token.transfer(ALICE, BOB, UNIT)
        token.approve(ALICE, FUND, 5)
        token.mint(BOB, 1)
        token.rollback(saved)

        assert token.balance_of(ALICE) == UNIT
        assert token.balance_of(BOB) == 0
        assert token.allowance(ALICE, FUND) == 0
        assert token.total_supply() == UNIT
        assert token.accounts() == {ALICE: UNIT}


class TestInMemoryLendingPool:
    def _supply(self, token, pool, amount=UNIT):
        token.mint(FUND, amount)
        token.approve(FUND, pool.address, amount)
        pool.supply(token.address, amount, FUND, 0, caller=FUND)

    def test_supply_mints_receipt(self, token, pool):
        self._supply(token, pool)

        receipt = pool.get_reserve_data(token.address).receipt_token
        assert receipt.balance_of(FUND) == UNIT
        assert token.balance_of(pool.address) == UNIT
        assert token.balance_of(FUND) == 0

    def test_supply_on_behalf_of_another_account(self, token, pool):
        token.mint(FUND, UNIT)
        token.approve(FUND, pool.address, UNIT)
        pool.supply(token.address, UNIT, BOB, 0, caller=FUND)

        receipt = pool.get_reserve_data(token.address).receipt_token
        assert receipt.balance_of(BOB) == UNIT
        assert receipt.balance_of(FUND) == 0

    def test_supply_without_allowance_raises(self, token, pool):
        token.mint(FUND, UNIT)
        with pytest.raises(LendingPoolError):
            pool.supply(token.address, UNIT, FUND, 0, caller=FUND)

    def test_withdraw_all(self, token, pool):
        self._supply(token, pool)

        assert pool.withdraw(token.address, WITHDRAW_ALL, FUND, caller=FUND) == UNIT
        assert token.balance_of(FUND) == UNIT

    def test_withdraw_more_than_receipt_raises(self, token, pool):
        self._supply(token, pool)
        with pytest.raises(LendingPoolError):
            pool.withdraw(token.address, UNIT + 1, FUND, caller=FUND)

    def test_accrue_interest_grows_receipts_and_liquidity(self, token, pool):
        self._supply(token, pool)

        interest = pool.accrue_interest(token.address, 250)

        receipt = pool.get_reserve_data(token.address).receipt_token
        assert interest == 25_000
        assert receipt.balance_of(FUND) == 1_025_000
        assert token.balance_of(pool.address) == 1_025_000

    def test_paused_pool_rejects_calls(self, token, pool):
        pool.paused = True
        with pytest.raises(LendingPoolError):
            self._supply(token, pool)

    def test_reserve_listed_once(self, token, pool):
        with pytest.raises(LendingPoolError):
            pool.list_reserve(token)

    def test_unlisted_asset_raises(self, token):
        with pytest.raises(LendingPoolError):
            InMemoryLendingPool("venue:empty").get_reserve_data(token.address)

    def test_rollback_restores_pause_flag(self, pool):
        saved = pool.checkpoint()
        pool.paused = True
        pool.rollback(saved)
        assert pool.paused is False
