"""
In-memory lending pool.

Each listed reserve pairs an underlying token with a receipt token minted
1:1 on supply and burned on withdrawal. ``accrue_interest`` grows every
receipt balance by a rate and mints the matching underlying into the pool,
standing in for interest paid by borrowers.

Failures raise :class:`LendingPoolError`, the way an on-chain pool reverts.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from poolfund.adapters.token import InMemoryToken
from poolfund.engine.pricing import BPS_DENOMINATOR
from poolfund.engine.ports import ReserveData

logger = logging.getLogger(__name__)

# Passing this as the withdrawal amount withdraws the full receipt balance.
WITHDRAW_ALL = 2**256 - 1


class LendingPoolError(RuntimeError):
    pass


@dataclass
class _Reserve:
    asset: InMemoryToken
    receipt: InMemoryToken


class InMemoryLendingPool:
    """Lending market for the sandbox deployment and the test suite."""

    def __init__(self, address: str):
        self.address = address
        self.paused = False
        self._reserves: Dict[str, _Reserve] = {}

    def list_reserve(
        self, asset: InMemoryToken, receipt_address: Optional[str] = None
    ) -> InMemoryToken:
        """Start accepting ``asset`` and return its receipt token."""
        if asset.address in self._reserves:
            raise LendingPoolError(f"reserve for {asset.symbol} already listed")
        receipt = InMemoryToken(
            address=receipt_address or f"{self.address}:a{asset.symbol}",
            symbol=f"a{asset.symbol}",
            decimals=asset.decimals(),
        )
        self._reserves[asset.address] = _Reserve(asset=asset, receipt=receipt)
        logger.info("Listed reserve %s with receipt %s", asset.symbol, receipt.address)
        return receipt

    def _reserve(self, asset: str) -> _Reserve:
        reserve = self._reserves.get(asset)
        if reserve is None:
            raise LendingPoolError(f"no reserve listed for asset {asset}")
        return reserve

    def _require_active(self) -> None:
        if self.paused:
            raise LendingPoolError("pool is paused")

    # ── Venue interface ──

    def get_reserve_data(self, asset: str) -> ReserveData:
        reserve = self._reserve(asset)
        return ReserveData(asset=asset, receipt_token=reserve.receipt)

    def supply(
        self, asset: str, amount: int, on_behalf_of: str, referral_code: int, caller: str
    ) -> None:
        self._require_active()
        reserve = self._reserve(asset)
        if amount <= 0:
            raise LendingPoolError("supply amount must be positive")
        if not reserve.asset.transfer_from(self.address, caller, self.address, amount):
            raise LendingPoolError(f"could not pull {amount} {reserve.asset.symbol} from {caller}")
        reserve.receipt.mint(on_behalf_of, amount)

    def withdraw(self, asset: str, amount: int, to: str, caller: str) -> int:
        self._require_active()
        reserve = self._reserve(asset)
        balance = reserve.receipt.balance_of(caller)
        if amount == WITHDRAW_ALL:
            amount = balance
        if amount <= 0 or amount > balance:
            raise LendingPoolError(f"cannot withdraw {amount}, receipt balance is {balance}")
        reserve.receipt.burn(caller, amount)
        if not reserve.asset.transfer(self.address, to, amount):
            raise LendingPoolError("not enough liquidity in the pool")
        return amount

    # ── Simulation ──

    def accrue_interest(self, asset: str, rate_bps: int) -> int:
        """Grow every receipt balance of ``asset`` by ``rate_bps``; return the total."""
        reserve = self._reserve(asset)
        total = 0
        for account, balance in reserve.receipt.accounts().items():
            interest = balance * rate_bps // BPS_DENOMINATOR
            if interest:
                reserve.receipt.mint(account, interest)
                total += interest
        if total:
            reserve.asset.mint(self.address, total)
        logger.info("Accrued %d %s interest at %d bps", total, reserve.asset.symbol, rate_bps)
        return total

    # ── Journaling ──

    def checkpoint(self) -> tuple:
        return dict(self._reserves), self.paused

    def rollback(self, token: tuple) -> None:
        reserves, paused = token
        self._reserves = dict(reserves)
        self.paused = paused
