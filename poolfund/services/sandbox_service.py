"""
Sandbox helpers for the in-memory deployment.

Fund a wallet, approve the fund to pull from it and let the lending pool
pay interest, so the whole buy / accrue / sell cycle can be driven over
HTTP. Every method refuses to run unless ``SANDBOX_MODE`` is on.
"""

import logging
from typing import Optional, Tuple

from poolfund.adapters.token import MAX_ALLOWANCE
from poolfund.core.exceptions import BusinessRuleViolation, SandboxDisabled, YieldRoutingDisabled
from poolfund.services.fund_runtime import FundRuntime

logger = logging.getLogger(__name__)


class SandboxService:
    def __init__(self, runtime: FundRuntime, enabled: bool):
        self._runtime = runtime
        self._enabled = enabled

    def _require_enabled(self) -> None:
        if not self._enabled:
            raise SandboxDisabled()

    async def mint(self, account: str, amount: int) -> Tuple[int, int]:
        """Credit ``account`` with fresh base asset; return balance and allowance."""
        self._require_enabled()
        asset = self._runtime.asset
        asset.mint(account, amount)
        logger.info("Sandbox mint: %d %s to %s", amount, asset.symbol, account)
        return asset.balance_of(account), asset.allowance(account, self._runtime.fund.address)

    async def approve(self, holder: str, amount: Optional[int]) -> Tuple[int, int]:
        """Let the fund pull up to ``amount`` from ``holder`` (unlimited when ``None``)."""
        self._require_enabled()
        asset = self._runtime.asset
        fund_address = self._runtime.fund.address
        allowance = MAX_ALLOWANCE if amount is None else amount
        if not asset.approve(holder, fund_address, allowance):
            raise BusinessRuleViolation(f"Approval of {allowance} rejected")
        return asset.balance_of(holder), asset.allowance(holder, fund_address)

    async def accrue(self, rate_bps: int) -> int:
        """Pay ``rate_bps`` of interest on every receipt balance at the lending pool."""
        self._require_enabled()
        venue = self._runtime.venue
        if venue is None:
            raise YieldRoutingDisabled()
        return venue.accrue_interest(self._runtime.asset.address, rate_bps)
