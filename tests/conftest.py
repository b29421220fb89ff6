"""
Shared pytest fixtures.

Tests run with ``USE_SQLITE=true`` and the sandbox on, against in-memory
tokens and lending pools, so no database or network is needed.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")
os.environ.setdefault("SANDBOX_MODE", "true")

from typing import Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from poolfund.adapters.lending import InMemoryLendingPool  # noqa: E402
from poolfund.adapters.token import MAX_ALLOWANCE, InMemoryToken  # noqa: E402
from poolfund.core.resilience import journal_circuit_breaker  # noqa: E402
from poolfund.engine.capital import CapitalStrategy  # noqa: E402
from poolfund.engine.fund import ShareFund  # noqa: E402
from poolfund.engine.yield_routing import YieldRouting  # noqa: E402
from poolfund.services.fund_runtime import reset_runtime  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Accounts and units
# ────────────────────────────────────────────────────────────────────────────

FUND = "0x00000000000000000000000000000000000f0001"
OWNER = "0x0000000000000000000000000000000000000a11"
COLLECTOR = "0x0000000000000000000000000000000000000fee"
ALICE = "0x00000000000000000000000000000000000a1ce0"
BOB = "0x0000000000000000000000000000000000000b0b"
MALLORY = "0x000000000000000000000000000000000000bad0"

DECIMALS = 6
UNIT = 10**DECIMALS


# ────────────────────────────────────────────────────────────────────────────
# Factory helpers
# ────────────────────────────────────────────────────────────────────────────


def make_token(decimals: int = DECIMALS, symbol: str = "USDC") -> InMemoryToken:
    return InMemoryToken(address=f"token:{symbol}", symbol=symbol, decimals=decimals)


def make_fund(
    token: InMemoryToken,
    *,
    min_investment: int = 0,
    buy_fee_bps: int = 0,
    sell_fee_bps: int = 0,
    strategy: Optional[CapitalStrategy] = None,
) -> ShareFund:
    """A fund owned by ``OWNER`` with fees going to ``COLLECTOR``."""
    return ShareFund(
        address=FUND,
        asset=token,
        owner=OWNER,
        min_investment=min_investment,
        buy_fee_bps=buy_fee_bps,
        sell_fee_bps=sell_fee_bps,
        fee_collector=COLLECTOR,
        strategy=strategy,
    )


def make_pool(token: InMemoryToken) -> InMemoryLendingPool:
    pool = InMemoryLendingPool(address="venue:test-pool")
    pool.list_reserve(token)
    return pool


def fund_wallet(token: InMemoryToken, holder: str, amount: int) -> None:
    """Give ``holder`` ``amount`` tokens and approve the fund to pull all of them."""
    token.mint(holder, amount)
    token.approve(holder, FUND, MAX_ALLOWANCE)


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def token():
    return make_token()


@pytest.fixture()
def fund(token):
    """Holding-only fund with no fees and no minimum."""
    return make_fund(token)


@pytest.fixture()
def pool(token):
    return make_pool(token)


@pytest.fixture()
def yield_fund(token, pool):
    """Fund routing its capital into ``pool``."""
    return make_fund(token, strategy=YieldRouting(pool))


@pytest.fixture()
def events(fund):
    """Every event ``fund`` publishes, in order."""
    received = []
    fund.subscribe(received.append)
    return received


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    return session


@pytest.fixture(autouse=True)
def _reset_globals():
    """Start every test with a closed journal breaker and no fund runtime."""
    journal_circuit_breaker.reset()
    reset_runtime()
    yield
    journal_circuit_breaker.reset()
    reset_runtime()
