"""
Share pricing library.

Pure integer arithmetic on base-asset units and fixed-point prices scaled by
``10 ** decimals``. Nothing here touches state or collaborators.

Every division floors. Rounding dust therefore always stays inside the fund
and benefits the remaining holders, never the depositor or redeemer whose
operation produced it.
"""

from typing import Optional, Tuple

BPS_DENOMINATOR = 10_000
MAX_FEE_BPS = 1_000


class PricingError(ValueError):
    """Inputs that no valid fund state can produce."""


def _scale(decimals: int) -> int:
    if decimals < 0:
        raise PricingError(f"decimals must not be negative, got {decimals}")
    return 10**decimals


def _require_non_negative(**values: int) -> None:
    for name, value in values.items():
        if value < 0:
            raise PricingError(f"{name} must not be negative, got {value}")


def share_price(equity: int, total_shares: int, fallback_price: int, decimals: int) -> int:
    """
    Price of one share, or ``fallback_price`` when no shares exist.

    An empty pool has no meaningful ratio; returning zero there would hand
    the next depositor shares for free.
    """
    _require_non_negative(equity=equity, total_shares=total_shares)
    if total_shares == 0:
        return fallback_price
    return equity * _scale(decimals) // total_shares


def shares_to_mint_and_price(
    equity_change: int,
    equity_before: int,
    total_shares: int,
    decimals: int,
    fallback_price: Optional[int] = None,
) -> Tuple[int, int]:
    """
    Shares owed for a deposit and the share price after minting them.

    ``equity_change`` must be the *measured* increase in fund equity once the
    deposit and its fee transfer have settled, not the amount the depositor
    asked to invest.

    Into an empty pool, shares are minted at ``fallback_price``. It defaults
    to ``10 ** decimals``, so the very first deposit mints one share per
    base-asset unit. A fund emptied by redemptions passes its preserved last
    price instead.
    """
    _require_non_negative(
        equity_change=equity_change,
        equity_before=equity_before,
        total_shares=total_shares,
    )
    scale = _scale(decimals)

    if total_shares == 0:
        price = scale if fallback_price is None else fallback_price
        if price <= 0:
            raise PricingError(f"fallback price must be positive, got {price}")
        return equity_change * scale // price, price

    if equity_before == 0:
        raise PricingError("cannot price a deposit against zero equity with shares outstanding")

    shares_to_mint = equity_change * total_shares // equity_before
    new_price = (equity_before + equity_change) * scale // (total_shares + shares_to_mint)
    return shares_to_mint, new_price


def redemption_amount_and_price(
    shares: int,
    equity: int,
    total_shares: int,
    current_price: int,
    decimals: int,
) -> Tuple[int, int]:
    """
    Payout for redeeming ``shares`` and the share price afterwards.

    ``equity`` is the fund equity before the payout leaves. When the last
    shares are redeemed the price is left at ``current_price`` so it can be
    reused as the fallback for the next deposit.
    """
    _require_non_negative(
        shares=shares, equity=equity, total_shares=total_shares, current_price=current_price
    )
    if shares > total_shares:
        raise PricingError(f"cannot redeem {shares} of {total_shares} outstanding shares")

    scale = _scale(decimals)
    amount_to_pay = shares * current_price // scale

    if total_shares > shares:
        remaining_equity = equity - amount_to_pay
        if remaining_equity < 0:
            raise PricingError(
                f"payout {amount_to_pay} exceeds fund equity {equity}; price is stale"
            )
        new_price = remaining_equity * scale // (total_shares - shares)
    else:
        new_price = current_price
    return amount_to_pay, new_price


def fee(amount: int, fee_bps: int) -> int:
    """Fee owed on ``amount`` at ``fee_bps`` basis points (floored)."""
    _require_non_negative(amount=amount, fee_bps=fee_bps)
    return amount * fee_bps // BPS_DENOMINATOR


def amount_after_fee(amount: int, fee_bps: int) -> int:
    return amount - fee(amount, fee_bps)
