"""
Pydantic schemas for the fund API.

Amounts, shares and prices are integers in base-asset units (or share
units), exactly as the engine computes them. They are never converted to
floats on the way out.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from poolfund.engine.ports import normalize_address

# ── Requests ──


class BuyRequest(BaseModel):
    """Schema for ``POST /fund/buy``. The buyer is the ``X-Account`` caller."""

    amount: int = Field(
        ...,
        gt=0,
        description="Base-asset amount to deposit, fee included",
        examples=[1_000_000],
    )


class SellRequest(BaseModel):
    """Schema for ``POST /fund/sell``."""

    shares: int = Field(..., gt=0, description="Shares to redeem", examples=[500_000])


class MinInvestmentUpdate(BaseModel):
    value: int = Field(..., ge=0, examples=[1_000_000])


class FeeUpdate(BaseModel):
    fee_bps: int = Field(
        ...,
        ge=0,
        description="Fee in basis points; the fund rejects anything above its cap",
        examples=[50],
    )


class AddressUpdate(BaseModel):
    """New fee collector or new owner."""

    address: str = Field(..., min_length=1, max_length=128)

    @field_validator("address")
    @classmethod
    def validate_address_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("address must not be blank")
        return normalize_address(v)


class YieldAmount(BaseModel):
    amount: int = Field(..., gt=0, examples=[1_000_000])


# ── Responses ──


class FundResponse(BaseModel):
    """Fund snapshot; equity and price are measured when the request is served."""

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
    yield_receipt: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PriceResponse(BaseModel):
    share_price: int = Field(..., description="Price from the equity measured now")
    last_share_price: int = Field(..., description="Price recorded by the last buy or sell")
    decimals: int


class HolderResponse(BaseModel):
    holder: str
    shares: int
    value: int = Field(..., description="Shares valued at the current price, before fees")


class DepositReceipt(BaseModel):
    """Returned by ``POST /fund/buy``."""

    holder: str
    amount: int
    shares_minted: int
    equity_change: int
    fee_amount: int
    share_price: int

    model_config = ConfigDict(from_attributes=True)


class WithdrawalReceipt(BaseModel):
    """Returned by ``POST /fund/sell``."""

    holder: str
    shares_burned: int
    amount_paid: int
    fee_amount: int
    share_price: int

    model_config = ConfigDict(from_attributes=True)
