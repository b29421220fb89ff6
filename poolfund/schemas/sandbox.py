"""
Schemas for the sandbox helpers.

The sandbox deployment runs the fund against an in-memory token and lending
pool; these endpoints stand in for a faucet, a wallet approval and borrower
interest.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from poolfund.engine.ports import normalize_address


class MintRequest(BaseModel):
    account: str = Field(..., min_length=1, max_length=128)
    amount: int = Field(..., gt=0, examples=[10_000_000])

    @field_validator("account")
    @classmethod
    def _normalize_account(cls, v: str) -> str:
        return normalize_address(v)


class ApproveRequest(BaseModel):
    """The ``X-Account`` caller lets the fund pull ``amount``; omit for unlimited."""

    amount: Optional[int] = Field(default=None, ge=0)


class AccrueRequest(BaseModel):
    rate_bps: int = Field(..., gt=0, le=10_000, examples=[100])


class BalanceResponse(BaseModel):
    account: str
    balance: int
    allowance: int


class AccrueResponse(BaseModel):
    interest: int
    equity: int
    share_price: int
