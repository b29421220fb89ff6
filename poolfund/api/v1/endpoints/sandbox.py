"""
Sandbox endpoints (404 unless ``SANDBOX_MODE`` is on).

- POST /sandbox/mint     — credit an account with the base asset
- POST /sandbox/approve  — caller approves the fund to pull its tokens
- POST /sandbox/accrue   — lending pool pays interest
"""

from fastapi import APIRouter, Depends

from poolfund.api.v1.deps import get_caller, get_fund_service, get_sandbox_service
from poolfund.schemas.common import ErrorResponse
from poolfund.schemas.sandbox import (
    AccrueRequest,
    AccrueResponse,
    ApproveRequest,
    BalanceResponse,
    MintRequest,
)
from poolfund.services.fund_service import FundService
from poolfund.services.sandbox_service import SandboxService

router = APIRouter()

_DISABLED = {404: {"model": ErrorResponse, "description": "Sandbox mode is off"}}


@router.post("/mint", response_model=BalanceResponse, responses=_DISABLED)
async def mint(
    body: MintRequest,
    sandbox: SandboxService = Depends(get_sandbox_service),
) -> BalanceResponse:
    balance, allowance = await sandbox.mint(body.account, body.amount)
    return BalanceResponse(account=body.account, balance=balance, allowance=allowance)


@router.post("/approve", response_model=BalanceResponse, responses=_DISABLED)
async def approve(
    body: ApproveRequest,
    caller: str = Depends(get_caller),
    sandbox: SandboxService = Depends(get_sandbox_service),
) -> BalanceResponse:
    balance, allowance = await sandbox.approve(caller, body.amount)
    return BalanceResponse(account=caller, balance=balance, allowance=allowance)


@router.post("/accrue", response_model=AccrueResponse, responses=_DISABLED)
async def accrue(
    body: AccrueRequest,
    sandbox: SandboxService = Depends(get_sandbox_service),
    service: FundService = Depends(get_fund_service),
) -> AccrueResponse:
    interest = await sandbox.accrue(body.rate_bps)
    snapshot = await service.get_snapshot()
    return AccrueResponse(
        interest=interest, equity=snapshot.equity, share_price=snapshot.share_price
    )
