"""
Owner-only endpoints. The ``X-Account`` caller must be the fund owner.

Every route answers with the fund snapshot after the change.
"""

from fastapi import APIRouter, Depends

from poolfund.api.v1.deps import get_caller, get_fund_service
from poolfund.schemas.common import ErrorResponse, ValidationErrorResponse
from poolfund.schemas.fund import (
    AddressUpdate,
    FeeUpdate,
    FundResponse,
    MinInvestmentUpdate,
    YieldAmount,
)
from poolfund.services.fund_service import FundService

router = APIRouter()

_ADMIN_ERRORS = {
    403: {"model": ErrorResponse, "description": "Caller is not the fund owner"},
    422: {"model": ValidationErrorResponse, "description": "Validation error"},
}
_YIELD_ERRORS = {
    **_ADMIN_ERRORS,
    502: {"model": ErrorResponse, "description": "Yield venue failure"},
}


async def _snapshot(service: FundService) -> FundResponse:
    return FundResponse.model_validate(await service.get_snapshot())


@router.put("/min-investment", response_model=FundResponse, responses=_ADMIN_ERRORS)
async def set_min_investment(
    body: MinInvestmentUpdate,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> FundResponse:
    await service.set_min_investment(caller, body.value)
    return await _snapshot(service)


@router.put("/buy-fee", response_model=FundResponse, responses=_ADMIN_ERRORS)
async def set_buy_fee(
    body: FeeUpdate,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> FundResponse:
    await service.set_buy_fee(caller, body.fee_bps)
    return await _snapshot(service)


@router.put("/sell-fee", response_model=FundResponse, responses=_ADMIN_ERRORS)
async def set_sell_fee(
    body: FeeUpdate,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> FundResponse:
    await service.set_sell_fee(caller, body.fee_bps)
    return await _snapshot(service)


@router.put("/fee-collector", response_model=FundResponse, responses=_ADMIN_ERRORS)
async def set_fee_collector(
    body: AddressUpdate,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> FundResponse:
    await service.set_fee_collector(caller, body.address)
    return await _snapshot(service)


@router.put("/owner", response_model=FundResponse, responses=_ADMIN_ERRORS)
async def transfer_ownership(
    body: AddressUpdate,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> FundResponse:
    await service.transfer_ownership(caller, body.address)
    return await _snapshot(service)


# ── Yield rebalancing ──


@router.post(
    "/yield/deposit",
    response_model=FundResponse,
    summary="Supply on-hand capital to the yield venue",
    responses=_YIELD_ERRORS,
)
async def deposit_to_yield(
    body: YieldAmount,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> FundResponse:
    return FundResponse.model_validate(await service.deposit_to_yield(caller, body.amount))


@router.post(
    "/yield/withdraw",
    response_model=FundResponse,
    summary="Withdraw capital from the yield venue",
    responses=_YIELD_ERRORS,
)
async def withdraw_from_yield(
    body: YieldAmount,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> FundResponse:
    return FundResponse.model_validate(await service.withdraw_from_yield(caller, body.amount))


@router.put(
    "/yield/receipt",
    response_model=FundResponse,
    summary="Re-resolve the yield receipt token",
    description="Asks the venue for the asset's receipt token again and adopts it.",
    responses=_YIELD_ERRORS,
)
async def refresh_yield_receipt(
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> FundResponse:
    return FundResponse.model_validate(await service.refresh_yield_receipt(caller))
