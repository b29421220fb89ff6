"""
Fund endpoints: reads and the buy / sell flows.

- GET  /fund                    — fund snapshot
- GET  /fund/price              — current and last share price
- GET  /fund/holders/{holder}   — share balance and value of one holder
- POST /fund/buy                — deposit and mint shares
- POST /fund/sell               — redeem shares
"""

from fastapi import APIRouter, Depends

from poolfund.api.v1.deps import get_caller, get_fund_service
from poolfund.engine.ports import normalize_address
from poolfund.schemas.common import ErrorResponse, ValidationErrorResponse
from poolfund.schemas.fund import (
    BuyRequest,
    DepositReceipt,
    FundResponse,
    HolderResponse,
    PriceResponse,
    SellRequest,
    WithdrawalReceipt,
)
from poolfund.services.fund_service import FundService

router = APIRouter()

_COMMAND_ERRORS = {
    409: {"model": ErrorResponse, "description": "Another fund operation is in progress"},
    422: {"model": ValidationErrorResponse, "description": "Validation error"},
    502: {"model": ErrorResponse, "description": "Base asset or yield venue failure"},
}


@router.get("", response_model=FundResponse, summary="Fund snapshot")
async def get_fund(service: FundService = Depends(get_fund_service)) -> FundResponse:
    return FundResponse.model_validate(await service.get_snapshot())


@router.get("/price", response_model=PriceResponse, summary="Share price")
async def get_price(service: FundService = Depends(get_fund_service)) -> PriceResponse:
    snapshot = await service.get_snapshot()
    return PriceResponse(
        share_price=snapshot.share_price,
        last_share_price=snapshot.last_share_price,
        decimals=snapshot.decimals,
    )


@router.get(
    "/holders/{holder}",
    response_model=HolderResponse,
    summary="Holder position",
    description="Unknown holders report zero shares rather than 404.",
)
async def get_holder(
    holder: str,
    service: FundService = Depends(get_fund_service),
) -> HolderResponse:
    holder = normalize_address(holder)
    shares, value = await service.get_holder(holder)
    return HolderResponse(holder=holder, shares=shares, value=value)


@router.post(
    "/buy",
    response_model=DepositReceipt,
    status_code=201,
    summary="Buy shares",
    description=(
        "Pulls ``amount`` of the base asset from the caller (the fund must be "
        "approved first) and mints shares priced on the equity actually added."
    ),
    responses=_COMMAND_ERRORS,
)
async def buy_shares(
    body: BuyRequest,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> DepositReceipt:
    return DepositReceipt.model_validate(await service.buy(caller, body.amount))


@router.post(
    "/sell",
    response_model=WithdrawalReceipt,
    summary="Sell shares",
    responses=_COMMAND_ERRORS,
)
async def sell_shares(
    body: SellRequest,
    caller: str = Depends(get_caller),
    service: FundService = Depends(get_fund_service),
) -> WithdrawalReceipt:
    return WithdrawalReceipt.model_validate(await service.sell(caller, body.shares))
