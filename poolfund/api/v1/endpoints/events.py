"""
Event journal endpoints.

- GET /fund/events             — journal in commit order, filterable
- GET /fund/events/{event_id}  — one journal entry
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from poolfund.api.v1.deps import get_fund_service
from poolfund.engine.events import EventKind
from poolfund.engine.ports import normalize_address
from poolfund.schemas.common import ErrorResponse
from poolfund.schemas.event import FundEventResponse
from poolfund.services.fund_service import FundService

router = APIRouter()


@router.get("", response_model=List[FundEventResponse], summary="List fund events")
async def list_events(
    kind: Optional[EventKind] = Query(None, description="Only events of this kind"),
    holder: Optional[str] = Query(None, description="Only buys and sells of this holder"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    service: FundService = Depends(get_fund_service),
) -> List[FundEventResponse]:
    if holder is not None:
        holder = normalize_address(holder)
    return await service.list_events(kind=kind, holder=holder, skip=skip, limit=limit)


@router.get(
    "/{event_id}",
    response_model=FundEventResponse,
    summary="Get a fund event",
    responses={404: {"model": ErrorResponse, "description": "Event not found"}},
)
async def get_event(
    event_id: UUID,
    service: FundService = Depends(get_fund_service),
) -> FundEventResponse:
    return await service.get_event(event_id)
