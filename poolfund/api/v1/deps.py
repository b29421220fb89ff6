"""
Shared FastAPI dependencies.

Each request gets a fresh ``FundService`` wired to its own DB session and
to the process-wide fund runtime. Tests swap these out through
``app.dependency_overrides``.
"""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from poolfund.core.config import settings
from poolfund.db.session import get_db
from poolfund.engine.ports import normalize_address
from poolfund.models.fund_event import FundEventRecord
from poolfund.repositories.event_repo import EventRepository
from poolfund.services.fund_runtime import FundRuntime, get_runtime
from poolfund.services.fund_service import FundService
from poolfund.services.sandbox_service import SandboxService


def get_caller(
    x_account: str = Header(
        ...,
        alias="X-Account",
        min_length=1,
        description="Account the request acts for",
    ),
) -> str:
    return normalize_address(x_account)


def get_fund_service(
    db: AsyncSession = Depends(get_db),
    runtime: FundRuntime = Depends(get_runtime),
) -> FundService:
    return FundService(runtime, EventRepository(FundEventRecord, db))


def get_sandbox_service(runtime: FundRuntime = Depends(get_runtime)) -> SandboxService:
    return SandboxService(runtime, enabled=settings.SANDBOX_MODE)
