"""
V1 API router aggregation, mounted at ``/api/v1`` by ``main.py``.
"""

from fastapi import APIRouter

from poolfund.api.v1.endpoints import admin, events, fund, sandbox

api_router = APIRouter()

api_router.include_router(fund.router, prefix="/fund", tags=["Fund"])
api_router.include_router(admin.router, prefix="/fund/admin", tags=["Administration"])
api_router.include_router(events.router, prefix="/fund/events", tags=["Events"])
api_router.include_router(sandbox.router, prefix="/sandbox", tags=["Sandbox"])
