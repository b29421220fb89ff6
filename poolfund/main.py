"""
Pooled Yield Fund API — application entry-point.

Initializes the FastAPI application, registers middleware, exception handlers
and routers, and manages the application lifecycle: journal tables are
created and the fund runtime is built on startup.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text

from poolfund.api.v1.api import api_router
from poolfund.core.config import settings
from poolfund.core.exceptions import add_exception_handlers
from poolfund.core.logging import setup_logging
from poolfund.core.resilience import journal_circuit_breaker
from poolfund.db.session import AsyncSessionLocal, create_journal_tables, engine
from poolfund.middleware import RequestIDMiddleware, RequestTimingMiddleware
from poolfund.services.fund_runtime import get_runtime, resume_journal

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
      - Creates the ``fund_events`` journal table, retrying with exponential
        back-off. If the database stays unreachable the app starts anyway
        (fund operations keep working, events wait in the outbox) and the
        health check reports ``database: false``.
      - Builds the fund runtime so configuration errors surface at boot,
        and resumes event numbering after the highest journaled sequence.

    Shutdown:
      - Disposes of the connection pool.
    """
    runtime = get_runtime()
    max_retries = 5
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info("Connecting to database (attempt %d/%d)", attempt, max_retries)
            await create_journal_tables()
            logger.info("Journal tables ready")
            await resume_journal(runtime, AsyncSessionLocal)
            break
        except Exception as exc:
            if attempt < max_retries:
                logger.warning(
                    "Database connection failed (attempt %d/%d): %s; retrying in %ds",
                    attempt,
                    max_retries,
                    exc,
                    retry_delay,
                )
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.error(
                    "Could not connect to database after %d attempts. Starting in "
                    "DEGRADED mode: events are held in memory until the journal "
                    "is reachable. Last error: %s",
                    max_retries,
                    exc,
                )

    yield

    logger.info("Shutting down, disposing connection pool")
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    description=(
        "Open-ended pooled fund over a single base asset: buy and sell shares "
        "at an equity-derived price, with idle capital routed to a lending venue."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Outermost first.
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness / readiness probe.

    Runs ``SELECT 1`` against the journal database and reports the journal
    circuit breaker and the fund's headline numbers.
    """
    db_healthy = True
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check: journal database unreachable", exc_info=True)
        db_healthy = False

    runtime = get_runtime()
    snapshot = runtime.fund.snapshot()
    return {
        "status": "ok" if db_healthy else "degraded",
        "version": VERSION,
        "database": db_healthy,
        "circuit_breaker": journal_circuit_breaker.get_status(),
        "fund": {
            "address": snapshot.address,
            "equity": snapshot.equity,
            "total_shares": snapshot.total_shares,
            "share_price": snapshot.share_price,
            "yield_routing": snapshot.yield_routing,
            "pending_events": len(runtime.outbox),
        },
    }
