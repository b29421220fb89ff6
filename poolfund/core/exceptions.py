"""
Domain exceptions and global exception handlers.

The fund engine raises the exceptions below without knowing anything about
HTTP; each carries the status code the API should answer with, and
``add_exception_handlers`` turns them into a consistent JSON envelope::

    {
        "error": true,
        "message": "<human-readable description>"
    }

Taxonomy:
- **Validation** (422): rejected before any state mutation.
- **Authorisation** (403): admin operation attempted by a non-owner.
- **Conflict** (409): a mutating call arrived while another was in flight.
- **Collaborator failure** (502): the base asset or the yield venue refused
  an operation; the whole fund operation is rolled back.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from poolfund.core.resilience import CircuitBreakerError

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Base classes
# ────────────────────────────────────────────────────────────────────────────


class AppException(Exception):
    """Base exception for all application-level errors."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status_code=404,
            message=f"{resource} '{identifier}' not found",
        )


class ConflictException(AppException):
    """Request conflicts with an operation already in progress (409)."""

    def __init__(self, message: str):
        super().__init__(status_code=409, message=message)


class BusinessRuleViolation(AppException):
    """Business rule was violated (422)."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(status_code=422, message=message, details=details)


class CollaboratorFailure(AppException):
    """An external collaborator (asset, yield venue) failed (502)."""

    def __init__(self, message: str):
        super().__init__(status_code=502, message=message)


# ────────────────────────────────────────────────────────────────────────────
# Fund validation errors
# ────────────────────────────────────────────────────────────────────────────


class BelowMinInvestment(BusinessRuleViolation):
    def __init__(self, amount: int, minimum: int):
        self.amount = amount
        self.minimum = minimum
        super().__init__(
            f"Investment of {amount} is below the minimum investment of {minimum}"
        )


class InvalidShareAmount(BusinessRuleViolation):
    def __init__(self, shares: int):
        super().__init__(f"Share amount must be positive, got {shares}")


class InsufficientShares(BusinessRuleViolation):
    def __init__(self, holder: str, requested: int, available: int):
        self.holder = holder
        self.requested = requested
        self.available = available
        super().__init__(
            f"Holder '{holder}' has {available} shares, cannot redeem {requested}"
        )


class FeeTooHigh(BusinessRuleViolation):
    def __init__(self, fee_bps: int, max_bps: int):
        super().__init__(
            f"Fee of {fee_bps} bps is out of bounds (allowed: 0..{max_bps} bps)"
        )


class ZeroAddress(BusinessRuleViolation):
    def __init__(self, role: str):
        super().__init__(f"{role} must not be the zero address")


class NothingToMint(BusinessRuleViolation):
    """The realized deposit is too small to be worth a single share."""

    def __init__(self, equity_change: int):
        super().__init__(
            f"Deposit increased equity by {equity_change}, which mints zero shares"
        )


class FundInsolvent(BusinessRuleViolation):
    """Shares are outstanding but the fund holds no equity to price them against."""

    def __init__(self):
        super().__init__(
            "Fund equity is zero while shares are outstanding; deposits are suspended"
        )


class YieldRoutingDisabled(BusinessRuleViolation):
    def __init__(self):
        super().__init__("This fund does not route capital to a yield venue")


# ────────────────────────────────────────────────────────────────────────────
# Authorisation, concurrency and collaborator errors
# ────────────────────────────────────────────────────────────────────────────


class NotOwner(AppException):
    """Administrative operation attempted by someone other than the owner (403)."""

    def __init__(self, caller: str):
        self.caller = caller
        super().__init__(
            status_code=403,
            message=f"Account '{caller}' is not the fund owner",
        )


class ReentrantCallError(ConflictException):
    """A mutating entry point was called while another one was still running."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"Reentrant call to '{operation}' rejected: another fund operation "
            f"is in progress"
        )


class TransferFailed(CollaboratorFailure):
    def __init__(self, action: str, amount: int):
        self.action = action
        self.amount = amount
        super().__init__(f"Base asset {action} of {amount} failed")


class YieldVenueError(CollaboratorFailure):
    pass


class SandboxDisabled(NotFoundException):
    def __init__(self):
        super().__init__("Sandbox endpoint", "disabled")


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI application instance."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        """Handle domain exceptions raised by the engine or the service layer."""
        content = {"error": True, "message": exc.message}
        if exc.details is not None:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(CircuitBreakerError)
    async def circuit_breaker_handler(
        request: Request, exc: CircuitBreakerError
    ) -> JSONResponse:
        """The event journal is unavailable; tell the client when to come back."""
        return JSONResponse(
            status_code=503,
            headers={"Retry-After": str(int(exc.retry_after) + 1)},
            content={
                "error": True,
                "message": "Service temporarily unavailable: the journal circuit is open",
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTP exceptions (e.g. 404 from path-not-found)."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "message": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Return a 422 with one entry per invalid field."""
        errors = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            errors.append({"field": loc, "message": err["msg"]})
        return JSONResponse(
            status_code=422,
            content={"error": True, "message": "Validation failed", "details": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception(
            "Unhandled exception on %s %s", request.method, request.url.path
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": True,
                "message": "Internal Server Error. Please contact support.",
            },
        )
