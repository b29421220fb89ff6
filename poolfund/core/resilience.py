"""
Circuit breaker guarding the event journal database.

The fund engine itself never retries anything: a failed buy or sell is
rolled back and reported to the caller. The journal, however, sits behind a
network database, and when that database is down every request would
otherwise block for a full connection timeout. The breaker trips after a
run of consecutive failures and fails fast until a cool-down has elapsed.

States:
- CLOSED    → normal operation; failures are counted.
- OPEN      → calls are rejected immediately with :class:`CircuitBreakerError`.
- HALF_OPEN → one probe call is let through; success closes the circuit,
              failure re-opens it.
"""

import logging
import time
from enum import Enum
from typing import Any, Callable, Tuple, Type

from sqlalchemy.exc import OperationalError

from poolfund.core.config import settings

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Possible states of a circuit breaker."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{name}' is open; retry after {retry_after:.1f}s"
        )


class CircuitBreaker:
    """
    Async circuit breaker.

    Parameters
    ----------
    name : str
        Identifier used in logs and the health endpoint.
    failure_threshold : int
        Consecutive failures that open the circuit.
    recovery_timeout : float
        Seconds spent OPEN before a probe is allowed.
    expected_exceptions : tuple
        Exception types that count as failures. Anything else (for example a
        unique-constraint violation) propagates without touching the state.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float = 0.0
        self._success_count = 0

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit '%s' half-open, allowing a probe", self.name)
        return self._state

    def _record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info("Circuit '%s' closed after successful probe", self.name)
        self._failure_count = 0
        self._success_count += 1
        self._state = CircuitState.CLOSED

    def _record_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or (
            self._failure_count >= self.failure_threshold
        ):
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()
            logger.error(
                "Circuit '%s' opened after %d consecutive failures; "
                "failing fast for %.1fs",
                self.name,
                self._failure_count,
                self.recovery_timeout,
            )
        else:
            logger.warning(
                "Circuit '%s' failure %d/%d",
                self.name,
                self._failure_count,
                self.failure_threshold,
            )

    async def call(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        """Await ``func`` through the breaker; raise if the circuit is open."""
        if self.state == CircuitState.OPEN:
            retry_after = self.recovery_timeout - (time.monotonic() - self._opened_at)
            raise CircuitBreakerError(self.name, max(retry_after, 0))

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions:
            self._record_failure()
            raise
        self._record_success()
        return result

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0

    def get_status(self) -> dict:
        """Return a dict suitable for the health endpoint."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self._success_count,
            "recovery_timeout_s": self.recovery_timeout,
        }


# ── Global breaker for journal database operations ──
journal_circuit_breaker = CircuitBreaker(
    name="journal",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=(
        ConnectionError,
        OSError,
        TimeoutError,
        OperationalError,
    ),
)
