"""Circuit breaker in front of the realtime database.

Purpose: stop hammering the database while it is down, so booking screens
get a fast "try again" instead of waiting out every retry.

States:
- CLOSED: reads and writes pass through
- OPEN: calls fail immediately with DataSourceUnavailable
- HALF_OPEN: cooldown elapsed, one trial call decides whether to close
"""
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class DataSourceUnavailable(Exception):
    """Raised instead of calling the database while the circuit is open."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(
            f"Realtime database unavailable. Retry after {retry_after:.1f}s"
        )


def _every_error(exc: BaseException) -> bool:
    return True


class CircuitBreaker:
    """Counts consecutive failures of a callable and trips after a threshold."""

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown: float = 60,
        clock: Callable[[], float] = time.monotonic,
        is_failure: Callable[[BaseException], bool] = _every_error
    ):
        """
        Args:
            failure_threshold: Consecutive failures before the circuit opens
            cooldown: Seconds to stay open before allowing a trial call
            clock: Time source (injectable for tests)
            is_failure: Whether an exception from the call counts against
                the database. Errors it rejects (a 409 conflict, say) prove
                the database answered and count as a success.
        """
        self.failure_threshold = failure_threshold
        self.cooldown = cooldown
        self._clock = clock
        self.is_failure = is_failure
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self._state = CircuitState.CLOSED

    @property
    def state(self) -> str:
        return self._state.value

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Run ``func`` unless the circuit is open.

        Raises:
            DataSourceUnavailable: Circuit is open and still cooling down
            Exception: Whatever ``func`` raises (counted as a failure when
                ``is_failure`` says so)
        """
        if self._state == CircuitState.OPEN:
            remaining = self._cooldown_remaining()
            if remaining > 0:
                raise DataSourceUnavailable(remaining)
            self._state = CircuitState.HALF_OPEN
            logger.info("Realtime database circuit half-open, allowing trial call")

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            if self.is_failure(e):
                self._record_failure()
            else:
                self._record_success()
            raise

        self._record_success()
        return result

    def reset(self) -> None:
        """Force the circuit closed (used on shutdown and in tests)."""
        self.failure_count = 0
        self.opened_at = None
        self._state = CircuitState.CLOSED

    def _cooldown_remaining(self) -> float:
        if self.opened_at is None:
            return 0
        return max(0.0, self.cooldown - (self._clock() - self.opened_at))

    def _record_success(self):
        self.failure_count = 0
        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.CLOSED
            self.opened_at = None
            logger.info("Realtime database circuit closed after successful trial call")

    def _record_failure(self):
        self.failure_count += 1

        if self._state == CircuitState.HALF_OPEN:
            self._open()
            logger.warning("Realtime database circuit re-opened after failed trial call")
        elif self.failure_count >= self.failure_threshold:
            self._open()
            logger.error(
                "Realtime database circuit opened after %d consecutive failures "
                "(cooldown %ss)",
                self.failure_count,
                self.cooldown
            )

    def _open(self):
        self._state = CircuitState.OPEN
        self.opened_at = self._clock()
