"""Circuit breaker guarding upstream analytics and health calls."""
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing, reject calls
    HALF_OPEN = "half_open"  # Testing recovery


class CircuitBreakerOpen(Exception):
    """Raised when circuit breaker is open."""
    pass


class CircuitBreaker:
    """Circuit breaker for upstream fault tolerance."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        success_threshold: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            name: Circuit breaker name (used in logs and status)
            failure_threshold: Consecutive failures before opening
            recovery_timeout: Seconds to wait before half-open
            success_threshold: Successful half-open calls needed to close
            clock: Monotonic time source
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None

    async def call_async(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Await ``func`` with circuit breaker protection.

        Raises CircuitBreakerOpen without calling ``func`` while open.
        """
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                self.state = CircuitState.HALF_OPEN
                logger.info(f"🔌 [{self.name}] Circuit breaker: HALF_OPEN")
            else:
                raise CircuitBreakerOpen(f"Circuit breaker '{self.name}' is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise

        self._on_success()
        return result

    def _on_success(self):
        """Handle successful call."""
        self.failure_count = 0

        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                self.state = CircuitState.CLOSED
                self.success_count = 0
                logger.info(f"✅ [{self.name}] Circuit breaker: CLOSED (recovered)")

    def _on_failure(self):
        """Handle failed call."""
        self.failure_count += 1
        self.last_failure_time = self._clock()
        self.success_count = 0

        if self.state == CircuitState.HALF_OPEN:
            logger.warning(f"❌ [{self.name}] Recovery attempt failed, opening circuit")
            self.state = CircuitState.OPEN

        elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            logger.error(
                f"🔌 [{self.name}] Circuit breaker opened after "
                f"{self.failure_count} failures"
            )
            self.state = CircuitState.OPEN

    def _should_attempt_reset(self) -> bool:
        """Check if recovery timeout has elapsed."""
        if self.last_failure_time is None:
            return True
        return self._clock() - self.last_failure_time >= self.recovery_timeout

    def reset(self):
        """Manually reset circuit breaker."""
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time = None
        logger.info(f"🔄 [{self.name}] Circuit breaker manually reset")

    def get_status(self) -> Dict[str, Any]:
        """Get circuit breaker status."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
        }


# Global circuit breakers
circuit_breakers = {
    "analytics_store": CircuitBreaker("analytics_store", failure_threshold=5, recovery_timeout=30),
}
