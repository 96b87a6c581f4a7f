# src/claimcheck/engine/retry.py
"""RetryPolicy: exponential backoff with jitter, built on tenacity.

Every blob upload/download and every queue send made by ClaimCheckClient
runs through a RetryPolicy. All exceptions derived from Exception are
treated as retryable; there is no fatal/transient distinction. That is
acceptable for idempotent blob PUT/GET but can duplicate a queue send whose
response was lost after the service accepted it.

BaseException subclasses (KeyboardInterrupt, SystemExit) are never retried.
If one is raised during a backoff sleep the attempt is abandoned and the
exception propagates unchanged.

Delay after failed attempt n (1-based):

    min(initial_backoff * multiplier ** (n - 1), max_backoff) * U(0.75, 1.25)

floored at zero.
"""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

import structlog
from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception_type, stop_after_attempt

from claimcheck.contracts.errors import MaxRetriesExceeded

if TYPE_CHECKING:
    from claimcheck.core.config import RetrySettings

logger = structlog.get_logger(__name__)

T = TypeVar("T")

JITTER_LOW = 0.75
JITTER_HIGH = 1.25


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    max_attempts is the TOTAL number of tries, not the number of retries.
    So max_attempts=3 means: try, retry, retry (3 total).
    """

    max_attempts: int = 3
    initial_backoff: float = 1.0  # seconds
    multiplier: float = 2.0
    max_backoff: float = 30.0  # seconds

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if self.initial_backoff < 0 or self.max_backoff < 0:
            raise ValueError("backoff durations must be >= 0")

    @classmethod
    def no_retry(cls) -> "RetryConfig":
        """Factory for a single-attempt configuration."""
        return cls(max_attempts=1)

    @classmethod
    def from_settings(cls, settings: "RetrySettings") -> "RetryConfig":
        """Factory from RetrySettings (millisecond fields)."""
        return cls(
            max_attempts=settings.max_attempts,
            initial_backoff=settings.backoff_millis / 1000.0,
            multiplier=settings.backoff_multiplier,
            max_backoff=settings.max_backoff_millis / 1000.0,
        )


class RetryPolicy:
    """Runs an operation up to max_attempts times with jittered backoff.

    Example:
        policy = RetryPolicy(RetryConfig(max_attempts=3))
        pointer = policy.execute(lambda: store.store(name, payload))

    Args:
        config: Retry configuration
        sleep: Blocking sleep function; tests inject a recorder
        rng: Source of jitter; tests inject a seeded random.Random
    """

    def __init__(
        self,
        config: RetryConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def config(self) -> RetryConfig:
        return self._config

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        cfg = self._config
        try:
            raw = cfg.initial_backoff * cfg.multiplier ** (attempt - 1)
        except OverflowError:
            raw = cfg.max_backoff if cfg.initial_backoff > 0 else 0.0
        capped = min(raw, cfg.max_backoff)
        return max(capped * self._rng.uniform(JITTER_LOW, JITTER_HIGH), 0.0)

    def execute(self, operation: Callable[[], T]) -> T:
        """Execute operation with retry.

        Raises:
            MaxRetriesExceeded: When every attempt failed. The final
                attempt's exception is chained as __cause__.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._config.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(Exception),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=False,  # RetryError is converted to MaxRetriesExceeded below
        )
        try:
            return retrying(operation)
        except RetryError as e:
            last_attempt = e.last_attempt
            last_error = last_attempt.exception()
            assert last_error is not None, "RetryError without exception is impossible"
            logger.warning(
                "Retries exhausted",
                attempts=last_attempt.attempt_number,
                error=str(last_error),
            )
            raise MaxRetriesExceeded(last_attempt.attempt_number, last_error) from last_error

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.backoff_delay(retry_state.attempt_number)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action is not None else 0.0
        logger.warning(
            "Operation failed, retrying",
            attempt=retry_state.attempt_number,
            max_attempts=self._config.max_attempts,
            delay_seconds=round(delay, 3),
            error=str(error),
        )
