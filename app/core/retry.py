"""
Retry-with-backoff combinator.

One policy object and one loop shared by every call site that talks to an
unreliable upstream (the LLM API, the broker). Call sites decide which
exceptions are retryable; the combinator owns counting, delays and logging.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff schedule.

    delay(attempt) = min(base_delay * multiplier ** (attempt - 1), max_delay)
    so the defaults wait 2s, 4s, 8s ... between attempts.
    """
    max_attempts: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0
    max_delay: float = 60.0

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)


def retry_on(*exception_types: Type[BaseException]) -> Callable[[BaseException], bool]:
    """Build a retryable-error predicate from exception classes."""
    def predicate(exc: BaseException) -> bool:
        return isinstance(exc, exception_types)
    return predicate


def retry_call(
    fn: Callable[[int], T],
    policy: RetryPolicy,
    retry_if: Callable[[BaseException], bool],
    on_retry: Optional[Callable[[BaseException, int], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "call",
) -> T:
    """
    Call fn(attempt) until it succeeds or the policy is exhausted.

    Args:
        fn: Callable receiving the 1-based attempt number
        policy: Attempt ceiling and backoff schedule
        retry_if: Predicate deciding whether an exception is retryable
        on_retry: Hook run before sleeping, e.g. to enlarge a token budget
        sleep: Injected for tests
        description: Label used in log lines

    Returns:
        Whatever fn returns on the first successful attempt

    Raises:
        The last exception raised by fn when it is not retryable or the
        attempt ceiling is reached.
    """
    attempt = 1
    while True:
        try:
            return fn(attempt)
        except Exception as exc:
            if attempt >= policy.max_attempts or not retry_if(exc):
                if attempt > 1:
                    logger.error(f"{description} failed after {attempt} attempt(s): {exc}")
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                f"{description} attempt {attempt}/{policy.max_attempts} failed: {exc}. "
                f"Retrying in {delay:.1f}s"
            )
            if on_retry is not None:
                on_retry(exc, attempt)
            sleep(delay)
            attempt += 1
