"""
Resilient call wrapper
Timeout-guarded attempts with exponential backoff and a fallback producer
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Tuple

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from .errors import SummarizerError, UpstreamRateLimitError, UpstreamServiceError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

Backoff = Callable[[RetryCallState], float]


def exponential_backoff(base_delay: float = 1.0) -> Backoff:
    """delay = 2^attempt * base_delay, so base, 2*base, 4*base ... between attempts"""
    return wait_exponential(multiplier=base_delay, exp_base=2)


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, SummarizerError) and error.retryable


class Deadline:
    """Shared wall-clock budget for one pipeline invocation"""

    def __init__(self, seconds: Optional[float], clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.expires_at = None if seconds is None else clock() + seconds

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self.clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


@dataclass
class CallOutcome:
    value: Any
    attempts: int
    is_fallback: bool = False
    errors: Tuple[SummarizerError, ...] = field(default_factory=tuple)

    @property
    def last_error(self) -> Optional[SummarizerError]:
        return self.errors[-1] if self.errors else None

    @property
    def rate_limited(self) -> bool:
        """Every attempt was rejected for quota reasons"""
        return bool(self.errors) and all(isinstance(e, UpstreamRateLimitError) for e in self.errors)


class ResilientCall:
    """
    Runs an async operation with per-attempt timeout and retry
    Never raises for operation failures: exhausted retries produce the fallback
    """

    def __init__(self,
                 max_attempts: int = 3,
                 backoff: Optional[Backoff] = None,
                 attempt_timeout: Optional[float] = 55.0,
                 fallback: Optional[Callable[[], Any]] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff = backoff or exponential_backoff(1.0)
        self.attempt_timeout = attempt_timeout
        self.fallback = fallback
        self.sleep = sleep

    async def __call__(self,
                       operation: Callable[[], Awaitable[Any]],
                       fallback: Optional[Callable[[], Any]] = None,
                       label: str = "call") -> CallOutcome:
        errors = []

        async def attempt() -> Any:
            try:
                return await asyncio.wait_for(operation(), timeout=self.attempt_timeout)
            except asyncio.TimeoutError:
                error = UpstreamTimeoutError(f"Attempt timed out after {self.attempt_timeout}s")
            except SummarizerError as e:
                error = e
            except Exception as e:
                error = UpstreamServiceError(f"{type(e).__name__}: {e}")

            errors.append(error)
            logger.warning(f"[RETRY] {label} attempt {len(errors)}/{self.max_attempts} failed: "
                           f"{error.kind}: {error.detail}")
            raise error

        retrying = AsyncRetrying(
            retry=retry_if_exception(is_retryable),
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            sleep=self.sleep,
            reraise=True,
        )

        try:
            value = await retrying(attempt)
        except SummarizerError:
            producer = fallback or self.fallback
            logger.error(f"[RETRY] {label} gave up after {len(errors)} attempts, using fallback")
            return CallOutcome(producer() if producer else None, len(errors), is_fallback=True, errors=tuple(errors))

        return CallOutcome(value, len(errors) + 1, errors=tuple(errors))

    def _wait(self, retry_state: RetryCallState) -> float:
        """Backoff delay, stretched to a provider's retry-after up to the attempt timeout"""
        delay = self.backoff(retry_state)
        retry_after = getattr(retry_state.outcome.exception(), "retry_after", None)
        if retry_after:
            delay = max(delay, min(retry_after, self.attempt_timeout or retry_after))
        return delay
