"""Bounded exponential-backoff retry for upstream calls.

Only ``TransientUpstreamError`` (and whatever else the caller opts into) is
retried. Administrative and validation errors surface immediately, and the
final attempt re-raises the original exception rather than a wrapper.
"""

import logging
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

from lingua_kb.core.exceptions import (
    ConfigurationError,
    DisabledError,
    TransientUpstreamError,
    ValidationError,
)
from lingua_kb.metrics.indexing_metrics import upstream_retries_total
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

NEVER_RETRIED: Tuple[Type[BaseException], ...] = (
    DisabledError,
    ConfigurationError,
    ValidationError,
)


class RetryExecutor:
    """Run coroutines with ``attempts`` tries and ``backoff * 2**n`` waits."""

    def __init__(
        self,
        attempts: int = 5,
        backoff_seconds: float = 3.0,
        max_backoff_seconds: float = 60.0,
        retry_on: Tuple[Type[BaseException], ...] = (TransientUpstreamError,),
    ):
        if attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {attempts}")
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.retry_on = retry_on

    @classmethod
    def from_settings(cls, settings) -> "RetryExecutor":
        return cls(
            attempts=settings.RETRY_ATTEMPTS,
            backoff_seconds=settings.RETRY_BACKOFF_SECONDS,
            max_backoff_seconds=settings.RETRY_MAX_BACKOFF_SECONDS,
        )

    def _is_retryable(self, exc: BaseException) -> bool:
        if isinstance(exc, NEVER_RETRIED):
            return False
        return isinstance(exc, self.retry_on)

    def _before_sleep(self, label: str) -> Callable[[RetryCallState], None]:
        def log_retry(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            wait = state.next_action.sleep if state.next_action else 0
            upstream_retries_total.labels(label=label).inc()
            logger.warning(
                f"{label}: attempt {state.attempt_number}/{self.attempts} failed "
                f"({exc}); retrying in {wait:.1f}s"
            )

        return log_retry

    async def run(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        label: str = "upstream",
        **kwargs: Any,
    ) -> T:
        """Await ``fn(*args, **kwargs)`` with retries.

        Raises:
            The last exception raised by ``fn`` once attempts are exhausted,
            or any non-retryable exception immediately.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(
                multiplier=self.backoff_seconds,
                min=self.backoff_seconds,
                max=self.max_backoff_seconds,
            ),
            retry=retry_if_exception(self._is_retryable),
            before_sleep=self._before_sleep(label),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await fn(*args, **kwargs)
        except Exception as e:
            if self._is_retryable(e):
                logger.error(f"{label}: giving up after {self.attempts} attempts: {e}")
            raise
        raise RuntimeError("unreachable")  # pragma: no cover
