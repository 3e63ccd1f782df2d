"""RetryPolicy — fixed or exponential delay, optional attempt cap, attempt counter."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Delay schedule for reconnect and resubscribe loops.

    The default is the broker's historical behaviour: a fixed 5 second delay,
    retried indefinitely. ``backoff_factor > 1`` turns it into exponential
    backoff capped by ``max_delay``.
    """

    def __init__(
        self,
        *,
        max_attempts: int | None = None,
        base_delay: float = 5.0,
        max_delay: float = 60.0,
        backoff_factor: float = 1.0,
        jitter: bool = False,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_attempts: Maximum number of attempts (including the first);
                None retries forever.
            base_delay: Delay in seconds before the first retry.
            max_delay: Cap on delay in seconds.
            backoff_factor: Multiplier applied per attempt (1.0 = fixed delay).
            jitter: If True, multiply delays by a random factor in [0.5, 1.5].
        """
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if base_delay > max_delay:
            raise ValueError("base_delay must be <= max_delay")
        if backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter

    def should_retry(self, attempt: int) -> bool:
        """Return True if another attempt is allowed after *attempt* (1-based)."""
        if attempt < 1:
            return False
        return self.max_attempts is None or attempt < self.max_attempts

    def delay_for_attempt(self, attempt: int) -> float:
        """Return the delay in seconds after the given 1-based attempt."""
        if attempt < 1:
            return 0.0
        delay = min(
            self.base_delay * (self.backoff_factor ** (attempt - 1)),
            self.max_delay,
        )
        if self.jitter:
            delay = delay * (0.5 + random.random())  # noqa: S311
        return float(max(0.0, delay))

    async def wait_before_retry(self, attempt: int) -> None:
        d = self.delay_for_attempt(attempt)
        if d > 0:
            await _sleep(d)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        description: str = "operation",
        on_failure: Callable[[BaseException], Awaitable[None] | None] | None = None,
    ) -> RetryOutcome[T]:
        """Call *operation* until it succeeds or the policy gives up.

        Returns a ``RetryOutcome`` with the result and the number of attempts
        made. The last exception is re-raised when attempts are exhausted.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if on_failure is not None:
                    maybe = on_failure(e)
                    if maybe is not None:
                        await maybe
                if not self.should_retry(attempt):
                    _logger.error(
                        "%s failed after %d attempt(s): %s", description, attempt, e
                    )
                    raise
                delay = self.delay_for_attempt(attempt)
                _logger.warning(
                    "%s failed (attempt %d): %s; retrying in %.1fs",
                    description,
                    attempt,
                    e,
                    delay,
                )
                await self.wait_before_retry(attempt)
            else:
                return RetryOutcome(result=result, attempts=attempt)


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Result of ``RetryPolicy.run`` together with the attempts it took."""

    result: T
    attempts: int


async def _sleep(seconds: float) -> None:
    """Async sleep (overridable for tests)."""
    await asyncio.sleep(seconds)
