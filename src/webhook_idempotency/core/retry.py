"""Exponential backoff for callers that lose the lock race.

A caller that finds its key PROCESSING, or fails to acquire the lock, polls
the ledger until the winner settles. The delay before attempt ``k`` is::

    base_delay_ms * 2 ** (k - 1)

for ``k`` in ``1..max_retries``. With the default 1000 ms base and three
retries the caller waits 1 s, 2 s and 4 s. An optional deadline stops the
schedule early when the next sleep would cross it.

Examples:
    Polling until settled::

        retry = RetryController(config)
        async for attempt in retry.attempts(timeout=5.0):
            check = await ledger.check_duplicate(key)
            if check.status.is_terminal:
                break
"""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable

from webhook_idempotency.config import IdempotencyConfig
from webhook_idempotency.observability.logging import get_logger

logger = get_logger(__name__)


class RetryController:
    """Produces the backoff schedule and performs the sleeps.

    Attributes:
        config: Configuration providing max_retries, base_delay_ms and the
            default deadline
    """

    def __init__(
        self,
        config: IdempotencyConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._sleep = sleep
        self._clock = clock

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before retry ``attempt`` (1-based).

        Raises:
            ValueError: If attempt is less than 1.
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        return self.config.base_delay_seconds * 2 ** (attempt - 1)

    def schedule(self) -> list[float]:
        """The full list of delays, in seconds, for attempts 1..max_retries."""
        return [self.delay_for(attempt) for attempt in range(1, self.config.max_retries + 1)]

    async def attempts(self, timeout: float | None = None) -> AsyncIterator[int]:
        """Sleep through the schedule, yielding each attempt number after its delay.

        Args:
            timeout: Seconds the whole backoff phase may take. Defaults to
                config.retry_timeout_seconds; None means no deadline.

        Yields:
            Attempt numbers 1..max_retries, stopping early at the deadline
        """
        budget = timeout if timeout is not None else self.config.retry_timeout_seconds
        deadline = self._clock() + budget if budget is not None else None

        for attempt in range(1, self.config.max_retries + 1):
            delay = self.delay_for(attempt)
            if deadline is not None and self._clock() + delay > deadline:
                logger.debug("retry.deadline_reached", attempt=attempt, delay_seconds=delay)
                return
            await self._sleep(delay)
            yield attempt
