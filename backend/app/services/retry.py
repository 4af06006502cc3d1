"""Bounded exponential backoff around a single provider call."""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from app.core.errors import TransientProviderError

logger = logging.getLogger("examprep.retry")

T = TypeVar("T")


class AttemptState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    RETRY_PENDING = "retry_pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RetryPolicy:
    """Retry transient provider failures with doubling delays.

    ``max_retries`` counts retries after the first attempt, so the default of
    3 allows 4 attempts in total. Anything other than a
    ``TransientProviderError`` propagates on the first occurrence.
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_transition: Optional[Callable[[AttemptState, AttemptState], None]] = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self._sleep = sleep
        self._on_transition = on_transition

    def delay_for(self, retry_number: int) -> float:
        """Delay before the given retry (1-based)."""
        return self.initial_delay * (2 ** (retry_number - 1))

    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str = "provider call") -> T:
        state = AttemptState.IDLE
        attempt = 0

        def move(new_state: AttemptState) -> None:
            nonlocal state
            logger.debug("%s: %s -> %s", label, state.value, new_state.value)
            if self._on_transition:
                self._on_transition(state, new_state)
            state = new_state

        while True:
            attempt += 1
            move(AttemptState.SENDING)
            try:
                result = await operation()
            except TransientProviderError as e:
                if attempt > self.max_retries:
                    move(AttemptState.FAILED)
                    logger.error(
                        "%s failed after %d attempts: %s", label, attempt, e
                    )
                    raise
                delay = self.delay_for(attempt)
                move(AttemptState.RETRY_PENDING)
                logger.warning(
                    "%s attempt %d/%d failed (%s). Retrying in %.1fs...",
                    label, attempt, self.max_retries + 1, e, delay,
                )
                await self._sleep(delay)
                continue
            except Exception as e:
                move(AttemptState.FAILED)
                logger.error("%s failed with %s: %s", label, type(e).__name__, e)
                raise
            move(AttemptState.SUCCEEDED)
            return result
