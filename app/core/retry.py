"""Retry with exponential backoff and a per-attempt timeout for LLM calls.

Usage:
    policy = RetryPolicy.from_settings(get_settings())
    text = await with_retry(lambda: generate(section), policy, label="Section 8")
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from app.core.config import Settings
from app.core.errors import (
    SectionGenerationFailure,
    SectionGenerationTimeoutError,
    SpecificationNotFoundError,
)
from app.core.llm import NON_RETRYABLE_LLM_ERRORS
from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Errors that can never succeed on a second attempt
NON_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    SpecificationNotFoundError,
    *NON_RETRYABLE_LLM_ERRORS,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt count, backoff and timeout for one generation call.

    ``max_attempts`` counts the first try. The delay before attempt ``n + 1``
    is ``initial_delay * 2**(n - 1)`` (1s, 2s, 4s, ...).
    """

    max_attempts: int = 2
    initial_delay: float = 1.0
    timeout_seconds: float = 45.0

    @classmethod
    def from_settings(cls, settings: Settings, timeout_seconds: float | None = None) -> "RetryPolicy":
        return cls(
            max_attempts=settings.SECTION_MAX_ATTEMPTS,
            initial_delay=settings.SECTION_INITIAL_BACKOFF_SECONDS,
            timeout_seconds=timeout_seconds or settings.SECTION_TIMEOUT_SECONDS,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (0-based)."""
        return self.initial_delay * (2**attempt)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str = "LLM call",
    give_up_on: tuple[type[BaseException], ...] = NON_RETRYABLE_ERRORS,
) -> T:
    """
    Run ``fn`` until it succeeds, retrying with exponential backoff.

    Each attempt is bounded by ``policy.timeout_seconds``. A timed-out attempt
    is abandoned: the underlying call is cancelled and its result discarded.

    Args:
        fn: Zero-argument coroutine factory; called once per attempt
        policy: Attempts, backoff and timeout
        label: Name used in log lines and error messages
        give_up_on: Exception types that abort immediately

    Returns:
        The first successful result

    Raises:
        SectionGenerationFailure: When every attempt failed, or a
            non-retryable error occurred (chained to the last error)
    """
    last_error: BaseException | None = None
    attempts = 0

    for attempt in range(policy.max_attempts):
        attempts = attempt + 1
        try:
            return await asyncio.wait_for(fn(), timeout=policy.timeout_seconds)
        except TimeoutError:
            last_error = SectionGenerationTimeoutError(label, policy.timeout_seconds)
        except give_up_on as e:
            logger.error(f"{label} failed with non-retryable {type(e).__name__}: {e}")
            raise SectionGenerationFailure(label, attempts, e) from e
        except Exception as e:
            last_error = e

        if attempt < policy.max_attempts - 1:
            delay = policy.delay_for(attempt)
            logger.warning(
                f"{label} attempt {attempts}/{policy.max_attempts} failed "
                f"({type(last_error).__name__}), retrying in {delay}s"
            )
            await asyncio.sleep(delay)

    logger.error(f"{label} failed after {attempts} attempt(s): {last_error}")
    raise SectionGenerationFailure(label, attempts, last_error) from last_error
