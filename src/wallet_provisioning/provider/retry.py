"""Retry policy for provider calls.

One policy object, parameterized by (idempotent, max attempts, backoff),
applied uniformly to every provider operation:

- idempotent reads are retried on any transport failure (connection or timeout)
- non-idempotent creation calls are retried at most once, on timeout only
- application errors (HTTP 4xx/5xx with a response) are never retried
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from wallet_provisioning.errors.provider_errors import ProviderTransportError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Creation calls may be re-sent at most once
MAX_CREATION_RETRIES = 1


@dataclass(frozen=True)
class RetryPolicy:
    """Retry behaviour for one class of provider operation.

    Attributes:
        idempotent: Whether the operation is safe to repeat blindly.
        max_attempts: Total attempts including the first one.
        backoff: Fixed delay between attempts in seconds.
    """

    idempotent: bool
    max_attempts: int = 1
    backoff: float = 0.0

    @classmethod
    def for_reads(cls, retries: int, backoff: float) -> RetryPolicy:
        """Policy for idempotent read/status calls."""
        return cls(idempotent=True, max_attempts=1 + max(0, retries), backoff=backoff)

    @classmethod
    def for_creation(cls, retries: int, backoff: float) -> RetryPolicy:
        """Policy for non-idempotent creation calls (capped at one retry)."""
        retries = min(max(0, retries), MAX_CREATION_RETRIES)
        return cls(idempotent=False, max_attempts=1 + retries, backoff=backoff)

    def should_retry(self, exc: BaseException) -> bool:
        """Whether *exc* is a failure this policy retries."""
        if not isinstance(exc, ProviderTransportError):
            return False
        return self.idempotent or exc.timed_out

    async def run(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Invoke *call*, retrying according to the policy.

        Args:
            operation: Operation name used in log messages.
            call: Zero-argument coroutine factory performing one attempt.

        Returns:
            The result of the first successful attempt.

        Raises:
            ProviderError: The last failure once attempts are exhausted, or
                immediately for failures the policy does not retry.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await call()
            except ProviderTransportError as exc:
                if attempt >= self.max_attempts or not self.should_retry(exc):
                    raise
                logger.warning(
                    "Provider %s failed: %s (attempt %d/%d)",
                    operation,
                    exc,
                    attempt,
                    self.max_attempts,
                )
            if self.backoff:
                await asyncio.sleep(self.backoff)
        msg = f"retry policy for {operation} has no attempts"
        raise ValueError(msg)
