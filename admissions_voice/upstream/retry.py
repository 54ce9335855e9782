"""Retry of upstream operations with exponential backoff."""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import structlog

from admissions_voice.exceptions import (
    PermanentUpstreamError,
    TransientExhaustedError,
    TransportFaultError,
)
from admissions_voice.upstream.client import (
    OutcomeKind,
    UpstreamClient,
    UpstreamOperation,
    UpstreamResult,
)

logger = structlog.get_logger()

# Status reported when retries exhaust without any HTTP response observed
DEFAULT_EXHAUSTED_STATUS = 429


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""

    max_attempts: int = 4
    base_delay_ms: int = 350
    jitter_ms: int = 120


def compute_backoff_delay(
    attempt: int,
    policy: RetryPolicy,
    jitter: Callable[[float, float], float] = random.uniform,
) -> float:
    """
    Delay in seconds to wait after a failed attempt.

    delay = base_delay * 2^(attempt - 1) + uniform(0, jitter)

    Args:
        attempt: 1-based number of the attempt that just failed
        policy: Retry policy
        jitter: Random source returning a value in [a, b]
    """
    base_ms = policy.base_delay_ms * (2 ** (attempt - 1))
    jitter_ms = jitter(0, policy.jitter_ms) if policy.jitter_ms else 0.0
    return (base_ms + jitter_ms) / 1000.0


class RetryingCaller:
    """
    Wraps an UpstreamClient with bounded exponential backoff.

    - Success returns immediately.
    - Transient failures (429, 5xx, transport faults) are retried until
      ``max_attempts`` is reached, then surfaced as TransientExhaustedError.
    - Permanent failures are surfaced on first occurrence.

    Usage:
        caller = RetryingCaller(UpstreamClient(http_client), RetryPolicy())
        result = await caller.call(operation)
    """

    def __init__(
        self,
        client: UpstreamClient,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.client = client
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._jitter = jitter

    async def call(self, operation: UpstreamOperation) -> UpstreamResult:
        """Execute the operation under the retry policy."""
        log = logger.bind(operation=operation.name)
        last_status: Optional[int] = None
        last_message = "no response"

        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                result = await self.client.execute(operation)
            except TransportFaultError as e:
                last_message = e.message
            else:
                if result.ok:
                    return result

                if result.kind is OutcomeKind.PERMANENT:
                    log.error(
                        "Upstream rejected request",
                        status=result.status_code,
                        error=result.message,
                        attempt=attempt,
                    )
                    raise PermanentUpstreamError(
                        result.message or f"HTTP {result.status_code}",
                        operation=operation.name,
                        upstream_status=result.status_code,
                    )

                last_status = result.status_code
                last_message = result.message or f"HTTP {result.status_code}"

            if attempt >= self.policy.max_attempts:
                break

            delay = compute_backoff_delay(attempt, self.policy, self._jitter)
            log.warning(
                "Upstream attempt failed, retrying",
                attempt=attempt,
                status=last_status,
                error=last_message,
                delay_s=round(delay, 3),
            )
            await self._sleep(delay)

        log.error(
            "Upstream retries exhausted",
            attempts=self.policy.max_attempts,
            status=last_status,
            error=last_message,
        )
        raise TransientExhaustedError(
            operation=operation.name,
            attempts=self.policy.max_attempts,
            last_message=last_message,
            upstream_status=last_status or DEFAULT_EXHAUSTED_STATUS,
        )
