"""
Bounded retry with exponential backoff for model invocations.

RetryingInvoker knows nothing about tools or conversations: it re-sends an
opaque request through a transport callable until it gets a non-retryable
response or runs out of attempts.
"""

import asyncio
import logging
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, Optional

from api_client import HttpResponse
from config import app_config
from errors import NetworkError

logger = logging.getLogger(__name__)

# 429 = rate limited, 529 = Anthropic "overloaded"
DEFAULT_RETRY_STATUSES: FrozenSet[int] = frozenset({429, 529})


class TransportError(Exception):
    """Raised by a transport when no HTTP status was obtained (connect/read failure)"""
    pass


Transport = Callable[[Any], Awaitable[HttpResponse]]


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Seconds to wait from a retry-after header (delta-seconds or HTTP-date)."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        seconds = float(value)
        return max(seconds, 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max((when - now).total_seconds(), 0.0)


class RetryingInvoker:
    """Wrap a transport with retry on rate-limit/overload statuses and transport errors.

    delay(attempt) = min(base_delay * 2**attempt, max_delay) + jitter, where
    jitter is uniform in [0, max_jitter). A server-supplied retry-after value
    replaces the computed backoff for status retries; transport errors never
    consult it. After max_retries retries a retryable status is returned as
    is, while a transport error becomes NetworkError.
    """

    def __init__(
        self,
        transport: Transport,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        max_jitter: float = 0.5,
        retry_statuses: Iterable[int] = DEFAULT_RETRY_STATUSES,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ):
        self._transport = transport
        self.max_retries = app_config.api_max_retries if max_retries is None else max_retries
        self.base_delay = app_config.api_retry_base_delay if base_delay is None else base_delay
        self.max_delay = app_config.api_retry_max_delay if max_delay is None else max_delay
        self.max_jitter = max_jitter
        self.retry_statuses = frozenset(retry_statuses)
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    def backoff_delay(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def _jitter(self) -> float:
        if self.max_jitter <= 0:
            return 0.0
        return self._rng.random() * self.max_jitter

    async def call(self, request: Any) -> HttpResponse:
        attempt = 0
        while True:
            try:
                response = await self._transport(request)
            except TransportError as e:
                if attempt >= self.max_retries:
                    logger.error(f"Transport failed after {attempt + 1} attempts: {e}")
                    raise NetworkError(attempt + 1, str(e)) from e
                delay = self.backoff_delay(attempt) + self._jitter()
                logger.warning(
                    f"Transport error (attempt {attempt + 1}/{self.max_retries + 1}): {e}; "
                    f"retrying in {delay:.2f}s"
                )
                await self._sleep(delay)
                attempt += 1
                continue

            if response.status_code not in self.retry_statuses:
                return response
            if attempt >= self.max_retries:
                logger.error(
                    f"Status {response.status_code} persisted after {attempt + 1} attempts; giving up"
                )
                return response

            retry_after = parse_retry_after(response.header("retry-after"))
            base = retry_after if retry_after is not None else self.backoff_delay(attempt)
            delay = base + self._jitter()
            logger.warning(
                f"Retryable status {response.status_code} (attempt {attempt + 1}/{self.max_retries + 1}); "
                f"retrying in {delay:.2f}s"
            )
            await self._sleep(delay)
            attempt += 1
