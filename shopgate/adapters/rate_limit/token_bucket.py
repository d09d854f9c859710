"""Per-shop token bucket used to pace outbound Shopify Admin API calls.

Each shop gets a bucket of ``max_tokens`` that refills continuously at
``refill_rate`` tokens per second. Refill is computed lazily on access; there
is no background timer.

Acquires on the same bucket are serialized with an ``asyncio.Lock`` so that
callers waiting for tokens are served in order and the bucket is re-checked
after every wait. Buckets live for the lifetime of the process and are not
shared across processes.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

SHOPIFY_MAX_TOKENS = 40
SHOPIFY_REFILL_PER_SECOND = 2.0


@dataclass
class TokenBucket:
    """Mutable state of one bucket.

    Attributes:
        tokens: Tokens currently available (0 <= tokens <= max_tokens).
        max_tokens: Bucket capacity.
        refill_rate: Tokens added per second.
        last_refill: Clock reading of the last refill that added tokens.
    """

    tokens: float
    max_tokens: int
    refill_rate: float
    last_refill: float
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)


@dataclass(frozen=True)
class BucketStatus:
    """Bucket state returned to callers after an acquire."""

    remaining_tokens: float
    max_tokens: int


class TokenBucketLimiter:
    """Token buckets keyed by client identity (typically the shop domain)."""

    def __init__(
        self,
        *,
        max_tokens: int = SHOPIFY_MAX_TOKENS,
        refill_rate: float = SHOPIFY_REFILL_PER_SECOND,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_tokens: Capacity of each bucket.
            refill_rate: Tokens added per second.
            clock: Monotonic time source in seconds.
            sleep: Coroutine function used to wait for tokens.

        Raises:
            ValueError: If capacity or refill rate is not positive.
        """
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be > 0")

        self._max_tokens = max_tokens
        self._refill_rate = refill_rate
        self._clock = clock
        self._sleep = sleep
        self._buckets: dict[str, TokenBucket] = {}
        self._buckets_lock = threading.Lock()

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    @property
    def refill_rate(self) -> float:
        return self._refill_rate

    def get_bucket(self, identity: str) -> TokenBucket:
        """Return the bucket for an identity, creating a full one on first use."""
        key = f"shopify:{identity}"
        with self._buckets_lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(
                    tokens=self._max_tokens,
                    max_tokens=self._max_tokens,
                    refill_rate=self._refill_rate,
                    last_refill=self._clock(),
                )
                self._buckets[key] = bucket
            return bucket

    def _refill(self, bucket: TokenBucket) -> None:
        now = self._clock()
        tokens_to_add = math.floor((now - bucket.last_refill) * bucket.refill_rate)
        # last_refill only moves when whole tokens were added, so partial
        # progress towards the next token carries over.
        if tokens_to_add > 0:
            bucket.tokens = min(bucket.max_tokens, bucket.tokens + tokens_to_add)
            bucket.last_refill = now

    async def acquire(self, identity: str, cost: int = 1) -> BucketStatus:
        """Take ``cost`` tokens from the identity's bucket, waiting if needed.

        When the bucket is short, the caller sleeps for
        ``ceil((cost - tokens) / refill_rate * 1000)`` milliseconds, then the
        bucket is refilled and checked again. There is no timeout; the wait
        always completes unless the task is cancelled.

        Args:
            identity: Client identity, usually the shop domain.
            cost: Tokens consumed by the request.

        Returns:
            BucketStatus with the tokens left after this acquire.

        Raises:
            ValueError: If cost is below 1 or above the bucket capacity.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if cost > self._max_tokens:
            raise ValueError(f"cost must be <= max_tokens ({self._max_tokens})")

        bucket = self.get_bucket(identity)
        async with bucket.lock:
            self._refill(bucket)
            while bucket.tokens < cost:
                wait_ms = math.ceil((cost - bucket.tokens) / bucket.refill_rate * 1000)
                logger.warning(
                    "token_bucket.waiting",
                    extra={
                        "shop": identity,
                        "request_cost": cost,
                        "available_tokens": bucket.tokens,
                        "wait_ms": wait_ms,
                    },
                )
                await self._sleep(wait_ms / 1000)
                self._refill(bucket)

            bucket.tokens -= cost
            return BucketStatus(remaining_tokens=bucket.tokens, max_tokens=bucket.max_tokens)

    def reset(self) -> None:
        """Drop every bucket."""
        with self._buckets_lock:
            self._buckets.clear()
