"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expired windows are evicted opportunistically during checks, never by a
  background timer. Expiry is re-checked on every lookup, so a stale entry
  only costs memory.
"""

from __future__ import annotations

import hashlib
import logging
import math
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping

from shopgate.adapters.rate_limit.base import (
    DEFAULT_LIMIT_CLASS,
    RATE_LIMIT_POLICIES,
    AbstractRateLimiter,
    RateLimitInfo,
    RateLimitPolicy,
    RateLimitStatus,
)
from shopgate.core.errors import create_rate_limit_error

logger = logging.getLogger(__name__)


@dataclass
class _WindowEntry:
    count: int
    reset_at_ms: int
    first_request_at_ms: int


def build_window_key(identity: str, endpoint: str, limit_class: str) -> str:
    """Return the store key for a (class, identity, endpoint) window."""
    return f"{limit_class}:{identity}:{endpoint}"


def hash_identity(identity: str) -> str:
    """Hash a client identity for logging without exposing IPs."""
    return hashlib.sha256(identity.encode()).hexdigest()[:16]


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed window per (class, identity, endpoint).

    A window starts on the first request for its key and lasts for the
    class's ``window_seconds``; once the current time passes the reset
    instant the next request opens a fresh window.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        policies: Mapping[str, RateLimitPolicy] | None = None,
        clock: Callable[[], float] = time.time,
        sweep_probability: float = 0.01,
        random_source: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            policies: Limit class catalog; defaults to ``RATE_LIMIT_POLICIES``.
            clock: Time source function returning UNIX time in seconds.
            sweep_probability: Chance that a check also evicts expired windows.
            random_source: Function returning a float in [0, 1).

        Raises:
            ValueError: If a policy or the sweep probability is invalid.
        """
        catalog = dict(policies or RATE_LIMIT_POLICIES)
        if DEFAULT_LIMIT_CLASS not in catalog:
            raise ValueError(f"policies must define the '{DEFAULT_LIMIT_CLASS}' class")
        for name, policy in catalog.items():
            if policy.max_requests < 1:
                raise ValueError(f"{name}: max_requests must be >= 1")
            if policy.window_seconds < 1:
                raise ValueError(f"{name}: window_seconds must be >= 1")
        if not 0.0 <= sweep_probability <= 1.0:
            raise ValueError("sweep_probability must be between 0 and 1")

        self._policies = catalog
        self._clock = clock
        self._sweep_probability = sweep_probability
        self._random = random_source
        self._lock = threading.RLock()
        self._windows: dict[str, _WindowEntry] = {}

    def window_count(self) -> int:
        """Number of windows currently held in memory."""
        with self._lock:
            return len(self._windows)

    def get_policy(self, limit_class: str) -> RateLimitPolicy:
        """Return the policy for a class, falling back to ``api``."""
        return self._policies.get(limit_class) or self._policies[DEFAULT_LIMIT_CLASS]

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _sweep_expired_locked(self, now_ms: int) -> None:
        expired = [key for key, entry in self._windows.items() if now_ms > entry.reset_at_ms]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("rate_limit.swept", extra={"evicted": len(expired), "size": len(self._windows)})

    def _current_window_locked(self, key: str, policy: RateLimitPolicy, now_ms: int) -> _WindowEntry:
        entry = self._windows.get(key)
        if entry is None or now_ms > entry.reset_at_ms:
            entry = _WindowEntry(
                count=0,
                reset_at_ms=now_ms + policy.window_ms,
                first_request_at_ms=now_ms,
            )
            self._windows[key] = entry
        return entry

    @staticmethod
    def _seconds_until(reset_at_ms: int, now_ms: int) -> int:
        return max(1, math.ceil((reset_at_ms - now_ms) / 1000))

    def check_limit(self, identity: str, endpoint: str, limit_class: str = DEFAULT_LIMIT_CLASS) -> RateLimitInfo:
        """Count a request against its window or reject it.

        The quota check happens before the increment: a request is rejected
        when ``max_requests`` requests were already counted in the window.

        Args:
            identity: Client identity (shop domain or IP address).
            endpoint: Logical endpoint name.
            limit_class: Policy name; unknown names use ``api``.

        Returns:
            RateLimitInfo describing the window after this request.

        Raises:
            RateLimitAppError: If the window is exhausted; carries the number
                of seconds until it resets.
            ValueError: If identity or endpoint is empty.
        """
        if not identity:
            raise ValueError("identity must be a non-empty string")
        if not endpoint:
            raise ValueError("endpoint must be a non-empty string")

        policy = self.get_policy(limit_class)
        key = build_window_key(identity, endpoint, limit_class)
        now_ms = self._now_ms()

        with self._lock:
            if self._random() < self._sweep_probability:
                self._sweep_expired_locked(now_ms)

            entry = self._current_window_locked(key, policy, now_ms)

            if entry.count >= policy.max_requests:
                retry_after = self._seconds_until(entry.reset_at_ms, now_ms)
                logger.warning(
                    "rate_limit.exceeded",
                    extra={
                        "identity_hash": hash_identity(identity),
                        "endpoint": endpoint,
                        "limit_class": limit_class,
                        "count": entry.count,
                        "limit": policy.max_requests,
                        "retry_after_s": retry_after,
                        "window_s": policy.window_seconds,
                    },
                )
                raise create_rate_limit_error(retry_after)

            entry.count += 1
            exhausted = entry.count >= policy.max_requests
            return RateLimitInfo(
                limit=policy.max_requests,
                remaining=max(0, policy.max_requests - entry.count),
                reset_at=entry.reset_at_ms,
                retry_after_seconds=self._seconds_until(entry.reset_at_ms, now_ms) if exhausted else None,
            )

    def _refund(self, identity: str, endpoint: str, limit_class: str, outcome: str) -> None:
        key = build_window_key(identity, endpoint, limit_class)
        with self._lock:
            entry = self._windows.get(key)
            if entry is None or entry.count <= 0:
                return
            entry.count -= 1
            new_count = entry.count

        logger.info(
            "rate_limit.refunded",
            extra={
                "identity_hash": hash_identity(identity),
                "endpoint": endpoint,
                "limit_class": limit_class,
                "outcome": outcome,
                "new_count": new_count,
            },
        )

    def record_success(self, identity: str, endpoint: str, limit_class: str = DEFAULT_LIMIT_CLASS) -> None:
        """Refund one slot if the class does not count successful requests."""
        if self.get_policy(limit_class).skip_successful_requests:
            self._refund(identity, endpoint, limit_class, "success")

    def record_failure(self, identity: str, endpoint: str, limit_class: str = DEFAULT_LIMIT_CLASS) -> None:
        """Refund one slot if the class does not count failed requests."""
        if self.get_policy(limit_class).skip_failed_requests:
            self._refund(identity, endpoint, limit_class, "failure")

    def get_status(self, identity: str, endpoint: str, limit_class: str = DEFAULT_LIMIT_CLASS) -> RateLimitStatus:
        """Describe the current window without counting a request.

        An expired window is reported as fresh (full quota, no reset time).
        """
        policy = self.get_policy(limit_class)
        key = build_window_key(identity, endpoint, limit_class)
        now_ms = self._now_ms()

        with self._lock:
            entry = self._windows.get(key)
            if entry is None or now_ms > entry.reset_at_ms:
                return RateLimitStatus(
                    limit=policy.max_requests,
                    remaining=policy.max_requests,
                    reset_at=None,
                    window_seconds=policy.window_seconds,
                    count=0,
                )
            return RateLimitStatus(
                limit=policy.max_requests,
                remaining=max(0, policy.max_requests - entry.count),
                reset_at=entry.reset_at_ms,
                window_seconds=policy.window_seconds,
                count=entry.count,
            )

    def reset(self) -> None:
        """Drop every window."""
        with self._lock:
            self._windows.clear()
