"""Rate limiter interfaces and the fixed catalog of limit classes.

The HTTP layer depends on ``AbstractRateLimiter`` (not the concrete
implementation) so the in-memory store can later be replaced by a shared one
(e.g., Redis) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

LimitClass = Literal["api", "shopify", "external", "auth", "token"]

DEFAULT_LIMIT_CLASS: LimitClass = "api"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Quota and skip rules of one limit class.

    Attributes:
        window_seconds: Length of the fixed window.
        max_requests: Requests allowed per window.
        skip_successful_requests: Refund the slot when the request succeeds.
        skip_failed_requests: Refund the slot when the request fails.
    """

    window_seconds: int
    max_requests: int
    skip_successful_requests: bool = False
    skip_failed_requests: bool = False

    @property
    def window_ms(self) -> int:
        return self.window_seconds * 1000


RATE_LIMIT_POLICIES: dict[str, RateLimitPolicy] = {
    # General API endpoints
    "api": RateLimitPolicy(window_seconds=60, max_requests=60),
    # Shopify Admin API proxying; failed calls are not counted
    "shopify": RateLimitPolicy(window_seconds=60, max_requests=40, skip_failed_requests=True),
    # Third-party API proxying
    "external": RateLimitPolicy(window_seconds=60, max_requests=100),
    # Authentication attempts; successful logins are not counted
    "auth": RateLimitPolicy(window_seconds=15 * 60, max_requests=10, skip_successful_requests=True),
    # Token writes
    "token": RateLimitPolicy(window_seconds=5 * 60, max_requests=5),
}


@dataclass(frozen=True)
class RateLimitInfo:
    """Outcome of an allowed rate limit check.

    Attributes:
        limit: Max requests per window.
        remaining: Remaining requests in the current window.
        reset_at: Epoch milliseconds when the current window resets.
        retry_after_seconds: Seconds until the window resets once the quota
            is exhausted; None while requests remain.
    """

    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


@dataclass(frozen=True)
class RateLimitStatus:
    """Read-only view of a window, used for diagnostics."""

    limit: int
    remaining: int
    reset_at: int | None
    window_seconds: int
    count: int


class AbstractRateLimiter(ABC):
    """Interface for fixed-window rate limiters."""

    @abstractmethod
    def check_limit(self, identity: str, endpoint: str, limit_class: str = DEFAULT_LIMIT_CLASS) -> RateLimitInfo:
        """Count a request against its window.

        Args:
            identity: Client identity (shop domain or IP address).
            endpoint: Logical endpoint name.
            limit_class: Name of the policy to apply.

        Returns:
            RateLimitInfo for the allowed request.

        Raises:
            RateLimitAppError: When the window quota is already used up.
        """
        raise NotImplementedError

    @abstractmethod
    def record_success(self, identity: str, endpoint: str, limit_class: str = DEFAULT_LIMIT_CLASS) -> None:
        """Report a successful request (refunded if the class skips successes)."""
        raise NotImplementedError

    @abstractmethod
    def record_failure(self, identity: str, endpoint: str, limit_class: str = DEFAULT_LIMIT_CLASS) -> None:
        """Report a failed request (refunded if the class skips failures)."""
        raise NotImplementedError

    @abstractmethod
    def get_status(self, identity: str, endpoint: str, limit_class: str = DEFAULT_LIMIT_CLASS) -> RateLimitStatus:
        """Describe the current window without counting a request."""
        raise NotImplementedError
