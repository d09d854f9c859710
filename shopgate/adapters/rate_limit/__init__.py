"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
in-memory limiters and later migrate to Redis or another shared store without
changing the API layer.

- ``InMemoryFixedWindowRateLimiter`` throttles inbound requests per limit class.
- ``TokenBucketLimiter`` paces outbound calls to quota-constrained APIs.
"""
