"""Per-endpoint rate limit tracking driven by response headers."""

from erlc.core.rate_limit.registry import RateLimitRegistry, RateLimitState

__all__ = ["RateLimitRegistry", "RateLimitState"]
