"""
Rate limiting package for the chat gateway.

Holds the in-memory fixed-window limiter that enforces a per-client
request budget before any cache or upstream work happens.
"""

from .fixed_window import ClientWindowRecord, FixedWindowRateLimiter

__all__ = ["ClientWindowRecord", "FixedWindowRateLimiter"]
