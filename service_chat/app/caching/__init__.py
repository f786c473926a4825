"""
Chat gateway caching package.

Provides the reply cache used to answer repeated questions without a
round trip to the completion service, and the fingerprint that keys it.
"""

from .fingerprint import make_fingerprint, last_user_text
from .response_cache import CacheEntry, ResponseCache

__all__ = ["CacheEntry", "ResponseCache", "make_fingerprint", "last_user_text"]
