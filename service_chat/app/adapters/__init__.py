"""
Adapters package for the chat gateway.

Contains the HTTP client wrapper for the upstream completion service.
The adapter encapsulates the endpoint, request shape and the mapping of
upstream failures onto shared errors; it holds no admission or cache state.
"""

from .completion_client import CompletionClient, extract_reply

__all__ = ["CompletionClient", "extract_reply"]
