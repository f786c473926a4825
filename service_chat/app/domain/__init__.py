"""
Domain package for the chat gateway.

Hosts the request orchestration that ties rate limiting, the reply cache
and the admission gate around the upstream completion call.
"""

from .chat_handler import ChatGatewayHandler, ChatRequest, GatewayResponse, resolve_client_id

__all__ = ["ChatGatewayHandler", "ChatRequest", "GatewayResponse", "resolve_client_id"]
