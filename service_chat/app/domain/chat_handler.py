"""
Request orchestration for the chat endpoint.

The handler is framework-neutral: the FastAPI route turns an HTTP request
into a ``ChatRequest`` and renders the returned ``GatewayResponse``. All
shared state (rate limiter, reply cache, admission gate, upstream client)
is injected so tests can build isolated instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from shared.config import GatewayConfig
from shared.errors import (
    ConfigurationError,
    GatewayException,
    MethodNotAllowedError,
    RateLimitError,
    ValidationError,
)
from shared.logging import get_logger, set_client_context

from service_chat.app.adapters.completion_client import CompletionClient, extract_reply
from service_chat.app.admission.gate import AdmissionGate
from service_chat.app.caching.fingerprint import make_fingerprint
from service_chat.app.caching.response_cache import ResponseCache
from service_chat.app.ratelimit.fixed_window import FixedWindowRateLimiter

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


UNKNOWN_CLIENT = "unknown"


@dataclass
class ChatRequest:
    """Inbound request as seen by the handler."""

    method: str
    client_id: str = UNKNOWN_CLIENT
    body: Any = None
    body_error: bool = False


@dataclass
class GatewayResponse:
    """Status, JSON body (None for an empty body) and extra headers."""

    status_code: int
    body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)


def resolve_client_id(
    forwarded_for: Optional[str],
    real_ip: Optional[str] = None,
    peer_host: Optional[str] = None,
) -> str:
    """Pick the caller identity used for rate limiting."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if real_ip:
        return real_ip.strip()
    if peer_host:
        return peer_host
    return UNKNOWN_CLIENT


def _user_turn(text: str) -> Dict[str, Any]:
    return {"role": "user", "parts": [{"text": text}]}


class ChatGatewayHandler:
    """Rate limit, cache lookup, admission and upstream call for one request."""

    def __init__(
        self,
        config: GatewayConfig,
        rate_limiter: FixedWindowRateLimiter,
        cache: ResponseCache,
        gate: AdmissionGate,
        completion_client: CompletionClient,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.config = config
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.gate = gate
        self.completion_client = completion_client
        self.metrics = metrics
        self.logger = get_logger("chat.handler")

    async def handle(self, request: ChatRequest) -> GatewayResponse:
        """Run the request through the gateway and never raise."""
        method = request.method.upper()
        if method == "OPTIONS":
            return GatewayResponse(status_code=200)

        try:
            response = await self._process(method, request)
        except GatewayException as exc:
            self._log_gateway_error(exc)
            if self.metrics:
                self.metrics.record_error(exc.code)
            response = GatewayResponse(
                status_code=exc.status_code,
                body=exc.to_response().model_dump(),
            )
        except Exception as exc:
            self.logger.error("Unhandled chat handler error", error=str(exc), exc_info=True)
            if self.metrics:
                self.metrics.record_error("INTERNAL_ERROR")
            response = GatewayResponse(
                status_code=500,
                body={"error": str(exc) or "Internal server error"},
            )

        if method == "POST":
            response.headers.update(self._rate_limit_headers(request.client_id))
        return response

    async def _process(self, method: str, request: ChatRequest) -> GatewayResponse:
        if method != "POST":
            raise MethodNotAllowedError()

        client_id = request.client_id or UNKNOWN_CLIENT
        set_client_context(client_id)

        if not self.rate_limiter.allow(client_id):
            if self.metrics:
                self.metrics.increment_counter("rate_limit_hits_total")
            raise RateLimitError(details={"client_id": client_id})

        api_key = self.config.upstream_api_key
        if not api_key:
            self.logger.critical("Upstream API key is not configured", setting="upstream_api_key")
            if self.metrics:
                self.metrics.increment_counter("configuration_errors_total", setting="upstream_api_key")
            raise ConfigurationError("API Key Missing")

        history = self.normalize_history(request.body, request.body_error)

        fingerprint = make_fingerprint(history, self.config.fingerprint_max_length)
        cached_reply = self.cache.lookup(fingerprint)
        if cached_reply is not None:
            if self.metrics:
                self.metrics.increment_counter("cache_hits_total", cache_type="reply")
            self.logger.debug("Reply served from cache")
            return GatewayResponse(
                status_code=200,
                body={"reply": cached_reply, "cached": True, "queued": False},
            )

        if self.metrics:
            self.metrics.increment_counter("cache_misses_total", cache_type="reply")

        async with self.gate.slot():
            payload = await self.completion_client.generate(history, api_key)

        reply = extract_reply(payload, self.config.fallback_reply)
        self.cache.store(fingerprint, reply)

        return GatewayResponse(
            status_code=200,
            body={"reply": reply, "cached": False, "queued": True},
        )

    def normalize_history(self, body: Any, body_error: bool = False) -> List[Any]:
        """
        Validate the request body and return the turns to forward upstream.

        Accepts ``{"history": [...]}`` and ``{"message": "...", "history"?: [...]}``;
        a message becomes the trailing user turn. Only the most recent
        ``max_history_turns`` turns are kept.
        """
        if body_error:
            raise ValidationError("Invalid request body")

        # Arrays, strings and numbers carry no history field.
        fields = body if isinstance(body, dict) else {}
        history = fields.get("history")
        message = fields.get("message")
        has_message = isinstance(message, str) and bool(message.strip())

        if history is None and has_message:
            history = [_user_turn(message)]
        elif isinstance(history, list) and has_message:
            history = history + [_user_turn(message)]

        if not isinstance(history, list):
            raise ValidationError("Invalid history format")

        return history[-self.config.max_history_turns:]

    def _rate_limit_headers(self, client_id: str) -> Dict[str, str]:
        status = self.rate_limiter.status(client_id or UNKNOWN_CLIENT)
        return {
            "X-RateLimit-Limit": str(status["limit"]),
            "X-RateLimit-Remaining": str(status["remaining"]),
            "X-RateLimit-Reset": str(status["reset_in_seconds"]),
        }

    def _log_gateway_error(self, exc: GatewayException) -> None:
        if exc.status_code >= 500:
            self.logger.error("Chat request failed", code=exc.code, message=exc.message, details=exc.details)
        else:
            self.logger.info("Chat request rejected", code=exc.code, message=exc.message)
