"""
Chat gateway service.
"""

import json
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import GatewayConfig

from service_chat.app.adapters.completion_client import CompletionClient
from service_chat.app.admission.gate import AdmissionGate
from service_chat.app.caching.response_cache import ResponseCache
from service_chat.app.domain.chat_handler import (
    ChatGatewayHandler,
    ChatRequest,
    GatewayResponse,
    resolve_client_id,
)
from service_chat.app.ratelimit.fixed_window import FixedWindowRateLimiter


CHAT_PATH = "/api/chat"
CHAT_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


class GatewayService(BaseService):
    """Chat gateway service implementation."""

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        completion_client: Optional[CompletionClient] = None,
    ):
        super().__init__("chat", config)

        self.rate_limiter = FixedWindowRateLimiter(
            max_requests=self.config.rate_limit_max_requests,
            window_seconds=self.config.rate_limit_window_seconds,
            max_clients=self.config.rate_limit_max_clients,
        )
        self.cache = ResponseCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_entries=self.config.cache_max_entries,
        )
        self.gate = AdmissionGate(
            limit=self.config.max_concurrent_upstream,
            poll_interval=self.config.queue_poll_interval_seconds,
            metrics=self.metrics,
        )
        self.completion_client = completion_client or CompletionClient(
            self.config.upstream_base_url,
            self.config.upstream_model,
            temperature=self.config.upstream_temperature,
            max_output_tokens=self.config.upstream_max_output_tokens,
            timeout=self.config.upstream_timeout_seconds,
            metrics=self.metrics,
        )
        self.handler = ChatGatewayHandler(
            self.config,
            self.rate_limiter,
            self.cache,
            self.gate,
            self.completion_client,
            metrics=self.metrics,
        )

        if not self.config.upstream_api_key:
            self.logger.warning("Upstream API key is not configured; chat requests will fail")

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.completion_client.close()

        self._setup_chat_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    def _setup_chat_routes(self):
        """Set up chat gateway routes."""

        @self.app.api_route(CHAT_PATH, methods=CHAT_METHODS)
        async def chat(request: Request):
            """Chat completion endpoint."""
            chat_request = await self._build_chat_request(request)
            result = await self.handler.handle(chat_request)
            return self._render(result)

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "chat",
                "message": "Chat Gateway",
                "version": "1.0.0",
                "endpoint": CHAT_PATH,
            }

        @self.app.get("/api/v1/status")
        async def api_status():
            """Admission and cache status."""
            return {
                "status": "operational",
                "upstream": {
                    "model": self.config.upstream_model,
                    "configured": bool(self.config.upstream_api_key),
                },
                "rate_limiter": self.rate_limiter.stats(),
                "cache": self.cache.stats(),
                "admission": self.gate.stats(),
            }

    async def _build_chat_request(self, request: Request) -> ChatRequest:
        client_id = resolve_client_id(
            request.headers.get("X-Forwarded-For"),
            request.headers.get("X-Real-IP"),
            request.client.host if request.client else None,
        )

        body = None
        body_error = False
        if request.method.upper() == "POST":
            raw = await request.body()
            if raw:
                try:
                    body = json.loads(raw)
                except (ValueError, RecursionError):
                    body_error = True

        return ChatRequest(
            method=request.method,
            client_id=client_id,
            body=body,
            body_error=body_error,
        )

    def _render(self, result: GatewayResponse) -> Response:
        if result.body is None:
            return Response(status_code=result.status_code, headers=result.headers)
        return JSONResponse(
            status_code=result.status_code,
            content=result.body,
            headers=result.headers,
        )

    async def _check_dependencies(self):
        return {"upstream_credentials": "ok" if self.config.upstream_api_key else "missing"}


def create_app(
    config: Optional[GatewayConfig] = None,
    completion_client: Optional[CompletionClient] = None,
):
    """Create FastAPI application."""
    service = GatewayService(config, completion_client)
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()
