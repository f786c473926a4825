"""
Async client for the upstream generative completion service.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import httpx

from shared.errors import UpstreamError, UpstreamOverloadedError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


GENERIC_UPSTREAM_ERROR = "Upstream API Error"


def extract_reply(payload: Any, fallback: str) -> str:
    """Pull ``candidates[0].content.parts[0].text`` out of a completion payload."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return fallback
    if not isinstance(text, str) or not text:
        return fallback
    return text


def _upstream_message(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
    return None


class CompletionClient:
    """Lightweight async client for a ``generateContent``-style endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        temperature: float = 0.6,
        max_output_tokens: int = 512,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.metrics = metrics
        self.logger = get_logger("chat.upstream")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def build_payload(self, history: List[Any]) -> Dict[str, Any]:
        return {
            "contents": history,
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    async def generate(self, history: List[Any], api_key: str) -> Dict[str, Any]:
        """
        Send the conversation upstream and return the decoded JSON payload.

        Raises UpstreamOverloadedError when the service answers 429 and
        UpstreamError for any other non-2xx status, undecodable body or
        transport failure.
        """
        start_time = time.time()
        try:
            response = await self._client.post(
                self.endpoint,
                params={"key": api_key},
                json=self.build_payload(history),
            )
        except httpx.TimeoutException as exc:
            self._record("timeout", start_time)
            self.logger.error("Upstream request timed out", model=self.model, error=str(exc))
            raise UpstreamError("Upstream request timed out", details={"model": self.model}) from exc
        except httpx.HTTPError as exc:
            self._record("transport_error", start_time)
            self.logger.error("Upstream request failed", model=self.model, error=str(exc))
            raise UpstreamError(f"Upstream request failed: {exc}", details={"model": self.model}) from exc

        if response.status_code == 429:
            self._record("overloaded", start_time)
            self.logger.warning("Upstream overloaded", model=self.model)
            raise UpstreamOverloadedError(details={"status_code": 429})

        try:
            data = response.json()
        except ValueError as exc:
            self._record("invalid_body", start_time)
            self.logger.error(
                "Upstream returned a non-JSON body",
                model=self.model,
                status_code=response.status_code,
                response=response.text[:500],
            )
            raise UpstreamError(
                "Invalid response from upstream",
                details={"status_code": response.status_code},
            ) from exc

        if not response.is_success:
            self._record("error", start_time)
            self.logger.error(
                "Upstream error",
                model=self.model,
                status_code=response.status_code,
                response=data,
            )
            raise UpstreamError(
                _upstream_message(data) or GENERIC_UPSTREAM_ERROR,
                details={"status_code": response.status_code},
            )

        self._record("success", start_time)
        self.logger.debug("Upstream reply received", model=self.model, status_code=response.status_code)
        return data

    def _record(self, outcome: str, start_time: float) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter("upstream_requests_total", outcome=outcome)
        self.metrics.observe_histogram("upstream_request_duration_seconds", time.time() - start_time)
