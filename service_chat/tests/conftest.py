"""
Shared fixtures for chat gateway tests.
"""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from shared.config import GatewayConfig
from service_chat.app.adapters.completion_client import CompletionClient


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class UpstreamStub:
    """httpx transport handler standing in for the completion service."""

    def __init__(self, reply: str = "Hi there!"):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.payload: Any = completion_payload(reply)
        self.raw_body: Optional[bytes] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raw_body is not None:
            return httpx.Response(self.status_code, content=self.raw_body)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


def completion_payload(text: str) -> Dict[str, Any]:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway_config():
    """Gateway configuration isolated from the environment and .env files."""
    return GatewayConfig(_env_file=None, upstream_api_key="test-key")


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest.fixture
def completion_client(upstream, gateway_config):
    """CompletionClient wired to the in-process upstream stub."""
    return CompletionClient(
        gateway_config.upstream_base_url,
        gateway_config.upstream_model,
        client=httpx.AsyncClient(transport=httpx.MockTransport(upstream)),
    )
