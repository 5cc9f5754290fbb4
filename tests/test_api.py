"""Tests for the HTTP surface: /api/v1/ai/generate, /api/v1/ai/status, health and metrics."""

from __future__ import annotations

import pytest
from conftest import ScriptedAdapter
from httpx import ASGITransport, AsyncClient

from aigateway.core.config import settings
from aigateway.core.dependencies import get_gateway
from aigateway.gateway.cache import ResultCache
from aigateway.gateway.errors import AuthError
from aigateway.gateway.gateway import GenerationGateway
from aigateway.main import app


@pytest.fixture
def use_gateway():
    """Serve requests through a gateway built from scripted adapters."""

    def _use(registry, **kwargs) -> GenerationGateway:
        gateway = GenerationGateway(registry, retry_backoff_seconds=0.01, **kwargs)
        app.dependency_overrides[get_gateway] = lambda: gateway
        return gateway

    yield _use
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestGenerateEndpoint:
    @pytest.mark.asyncio
    async def test_generate_success(self, use_gateway, make_registry):
        a = ScriptedAdapter("a", "Generated summary")
        use_gateway(make_registry(a))

        async with _client() as client:
            resp = await client.post("/api/v1/ai/generate", json={"prompt": "Summarize", "system_prompt": "Be brief"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["text"] == "Generated summary"
        assert data["provider_id"] == "a"
        assert data["retry_count"] == 0
        assert data["latency_ms"] >= 0

        sent = a.requests[0]
        assert sent.prompt == "Summarize"
        assert sent.system_prompt == "Be brief"
        assert sent.temperature == settings.ai_temperature
        assert sent.top_p == settings.ai_top_p
        assert sent.max_tokens == settings.ai_max_tokens

    @pytest.mark.asyncio
    async def test_generate_overrides_parameters(self, use_gateway, make_registry):
        a = ScriptedAdapter("a", "ok")
        use_gateway(make_registry(a))

        async with _client() as client:
            resp = await client.post(
                "/api/v1/ai/generate",
                json={"prompt": "Hi", "temperature": 0.7, "top_p": 0.5, "max_tokens": 64, "timeout_ms": 5000},
            )

        assert resp.status_code == 200
        sent = a.requests[0]
        assert (sent.temperature, sent.top_p, sent.max_tokens) == (0.7, 0.5, 64)

    @pytest.mark.asyncio
    async def test_generate_falls_back(self, use_gateway, make_registry):
        use_gateway(make_registry(ScriptedAdapter("a", AuthError("bad key")), ScriptedAdapter("b", "from b")))

        async with _client() as client:
            resp = await client.post("/api/v1/ai/generate", json={"prompt": "Hi"})

        assert resp.status_code == 200
        assert resp.json()["provider_id"] == "b"

    @pytest.mark.asyncio
    async def test_generate_unavailable(self, use_gateway, make_registry):
        use_gateway(make_registry(ScriptedAdapter("a", AuthError("HTTP 401: key sk-secret rejected"))))

        async with _client() as client:
            resp = await client.post("/api/v1/ai/generate", json={"prompt": "Hi"})

        assert resp.status_code == 503
        assert resp.json() == {"detail": "AI service is temporarily unavailable. Please try again later."}
        assert "sk-secret" not in resp.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"prompt": ""},
            {"prompt": "Hi", "temperature": 3},
            {"prompt": "Hi", "top_p": -0.1},
            {"prompt": "Hi", "max_tokens": 0},
            {"prompt": "Hi", "timeout_ms": 0},
        ],
    )
    async def test_generate_validation(self, use_gateway, make_registry, body):
        a = ScriptedAdapter("a", "ok")
        use_gateway(make_registry(a))

        async with _client() as client:
            resp = await client.post("/api/v1/ai/generate", json=body)

        assert resp.status_code == 422
        assert a.calls == 0


class TestStatusEndpoint:
    @pytest.mark.asyncio
    async def test_status(self, use_gateway, make_registry):
        use_gateway(
            make_registry(
                ScriptedAdapter("a", AuthError("HTTP 401: invalid key")),
                (ScriptedAdapter("b"), False),
                ScriptedAdapter("c", "pong"),
            ),
            cache=ResultCache(),
        )

        async with _client() as client:
            resp = await client.get("/api/v1/ai/status")

        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        providers = {p["provider_id"]: p for p in data["providers"]}
        assert list(providers) == ["a", "b", "c"]
        assert providers["a"]["reachable"] is False
        assert providers["a"]["error_kind"] == "auth_error"
        assert providers["b"]["error_kind"] == "disabled"
        assert providers["c"]["reachable"] is True
        assert data["config"]["provider_order"] == ["a", "c"]
        assert data["config"]["cache"]["max_entries"] == 256


class TestServiceEndpoints:
    @pytest.mark.asyncio
    async def test_health(self):
        async with _client() as client:
            resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_metrics(self):
        async with _client() as client:
            resp = await client.get("/metrics")
        assert resp.status_code == 200
        assert "ai_generation_requests" in resp.text
