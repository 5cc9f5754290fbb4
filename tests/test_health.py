"""Tests for the provider health probe."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from conftest import ScriptedAdapter
from prometheus_client import REGISTRY

from aigateway.gateway.errors import AuthError, MalformedResponse, Transient
from aigateway.gateway.health import HealthProbe
from aigateway.gateway.vendor_adapters import DeepSeekAdapter


class TestHealthProbe:
    @pytest.mark.asyncio
    async def test_disabled_provider_not_called(self, make_registry):
        a = ScriptedAdapter("a", "pong")
        probe = HealthProbe(make_registry((a, False)))

        [status] = await probe.check()

        assert a.calls == 0
        assert status.reachable is False
        assert status.error_kind == "disabled"
        assert status.last_error == "disabled: missing credential (TEST_KEY)"
        assert status.latency_ms is None

    @pytest.mark.asyncio
    async def test_reachable_provider(self, make_registry):
        a = ScriptedAdapter("a", "pong")
        probe = HealthProbe(make_registry(a))

        [status] = await probe.check()

        assert status.reachable is True
        assert status.last_error is None
        assert status.error_kind is None
        assert status.latency_ms is not None
        assert a.requests[0].max_tokens == 1

    @pytest.mark.asyncio
    async def test_auth_error_flagged(self, make_registry):
        a = ScriptedAdapter("a", AuthError("HTTP 401: invalid key", status_code=401))
        probe = HealthProbe(make_registry(a))

        [status] = await probe.check()

        assert status.reachable is False
        assert status.error_kind == "auth_error"
        assert "invalid key" in status.last_error

    @pytest.mark.asyncio
    async def test_empty_probe_reply_counts_as_reachable(self, make_registry):
        a = ScriptedAdapter("a", MalformedResponse("Backend returned empty content"))
        probe = HealthProbe(make_registry(a))

        [status] = await probe.check()

        assert status.reachable is True

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self, make_registry):
        a = ScriptedAdapter("a", (5.0, "pong"))
        probe = HealthProbe(make_registry(a), timeout_seconds=0.05)

        [status] = await probe.check()

        assert status.reachable is False
        assert status.error_kind == "timeout"

    @pytest.mark.asyncio
    async def test_order_and_independence(self, make_registry):
        a = ScriptedAdapter("a", Transient("HTTP 502"))
        b = ScriptedAdapter("b", "pong")
        c = ScriptedAdapter("c", "pong")
        probe = HealthProbe(make_registry(a, (b, False), c))

        statuses = await probe.check()

        assert [s.id for s in statuses] == ["a", "b", "c"]
        assert [s.reachable for s in statuses] == [False, False, True]
        assert statuses[0].error_kind == "transient"
        assert b.calls == 0

    @pytest.mark.asyncio
    async def test_status_serialization(self, make_registry):
        probe = HealthProbe(make_registry(ScriptedAdapter("a", "pong")))

        [status] = await probe.check()
        d = status.to_dict()

        assert d["provider_id"] == "a"
        assert d["display_name"] == "A"
        assert d["reachable"] is True
        assert "last_checked_at" in d

    @pytest.mark.asyncio
    async def test_reachability_gauge(self, make_registry):
        up = ScriptedAdapter("health-gauge-up", "pong")
        down = ScriptedAdapter("health-gauge-down", AuthError("HTTP 403"))
        probe = HealthProbe(make_registry(up, down))

        await probe.check()

        assert REGISTRY.get_sample_value("ai_provider_reachable", {"provider": "health-gauge-up"}) == 1.0
        assert REGISTRY.get_sample_value("ai_provider_reachable", {"provider": "health-gauge-down"}) == 0.0

    @pytest.mark.asyncio
    async def test_transport_error_does_not_abort_check(self, make_registry):
        deepseek = DeepSeekAdapter(api_key="ds-key")
        b = ScriptedAdapter("b", "pong")
        probe = HealthProbe(make_registry(deepseek, b))

        with patch("aigateway.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client = AsyncMock()
            mock_client.post.side_effect = httpx.DecodingError("bad gzip")
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_cls.return_value = mock_client
            statuses = await probe.check()

        assert [s.id for s in statuses] == ["deepseek", "b"]
        assert [s.reachable for s in statuses] == [False, True]
        assert statuses[0].error_kind == "transient"
        assert "bad gzip" in statuses[0].last_error
