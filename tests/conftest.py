import asyncio

import pytest

from aigateway.core.config import settings

# Override settings for tests
settings.app_env = "development"
settings.sentry_dsn = ""

from aigateway.gateway.errors import AdapterError  # noqa: E402
from aigateway.gateway.registry import ProviderRegistry  # noqa: E402
from aigateway.gateway.types import GenerationRequest, ProviderDescriptor  # noqa: E402
from aigateway.gateway.vendor_adapters import BaseVendorAdapter  # noqa: E402


class ScriptedAdapter(BaseVendorAdapter):
    """Adapter that plays back a fixed script instead of calling a backend.

    Each step is a text to return, an AdapterError to raise, or a
    ``(delay_seconds, step)`` tuple. The last step repeats once the
    script runs out.
    """

    def __init__(self, provider_id: str, *steps):
        super().__init__(api_key="test-key", provider_id=provider_id)
        self.steps = list(steps) or ["ok"]
        self.calls = 0
        self.requests: list[GenerationRequest] = []

    async def _generate(self, request: GenerationRequest, timeout: float) -> str:
        step = self.steps[min(self.calls, len(self.steps) - 1)]
        self.calls += 1
        self.requests.append(request)

        if isinstance(step, tuple):
            delay, step = step
            await asyncio.sleep(delay)
        if isinstance(step, AdapterError):
            step.provider_id = self.provider_id
            raise step
        return step


@pytest.fixture
def make_registry():
    """Build a ProviderRegistry from (adapter, enabled) pairs in priority order."""

    def _make(*providers) -> ProviderRegistry:
        entries = []
        for priority, item in enumerate(providers):
            adapter, enabled = item if isinstance(item, tuple) else (item, True)
            descriptor = ProviderDescriptor(
                id=adapter.provider_id,
                display_name=adapter.provider_id.upper(),
                priority=priority,
                enabled=enabled,
                disabled_reason=None if enabled else "disabled: missing credential (TEST_KEY)",
            )
            entries.append((descriptor, adapter if enabled else None))
        return ProviderRegistry(entries)

    return _make
