"""Health Probe: on-demand reachability check for every provider.

Runs only when asked (e.g. by the operations status route); there is no
background polling. Enabled providers are probed concurrently, each under
a short timeout. Disabled providers are reported without a network call.
"""

from __future__ import annotations

import asyncio
import logging
import time

from aigateway.core.metrics import PROVIDER_REACHABLE
from aigateway.gateway.errors import AdapterError
from aigateway.gateway.registry import ProviderRegistry
from aigateway.gateway.types import Deadline, ProviderDescriptor, ProviderStatus

logger = logging.getLogger(__name__)


class HealthProbe:
    """Produces fresh ProviderStatus snapshots; nothing is stored."""

    def __init__(self, registry: ProviderRegistry, timeout_seconds: float = 5.0):
        self.registry = registry
        self.timeout_seconds = timeout_seconds

    async def check(self) -> list[ProviderStatus]:
        """Probe all providers, preserving registry (priority) order."""
        return list(await asyncio.gather(*(self._check_one(d) for d in self.registry.descriptors())))

    async def _check_one(self, descriptor: ProviderDescriptor) -> ProviderStatus:
        if not descriptor.enabled:
            return ProviderStatus(
                id=descriptor.id,
                display_name=descriptor.display_name,
                reachable=False,
                last_error=descriptor.disabled_reason or "disabled",
                error_kind="disabled",
            )

        adapter = self.registry.adapter_for(descriptor.id)
        start = time.monotonic()
        try:
            await adapter.probe(Deadline.after(self.timeout_seconds))
        except AdapterError as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            logger.warning("Health probe failed for %s (%s): %s", descriptor.id, e.kind, e)
            PROVIDER_REACHABLE.labels(provider=descriptor.id).set(0)
            return ProviderStatus(
                id=descriptor.id,
                display_name=descriptor.display_name,
                reachable=False,
                last_error=str(e),
                error_kind=e.kind,
                latency_ms=latency_ms,
            )

        PROVIDER_REACHABLE.labels(provider=descriptor.id).set(1)
        return ProviderStatus(
            id=descriptor.id,
            display_name=descriptor.display_name,
            reachable=True,
            latency_ms=int((time.monotonic() - start) * 1000),
        )
