"""Provider Registry: the static, priority-ordered provider chain.

Built once at startup from configuration and read-only afterwards.
Providers lacking a required credential are registered disabled (with the
reason) so the health probe can report them; they never reach the chain.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from aigateway.core.config import Settings
from aigateway.gateway.errors import ConfigurationError
from aigateway.gateway.types import (
    DEFAULT_PROVIDER_ORDER,
    PROVIDER_DISPLAY_NAMES,
    ProviderDescriptor,
    ProviderId,
)
from aigateway.gateway.vendor_adapters import BaseVendorAdapter, get_adapter

logger = logging.getLogger(__name__)


def _provider_settings(settings: Settings) -> dict[str, tuple[dict[str, str], dict[str, Any]]]:
    """Per provider: (required env var → value, adapter kwargs)."""
    return {
        ProviderId.AZURE_OPENAI_PRIMARY.value: (
            {
                "AZURE_OPENAI_ENDPOINT": settings.azure_openai_endpoint,
                "AZURE_OPENAI_API_KEY": settings.azure_openai_api_key,
            },
            {
                "api_key": settings.azure_openai_api_key,
                "endpoint": settings.azure_openai_endpoint,
                "deployment_name": settings.azure_openai_deployment_name,
                "api_version": settings.azure_openai_api_version,
                "model": settings.azure_openai_model,
            },
        ),
        ProviderId.AZURE_OPENAI_SECONDARY.value: (
            {
                "AZURE_OPENAI_ENDPOINT_2": settings.azure_openai_endpoint_2,
                "AZURE_OPENAI_API_KEY_2": settings.azure_openai_api_key_2,
            },
            {
                "api_key": settings.azure_openai_api_key_2,
                "endpoint": settings.azure_openai_endpoint_2,
                "deployment_name": settings.azure_openai_deployment_name_2,
                "api_version": settings.azure_openai_api_version,
                "model": settings.azure_openai_model_2,
            },
        ),
        ProviderId.GEMINI.value: (
            {"GEMINI_API_KEY": settings.gemini_api_key},
            {"api_key": settings.gemini_api_key, "model": settings.gemini_model},
        ),
        ProviderId.DEEPSEEK.value: (
            {"DEEPSEEK_API_KEY": settings.deepseek_api_key},
            {
                "api_key": settings.deepseek_api_key,
                "model": settings.deepseek_model,
                "api_url": settings.deepseek_api_url,
            },
        ),
    }


class ProviderRegistry:
    """Immutable set of providers plus the enabled priority chain."""

    def __init__(self, providers: Iterable[tuple[ProviderDescriptor, BaseVendorAdapter | None]]):
        entries = sorted(providers, key=lambda p: p[0].priority)

        seen: set[str] = set()
        adapters: dict[str, BaseVendorAdapter] = {}
        for descriptor, adapter in entries:
            if descriptor.id in seen:
                raise ValueError(f"Provider registered twice: {descriptor.id}")
            seen.add(descriptor.id)
            if descriptor.enabled:
                if adapter is None:
                    raise ValueError(f"Enabled provider {descriptor.id} has no adapter")
                adapters[descriptor.id] = adapter

        self._descriptors: tuple[ProviderDescriptor, ...] = tuple(d for d, _ in entries)
        self._chain: tuple[ProviderDescriptor, ...] = tuple(d for d in self._descriptors if d.enabled)
        self._adapters = adapters

    @classmethod
    def from_settings(cls, settings: Settings) -> ProviderRegistry:
        """Build the registry from AI_PROVIDER_ORDER and per-provider credentials."""
        specs = _provider_settings(settings)
        order = settings.provider_order or DEFAULT_PROVIDER_ORDER

        declared: list[str] = []
        for name in order:
            if name not in specs:
                logger.warning("Unknown provider %r in AI_PROVIDER_ORDER, ignored", name)
                continue
            if name not in declared:
                declared.append(name)

        entries: list[tuple[ProviderDescriptor, BaseVendorAdapter | None]] = []
        for priority, provider_id in enumerate(declared):
            required, adapter_kwargs = specs[provider_id]
            display_name = PROVIDER_DISPLAY_NAMES.get(provider_id, provider_id)
            missing = [env for env, value in required.items() if not value]

            if missing:
                reason = f"disabled: missing credential ({', '.join(missing)})"
                logger.info("Provider %s %s", provider_id, reason)
                entries.append((ProviderDescriptor(provider_id, display_name, priority, False, reason), None))
                continue

            adapter = get_adapter(provider_id, **adapter_kwargs)
            entries.append((ProviderDescriptor(provider_id, display_name, priority, True), adapter))

        # Known providers left out of the declared order still show up in status
        for offset, provider_id in enumerate(p for p in specs if p not in declared):
            entries.append(
                (
                    ProviderDescriptor(
                        provider_id,
                        PROVIDER_DISPLAY_NAMES.get(provider_id, provider_id),
                        len(declared) + offset,
                        False,
                        "disabled: not in AI_PROVIDER_ORDER",
                    ),
                    None,
                )
            )

        registry = cls(entries)
        logger.info(
            "Initialized %d AI providers in order: %s",
            len(registry.chain()),
            " -> ".join(d.id for d in registry.chain()) or "(none)",
        )
        return registry

    def chain(self) -> tuple[ProviderDescriptor, ...]:
        """Enabled providers in priority order."""
        return self._chain

    def descriptors(self) -> tuple[ProviderDescriptor, ...]:
        """Every registered provider, including disabled ones."""
        return self._descriptors

    def adapter_for(self, provider_id: str) -> BaseVendorAdapter:
        try:
            return self._adapters[provider_id]
        except KeyError:
            raise KeyError(f"No enabled adapter for provider: {provider_id}") from None

    def ensure_ready(self) -> None:
        """Fail fast when no request could ever be served."""
        if not self._chain:
            reasons = "; ".join(f"{d.id}: {d.disabled_reason}" for d in self._descriptors) or "no providers declared"
            raise ConfigurationError(f"No enabled AI providers ({reasons})")
