"""Core types and DTOs for the generation gateway."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProviderId(str, Enum):
    """Built-in generation backends."""

    AZURE_OPENAI_PRIMARY = "azure_openai_primary"
    AZURE_OPENAI_SECONDARY = "azure_openai_secondary"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"


DEFAULT_PROVIDER_ORDER: list[str] = [
    ProviderId.AZURE_OPENAI_PRIMARY.value,
    ProviderId.AZURE_OPENAI_SECONDARY.value,
    ProviderId.GEMINI.value,
    ProviderId.DEEPSEEK.value,
]

PROVIDER_DISPLAY_NAMES: dict[str, str] = {
    ProviderId.AZURE_OPENAI_PRIMARY.value: "Azure OpenAI (primary)",
    ProviderId.AZURE_OPENAI_SECONDARY.value: "Azure OpenAI (secondary)",
    ProviderId.GEMINI.value: "Google Gemini",
    ProviderId.DEEPSEEK.value: "DeepSeek",
}


# ---------------------------------------------------------------------------
# Deadline
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Deadline:
    """Absolute point on the monotonic clock by which work must finish."""

    at: float  # time.monotonic()

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        return cls(at=time.monotonic() + max(seconds, 0.0))

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self.at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.at

    def earliest(self, other: Deadline) -> Deadline:
        return self if self.at <= other.at else other


# ---------------------------------------------------------------------------
# Generation Request: input to the gateway
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenerationRequest:
    """A single prompt to generate text for.

    Immutable; numeric parameters are forwarded verbatim to whichever
    backend serves the call.
    """

    prompt: str
    system_prompt: str | None = None
    temperature: float = 0.2
    top_p: float = 0.9
    max_tokens: int = 500

    def __post_init__(self) -> None:
        if not isinstance(self.prompt, str):
            raise ValueError("prompt must be a string")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature must be within [0, 2], got {self.temperature}")
        if not 0.0 <= self.top_p <= 1.0:
            raise ValueError(f"top_p must be within [0, 1], got {self.top_p}")
        if isinstance(self.max_tokens, bool) or not isinstance(self.max_tokens, int) or self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be a positive integer, got {self.max_tokens!r}")


# ---------------------------------------------------------------------------
# Generation Result: output of the gateway
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenerationResult:
    """Successful generation: full text plus the provider that produced it."""

    text: str
    provider_id: str
    latency_ms: int = 0
    retry_count: int = 0  # Retries spent on the serving provider

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "provider_id": self.provider_id,
            "latency_ms": self.latency_ms,
            "retry_count": self.retry_count,
        }


# ---------------------------------------------------------------------------
# Provider descriptors & status
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of one configured provider (built at startup)."""

    id: str
    display_name: str
    priority: int  # lower = tried first
    enabled: bool
    disabled_reason: str | None = None


@dataclass(frozen=True)
class ProviderStatus:
    """Point-in-time health snapshot for a provider. Never persisted."""

    id: str
    display_name: str
    reachable: bool
    last_checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_error: str | None = None
    error_kind: str | None = None  # e.g. "auth_error" flags credential problems
    latency_ms: int | None = None

    def to_dict(self) -> dict:
        return {
            "provider_id": self.id,
            "display_name": self.display_name,
            "reachable": self.reachable,
            "last_checked_at": self.last_checked_at.isoformat(),
            "last_error": self.last_error,
            "error_kind": self.error_kind,
            "latency_ms": self.latency_ms,
        }


# ---------------------------------------------------------------------------
# Cache entry
# ---------------------------------------------------------------------------


@dataclass
class CacheEntry:
    """Memoized result for one request fingerprint."""

    fingerprint: str
    result: GenerationResult
    expires_at: float  # monotonic seconds
