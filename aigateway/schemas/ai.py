"""Pydantic request/response models for the AI gateway endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class GenerateRequestBody(BaseModel):
    """Body of POST /ai/generate. Unset numeric fields fall back to AI_* defaults."""

    prompt: str = Field(..., min_length=1)
    system_prompt: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    max_tokens: int | None = Field(default=None, gt=0)
    timeout_ms: int | None = Field(default=None, gt=0)


class GenerateResponse(BaseModel):
    text: str
    provider_id: str
    latency_ms: int
    retry_count: int = 0


class ProviderStatusItem(BaseModel):
    provider_id: str
    display_name: str
    reachable: bool
    last_checked_at: datetime
    last_error: str | None = None
    error_kind: str | None = None
    latency_ms: int | None = None


class StatusResponse(BaseModel):
    ok: bool = True
    providers: list[ProviderStatusItem]
    config: dict
    timestamp: datetime
