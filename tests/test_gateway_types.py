"""Tests for gateway types, deadlines and the error taxonomy."""

from __future__ import annotations

import time

import pytest

from aigateway.gateway.errors import (
    AdapterError,
    AuthError,
    ExhaustedFailure,
    MalformedResponse,
    ProviderTimeout,
    RateLimited,
    Transient,
)
from aigateway.gateway.types import (
    DEFAULT_PROVIDER_ORDER,
    PROVIDER_DISPLAY_NAMES,
    Deadline,
    GenerationRequest,
    GenerationResult,
    ProviderId,
)

# ==========================================================================
# Test: Gateway Types
# ==========================================================================


class TestGenerationRequest:
    def test_defaults(self):
        req = GenerationRequest(prompt="Hello")
        assert req.system_prompt is None
        assert req.temperature == 0.2
        assert req.top_p == 0.9
        assert req.max_tokens == 500

    def test_immutable(self):
        req = GenerationRequest(prompt="Hello")
        with pytest.raises(AttributeError):
            req.prompt = "changed"

    def test_empty_prompt_allowed(self):
        assert GenerationRequest(prompt="").prompt == ""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"temperature": -0.1},
            {"temperature": 2.5},
            {"top_p": 1.5},
            {"max_tokens": 0},
            {"max_tokens": 1.5},
            {"max_tokens": True},
        ],
    )
    def test_out_of_range_rejected(self, kwargs):
        with pytest.raises(ValueError):
            GenerationRequest(prompt="Hello", **kwargs)

    def test_boundaries_accepted(self):
        req = GenerationRequest(prompt="Hello", temperature=2.0, top_p=0.0, max_tokens=1)
        assert req.temperature == 2.0


class TestGenerationResult:
    def test_to_dict(self):
        result = GenerationResult(text="Hi", provider_id="gemini", latency_ms=150, retry_count=1)
        assert result.to_dict() == {"text": "Hi", "provider_id": "gemini", "latency_ms": 150, "retry_count": 1}


class TestProviderIds:
    def test_default_order(self):
        assert DEFAULT_PROVIDER_ORDER == ["azure_openai_primary", "azure_openai_secondary", "gemini", "deepseek"]

    def test_display_names_cover_all(self):
        assert set(PROVIDER_DISPLAY_NAMES) == {p.value for p in ProviderId}


class TestDeadline:
    def test_remaining(self):
        d = Deadline.after(10)
        assert 9 < d.remaining() <= 10
        assert d.expired is False

    def test_expired_never_negative(self):
        d = Deadline(at=time.monotonic() - 5)
        assert d.expired is True
        assert d.remaining() == 0.0

    def test_negative_duration_clamped(self):
        assert Deadline.after(-1).remaining() == 0.0

    def test_earliest(self):
        soon = Deadline.after(1)
        later = Deadline.after(10)
        assert soon.earliest(later) is soon
        assert later.earliest(soon) is soon


# ==========================================================================
# Test: Errors
# ==========================================================================


class TestErrors:
    @pytest.mark.parametrize(
        "cls, kind, retryable",
        [
            (AuthError, "auth_error", False),
            (RateLimited, "rate_limited", True),
            (ProviderTimeout, "timeout", False),
            (Transient, "transient", True),
            (MalformedResponse, "malformed_response", False),
        ],
    )
    def test_taxonomy(self, cls, kind, retryable):
        err = cls("boom", provider_id="gemini")
        assert isinstance(err, AdapterError)
        assert err.kind == kind
        assert err.retryable is retryable
        assert str(err) == "[gemini] boom"

    def test_rate_limited_retry_after(self):
        err = RateLimited("slow down", retry_after=2.0)
        assert err.status_code == 429
        assert err.retry_after == 2.0

    def test_exhausted_failure_message(self):
        last = AuthError("bad key", provider_id="deepseek")
        failure = ExhaustedFailure(providers_tried=2, last_error=last, errors=[last])
        assert "all providers failed" in str(failure)
        assert "after 2 provider(s)" in str(failure)
        assert "[deepseek] bad key" in str(failure)
        assert failure.errors == [last]

    def test_exhausted_failure_deadline(self):
        failure = ExhaustedFailure(providers_tried=1, last_error=None, deadline_exceeded=True)
        assert "deadline exceeded" in str(failure)
        assert failure.errors == []

    def test_exhausted_failure_all_circuits_open(self):
        failure = ExhaustedFailure(providers_tried=0, last_error=None, skipped=["gemini", "deepseek"])
        assert "all circuits open" in str(failure)
        assert "circuit open: gemini, deepseek" in str(failure)
        assert "last error" not in str(failure)
        assert failure.skipped == ["gemini", "deepseek"]

    def test_exhausted_failure_partial_skip_keeps_last_error(self):
        last = Transient("HTTP 502", provider_id="deepseek")
        failure = ExhaustedFailure(providers_tried=1, last_error=last, errors=[last], skipped=["gemini"])
        assert "all providers failed" in str(failure)
        assert "circuit open: gemini" in str(failure)
        assert "[deepseek] HTTP 502" in str(failure)
