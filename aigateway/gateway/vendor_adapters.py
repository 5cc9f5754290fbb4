"""Vendor-Specific Adapters: protocol-level handling for each generation backend.

Each adapter translates a GenerationRequest into the vendor's HTTP protocol,
sends it under the caller's deadline, and returns the generated text or
raises an AdapterError subclass describing the failure.

Vendor-specific behaviors:
  - Azure OpenAI: deployment-scoped chat completions, `api-key` header;
    two independent deployments (primary / secondary)
  - Gemini: Google AI generateContent, finishReason SAFETY → MalformedResponse,
    invalid key reported as HTTP 400 → AuthError
  - DeepSeek: OpenAI-compatible, "Server Busy" 503 → RateLimited
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from aigateway.gateway.errors import (
    AdapterError,
    AuthError,
    MalformedResponse,
    ProviderTimeout,
    RateLimited,
    Transient,
)
from aigateway.gateway.normalizer import extract_chat_completion_text, extract_gemini_text
from aigateway.gateway.types import Deadline, GenerationRequest, ProviderId

logger = logging.getLogger(__name__)

# Smallest useful generation, used for health probes
PROBE_REQUEST = GenerationRequest(prompt="test", temperature=0.0, top_p=1.0, max_tokens=1)


def _parse_retry_after(resp: httpx.Response) -> float | None:
    value = resp.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None  # HTTP-date form is not worth honouring here


class BaseVendorAdapter(ABC):
    """Base class for all vendor adapters. Stateless between invocations."""

    provider_id: str
    default_model: str = ""

    def __init__(self, api_key: str, model: str = "", provider_id: str | None = None, **kwargs):
        self.api_key = api_key
        self.model = model or self.default_model
        if provider_id:
            self.provider_id = provider_id

    async def invoke(self, request: GenerationRequest, deadline: Deadline) -> str:
        """Generate text for ``request``, aborting the call at ``deadline``."""
        remaining = deadline.remaining()
        if remaining <= 0:
            raise ProviderTimeout("Deadline passed before the call started", provider_id=self.provider_id)

        try:
            return await asyncio.wait_for(self._generate(request, timeout=remaining), timeout=remaining)
        except AdapterError:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(f"Timeout after {remaining:.2f}s", provider_id=self.provider_id) from e
        except Exception as e:
            # Anything else still has to reach the orchestrator as an AdapterError
            logger.exception("Unexpected error from %s adapter", self.provider_id)
            raise AdapterError(f"Unexpected {type(e).__name__}: {e}", provider_id=self.provider_id) from e

    async def probe(self, deadline: Deadline) -> None:
        """Minimal capability check. Raises AdapterError when unreachable."""
        try:
            await self.invoke(PROBE_REQUEST, deadline)
        except MalformedResponse:
            # The backend answered and accepted the credential; a 1-token reply is often empty
            return

    @abstractmethod
    async def _generate(self, request: GenerationRequest, timeout: float) -> str:
        """Perform the vendor call and return the extracted text."""
        ...

    # ------------------------------------------------------------------
    # Shared HTTP plumbing
    # ------------------------------------------------------------------

    @staticmethod
    def _chat_messages(request: GenerationRequest) -> list[dict[str, str]]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        return messages

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str],
        timeout: float,
        params: dict[str, str] | None = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"HTTP timeout after {timeout:.2f}s", provider_id=self.provider_id) from e
        except httpx.InvalidURL as e:
            raise AuthError(f"Invalid endpoint URL: {e}", provider_id=self.provider_id) from e
        except httpx.RequestError as e:
            # Transport failures, undecodable bodies, redirect loops
            raise Transient(f"Request failed: {type(e).__name__}: {e}", provider_id=self.provider_id) from e

        if resp.status_code >= 400:
            raise self._error_for_status(resp)

        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponse(
                "Response body is not valid JSON",
                provider_id=self.provider_id,
                status_code=resp.status_code,
            ) from e

    def _error_for_status(self, resp: httpx.Response) -> AdapterError:
        """Map a non-2xx response onto the adapter error taxonomy."""
        status = resp.status_code
        body = resp.text[:500]
        message = f"HTTP {status}: {body}"

        if status in (401, 403, 404):
            return AuthError(message, provider_id=self.provider_id, status_code=status)
        if status == 429:
            return RateLimited(
                message,
                provider_id=self.provider_id,
                status_code=status,
                retry_after=_parse_retry_after(resp),
            )
        if status == 408 or status >= 500:
            return Transient(message, provider_id=self.provider_id, status_code=status)
        # Remaining 4xx: the backend rejected the request shape or a parameter value
        return MalformedResponse(message, provider_id=self.provider_id, status_code=status)


# ---------------------------------------------------------------------------
# Azure OpenAI Adapter
# ---------------------------------------------------------------------------


class AzureOpenAIAdapter(BaseVendorAdapter):
    """Azure OpenAI chat completions against a named deployment."""

    provider_id = ProviderId.AZURE_OPENAI_PRIMARY.value
    default_model = "gpt-4o-mini"

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        deployment_name: str = "model-router",
        api_version: str = "2024-06-01",
        model: str = "",
        **kwargs,
    ):
        super().__init__(api_key=api_key, model=model, **kwargs)
        self.endpoint = endpoint.rstrip("/")
        self.deployment_name = deployment_name
        self.api_version = api_version

    @property
    def api_url(self) -> str:
        return f"{self.endpoint}/openai/deployments/{self.deployment_name}/chat/completions"

    async def _generate(self, request: GenerationRequest, timeout: float) -> str:
        payload = {
            "messages": self._chat_messages(request),
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "top_p": request.top_p,
            "frequency_penalty": 0,
            "presence_penalty": 0,
            "model": self.model,
        }
        data = await self._post_json(
            self.api_url,
            payload,
            params={"api-version": self.api_version},
            headers={"api-key": self.api_key, "Content-Type": "application/json"},
            timeout=timeout,
        )
        return extract_chat_completion_text(data, provider_id=self.provider_id)


# ---------------------------------------------------------------------------
# Gemini Adapter (Google AI)
# ---------------------------------------------------------------------------


class GeminiAdapter(BaseVendorAdapter):
    """Google Gemini adapter with SAFETY filter detection."""

    provider_id = ProviderId.GEMINI.value
    default_model = "gemini-1.5-flash-latest"
    api_url_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    async def _generate(self, request: GenerationRequest, timeout: float) -> str:
        url = self.api_url_template.format(model=self.model)

        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "topP": request.top_p,
                "maxOutputTokens": request.max_tokens,
            },
        }
        # System instruction (separate from contents in Gemini API)
        if request.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}

        data = await self._post_json(
            url,
            payload,
            params={"key": self.api_key},
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )
        return extract_gemini_text(data, provider_id=self.provider_id)

    def _error_for_status(self, resp: httpx.Response) -> AdapterError:
        # Google reports a bad key as 400 INVALID_ARGUMENT
        if resp.status_code == 400 and ("API_KEY_INVALID" in resp.text or "API key not valid" in resp.text):
            return AuthError("Gemini API key rejected", provider_id=self.provider_id, status_code=400)
        return super()._error_for_status(resp)


# ---------------------------------------------------------------------------
# DeepSeek Adapter
# ---------------------------------------------------------------------------


class DeepSeekAdapter(BaseVendorAdapter):
    """DeepSeek adapter with Server Busy handling."""

    provider_id = ProviderId.DEEPSEEK.value
    default_model = "deepseek-chat"
    api_url = "https://api.deepseek.com/v1/chat/completions"

    def __init__(self, api_key: str, model: str = "", api_url: str = "", **kwargs):
        super().__init__(api_key=api_key, model=model, **kwargs)
        if api_url:
            self.api_url = api_url

    async def _generate(self, request: GenerationRequest, timeout: float) -> str:
        payload = {
            "model": self.model,
            "messages": self._chat_messages(request),
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "top_p": request.top_p,
        }
        data = await self._post_json(
            self.api_url,
            payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )
        return extract_chat_completion_text(data, provider_id=self.provider_id)

    def _error_for_status(self, resp: httpx.Response) -> AdapterError:
        # DeepSeek "Server Busy" is throttling, not an outage
        if resp.status_code == 503 and "busy" in resp.text.lower():
            return RateLimited(
                "DeepSeek server busy",
                provider_id=self.provider_id,
                status_code=503,
                retry_after=_parse_retry_after(resp),
            )
        return super()._error_for_status(resp)


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[str, type[BaseVendorAdapter]] = {
    ProviderId.AZURE_OPENAI_PRIMARY.value: AzureOpenAIAdapter,
    ProviderId.AZURE_OPENAI_SECONDARY.value: AzureOpenAIAdapter,
    ProviderId.GEMINI.value: GeminiAdapter,
    ProviderId.DEEPSEEK.value: DeepSeekAdapter,
}


def get_adapter(provider_id: str, api_key: str, **kwargs) -> BaseVendorAdapter:
    """Factory: get the appropriate adapter for a provider id."""
    if isinstance(provider_id, ProviderId):
        provider_id = provider_id.value
    cls = ADAPTER_REGISTRY.get(provider_id)
    if cls is None:
        raise ValueError(f"No adapter registered for provider: {provider_id}")
    return cls(api_key=api_key, provider_id=provider_id, **kwargs)
