"""Response Normalizer: pulls the generated text out of vendor payloads.

The gateway treats model output as opaque text. Normalization here only
answers one question per vendor format: is there usable text, and where is
it? Anything else (JSON inside the text, markdown cleanup) belongs to the
caller.
"""

from __future__ import annotations

from typing import Any

from aigateway.gateway.errors import MalformedResponse


def ensure_text(text: Any, provider_id: str = "") -> str:
    """Return ``text`` unchanged if it is a non-blank string."""
    if not isinstance(text, str) or not text.strip():
        raise MalformedResponse("Backend returned empty content", provider_id=provider_id)
    return text


def extract_chat_completion_text(data: Any, provider_id: str = "") -> str:
    """Extract ``choices[0].message.content`` from an OpenAI-style payload."""
    if not isinstance(data, dict):
        raise MalformedResponse("Chat completion payload is not an object", provider_id=provider_id)

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        raise MalformedResponse("Chat completion payload has no choices", provider_id=provider_id)

    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    if not isinstance(message, dict):
        raise MalformedResponse("Chat completion choice has no message", provider_id=provider_id)

    if first.get("finish_reason") == "content_filter" and not message.get("content"):
        raise MalformedResponse("Completion blocked by content filter", provider_id=provider_id)

    return ensure_text(message.get("content"), provider_id=provider_id)


def extract_gemini_text(data: Any, provider_id: str = "") -> str:
    """Extract text parts from a Gemini ``generateContent`` payload.

    SAFETY finishes and blocked prompts carry no usable text.
    """
    if not isinstance(data, dict):
        raise MalformedResponse("Gemini payload is not an object", provider_id=provider_id)

    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise MalformedResponse("Gemini candidates is not a list", provider_id=provider_id)
    if not candidates:
        feedback = data.get("promptFeedback")
        block_reason = feedback.get("blockReason", "") if isinstance(feedback, dict) else ""
        if block_reason:
            raise MalformedResponse(f"Prompt blocked by Gemini: {block_reason}", provider_id=provider_id)
        raise MalformedResponse("Gemini payload has no candidates", provider_id=provider_id)

    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise MalformedResponse("Gemini candidate is not an object", provider_id=provider_id)
    if candidate.get("finishReason") == "SAFETY":
        raise MalformedResponse("Gemini safety filter triggered", provider_id=provider_id)

    content = candidate.get("content") or {}
    if not isinstance(content, dict):
        raise MalformedResponse("Gemini candidate content is not an object", provider_id=provider_id)
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise MalformedResponse("Gemini content parts is not a list", provider_id=provider_id)

    text_parts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
    return ensure_text("".join(text_parts), provider_id=provider_id)
