"""Error taxonomy for the generation gateway.

Only ConfigurationError and ExhaustedFailure leave the gateway; every
AdapterError is recovered by advancing the provider chain.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for gateway errors."""


class ConfigurationError(GatewayError):
    """No usable provider is configured. Raised at startup, never per call."""


class AdapterError(GatewayError):
    """A single backend call failed."""

    kind: str = "adapter_error"
    retryable: bool = False  # may the same provider be tried once more

    def __init__(self, message: str, provider_id: str = "", status_code: int = 0):
        super().__init__(message)
        self.provider_id = provider_id
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.provider_id:
            return f"[{self.provider_id}] {base}"
        return base


class AuthError(AdapterError):
    """Rejected or missing credential. Never retried."""

    kind = "auth_error"


class RateLimited(AdapterError):
    """Backend throttled the call (HTTP 429 or "server busy")."""

    kind = "rate_limited"
    retryable = True

    def __init__(
        self,
        message: str,
        provider_id: str = "",
        status_code: int = 429,
        retry_after: float | None = None,
    ):
        super().__init__(message, provider_id=provider_id, status_code=status_code)
        self.retry_after = retry_after


class ProviderTimeout(AdapterError):
    """The call was aborted because its deadline passed."""

    kind = "timeout"


class Transient(AdapterError):
    """Network-level failure or 5xx from the backend."""

    kind = "transient"
    retryable = True


class MalformedResponse(AdapterError):
    """The backend answered but no usable text could be extracted."""

    kind = "malformed_response"


class ExhaustedFailure(GatewayError):
    """Every enabled provider failed for one call.

    Callers should treat this as "service temporarily unavailable" and show
    ``user_message`` rather than the underlying provider errors.
    """

    user_message = "AI service is temporarily unavailable. Please try again later."

    def __init__(
        self,
        providers_tried: int,
        last_error: AdapterError | None,
        errors: list[AdapterError] | None = None,
        deadline_exceeded: bool = False,
        skipped: list[str] | None = None,
    ):
        self.providers_tried = providers_tried
        self.last_error = last_error
        self.errors = list(errors or [])
        self.deadline_exceeded = deadline_exceeded
        self.skipped = list(skipped or [])  # providers passed over with an open circuit

        if deadline_exceeded:
            reason = "deadline exceeded"
        elif providers_tried == 0 and self.skipped:
            reason = "all circuits open"
        else:
            reason = "all providers failed"
        message = f"Generation failed ({reason}) after {providers_tried} provider(s)"
        if self.skipped:
            message += f"; circuit open: {', '.join(self.skipped)}"
        if last_error is not None:
            message += f"; last error: {last_error}"
        super().__init__(message)
