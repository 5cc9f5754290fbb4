"""Generation Gateway: orchestrator integrating all gateway components.

Main entry point for generating text:
  1. Looks the request up in the Result Cache (a hit bypasses every adapter)
  2. Walks the Provider Registry's priority chain, strictly in order
  3. Gives each provider a deadline carved from the overall budget
  4. Retries rate-limited / transient failures once on the same provider
     when its time share allows, otherwise advances to the next provider
  5. Returns the first success (cached) or raises ExhaustedFailure

Usage:
    gateway = build_gateway(settings)

    result = await gateway.generate(GenerationRequest(prompt="..."), timeout_ms=20_000)
    statuses = await gateway.get_status()
"""

from __future__ import annotations

import asyncio
import logging
import time

from aigateway.core.config import Settings
from aigateway.core.metrics import CACHE_LOOKUPS, GENERATION_REQUESTS, PROVIDER_ATTEMPTS, PROVIDER_LATENCY
from aigateway.gateway.cache import ResultCache, fingerprint
from aigateway.gateway.circuit_breaker import CircuitBreaker
from aigateway.gateway.errors import AdapterError, ExhaustedFailure, ProviderTimeout, RateLimited
from aigateway.gateway.health import HealthProbe
from aigateway.gateway.registry import ProviderRegistry
from aigateway.gateway.types import Deadline, GenerationRequest, GenerationResult, ProviderStatus

logger = logging.getLogger(__name__)

MAX_RETRY_DELAY = 10.0

# Event-loop timers may fire up to one clock tick before the deadline
DEADLINE_SLACK = 0.02


class GenerationGateway:
    """Main gateway orchestrator.

    Integrates:
      - ProviderRegistry: static priority chain of adapters
      - ResultCache: optional short-lived memoization
      - CircuitBreaker: optional skipping of repeatedly failing providers
      - HealthProbe: on-demand provider status

    Holds no per-call state; concurrent generate() calls share only the
    read-only registry, the cache and the breaker.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: ResultCache | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        health_probe: HealthProbe | None = None,
        default_timeout_ms: int = 30_000,
        max_retries: int = 1,
        retry_backoff_seconds: float = 0.5,
    ):
        """
        Args:
            registry: Provider chain; must contain at least one enabled provider
            cache: Result cache, or None to disable memoization
            circuit_breaker: Breaker consulted before each provider, or None
            health_probe: Probe used by get_status (defaults to one over ``registry``)
            default_timeout_ms: End-to-end budget when the caller passes none
            max_retries: Same-provider retries for RateLimited / Transient
            retry_backoff_seconds: Base delay for retry backoff
        """
        registry.ensure_ready()
        if default_timeout_ms <= 0:
            raise ValueError("default_timeout_ms must be positive")

        self.registry = registry
        self.cache = cache
        self.circuit_breaker = circuit_breaker
        self.health_probe = health_probe or HealthProbe(registry)
        self.default_timeout_ms = default_timeout_ms
        self.max_retries = max(0, max_retries)
        self.retry_backoff_seconds = retry_backoff_seconds

    async def generate(self, request: GenerationRequest, timeout_ms: int | None = None) -> GenerationResult:
        """Generate text for ``request`` within ``timeout_ms`` (or the default budget).

        Raises:
            ExhaustedFailure: no provider produced text within the budget.
        """
        budget_ms = self.default_timeout_ms if timeout_ms is None else timeout_ms
        if budget_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        deadline = Deadline.after(budget_ms / 1000)

        key: str | None = None
        if self.cache is not None:
            key = fingerprint(request)
            cached = await self.cache.get(key)
            if cached is not None:
                CACHE_LOOKUPS.labels(result="hit").inc()
                GENERATION_REQUESTS.labels(outcome="cache_hit").inc()
                logger.debug("Cache hit %s (provider=%s)", key[:12], cached.provider_id)
                return cached
            CACHE_LOOKUPS.labels(result="miss").inc()

        chain = self.registry.chain()
        errors: list[AdapterError] = []
        skipped: list[str] = []
        tried = 0

        for index, descriptor in enumerate(chain):
            if deadline.expired:
                raise self._exhausted(tried, errors, skipped, deadline_exceeded=True)

            if self.circuit_breaker is not None and not self.circuit_breaker.allow_request(descriptor.id):
                logger.info("Skipping provider %s: circuit open", descriptor.id)
                skipped.append(descriptor.id)
                continue

            # Even split of what is left, so a slow early provider cannot starve later ones
            share = Deadline.after(deadline.remaining() / (len(chain) - index)).earliest(deadline)
            tried += 1

            try:
                result = await self._call_provider(descriptor.id, request, share)
            except AdapterError as e:
                errors.append(e)
                if self.circuit_breaker is not None:
                    self.circuit_breaker.record_failure(descriptor.id)
                logger.warning(
                    "Provider %s failed (%s): %s",
                    descriptor.id,
                    e.kind,
                    e,
                    extra={"provider_id": descriptor.id, "error_kind": e.kind},
                )
                if isinstance(e, ProviderTimeout) and deadline.remaining() <= DEADLINE_SLACK:
                    raise self._exhausted(tried, errors, skipped, deadline_exceeded=True) from e
                continue

            if self.circuit_breaker is not None:
                self.circuit_breaker.record_success(descriptor.id)
            if self.cache is not None and key is not None:
                await self.cache.set(key, result)

            GENERATION_REQUESTS.labels(outcome="success").inc()
            logger.info(
                "Generated via %s in %d ms (retries=%d, fallbacks=%d)",
                result.provider_id,
                result.latency_ms,
                result.retry_count,
                tried - 1,
            )
            return result

        raise self._exhausted(tried, errors, skipped, deadline_exceeded=deadline.remaining() <= DEADLINE_SLACK)

    async def get_status(self) -> list[ProviderStatus]:
        """Fresh reachability snapshot for every registered provider."""
        return await self.health_probe.check()

    def describe(self) -> dict:
        """Static configuration summary for the operations endpoint."""
        return {
            "provider_order": [d.id for d in self.registry.chain()],
            "default_timeout_ms": self.default_timeout_ms,
            "cache": self.cache.stats() if self.cache is not None else None,
            "circuits": self.circuit_breaker.get_all_states() if self.circuit_breaker is not None else None,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _call_provider(self, provider_id: str, request: GenerationRequest, share: Deadline) -> GenerationResult:
        """Invoke one provider, retrying retryable failures within ``share``."""
        adapter = self.registry.adapter_for(provider_id)
        attempt = 0

        while True:
            start = time.monotonic()
            try:
                text = await adapter.invoke(request, share)
            except AdapterError as e:
                PROVIDER_ATTEMPTS.labels(provider=provider_id, outcome=e.kind).inc()
                if not e.retryable or attempt >= self.max_retries:
                    raise

                delay = self._retry_delay(e, attempt)
                if share.remaining() <= delay:
                    logger.info("No time left to retry %s after %s", provider_id, e.kind)
                    raise

                logger.info(
                    "Retrying %s (attempt %d/%d) in %.2fs after %s",
                    provider_id,
                    attempt + 1,
                    self.max_retries,
                    delay,
                    e.kind,
                )
                await asyncio.sleep(delay)
                attempt += 1
                continue

            elapsed = time.monotonic() - start
            PROVIDER_ATTEMPTS.labels(provider=provider_id, outcome="success").inc()
            PROVIDER_LATENCY.labels(provider=provider_id).observe(elapsed)
            return GenerationResult(
                text=text,
                provider_id=provider_id,
                latency_ms=int(elapsed * 1000),
                retry_count=attempt,
            )

    def _retry_delay(self, error: AdapterError, attempt: int) -> float:
        if isinstance(error, RateLimited) and error.retry_after is not None:
            return min(error.retry_after, MAX_RETRY_DELAY)
        return CircuitBreaker.calculate_backoff(
            attempt=attempt,
            base_delay=self.retry_backoff_seconds,
            max_delay=MAX_RETRY_DELAY,
        )

    def _exhausted(
        self,
        tried: int,
        errors: list[AdapterError],
        skipped: list[str],
        deadline_exceeded: bool,
    ) -> ExhaustedFailure:
        GENERATION_REQUESTS.labels(outcome="exhausted").inc()
        failure = ExhaustedFailure(
            providers_tried=tried,
            last_error=errors[-1] if errors else None,
            errors=errors,
            deadline_exceeded=deadline_exceeded,
            skipped=skipped,
        )
        logger.error("%s", failure)
        return failure


def build_gateway(settings: Settings) -> GenerationGateway:
    """Wire registry, cache, breaker and probe from settings.

    Raises ConfigurationError when no provider has usable credentials.
    """
    registry = ProviderRegistry.from_settings(settings)

    cache = None
    if settings.ai_cache_enabled:
        cache = ResultCache(
            ttl_seconds=settings.ai_cache_ttl_seconds,
            max_entries=settings.ai_cache_max_entries,
        )

    breaker = None
    if settings.ai_circuit_breaker_enabled:
        breaker = CircuitBreaker(
            failure_threshold=settings.ai_circuit_failure_threshold,
            recovery_timeout=settings.ai_circuit_recovery_seconds,
        )

    return GenerationGateway(
        registry=registry,
        cache=cache,
        circuit_breaker=breaker,
        health_probe=HealthProbe(registry, timeout_seconds=settings.ai_health_timeout_seconds),
        default_timeout_ms=settings.ai_timeout_ms,
        max_retries=settings.ai_max_retries,
        retry_backoff_seconds=settings.ai_retry_backoff_seconds,
    )
