"""Circuit Breaker with exponential backoff and jitter.

Implements the circuit breaker pattern per provider:
  - CLOSED: normal operation, requests pass through
  - OPEN: too many consecutive failures, the provider is skipped
  - HALF_OPEN: recovery window elapsed, one call at a time goes through as a probe

The breaker never reorders the provider chain; an open circuit only
removes that provider from the walk until it recovers.

Backoff strategy (used for same-provider retries):
  delay = min(base * 2^attempt + jitter, max_delay)
  jitter = random(0, base * 0.5)
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Skipping provider
    HALF_OPEN = "half_open"  # Testing recovery


@dataclass
class _CircuitStats:
    """Failure tracking for a single provider's circuit."""

    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    state: CircuitState = CircuitState.CLOSED
    opened_at: float = 0.0  # When circuit was opened
    probes_in_flight: int = 0  # Half-open trial calls not yet resolved
    probe_started_at: float = 0.0


# Defaults for opening the circuit
FAILURE_THRESHOLD = 5  # Consecutive failures to open circuit
RECOVERY_TIMEOUT = 60.0  # Seconds before trying half-open
HALF_OPEN_MAX_PROBES = 1  # Max concurrent probes in half-open state


class CircuitBreaker:
    """Per-provider circuit breaker.

    Usage:
        cb = CircuitBreaker()

        if not cb.allow_request(provider_id):
            # Circuit is open, skip this provider
            ...

        cb.record_success(provider_id)   # after success
        cb.record_failure(provider_id)   # after a failed attempt
    """

    def __init__(
        self,
        failure_threshold: int = FAILURE_THRESHOLD,
        recovery_timeout: float = RECOVERY_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = max(1, failure_threshold)
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._circuits: dict[str, _CircuitStats] = {}

    def _get_circuit(self, provider_id: str) -> _CircuitStats:
        if provider_id not in self._circuits:
            self._circuits[provider_id] = _CircuitStats()
        return self._circuits[provider_id]

    def allow_request(self, provider_id: str) -> bool:
        """Check if a request to the provider is allowed.

        Returns True if the circuit is closed, or half-open with a free probe slot.
        """
        circuit = self._get_circuit(provider_id)

        if circuit.state == CircuitState.CLOSED:
            return True

        now = self._clock()
        if circuit.state == CircuitState.OPEN:
            # Check if recovery timeout has passed
            if now - circuit.opened_at < self.recovery_timeout:
                return False
            circuit.state = CircuitState.HALF_OPEN
            circuit.probes_in_flight = 0
            logger.info("Circuit for %s transitioning to HALF_OPEN", provider_id)

        # HALF_OPEN: admit a limited number of probes; a probe that never
        # reported back (cancelled call) frees its slot after recovery_timeout
        if circuit.probes_in_flight >= HALF_OPEN_MAX_PROBES:
            if now - circuit.probe_started_at < self.recovery_timeout:
                return False
            circuit.probes_in_flight = 0

        circuit.probes_in_flight += 1
        circuit.probe_started_at = now
        return True

    def record_success(self, provider_id: str) -> None:
        """Record a successful request. Resets failure counter, closes circuit."""
        circuit = self._get_circuit(provider_id)
        circuit.consecutive_failures = 0
        circuit.total_successes += 1
        circuit.probes_in_flight = 0

        if circuit.state != CircuitState.CLOSED:
            logger.info("Circuit for %s CLOSED (recovered)", provider_id)
            circuit.state = CircuitState.CLOSED

    def record_failure(self, provider_id: str) -> None:
        """Record a failed attempt, opening the circuit past the threshold."""
        circuit = self._get_circuit(provider_id)
        circuit.consecutive_failures += 1
        circuit.total_failures += 1
        circuit.probes_in_flight = 0

        # A failed half-open probe re-opens immediately
        if circuit.state == CircuitState.HALF_OPEN or circuit.consecutive_failures >= self.failure_threshold:
            if circuit.state != CircuitState.OPEN:
                logger.warning(
                    "Circuit for %s OPENED after %d consecutive failures",
                    provider_id,
                    circuit.consecutive_failures,
                )
            circuit.state = CircuitState.OPEN
            circuit.opened_at = self._clock()

    @staticmethod
    def calculate_backoff(
        attempt: int,
        base_delay: float = 0.5,
        max_delay: float = 10.0,
    ) -> float:
        """Calculate exponential backoff with jitter.

        Formula: min(base * 2^attempt + jitter, max_delay)
        Jitter: random(0, base * 0.5)
        """
        exponential = base_delay * (2**attempt)
        jitter = random.uniform(0, base_delay * 0.5)
        return min(exponential + jitter, max_delay)

    def get_circuit_state(self, provider_id: str) -> dict:
        """Get the current state of a provider's circuit."""
        circuit = self._get_circuit(provider_id)
        return {
            "provider_id": provider_id,
            "state": circuit.state.value,
            "consecutive_failures": circuit.consecutive_failures,
            "total_failures": circuit.total_failures,
            "total_successes": circuit.total_successes,
        }

    def get_all_states(self) -> list[dict]:
        """Get circuit states for every provider seen so far."""
        return [self.get_circuit_state(p) for p in self._circuits]

    def reset(self, provider_id: str) -> None:
        """Manually reset a provider's circuit to CLOSED."""
        circuit = self._get_circuit(provider_id)
        circuit.state = CircuitState.CLOSED
        circuit.consecutive_failures = 0
        circuit.probes_in_flight = 0
        logger.info("Circuit for %s manually RESET", provider_id)
