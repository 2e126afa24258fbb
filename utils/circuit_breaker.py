# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Circuit Breaker - Prevent cascading failures by stopping requests to failing services
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Callable, Dict, Optional, TypeVar

import config

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CircuitState(Enum):
    """Possible states of the circuit breaker"""
    CLOSED = "closed"      # Normal operation, requests allowed
    OPEN = "open"          # Failure threshold exceeded, requests blocked
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Tunable thresholds for a single breaker"""
    failure_threshold: int = 5
    success_threshold: int = 3
    timeout: float = 60.0  # seconds spent OPEN before probing


class CircuitBreakerOpenError(Exception):
    """Exception raised when circuit breaker is open"""
    pass


class CircuitBreaker:
    """
    Implements the Circuit Breaker pattern to prevent cascading failures

    The circuit breaker has three states:
    - CLOSED: Normal operation, all requests pass through
    - OPEN: Too many failures, all requests fail fast
    - HALF_OPEN: Testing if the service has recovered

    Only state transitions are serialized. Admitted operations run
    concurrently, with no collapsing of duplicate in-flight calls.
    """

    def __init__(
        self,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        name: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the circuit breaker

        Args:
            breaker_config: Failure/success thresholds and open timeout
            name: Optional name for logging
            clock: Monotonic time source, injectable for tests
        """
        self.config = breaker_config or CircuitBreakerConfig()
        self.name = name or "CircuitBreaker"
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._lock = Lock()

        # Statistics
        self._total_calls = 0
        self._total_failures = 0
        self._total_successes = 0
        self._total_rejections = 0
        self._circuit_opened_count = 0

    @property
    def state(self) -> CircuitState:
        """Get the current state of the circuit breaker"""
        with self._lock:
            return self._state

    def execute(self, operation: Callable[[], T]) -> T:
        """
        Call the protected operation through the circuit breaker

        Args:
            operation: Zero-argument callable performing the remote call

        Returns:
            Result of the operation

        Raises:
            CircuitBreakerOpenError: If circuit is open
            Exception: Whatever the operation raised
        """
        with self._lock:
            self._total_calls += 1
            self._maybe_half_open()

            if self._state == CircuitState.OPEN:
                self._total_rejections += 1
                error_msg = f"{self.name}: Circuit breaker is open"
                logger.warning(error_msg)
                raise CircuitBreakerOpenError(error_msg)

        try:
            result = operation()
        except Exception:
            with self._lock:
                self._on_failure()
            raise

        with self._lock:
            self._on_success()

        return result

    def _maybe_half_open(self):
        """Move OPEN -> HALF_OPEN once the timeout has elapsed"""
        if self._state != CircuitState.OPEN or self._last_failure_time is None:
            return

        if self._clock() - self._last_failure_time > self.config.timeout:
            logger.info(f"{self.name}: Transitioning from OPEN to HALF_OPEN")
            self._state = CircuitState.HALF_OPEN
            self._success_count = 0

    def _on_success(self):
        """Handle successful operation"""
        self._total_successes += 1

        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.config.success_threshold:
                logger.info(
                    f"{self.name}: Transitioning from HALF_OPEN to CLOSED "
                    f"after {self._success_count} successful calls"
                )
                self._close()
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0
        else:
            # A call admitted before another caller opened the circuit
            logger.info(f"{self.name}: Success while OPEN, closing circuit")
            self._close()

    def _on_failure(self):
        """Handle failed operation"""
        self._total_failures += 1
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._state == CircuitState.HALF_OPEN:
            logger.warning(f"{self.name}: Failure in HALF_OPEN state, reopening circuit")
            self._open()

        elif self._state == CircuitState.CLOSED:
            if self._failure_count >= self.config.failure_threshold:
                logger.error(
                    f"{self.name}: Failure threshold ({self.config.failure_threshold}) reached, "
                    f"opening circuit"
                )
                self._open()

    def _open(self):
        self._state = CircuitState.OPEN
        self._circuit_opened_count += 1

    def _close(self):
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0

    def reset(self):
        """Manually reset the circuit breaker to closed state"""
        with self._lock:
            logger.info(f"{self.name}: Manually resetting circuit breaker")
            self._close()
            self._last_failure_time = None

    def get_statistics(self) -> dict:
        """Get statistics about the circuit breaker"""
        with self._lock:
            success_rate = 0
            if self._total_calls > 0:
                success_rate = (self._total_successes / self._total_calls) * 100

            seconds_since_failure = None
            if self._last_failure_time is not None:
                seconds_since_failure = round(self._clock() - self._last_failure_time, 3)

            return {
                'name': self.name,
                'state': self._state.value,
                'total_calls': self._total_calls,
                'total_successes': self._total_successes,
                'total_failures': self._total_failures,
                'total_rejections': self._total_rejections,
                'success_rate': round(success_rate, 2),
                'current_failure_count': self._failure_count,
                'current_success_count': self._success_count,
                'circuit_opened_count': self._circuit_opened_count,
                'seconds_since_last_failure': seconds_since_failure
            }


class CircuitBreakerRegistry:
    """
    Lazily creates one breaker per service name

    Build one at startup and hand it to every component that talks to a
    feed, so that all callers of a service share its breaker.
    """

    def __init__(
        self,
        profiles: Optional[Dict[str, dict]] = None,
        default_config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        if profiles is None:
            profiles = config.CIRCUIT_BREAKER_PROFILES
        self._profiles = {
            name: CircuitBreakerConfig(**values) for name, values in profiles.items()
        }
        self._default_config = default_config or CircuitBreakerConfig(
            failure_threshold=config.CIRCUIT_BREAKER_FAIL_MAX,
            success_threshold=config.CIRCUIT_BREAKER_SUCCESS_THRESHOLD,
            timeout=config.CIRCUIT_BREAKER_RESET_TIMEOUT
        )
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = Lock()

    def config_for(self, service_name: str) -> CircuitBreakerConfig:
        return self._profiles.get(service_name, self._default_config)

    def get_breaker(self, service_name: str) -> CircuitBreaker:
        """Return the breaker for a service, creating it on first use"""
        with self._lock:
            breaker = self._breakers.get(service_name)
            if breaker is None:
                breaker = CircuitBreaker(
                    breaker_config=self.config_for(service_name),
                    name=service_name,
                    clock=self._clock
                )
                self._breakers[service_name] = breaker
                logger.info(f"Created circuit breaker for service: {service_name}")
            return breaker

    def get_all_statistics(self) -> Dict[str, dict]:
        with self._lock:
            breakers = dict(self._breakers)
        return {name: breaker.get_statistics() for name, breaker in breakers.items()}

    def reset_all(self):
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
