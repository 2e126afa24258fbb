# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Retry Utilities - Exponential backoff for transient network failures
"""
import time
import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import config

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Lower-cased substrings that mark an error as worth retrying
TRANSIENT_MARKERS = (
    'timeout',
    'timed out',
    'connection',
    'network',
    'temporary',
    'rate limit',
    'too many requests',
    'service unavailable',
    'bad gateway',
    'gateway timeout',
    '429',
    '502',
    '503',
    '504',
)


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0

    @classmethod
    def from_profile(cls, profile: str = 'default') -> 'RetryConfig':
        """Build a retry config from one of config.HTTP_PROFILES"""
        values = config.HTTP_PROFILES[profile]
        return cls(
            max_attempts=values['max_attempts'],
            base_delay=values['base_delay'],
            max_delay=values['max_delay'],
            backoff_multiplier=values['backoff_multiplier'],
        )


class RetryExhaustedError(Exception):
    """Raised after every attempt failed with a transient error"""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"Failed after {attempts} retry attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def is_transient_error(error: Exception) -> bool:
    """
    Classify an error as transient (retry) or permanent (fail fast)

    An explicit ``transient`` attribute on the exception wins; otherwise the
    error text is scanned for known network/overload markers.
    """
    transient: Optional[bool] = getattr(error, 'transient', None)
    if transient is not None:
        return bool(transient)

    text = str(error).lower()
    return any(marker in text for marker in TRANSIENT_MARKERS)


def retry(
    retry_config: RetryConfig,
    operation: Callable[[], T],
    sleep: Callable[[float], None] = time.sleep
) -> T:
    """
    Run an operation, retrying transient failures with exponential backoff

    Args:
        retry_config: Attempt limit and delay curve
        operation: Zero-argument callable to run
        sleep: Sleep function, injectable for tests

    Returns:
        Result of the first successful attempt

    Raises:
        RetryExhaustedError: If every attempt failed transiently
        Exception: The original error, if it was permanent
    """
    delay = retry_config.base_delay
    attempt = 0

    while True:
        attempt += 1
        try:
            result = operation()
            if attempt > 1:
                logger.info(f"Retry successful after {attempt} attempts")
            return result

        except Exception as e:
            if not is_transient_error(e):
                logger.debug(f"Non-retryable error: {type(e).__name__}: {e}")
                raise

            if attempt >= retry_config.max_attempts:
                logger.error(f"Max attempts ({retry_config.max_attempts}) exceeded. Final error: {e}")
                raise RetryExhaustedError(attempt, e) from e

            logger.warning(
                f"Attempt {attempt}/{retry_config.max_attempts} failed: "
                f"{type(e).__name__}: {e}. Retrying in {delay:.1f} seconds..."
            )
            sleep(delay)
            delay = min(delay * retry_config.backoff_multiplier, retry_config.max_delay)
