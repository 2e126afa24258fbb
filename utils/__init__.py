# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Shared utilities: resilience primitives, time handling and logging
"""
from utils.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
    CircuitBreakerRegistry,
    CircuitState,
)
from utils.retry import RetryConfig, RetryExhaustedError, is_transient_error, retry
from utils.timezone import from_db_timestamp, resolve_datetime, to_db_timestamp, utc_now
from utils.logger import JsonFormatter, StructuredLogger, redact_url, setup_logging
from utils.meeting_links import extract_meeting_password, extract_video_link

__all__ = [
    'CircuitBreaker',
    'CircuitBreakerConfig',
    'CircuitBreakerOpenError',
    'CircuitBreakerRegistry',
    'CircuitState',
    'RetryConfig',
    'RetryExhaustedError',
    'is_transient_error',
    'retry',
    'from_db_timestamp',
    'resolve_datetime',
    'to_db_timestamp',
    'utc_now',
    'JsonFormatter',
    'StructuredLogger',
    'redact_url',
    'setup_logging',
    'extract_meeting_password',
    'extract_video_link',
]
