# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Calendar Reader - Fetches ICS feeds through the circuit breaker and retry layers
"""
import logging
import time
from typing import Optional

import requests

import config
from cal_ops.validator import validate_feed_url
from utils.circuit_breaker import CircuitBreakerRegistry
from utils.logger import StructuredLogger, redact_url
from utils.retry import RetryConfig, retry

logger = logging.getLogger(__name__)
structured_logger = StructuredLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 502, 503, 504}
HTML_MARKERS = ('<!doctype', '<html')
CALENDAR_MARKER = 'BEGIN:VCALENDAR'
BODY_SNIPPET_LENGTH = 200


class FeedFetchError(Exception):
    """Base class for feed fetch failures"""

    def __init__(self, message: str, transient: Optional[bool] = None):
        super().__init__(message)
        self.transient = transient


class FeedHTTPError(FeedFetchError):
    """Non-2xx response"""

    def __init__(self, status_code: int, body_snippet: str):
        super().__init__(
            f"HTTP {status_code}: {body_snippet}",
            transient=status_code in RETRYABLE_STATUS_CODES
        )
        self.status_code = status_code
        self.body_snippet = body_snippet


class FeedContentError(FeedFetchError):
    """Server answered with something that is not a calendar (usually a web page)"""

    def __init__(self, message: str):
        super().__init__(message, transient=False)


class FeedFetcher:
    """Downloads raw ICS text for an account's feed URL"""

    def __init__(
        self,
        registry: CircuitBreakerRegistry,
        session: Optional[requests.Session] = None,
        profile: str = 'default',
        retry_config: Optional[RetryConfig] = None
    ):
        self.registry = registry
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': config.USER_AGENT})

        http_profile = config.HTTP_PROFILES[profile]
        self.timeout = (http_profile['connect_timeout'], http_profile['read_timeout'])
        self.retry_config = retry_config or RetryConfig.from_profile(profile)

    def fetch(self, url: str, service_name: str) -> str:
        """
        Fetch a feed with validation, circuit breaking and retries

        Args:
            url: HTTPS feed URL
            service_name: Circuit breaker key, e.g. 'google_calendar'

        Returns:
            Raw feed text

        Raises:
            FeedValidationError: URL rejected before any network I/O
            CircuitBreakerOpenError: Service is failing, no request made
            RetryExhaustedError: Transient failures on every attempt
            FeedFetchError: Permanent response failure
        """
        validate_feed_url(url)

        breaker = self.registry.get_breaker(service_name)
        return breaker.execute(
            lambda: retry(self.retry_config, lambda: self._http_get(url))
        )

    def _http_get(self, url: str) -> str:
        start = time.monotonic()
        endpoint = redact_url(url)

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            structured_logger.log_api_call('GET', endpoint, error='timeout')
            raise FeedFetchError(f"Request timeout: {e}", transient=True) from e
        except requests.exceptions.ConnectionError as e:
            structured_logger.log_api_call('GET', endpoint, error='connection error')
            raise FeedFetchError(f"Connection error: {e}", transient=True) from e
        except requests.exceptions.RequestException as e:
            structured_logger.log_api_call('GET', endpoint, error=type(e).__name__)
            raise FeedFetchError(f"Request failed: {e}", transient=False) from e

        duration_ms = (time.monotonic() - start) * 1000
        structured_logger.log_api_call('GET', endpoint, response.status_code, duration_ms)

        if not 200 <= response.status_code < 300:
            text = response.text or "Unable to read error response"
            raise FeedHTTPError(response.status_code, text[:BODY_SNIPPET_LENGTH])

        content = response.text
        stripped = content.lstrip()[:20].lower()
        if stripped.startswith(HTML_MARKERS):
            raise FeedContentError(
                "Invalid ICS URL: The server returned HTML instead of a calendar file. "
                "Please ensure you are using the 'Secret address in iCal format' from your "
                "calendar settings, not the web browser URL."
            )

        if CALENDAR_MARKER not in content:
            logger.warning(f"⚠️ Content from {endpoint} does not contain {CALENDAR_MARKER}")

        logger.debug(f"Fetched {len(content)} bytes from {endpoint}")
        return content
