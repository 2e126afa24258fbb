# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Feed Validator - Pre-flight checks on ICS feed URLs before any network I/O
"""
import logging
from typing import List
from urllib.parse import urlsplit

from utils.logger import redact_url

logger = logging.getLogger(__name__)

LOCAL_HOST_NAMES = {'localhost'}
LOCAL_NETWORK_PREFIXES = ('127.', '192.168.', '10.', '172.16.')


class FeedValidationError(ValueError):
    """The feed URL is unusable; user-correctable, never retried"""
    transient = False


def validate_feed_url(url: str) -> List[str]:
    """
    Validate a feed URL without touching the network

    Args:
        url: Feed URL supplied by the user

    Returns:
        List of non-fatal warnings (also logged)

    Raises:
        FeedValidationError: If the URL is empty, not HTTPS, lacks a host,
            or points at localhost or a local network address
    """
    if url is None or not url.strip():
        raise FeedValidationError(
            "ICS URL cannot be empty. Please provide a valid calendar ICS URL."
        )

    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except ValueError as e:
        raise FeedValidationError(
            f"Invalid ICS URL format: {e}. Please ensure the URL is properly formatted "
            f"(e.g., https://calendar.example.com/path/calendar.ics)"
        ) from e

    if parts.scheme.lower() != 'https':
        raise FeedValidationError(
            f"ICS URL must use HTTPS protocol for security. HTTP is not allowed. "
            f"Your URL starts with '{parts.scheme or '(none)'}://'. Please use an HTTPS URL instead."
        )

    if not host:
        raise FeedValidationError(
            "ICS URL must have a valid domain name. The provided URL does not contain a valid host."
        )

    if host in LOCAL_HOST_NAMES or host.startswith(LOCAL_NETWORK_PREFIXES):
        raise FeedValidationError(
            "ICS URL cannot point to localhost or local network addresses. "
            "Please use a publicly accessible calendar URL."
        )

    warnings = []
    path = parts.path

    if not path or path == '/':
        warnings.append("ICS URL has no path component. This may not be a valid calendar feed URL")

    if not path.lower().endswith('.ics') and '/calendar' not in path:
        warnings.append(
            "ICS URL path does not appear to be a calendar feed "
            "(expected .ics extension or /calendar path)"
        )

    for warning in warnings:
        logger.warning(f"⚠️ {warning}: {redact_url(url)}")

    return warnings
