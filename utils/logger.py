# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Structured Logger - Enhanced logging with JSON output for better observability
"""
import json
import logging
from typing import Dict, Any, Optional
from urllib.parse import urlsplit

import config
from utils.timezone import utc_now

SERVICE_NAME = "chime-sync"


def redact_url(url: Optional[str]) -> str:
    """Feed URLs embed private tokens; only scheme and host are logged"""
    if not url:
        return "<empty>"
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        return "<invalid url>"
    return f"{parts.scheme}://{parts.hostname or parts.netloc}/..."


def setup_logging(level: Optional[str] = None, structured: Optional[bool] = None):
    """Configure the root logger once at process start"""
    level = level or config.LOG_LEVEL
    if structured is None:
        structured = config.STRUCTURED_LOGGING

    handler = logging.StreamHandler()
    if structured:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    # requests is chatty at INFO
    logging.getLogger('urllib3').setLevel(logging.WARNING)


class StructuredLogger:
    """Provides structured logging in JSON format for better parsing and analysis"""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.name = name

    def _entry(self, event_type: str, **fields) -> Dict[str, Any]:
        return {
            "timestamp": utc_now().isoformat(),
            "event_type": event_type,
            "service": SERVICE_NAME,
            "logger": self.name,
            **fields
        }

    def log_sync_event(self, event_type: str, details: Dict[str, Any]):
        """Log a sync-related event with structured data"""
        log_entry = self._entry(event_type, **details)

        # Choose log level based on event type
        if "error" in event_type.lower() or "failed" in event_type.lower():
            self.logger.error(json.dumps(log_entry, default=str))
        elif "warning" in event_type.lower():
            self.logger.warning(json.dumps(log_entry, default=str))
        else:
            self.logger.info(json.dumps(log_entry, default=str))

    def log_api_call(self, method: str, endpoint: str, status_code: Optional[int] = None,
                     duration_ms: Optional[float] = None, error: Optional[str] = None):
        """Log an outbound HTTP call; endpoint should already be redacted"""
        log_entry = self._entry("api_call", method=method, endpoint=endpoint)

        if status_code is not None:
            log_entry["status_code"] = status_code
        if duration_ms is not None:
            log_entry["duration_ms"] = round(duration_ms, 1)
        if error:
            log_entry["error"] = error

        if error or (status_code and status_code >= 400):
            self.logger.error(json.dumps(log_entry))
        else:
            self.logger.info(json.dumps(log_entry))

    def log_performance(self, operation: str, duration_seconds: float,
                        item_count: Optional[int] = None, success: bool = True):
        """Log performance metrics"""
        log_entry = self._entry(
            "performance",
            operation=operation,
            duration_seconds=round(duration_seconds, 3),
            success=success
        )

        if item_count is not None:
            log_entry["item_count"] = item_count
            log_entry["items_per_second"] = item_count / duration_seconds if duration_seconds > 0 else 0

        self.logger.info(json.dumps(log_entry))


class JsonFormatter(logging.Formatter):
    """Custom formatter that outputs JSON"""

    def format(self, record):
        # StructuredLogger messages are already JSON objects
        message = record.getMessage()
        if message.startswith('{'):
            try:
                json.loads(message)
                return message
            except json.JSONDecodeError:
                pass

        log_entry = {
            "timestamp": utc_now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)
