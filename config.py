# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Environment-based configuration for Chime Sync
"""
import os

# Environment Detection
ENVIRONMENT = os.environ.get('ENVIRONMENT', 'production')
DEBUG = ENVIRONMENT == 'development'

# Identification sent with every feed request
USER_AGENT = os.environ.get('USER_AGENT', 'ChimeSync/1.0')

# Database Settings
DATABASE_PATH = os.environ.get('DATABASE_PATH', 'chimesync.db')
DB_POOL_SIZE = int(os.environ.get('DB_POOL_SIZE', 5))
DB_POOL_TIMEOUT = float(os.environ.get('DB_POOL_TIMEOUT', 30.0))
DB_BUSY_TIMEOUT_MS = int(os.environ.get('DB_BUSY_TIMEOUT_MS', 5000))
DB_LOCK_RETRIES = int(os.environ.get('DB_LOCK_RETRIES', 5))
DB_LOCK_BASE_SLEEP_MS = int(os.environ.get('DB_LOCK_BASE_SLEEP_MS', 50))

# Scheduler Intervals (in seconds)
ALERT_TICK_SECONDS = float(os.environ.get('ALERT_TICK_SECONDS', 30))
SYNC_INTERVAL_SECONDS = int(os.environ.get('SYNC_INTERVAL_SECONDS', 300))

# Alert Window (in minutes)
ALERT_LOOKBACK_MINUTES = int(os.environ.get('ALERT_LOOKBACK_MINUTES', 5))
ALERT_LOOKAHEAD_MINUTES = int(os.environ.get('ALERT_LOOKAHEAD_MINUTES', 60))
ALERT_GRACE_MINUTES = int(os.environ.get('ALERT_GRACE_MINUTES', 5))

# Hard cap on snoozes per event
SNOOZE_LIMIT = int(os.environ.get('SNOOZE_LIMIT', 3))

# HTTP Profiles
HTTP_PROFILES = {
    'default': {
        'connect_timeout': 10.0,
        'read_timeout': 30.0,
        'max_attempts': 3,
        'base_delay': 1.0,
        'max_delay': 20.0,
        'backoff_multiplier': 2.0,
    },
    # ICS files can be large and slow to generate upstream
    'large_feed': {
        'connect_timeout': 20.0,
        'read_timeout': 120.0,
        'max_attempts': 2,
        'base_delay': 2.0,
        'max_delay': 30.0,
        'backoff_multiplier': 1.5,
    },
}

# Circuit Breaker Settings
CIRCUIT_BREAKER_FAIL_MAX = int(os.environ.get('CIRCUIT_BREAKER_FAIL_MAX', 5))
CIRCUIT_BREAKER_SUCCESS_THRESHOLD = int(os.environ.get('CIRCUIT_BREAKER_SUCCESS_THRESHOLD', 3))
CIRCUIT_BREAKER_RESET_TIMEOUT = float(os.environ.get('CIRCUIT_BREAKER_RESET_TIMEOUT', 60))

CIRCUIT_BREAKER_PROFILES = {
    'google_calendar': {
        'failure_threshold': 3,
        'success_threshold': 2,
        'timeout': 30.0,
    },
    'proton_calendar': {
        'failure_threshold': 5,
        'success_threshold': 3,
        'timeout': 60.0,
    },
}

# Logging
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
STRUCTURED_LOGGING = os.environ.get('STRUCTURED_LOGGING', 'True').lower() == 'true'

# Development Settings
if DEBUG:
    LOG_LEVEL = 'DEBUG'
    ALERT_TICK_SECONDS = 5  # Faster ticks for development
