"""
Retry tests - transient classification and exponential backoff
"""

import pytest
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.retry import RetryConfig, RetryExhaustedError, is_transient_error, retry


class Recorder:
    """Operation that raises the queued errors, then returns 'done'"""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return 'done'


class TestRetryClassification:
    """Transient errors retry, permanent ones fail fast"""

    @pytest.mark.retry
    def test_connection_timeout_is_retried_up_to_max_attempts(self):
        sleeps = []
        operation = Recorder(*[OSError("Connection timed out")] * 5)

        with pytest.raises(RetryExhaustedError) as exc_info:
            retry(RetryConfig(max_attempts=3, base_delay=1.0), operation, sleep=sleeps.append)

        assert operation.calls == 3
        assert exc_info.value.attempts == 3
        assert "Failed after 3 retry attempts" in str(exc_info.value)
        assert "Connection timed out" in str(exc_info.value.last_error)
        assert len(sleeps) == 2

    @pytest.mark.retry
    def test_authentication_failure_is_not_retried(self):
        sleeps = []
        operation = Recorder(PermissionError("Authentication failed"))

        with pytest.raises(PermissionError, match="Authentication failed"):
            retry(RetryConfig(max_attempts=3), operation, sleep=sleeps.append)

        assert operation.calls == 1
        assert sleeps == []

    @pytest.mark.retry
    def test_success_after_transient_failures(self):
        operation = Recorder(OSError("503 Service Unavailable"), OSError("network unreachable"))
        result = retry(RetryConfig(max_attempts=3), operation, sleep=lambda _: None)

        assert result == 'done'
        assert operation.calls == 3

    @pytest.mark.retry
    def test_explicit_transient_flag_wins_over_text(self):
        error = RuntimeError("gateway timeout while reading body")
        error.transient = False
        operation = Recorder(error)

        with pytest.raises(RuntimeError):
            retry(RetryConfig(max_attempts=3), operation, sleep=lambda _: None)
        assert operation.calls == 1

    @pytest.mark.retry
    @pytest.mark.parametrize('message', [
        'Request timeout',
        'Connection reset by peer',
        'network is unreachable',
        'temporary failure in name resolution',
        'rate limit exceeded',
        'HTTP 429: Too Many Requests',
        'HTTP 502: Bad Gateway',
        'HTTP 503: Service Unavailable',
        'HTTP 504: Gateway Timeout',
    ])
    def test_transient_markers(self, message):
        assert is_transient_error(Exception(message))

    @pytest.mark.retry
    @pytest.mark.parametrize('message', [
        'Authentication failed',
        'HTTP 404: Not Found',
        'Invalid ICS URL: The server returned HTML instead of a calendar file.',
    ])
    def test_permanent_errors(self, message):
        assert not is_transient_error(Exception(message))


class TestBackoff:
    """Delay growth and capping"""

    @pytest.mark.retry
    def test_delays_grow_and_cap_at_max(self):
        sleeps = []
        config = RetryConfig(max_attempts=5, base_delay=1.0, max_delay=3.0, backoff_multiplier=2.0)

        with pytest.raises(RetryExhaustedError):
            retry(config, Recorder(*[OSError("timeout")] * 5), sleep=sleeps.append)

        assert sleeps == [1.0, 2.0, 3.0, 3.0]

    @pytest.mark.retry
    def test_single_attempt_never_sleeps(self):
        sleeps = []
        with pytest.raises(RetryExhaustedError):
            retry(RetryConfig(max_attempts=1), Recorder(OSError("timeout")), sleep=sleeps.append)
        assert sleeps == []

    @pytest.mark.retry
    def test_profiles(self):
        default = RetryConfig.from_profile('default')
        large = RetryConfig.from_profile('large_feed')

        assert default == RetryConfig(max_attempts=3, base_delay=1.0, max_delay=20.0, backoff_multiplier=2.0)
        assert large == RetryConfig(max_attempts=2, base_delay=2.0, max_delay=30.0, backoff_multiplier=1.5)
