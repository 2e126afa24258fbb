"""
Alert rule tests - threshold windows, descent and snooze reminders
"""

import pytest
from datetime import timedelta
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import AlertType, CalendarEvent, Settings
from sync.alerts import check_alert_thresholds, check_snooze_reminder
from tests.conftest import NOW

ALL_ON = Settings(alert_30m=True, alert_10m=True, alert_5m=True, alert_1m=True, alert_default=True)


def event_starting_in(minutes=0, seconds=0, **overrides):
    start = NOW + timedelta(minutes=minutes, seconds=seconds)
    values = dict(
        id=1,
        external_id='evt-1',
        account_id=1,
        title='Team Meeting',
        start_time=start,
        end_time=start + timedelta(hours=1),
    )
    values.update(overrides)
    return CalendarEvent(**values)


class TestThresholdWindow:

    @pytest.mark.alerts
    @pytest.mark.parametrize('minutes,expected', [
        (30, 30), (26, 30), (25, None),
        (10, 10), (6, 10),
        (5, 5), (1, 5),
        (0, 1), (-3, 1), (-4, 0), (-5, None),
    ])
    def test_fires_inside_grace_window(self, minutes, expected):
        match = check_alert_thresholds(event_starting_in(minutes), ALL_ON, NOW)
        assert (match[0] if match else None) == expected

    @pytest.mark.alerts
    def test_minutes_truncate_toward_zero(self):
        # 10m59s away truncates to 10
        assert check_alert_thresholds(event_starting_in(10, 59), ALL_ON, NOW)[0] == 10
        # 59s after start still counts as 0 minutes
        late = event_starting_in(0, -59, last_alert_threshold=1)
        assert check_alert_thresholds(late, ALL_ON, NOW) == (0, AlertType.MEETING)

    @pytest.mark.alerts
    def test_far_future_event_is_quiet(self):
        assert check_alert_thresholds(event_starting_in(45), ALL_ON, NOW) is None

    @pytest.mark.alerts
    def test_disabled_thresholds_are_skipped(self):
        defaults = Settings()
        assert check_alert_thresholds(event_starting_in(30), defaults, NOW) is None
        assert check_alert_thresholds(event_starting_in(5), defaults, NOW)[0] == 5

        quiet = Settings(alert_5m=False, alert_1m=False, alert_default=False)
        assert check_alert_thresholds(event_starting_in(5), quiet, NOW) is None

    @pytest.mark.alerts
    def test_grace_window_is_configurable(self):
        assert check_alert_thresholds(event_starting_in(27), ALL_ON, NOW, grace_minutes=2) is None
        assert check_alert_thresholds(event_starting_in(29), ALL_ON, NOW, grace_minutes=2)[0] == 30


class TestDescent:

    @pytest.mark.alerts
    def test_fired_threshold_never_repeats(self):
        assert check_alert_thresholds(event_starting_in(9, last_alert_threshold=10), ALL_ON, NOW) is None

    @pytest.mark.alerts
    def test_lower_threshold_still_fires(self):
        match = check_alert_thresholds(event_starting_in(5, last_alert_threshold=10), ALL_ON, NOW)
        assert match == (5, AlertType.WARNING_5M)

    @pytest.mark.alerts
    def test_skipped_thresholds_are_not_replayed(self):
        # 5 fired already; an older window for 10 must not reopen
        assert check_alert_thresholds(event_starting_in(6, last_alert_threshold=5), ALL_ON, NOW) is None

    @pytest.mark.alerts
    def test_every_enabled_threshold_fires_once_across_ticks(self):
        event = event_starting_in(35)
        fired = []

        # 30-second ticks from 35 minutes out until 5 minutes after start
        for tick in range(81):
            now = NOW + timedelta(seconds=30 * tick)
            match = check_alert_thresholds(event, ALL_ON, now)
            if match:
                fired.append(match[0])
                event.last_alert_threshold = match[0]

        assert fired == [30, 10, 5, 1, 0]

    @pytest.mark.alerts
    def test_only_enabled_thresholds_fire_across_ticks(self):
        event = event_starting_in(35)
        fired = []

        for tick in range(81):
            match = check_alert_thresholds(event, Settings(), NOW + timedelta(seconds=30 * tick))
            if match:
                fired.append(match[0])
                event.last_alert_threshold = match[0]

        assert fired == [5, 1, 0]


class TestAlertTypes:

    @pytest.mark.alerts
    def test_start_alert_for_plain_meeting(self):
        assert check_alert_thresholds(event_starting_in(0, last_alert_threshold=1), ALL_ON, NOW)[1] == AlertType.MEETING

    @pytest.mark.alerts
    def test_start_alert_for_video_meeting(self):
        event = event_starting_in(0, last_alert_threshold=1, video_link='https://zoom.us/j/1', video_platform='Zoom')
        assert check_alert_thresholds(event, ALL_ON, NOW)[1] == AlertType.VIDEO_MEETING

    @pytest.mark.alerts
    def test_warning_types(self):
        assert check_alert_thresholds(event_starting_in(30), ALL_ON, NOW)[1] == AlertType.WARNING_30M
        assert check_alert_thresholds(event_starting_in(1, last_alert_threshold=5), ALL_ON, NOW)[1] == AlertType.WARNING_1M

    @pytest.mark.alerts
    def test_dismissed_event_never_alerts(self):
        assert check_alert_thresholds(event_starting_in(5, is_dismissed=True), ALL_ON, NOW) is None

    @pytest.mark.unit
    @pytest.mark.parametrize("alert_type", list(AlertType))
    def test_every_type_has_label_and_sound(self, alert_type):
        assert isinstance(alert_type.label, str) and alert_type.label
        assert isinstance(alert_type.sound_key, str) and alert_type.sound_key


class TestSnoozeReminder:

    @pytest.mark.alerts
    def test_due_after_interval(self):
        event = event_starting_in(-1, snooze_count=1, last_snoozed_at=NOW - timedelta(minutes=2))
        assert check_snooze_reminder(event, Settings(snooze_interval=2), NOW)

    @pytest.mark.alerts
    def test_not_due_yet(self):
        event = event_starting_in(-1, snooze_count=1, last_snoozed_at=NOW - timedelta(seconds=90))
        assert not check_snooze_reminder(event, Settings(snooze_interval=2), NOW)

    @pytest.mark.alerts
    def test_not_snoozed(self):
        assert not check_snooze_reminder(event_starting_in(-1), Settings(), NOW)

    @pytest.mark.alerts
    def test_already_reminded(self):
        event = event_starting_in(
            -1, snooze_count=1, has_alerted=True, last_snoozed_at=NOW - timedelta(minutes=5)
        )
        assert not check_snooze_reminder(event, Settings(), NOW)

    @pytest.mark.alerts
    def test_dismissed(self):
        event = event_starting_in(
            -1, snooze_count=1, is_dismissed=True, last_snoozed_at=NOW - timedelta(minutes=5)
        )
        assert not check_snooze_reminder(event, Settings(), NOW)
