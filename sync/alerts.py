# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Alert Rules - Threshold and snooze evaluation for a single event
"""
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

import config
from models import AlertType, CalendarEvent, Settings

# (minutes before start, settings flag, alert type), highest first.
# The 0-minute alert type depends on whether the event has a video link.
THRESHOLDS: List[Tuple[int, str, Optional[AlertType]]] = [
    (30, 'alert_30m', AlertType.WARNING_30M),
    (10, 'alert_10m', AlertType.WARNING_10M),
    (5, 'alert_5m', AlertType.WARNING_5M),
    (1, 'alert_1m', AlertType.WARNING_1M),
    (0, 'alert_default', None),
]


def start_alert_type(event: CalendarEvent) -> AlertType:
    return AlertType.VIDEO_MEETING if event.is_video_meeting else AlertType.MEETING


def check_alert_thresholds(
    event: CalendarEvent,
    settings: Settings,
    now: datetime,
    grace_minutes: int = config.ALERT_GRACE_MINUTES
) -> Optional[Tuple[int, AlertType]]:
    """
    Pick the threshold that should fire for an event on this tick

    A threshold T fires when it is enabled, the event is inside
    (T - grace, T] minutes away, and no threshold <= T has fired yet.

    Returns:
        (threshold, alert type) for the highest eligible threshold, or None
    """
    if event.is_dismissed:
        return None

    minutes_until = event.minutes_until_start(now)
    last = event.last_alert_threshold

    for threshold, flag, alert_type in THRESHOLDS:
        if not getattr(settings, flag):
            continue
        if not (threshold - grace_minutes < minutes_until <= threshold):
            continue
        if last is not None and last <= threshold:
            continue
        return threshold, alert_type or start_alert_type(event)

    return None


def check_snooze_reminder(event: CalendarEvent, settings: Settings, now: datetime) -> bool:
    """True once a snoozed event's snooze interval has elapsed"""
    if event.is_dismissed or event.has_alerted or event.snooze_count <= 0:
        return False
    if event.last_snoozed_at is None:
        return False
    return now >= event.last_snoozed_at + timedelta(minutes=settings.snooze_interval)
