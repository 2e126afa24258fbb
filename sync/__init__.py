# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Sync orchestration and the background alert scheduler
"""
from sync.engine import SyncEngine, SyncError, SyncInProgressError
from sync.alerts import THRESHOLDS, check_alert_thresholds, check_snooze_reminder
from sync.notifier import (
    AlertTriggered,
    AudioPlayer,
    ErrorReported,
    LoggingAudioPlayer,
    MonitorEvent,
    Notifier,
    SyncCompleted,
)
from sync.scheduler import AlertScheduler

__all__ = [
    'SyncEngine',
    'SyncError',
    'SyncInProgressError',
    'THRESHOLDS',
    'check_alert_thresholds',
    'check_snooze_reminder',
    'AlertTriggered',
    'AudioPlayer',
    'ErrorReported',
    'LoggingAudioPlayer',
    'MonitorEvent',
    'Notifier',
    'SyncCompleted',
    'AlertScheduler',
]
