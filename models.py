# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Data models for Chime Sync
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

import config

# =============================================================================
# ACCOUNTS
# =============================================================================


class CalendarProvider(Enum):
    """Feed origin; also selects the circuit breaker profile"""
    GOOGLE = "google"
    PROTON = "proton"

    @property
    def service_name(self) -> str:
        return f"{self.value}_calendar"


@dataclass
class Account:
    id: int
    provider: CalendarProvider
    account_name: str
    auth_data: str  # the ICS feed URL
    last_synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def service_name(self) -> str:
        return self.provider.service_name


# =============================================================================
# EVENTS
# =============================================================================


@dataclass(frozen=True)
class VideoMeetingInfo:
    platform: str
    url: str
    meeting_id: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class CandidateEvent:
    """A normalized feed entry, not yet reconciled against storage"""
    external_id: str
    title: str
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None
    video_link: Optional[str] = None
    video_platform: Optional[str] = None


@dataclass
class CalendarEvent:
    """A persisted event row including its alert bookkeeping"""
    id: int
    external_id: str
    account_id: int
    title: str
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None
    video_link: Optional[str] = None
    video_platform: Optional[str] = None
    snooze_count: int = 0
    has_alerted: bool = False
    last_alert_threshold: Optional[int] = None
    is_dismissed: bool = False
    last_snoozed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_video_meeting(self) -> bool:
        return bool(self.video_link)

    def minutes_until_start(self, now: datetime) -> int:
        """Whole minutes until start, truncated toward zero"""
        return int((self.start_time - now).total_seconds() / 60)

    def content_differs(self, candidate: CandidateEvent) -> bool:
        """True when any reconcilable field differs from the candidate"""
        return (
            self.title != candidate.title
            or self.description != candidate.description
            or self.start_time != candidate.start_time
            or self.end_time != candidate.end_time
            or self.video_link != candidate.video_link
        )


# =============================================================================
# ALERTS
# =============================================================================


class AlertType(Enum):
    WARNING_30M = "warning_30m"
    WARNING_10M = "warning_10m"
    WARNING_5M = "warning_5m"
    WARNING_1M = "warning_1m"
    MEETING = "meeting"
    VIDEO_MEETING = "video_meeting"
    TEST = "test"
    SNOOZE_REMINDER = "snooze_reminder"

    @property
    def label(self) -> str:
        return _ALERT_LABELS[self]

    @property
    def sound_key(self) -> str:
        return _ALERT_SOUNDS[self]


_ALERT_LABELS = {
    AlertType.WARNING_30M: "Starting in 30 minutes",
    AlertType.WARNING_10M: "Starting in 10 minutes",
    AlertType.WARNING_5M: "Starting in 5 minutes",
    AlertType.WARNING_1M: "Starting in 1 minute",
    AlertType.MEETING: "Meeting starting",
    AlertType.VIDEO_MEETING: "Video meeting starting",
    AlertType.TEST: "Test alert",
    AlertType.SNOOZE_REMINDER: "Snooze reminder",
}

_ALERT_SOUNDS = {
    AlertType.WARNING_30M: "chime_soft",
    AlertType.WARNING_10M: "chime_soft",
    AlertType.WARNING_5M: "chime",
    AlertType.WARNING_1M: "chime",
    AlertType.MEETING: "alert",
    AlertType.VIDEO_MEETING: "alert_video",
    AlertType.TEST: "alert",
    AlertType.SNOOZE_REMINDER: "chime",
}


@dataclass(frozen=True)
class AlertInfo:
    event: CalendarEvent
    alert_type: AlertType
    minutes_remaining: int


# =============================================================================
# SETTINGS
# =============================================================================


@dataclass
class Settings:
    """Flat key/value projection of user preferences"""
    sound: str = "bells"
    volume: float = 0.7
    video_alert_offset: int = 3
    regular_alert_offset: int = 1
    snooze_interval: int = 2
    max_snoozes: int = config.SNOOZE_LIMIT
    sync_interval: int = config.SYNC_INTERVAL_SECONDS
    auto_join_enabled: bool = False
    theme: str = "dark"
    alert_30m: bool = False
    alert_10m: bool = False
    alert_5m: bool = True
    alert_1m: bool = True
    alert_default: bool = True


# =============================================================================
# SYNC RESULTS
# =============================================================================


@dataclass
class SyncResult:
    account_id: int
    success: bool
    events_added: int = 0
    events_updated: int = 0
    error_message: Optional[str] = None
    sync_time: Optional[datetime] = None

    @classmethod
    def with_counts(cls, account_id: int, added: int, updated: int,
                    sync_time: Optional[datetime] = None) -> 'SyncResult':
        return cls(account_id, True, added, updated, None, sync_time)

    @classmethod
    def with_error(cls, account_id: int, error: str,
                   sync_time: Optional[datetime] = None) -> 'SyncResult':
        return cls(account_id, False, 0, 0, error, sync_time)


@dataclass
class SyncSummary:
    added: int = 0
    updated: int = 0
    results: List[SyncResult] = field(default_factory=list)

    @property
    def failed(self) -> List[SyncResult]:
        return [r for r in self.results if not r.success]
