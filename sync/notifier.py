# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Notifier - Outbound notification channel and the audio collaborator interface
"""
import logging
import queue
from dataclasses import dataclass
from typing import List, Optional, Union

from models import AlertType, CalendarEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertTriggered:
    event: CalendarEvent
    alert_type: AlertType
    threshold: Optional[int] = None  # None for manual and snooze alerts


@dataclass(frozen=True)
class SyncCompleted:
    added: int
    updated: int


@dataclass(frozen=True)
class ErrorReported:
    message: str


MonitorEvent = Union[AlertTriggered, SyncCompleted, ErrorReported]


class Notifier:
    """Thread-safe channel from the background scheduler to the UI"""

    def __init__(self, maxsize: int = 1000):
        self._queue: "queue.Queue[MonitorEvent]" = queue.Queue(maxsize=maxsize)

    def publish(self, event: MonitorEvent):
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning(f"⚠️ Notification queue full, dropping {type(event).__name__}")

    def get(self, block: bool = True, timeout: Optional[float] = None) -> Optional[MonitorEvent]:
        try:
            return self._queue.get(block=block, timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[MonitorEvent]:
        """Return every pending notification without blocking"""
        events = []
        while True:
            event = self.get(block=False)
            if event is None:
                return events
            events.append(event)


class AudioPlayer:
    """Audio collaborator; playback itself lives outside this package"""

    def play_alert(self, alert_type: AlertType):
        raise NotImplementedError


class LoggingAudioPlayer(AudioPlayer):
    """Stand-in player that only records which sound would play"""

    def play_alert(self, alert_type: AlertType):
        logger.info(f"🔔 Playing '{alert_type.sound_key}' for {alert_type.label}")
