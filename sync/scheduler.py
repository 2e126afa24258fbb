# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Background Scheduler - Alert ticks plus periodic feed resync
"""
import logging
import threading
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, List, Optional

import schedule

import config
from models import AlertInfo, AlertType, CalendarEvent, SyncSummary
from store.db import Database
from store.events import EventNotFoundError, EventStore
from store.settings import SettingsStore
from sync.alerts import check_alert_thresholds, check_snooze_reminder, start_alert_type
from sync.engine import SyncEngine, SyncError, SyncInProgressError
from sync.notifier import AlertTriggered, AudioPlayer, ErrorReported, Notifier, SyncCompleted
from utils.timezone import utc_now

logger = logging.getLogger(__name__)


class AlertScheduler:
    """
    Runs the alert state machine on a fixed tick and resyncs feeds less often

    The loop checks a shutdown signal before each cycle and sleeps on that
    same signal, so stop() returns as soon as any in-flight cycle finishes.
    """

    def __init__(
        self,
        db: Database,
        sync_engine: SyncEngine,
        audio: AudioPlayer,
        notifier: Notifier,
        tick_interval: Optional[float] = None,
        sync_interval: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.events = EventStore(db)
        self.settings = SettingsStore(db)
        self.sync_engine = sync_engine
        self.audio = audio
        self.notifier = notifier
        self.tick_interval = tick_interval if tick_interval is not None else config.ALERT_TICK_SECONDS
        if sync_interval is None:
            sync_interval = self.settings.get_settings().sync_interval
        self.sync_interval = max(1, int(sync_interval))
        self.clock = clock

        self.lookback = timedelta(minutes=config.ALERT_LOOKBACK_MINUTES)
        self.lookahead = timedelta(minutes=config.ALERT_LOOKAHEAD_MINUTES)

        self.jobs = schedule.Scheduler()
        self.jobs.every(self.sync_interval).seconds.do(self.run_sync)

        self.scheduler_lock = Lock()
        self.scheduler_thread: Optional[threading.Thread] = None
        self._shutdown = threading.Event()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, sync_on_start: bool = True):
        """Start the scheduler thread"""
        with self.scheduler_lock:
            if self.scheduler_thread is not None and self.scheduler_thread.is_alive():
                logger.info("Scheduler already running")
                return

            self._shutdown.clear()
            self.scheduler_thread = threading.Thread(
                target=self._run_scheduler, args=(sync_on_start,), name="alert-scheduler", daemon=True
            )
            self.scheduler_thread.start()
            logger.info(
                f"Scheduler started - alert tick every {self.tick_interval}s, "
                f"resync every {self.sync_interval}s"
            )

    def stop(self, timeout: Optional[float] = None):
        """Signal shutdown and wait for the current cycle to finish"""
        self._shutdown.set()
        with self.scheduler_lock:
            thread = self.scheduler_thread
        if thread is not None:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Scheduler thread did not stop in time")
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        with self.scheduler_lock:
            return bool(self.scheduler_thread and self.scheduler_thread.is_alive())

    def _run_scheduler(self, sync_on_start: bool):
        if sync_on_start and not self._shutdown.is_set():
            self.jobs.run_all()

        while not self._shutdown.is_set():
            self.run_cycle()
            if self._shutdown.wait(self.tick_interval):
                break

    def run_cycle(self):
        """One tick: resync if due, then evaluate alerts. Never raises."""
        try:
            self.jobs.run_pending()
        except Exception as e:
            logger.exception(f"❌ Scheduled resync crashed: {e}")
            self.notifier.publish(ErrorReported(f"Sync failed: {e}"))

        try:
            self.check_alerts()
        except Exception as e:
            # Don't let a storage hiccup kill the loop
            logger.exception(f"❌ Alert check failed: {e}")
            self.notifier.publish(ErrorReported(f"Alert check failed: {e}"))

    # =========================================================================
    # SYNC
    # =========================================================================

    def run_sync(self) -> Optional[SyncSummary]:
        """Resync every account and report the outcome on the notifier"""
        try:
            summary = self.sync_engine.sync_all_accounts()
        except SyncInProgressError:
            logger.info("Sync already in progress, skipping scheduled resync")
            return None
        except SyncError as e:
            logger.error(f"❌ Scheduled sync failed: {e}")
            self.notifier.publish(ErrorReported(str(e)))
            return None

        self.notifier.publish(SyncCompleted(summary.added, summary.updated))
        return summary

    # =========================================================================
    # ALERTS
    # =========================================================================

    def check_alerts(self, now: Optional[datetime] = None) -> List[AlertInfo]:
        """
        Evaluate every event in the alert window and fire what is due

        Thresholds are persisted before audio and notification so a crash
        in between can never make the same threshold fire twice.
        """
        now = now or self.clock()
        settings = self.settings.get_settings()
        fired = []

        for event in self.events.get_events_in_window(now - self.lookback, now + self.lookahead):
            minutes = event.minutes_until_start(now)

            match = check_alert_thresholds(event, settings, now)
            if match is not None:
                threshold, alert_type = match
                if not self.events.record_alert_threshold(event.id, threshold):
                    logger.debug(f"Threshold {threshold} for event {event.id} already recorded")
                    continue
                event.last_alert_threshold = threshold
                event.has_alerted = True
                fired.append(self._deliver(event, alert_type, minutes, threshold))
                continue

            if check_snooze_reminder(event, settings, now) and self.events.mark_alerted(event.id):
                event.has_alerted = True
                fired.append(self._deliver(event, AlertType.SNOOZE_REMINDER, minutes))

        return fired

    def snooze(self, event_id: int) -> int:
        """Snooze an alerted event; the reminder fires after the snooze interval"""
        settings = self.settings.get_settings()
        limit = min(settings.max_snoozes, config.SNOOZE_LIMIT)
        return self.events.snooze_event(event_id, limit, self.clock())

    def dismiss(self, event_id: int):
        self.events.dismiss_event(event_id)

    def trigger_manual_alert(self, event_id: int) -> AlertInfo:
        """
        Fire an event's start alert now, outside threshold bookkeeping

        Raises:
            EventNotFoundError: Unknown event id
        """
        event = self.events.get_event(event_id)
        if event is None:
            raise EventNotFoundError(event_id)

        logger.info(f"Manual alert for event {event_id}")
        return self._deliver(event, start_alert_type(event), event.minutes_until_start(self.clock()))

    def _deliver(
        self,
        event: CalendarEvent,
        alert_type: AlertType,
        minutes: int,
        threshold: Optional[int] = None
    ) -> AlertInfo:
        logger.info(f"🔔 {alert_type.label}: '{event.title}' (event {event.id}, {minutes} min)")

        try:
            self.audio.play_alert(alert_type)
        except Exception as e:
            logger.error(f"❌ Audio playback failed for {alert_type.value}: {e}")

        self.notifier.publish(AlertTriggered(event, alert_type, threshold))
        return AlertInfo(event, alert_type, minutes)
