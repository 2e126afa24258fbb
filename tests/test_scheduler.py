"""
Scheduler tests - alert delivery, snooze/dismiss, resync and loop lifecycle
"""

import pytest
import time
from datetime import timedelta
from unittest.mock import MagicMock
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cal_ops.writer import EventReconciler
from models import AlertType, Settings, SyncSummary
from store.events import EventNotFoundError, EventStore, SnoozeLimitError
from store.settings import SettingsStore
from sync.engine import SyncError, SyncInProgressError
from sync.notifier import AlertTriggered, AudioPlayer, ErrorReported, Notifier, SyncCompleted
from sync.scheduler import AlertScheduler
from tests.conftest import NOW, make_candidate


class RecordingAudio(AudioPlayer):

    def __init__(self, fail=False):
        self.played = []
        self.fail = fail

    def play_alert(self, alert_type):
        self.played.append(alert_type)
        if self.fail:
            raise RuntimeError("no audio device")


class Clock:

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def audio():
    return RecordingAudio()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def engine():
    engine = MagicMock()
    engine.sync_all_accounts.return_value = SyncSummary(added=2, updated=1)
    return engine


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def scheduler(db, engine, audio, notifier, clock):
    scheduler = AlertScheduler(db, engine, audio, notifier, tick_interval=0.05, sync_interval=3600, clock=clock)
    yield scheduler
    scheduler.stop(timeout=2)


def add_event(db, account, **kwargs):
    candidate = make_candidate(**kwargs)
    EventReconciler(db).reconcile(account.id, [candidate])
    return EventStore(db).get_by_external_id(candidate.external_id, account.id)


def alerts_of(notifier):
    return [n for n in notifier.drain() if isinstance(n, AlertTriggered)]


class TestCheckAlerts:

    @pytest.mark.integration
    def test_threshold_fires_once(self, db, account, scheduler, audio, notifier):
        event = add_event(db, account, start=NOW + timedelta(minutes=5))

        fired = scheduler.check_alerts(NOW)
        again = scheduler.check_alerts(NOW + timedelta(seconds=30))

        assert [(a.event.id, a.alert_type, a.minutes_remaining) for a in fired] == [
            (event.id, AlertType.WARNING_5M, 5)
        ]
        assert again == []
        assert audio.played == [AlertType.WARNING_5M]
        assert [(n.event.id, n.threshold) for n in alerts_of(notifier)] == [(event.id, 5)]

        stored = EventStore(db).get_event(event.id)
        assert stored.last_alert_threshold == 5
        assert stored.has_alerted is True

    @pytest.mark.integration
    def test_audio_failure_does_not_block_notification(self, db, account, engine, notifier, clock):
        audio = RecordingAudio(fail=True)
        scheduler = AlertScheduler(db, engine, audio, notifier, clock=clock)
        event = add_event(db, account, start=NOW + timedelta(minutes=5))

        fired = scheduler.check_alerts(NOW)

        assert [a.alert_type for a in fired] == [AlertType.WARNING_5M]
        assert [n.event.id for n in alerts_of(notifier)] == [event.id]
        assert EventStore(db).get_event(event.id).last_alert_threshold == 5

    @pytest.mark.integration
    def test_dismissed_event_is_silent(self, db, account, scheduler, audio):
        event = add_event(db, account, start=NOW + timedelta(minutes=5))
        scheduler.dismiss(event.id)

        assert scheduler.check_alerts(NOW) == []
        assert audio.played == []

    @pytest.mark.integration
    def test_uses_stored_settings(self, db, account, scheduler):
        SettingsStore(db).update_settings(Settings(alert_30m=True))
        add_event(db, account, start=NOW + timedelta(minutes=28))

        assert [a.alert_type for a in scheduler.check_alerts(NOW)] == [AlertType.WARNING_30M]

    @pytest.mark.integration
    def test_start_alert_for_video_meeting(self, db, account, scheduler):
        add_event(
            db, account, start=NOW - timedelta(seconds=20),
            video_link='https://zoom.us/j/42', video_platform='Zoom'
        )
        # the 1-minute window also covers 0 minutes
        SettingsStore(db).update_settings(Settings(alert_1m=False))

        assert [a.alert_type for a in scheduler.check_alerts(NOW)] == [AlertType.VIDEO_MEETING]

    @pytest.mark.integration
    def test_start_alert_after_three_minutes(self, db, account, scheduler, audio):
        """Only the 30-minute and start alerts enabled, event 3 minutes away"""
        SettingsStore(db).update_settings(Settings(
            alert_30m=True, alert_10m=False, alert_5m=False, alert_1m=False, alert_default=True
        ))
        add_event(db, account, start=NOW + timedelta(minutes=3))

        fired = []
        for tick in range(16):
            fired.extend(scheduler.check_alerts(NOW + timedelta(seconds=30 * tick)))

        assert [a.alert_type for a in fired] == [AlertType.MEETING]
        assert fired[0].minutes_remaining == 0
        assert audio.played == [AlertType.MEETING]

    @pytest.mark.integration
    def test_thresholds_descend_across_ticks(self, db, account, scheduler):
        SettingsStore(db).update_settings(Settings(alert_10m=True))
        event = add_event(db, account, start=NOW + timedelta(minutes=12))
        events = EventStore(db)

        seen = []
        for tick in range(30):
            scheduler.check_alerts(NOW + timedelta(seconds=30 * tick))
            seen.append(events.get_event(event.id).last_alert_threshold)

        recorded = [t for t in seen if t is not None]
        assert recorded == sorted(recorded, reverse=True)
        assert set(recorded) == {10, 5, 1, 0}


class TestSnoozeAndDismiss:

    @pytest.mark.integration
    def test_snooze_reminder_fires_after_interval(self, db, account, scheduler, clock, notifier):
        event = add_event(db, account, start=NOW - timedelta(minutes=1))
        EventStore(db).record_alert_threshold(event.id, 0)

        assert scheduler.snooze(event.id) == 1
        assert scheduler.check_alerts(NOW + timedelta(minutes=1)) == []

        fired = scheduler.check_alerts(NOW + timedelta(minutes=2))
        assert [a.alert_type for a in fired] == [AlertType.SNOOZE_REMINDER]
        assert [n.threshold for n in alerts_of(notifier)] == [None]
        assert scheduler.check_alerts(NOW + timedelta(minutes=3)) == []

    @pytest.mark.integration
    def test_snooze_limit(self, db, account, scheduler):
        SettingsStore(db).update_settings(Settings(max_snoozes=2))
        event = add_event(db, account)

        scheduler.snooze(event.id)
        scheduler.snooze(event.id)
        with pytest.raises(SnoozeLimitError):
            scheduler.snooze(event.id)

    @pytest.mark.integration
    def test_snooze_limit_is_capped(self, db, account, scheduler):
        SettingsStore(db).update_settings(Settings(max_snoozes=10))
        event = add_event(db, account)

        for _ in range(3):
            scheduler.snooze(event.id)
        with pytest.raises(SnoozeLimitError):
            scheduler.snooze(event.id)

    @pytest.mark.integration
    def test_dismiss_unknown_event(self, scheduler):
        with pytest.raises(EventNotFoundError):
            scheduler.dismiss(404)


class TestManualAlert:

    @pytest.mark.integration
    def test_replays_without_bookkeeping(self, db, account, scheduler, audio, notifier):
        event = add_event(db, account, start=NOW + timedelta(hours=3))

        info = scheduler.trigger_manual_alert(event.id)

        assert info.alert_type == AlertType.MEETING
        assert info.minutes_remaining == 180
        assert audio.played == [AlertType.MEETING]
        assert [n.threshold for n in alerts_of(notifier)] == [None]
        assert EventStore(db).get_event(event.id).last_alert_threshold is None

    @pytest.mark.integration
    def test_unknown_event(self, scheduler):
        with pytest.raises(EventNotFoundError):
            scheduler.trigger_manual_alert(12345)


class TestSync:

    @pytest.mark.unit
    def test_completed_sync_is_published(self, scheduler, notifier):
        summary = scheduler.run_sync()

        assert (summary.added, summary.updated) == (2, 1)
        assert notifier.drain() == [SyncCompleted(2, 1)]

    @pytest.mark.unit
    def test_failed_sync_is_published(self, scheduler, engine, notifier):
        engine.sync_all_accounts.side_effect = SyncError("All accounts failed to sync: account 1: HTTP 500")

        assert scheduler.run_sync() is None
        [error] = notifier.drain()
        assert isinstance(error, ErrorReported)
        assert "All accounts failed" in error.message

    @pytest.mark.unit
    def test_overlapping_sync_is_skipped_quietly(self, scheduler, engine, notifier):
        engine.sync_all_accounts.side_effect = SyncInProgressError("Sync already in progress")

        assert scheduler.run_sync() is None
        assert notifier.drain() == []

    @pytest.mark.integration
    def test_cycle_survives_storage_failure(self, scheduler, notifier):
        scheduler.events = MagicMock()
        scheduler.events.get_events_in_window.side_effect = RuntimeError("disk I/O error")

        scheduler.run_cycle()

        [error] = notifier.drain()
        assert isinstance(error, ErrorReported)
        assert "disk I/O error" in error.message


class TestLifecycle:

    @pytest.mark.integration
    def test_start_syncs_then_stops_promptly(self, db, engine, audio, notifier, clock):
        scheduler = AlertScheduler(db, engine, audio, notifier, tick_interval=30, sync_interval=3600, clock=clock)
        scheduler.start()
        try:
            deadline = time.monotonic() + 5
            while not engine.sync_all_accounts.called and time.monotonic() < deadline:
                time.sleep(0.01)
            assert engine.sync_all_accounts.call_count == 1
            assert scheduler.is_running()
        finally:
            started = time.monotonic()
            scheduler.stop(timeout=5)

        # the 30s tick sleep is interrupted by the shutdown signal
        assert time.monotonic() - started < 5
        assert not scheduler.is_running()

    @pytest.mark.storage
    def test_resync_interval_comes_from_stored_settings(self, db, engine, audio, notifier, clock):
        SettingsStore(db).update_settings(Settings(sync_interval=120))

        scheduler = AlertScheduler(db, engine, audio, notifier, clock=clock)

        assert scheduler.sync_interval == 120
        assert [job.interval for job in scheduler.jobs.jobs] == [120]

    @pytest.mark.storage
    def test_explicit_interval_overrides_stored_settings(self, db, engine, audio, notifier, clock):
        SettingsStore(db).update_settings(Settings(sync_interval=120))

        scheduler = AlertScheduler(db, engine, audio, notifier, sync_interval=45, clock=clock)

        assert scheduler.jobs.jobs[0].interval == 45

    @pytest.mark.integration
    def test_start_without_initial_sync(self, scheduler, engine):
        scheduler.start(sync_on_start=False)
        time.sleep(0.2)
        scheduler.stop(timeout=2)

        engine.sync_all_accounts.assert_not_called()

    @pytest.mark.integration
    def test_start_twice_keeps_one_thread(self, scheduler):
        scheduler.start(sync_on_start=False)
        thread = scheduler.scheduler_thread
        scheduler.start(sync_on_start=False)

        assert scheduler.scheduler_thread is thread
