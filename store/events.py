# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Event Store - Persistence for calendar events and their alert bookkeeping
"""
import logging
import sqlite3
from datetime import datetime, time
from typing import List, Optional

import pytz

from models import CalendarEvent, CandidateEvent
from store.db import Database
from utils.timezone import from_db_timestamp, to_db_timestamp, utc_now

logger = logging.getLogger(__name__)

_EVENT_COLUMNS = """
    id, external_id, account_id, title, description, start_time, end_time,
    video_link, video_platform, snooze_count, has_alerted, last_alert_threshold,
    is_dismissed, last_snoozed_at, created_at, updated_at
"""


class EventNotFoundError(LookupError):
    """No event row with the requested id"""

    def __init__(self, event_id):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class SnoozeLimitError(Exception):
    """The event has already been snoozed the maximum number of times"""
    pass


def row_to_event(row: sqlite3.Row) -> CalendarEvent:
    return CalendarEvent(
        id=row['id'],
        external_id=row['external_id'],
        account_id=row['account_id'],
        title=row['title'],
        description=row['description'],
        start_time=from_db_timestamp(row['start_time']),
        end_time=from_db_timestamp(row['end_time']),
        video_link=row['video_link'],
        video_platform=row['video_platform'],
        snooze_count=row['snooze_count'],
        has_alerted=bool(row['has_alerted']),
        last_alert_threshold=row['last_alert_threshold'],
        is_dismissed=bool(row['is_dismissed']),
        last_snoozed_at=from_db_timestamp(row['last_snoozed_at']),
        created_at=from_db_timestamp(row['created_at']),
        updated_at=from_db_timestamp(row['updated_at']),
    )


# Connection-level helpers, used inside reconciliation transactions

def find_by_external_id(conn: sqlite3.Connection, external_id: str, account_id: int) -> Optional[CalendarEvent]:
    row = conn.execute(
        f"SELECT {_EVENT_COLUMNS} FROM events WHERE external_id = ? AND account_id = ?",
        (external_id, account_id)
    ).fetchone()
    return row_to_event(row) if row else None


def insert_event(conn: sqlite3.Connection, account_id: int, candidate: CandidateEvent, now: datetime) -> int:
    """Insert a new row; alert fields take their column defaults"""
    stamp = to_db_timestamp(now)
    cursor = conn.execute(
        """
        INSERT INTO events (
            external_id, account_id, title, description, start_time, end_time,
            video_link, video_platform, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            candidate.external_id, account_id, candidate.title, candidate.description,
            to_db_timestamp(candidate.start_time), to_db_timestamp(candidate.end_time),
            candidate.video_link, candidate.video_platform, stamp, stamp
        )
    )
    return cursor.lastrowid


def update_event_content(conn: sqlite3.Connection, event_id: int, candidate: CandidateEvent, now: datetime):
    """Overwrite content fields only; alert, snooze and dismiss state are left alone"""
    conn.execute(
        """
        UPDATE events
        SET title = ?, description = ?, start_time = ?, end_time = ?,
            video_link = ?, video_platform = ?, updated_at = ?
        WHERE id = ?
        """,
        (
            candidate.title, candidate.description,
            to_db_timestamp(candidate.start_time), to_db_timestamp(candidate.end_time),
            candidate.video_link, candidate.video_platform, to_db_timestamp(now), event_id
        )
    )


class EventStore:
    """Event queries and alert-state mutations"""

    def __init__(self, db: Database):
        self.db = db

    def get_event(self, event_id: int) -> Optional[CalendarEvent]:
        row = self.db.read(lambda conn: conn.execute(
            f"SELECT {_EVENT_COLUMNS} FROM events WHERE id = ?", (event_id,)
        ).fetchone())
        return row_to_event(row) if row else None

    def get_by_external_id(self, external_id: str, account_id: int) -> Optional[CalendarEvent]:
        return self.db.read(lambda conn: find_by_external_id(conn, external_id, account_id))

    def list_events(self, account_id: Optional[int] = None) -> List[CalendarEvent]:
        def _query(conn):
            if account_id is None:
                return conn.execute(f"SELECT {_EVENT_COLUMNS} FROM events ORDER BY start_time").fetchall()
            return conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE account_id = ? ORDER BY start_time",
                (account_id,)
            ).fetchall()
        return [row_to_event(row) for row in self.db.read(_query)]

    def get_events_in_window(self, start: datetime, end: datetime) -> List[CalendarEvent]:
        """Non-dismissed events starting within [start, end], earliest first"""
        rows = self.db.read(lambda conn: conn.execute(
            f"""
            SELECT {_EVENT_COLUMNS} FROM events
            WHERE start_time >= ? AND start_time <= ? AND is_dismissed = 0
            ORDER BY start_time ASC
            """,
            (to_db_timestamp(start), to_db_timestamp(end))
        ).fetchall())
        return [row_to_event(row) for row in rows]

    def get_upcoming(self, now: Optional[datetime] = None) -> List[CalendarEvent]:
        """Remaining non-dismissed events for the current UTC day"""
        now = now or utc_now()
        end_of_day = pytz.UTC.localize(
            datetime.combine(now.astimezone(pytz.UTC).date(), time(23, 59, 59))
        )
        return self.get_events_in_window(now, end_of_day)

    def record_alert_threshold(self, event_id: int, threshold: int) -> bool:
        """
        Persist a fired threshold

        Only succeeds while the stored threshold is unset or strictly greater,
        so thresholds can only descend. Returns False if the guard rejected it.
        """
        def _update(conn):
            return conn.execute(
                """
                UPDATE events SET last_alert_threshold = ?, has_alerted = 1
                WHERE id = ? AND (last_alert_threshold IS NULL OR last_alert_threshold > ?)
                """,
                (threshold, event_id, threshold)
            ).rowcount

        return self.db.transaction(_update) == 1

    def mark_alerted(self, event_id: int) -> bool:
        """Set has_alerted; False if it was already set or the event is gone"""
        def _update(conn):
            return conn.execute(
                "UPDATE events SET has_alerted = 1 WHERE id = ? AND has_alerted = 0",
                (event_id,)
            ).rowcount

        return self.db.transaction(_update) == 1

    def snooze_event(self, event_id: int, max_snoozes: int, now: Optional[datetime] = None) -> int:
        """
        Snooze an event so it alerts again after the snooze interval

        Returns:
            The new snooze count

        Raises:
            EventNotFoundError: Unknown event id
            SnoozeLimitError: Already snoozed max_snoozes times
        """
        stamp = to_db_timestamp(now or utc_now())

        def _snooze(conn):
            row = conn.execute("SELECT snooze_count FROM events WHERE id = ?", (event_id,)).fetchone()
            if row is None:
                raise EventNotFoundError(event_id)
            if row['snooze_count'] >= max_snoozes:
                raise SnoozeLimitError(f"Maximum snooze limit reached ({max_snoozes})")

            conn.execute(
                """
                UPDATE events
                SET snooze_count = snooze_count + 1, last_snoozed_at = ?, has_alerted = 0
                WHERE id = ?
                """,
                (stamp, event_id)
            )
            return row['snooze_count'] + 1

        count = self.db.transaction(_snooze)
        logger.info(f"😴 Snoozed event {event_id} ({count}/{max_snoozes})")
        return count

    def dismiss_event(self, event_id: int):
        """One-way latch; a dismissed event never alerts again"""
        def _dismiss(conn):
            return conn.execute("UPDATE events SET is_dismissed = 1 WHERE id = ?", (event_id,)).rowcount

        if self.db.transaction(_dismiss) == 0:
            raise EventNotFoundError(event_id)
        logger.info(f"Dismissed event {event_id}")

