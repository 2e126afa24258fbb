# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Feed Parser - Normalize raw ICS text into candidate events with UTC times
"""
import hashlib
import logging
from datetime import datetime, timedelta, tzinfo
from typing import List, Optional

from icalendar import Calendar

from models import CandidateEvent
from utils.meeting_links import extract_video_link
from utils.timezone import resolve_datetime

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Event"
DEFAULT_DURATION = timedelta(hours=1)


class FeedParseError(ValueError):
    """The document as a whole is not an iCalendar"""
    transient = False


class FeedNormalizer:
    """
    Turns one feed document into CandidateEvents

    Malformed entries are skipped and logged; the rest of the feed still
    goes through.
    """

    def __init__(self, id_prefix: str = "ics", local_tz: Optional[tzinfo] = None):
        """
        Args:
            id_prefix: Tag prepended to derived ids for entries without a UID
            local_tz: Zone for floating and all-day times (host zone if None)
        """
        self.id_prefix = id_prefix
        self.local_tz = local_tz

    def normalize(self, raw_text: str) -> List[CandidateEvent]:
        """Parse a feed document; raises FeedParseError only if it is not iCalendar at all"""
        if not raw_text or not raw_text.strip():
            logger.info("Feed is empty, no events to parse")
            return []

        try:
            calendar = Calendar.from_ical(raw_text)
        except ValueError as e:
            raise FeedParseError(f"Failed to parse ICS data: {e}") from e

        events = []
        skipped = 0
        for component in calendar.walk('VEVENT'):
            try:
                candidate = self._convert(component)
            except (ValueError, TypeError, AttributeError, KeyError) as e:
                skipped += 1
                logger.warning(f"⚠️ Skipping malformed entry {component.get('UID', '<no uid>')}: {e}")
                continue

            if candidate is None:
                skipped += 1
                continue
            events.append(candidate)

        if not events:
            logger.warning(
                f"⚠️ Parsed 0 events. ICS data size: {len(raw_text)} bytes. "
                f"First 100 chars: {raw_text[:100]!r}"
            )
        else:
            logger.info(f"Parsed {len(events)} events from ICS data ({skipped} skipped)")

        return events

    def _property_value(self, component, name: str):
        """Decoded value of a property, or None if it is absent or unparseable"""
        prop = component.get(name)
        if prop is None:
            return None
        try:
            return prop.dt
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"⚠️ Ignoring unreadable {name} on {component.get('UID', '<no uid>')}: {e}")
            return None

    def _resolve(self, component, name: str) -> Optional[datetime]:
        value = self._property_value(component, name)
        if value is None:
            return None
        return resolve_datetime(value, component[name].params.get('TZID'), self.local_tz)

    def _convert(self, component) -> Optional[CandidateEvent]:
        title = str(component.get('SUMMARY') or '').strip() or DEFAULT_TITLE
        description = component.get('DESCRIPTION')
        description = str(description) if description is not None else None
        location = component.get('LOCATION')
        location = str(location) if location is not None else None

        start_time = self._resolve(component, 'DTSTART')
        if start_time is None:
            logger.warning(f"⚠️ Dropping '{title}': start time could not be resolved")
            return None

        end_time = self._resolve(component, 'DTEND')
        if end_time is None:
            duration = self._property_value(component, 'DURATION')
            if isinstance(duration, timedelta):
                end_time = start_time + duration
            else:
                end_time = start_time + DEFAULT_DURATION

        video = extract_video_link(description, location)

        return CandidateEvent(
            external_id=self._external_id(component, title, start_time),
            title=title,
            description=description,
            start_time=start_time,
            end_time=end_time,
            video_link=video.url if video else None,
            video_platform=video.platform if video else None,
        )

    def _external_id(self, component, title: str, start_time: datetime) -> str:
        uid = component.get('UID')
        if uid is None or not str(uid).strip():
            # Stable across syncs as long as title and start are unchanged
            digest = hashlib.sha256(f"{title}{int(start_time.timestamp())}".encode('utf-8')).hexdigest()
            return f"{self.id_prefix}-{digest[:16]}"

        external_id = str(uid).strip()
        recurrence_id = self._resolve(component, 'RECURRENCE-ID')
        if recurrence_id is not None:
            external_id = f"{external_id}#{recurrence_id.strftime('%Y%m%dT%H%M%SZ')}"
        return external_id
