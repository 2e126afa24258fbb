"""
Shared fixtures: temporary database, accounts and event builders
"""

import pytest
from datetime import datetime, timedelta
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytz

from models import CalendarProvider, CandidateEvent
from store.accounts import AccountStore
from store.db import Database

FEED_URL = 'https://calendar.example.com/feed.ics'
NOW = datetime(2024, 3, 15, 14, 0, 0, tzinfo=pytz.UTC)


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / 'chimesync-test.db'), pool_size=3, pool_timeout=2.0)
    yield database
    database.close()


@pytest.fixture
def account(db):
    return AccountStore(db).add_account(CalendarProvider.GOOGLE, 'Work', FEED_URL)


def make_candidate(external_id='evt-1', title='Team Meeting', start=None, minutes=60, **overrides):
    start = start or NOW + timedelta(hours=1)
    values = dict(
        external_id=external_id,
        title=title,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        description=None,
        video_link=None,
        video_platform=None,
    )
    values.update(overrides)
    return CandidateEvent(**values)
