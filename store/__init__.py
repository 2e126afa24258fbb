# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Local SQLite storage for accounts, events and settings
"""
from store.db import Database, StoragePoolTimeoutError, with_db_retry
from store.events import EventNotFoundError, EventStore, SnoozeLimitError
from store.accounts import AccountStore
from store.settings import SettingsStore

__all__ = [
    'Database',
    'StoragePoolTimeoutError',
    'with_db_retry',
    'EventNotFoundError',
    'EventStore',
    'SnoozeLimitError',
    'AccountStore',
    'SettingsStore',
]
