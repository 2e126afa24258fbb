# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Settings Store - Flat key/value projection of user preferences
"""
import logging
from dataclasses import asdict, fields
from typing import Any, Dict

from models import Settings
from store.db import Database
from utils.timezone import to_db_timestamp, utc_now

logger = logging.getLogger(__name__)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ('true', '1', 'yes', 'on'):
        return True
    if lowered in ('false', '0', 'no', 'off'):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _format(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


_PARSERS = {bool: _parse_bool, int: int, float: float, str: str}


def settings_from_mapping(values: Dict[str, str]) -> Settings:
    """Build Settings from stored text, using each field's default when missing or unparseable"""
    defaults = Settings()
    parsed = {}

    for settings_field in fields(Settings):
        default = getattr(defaults, settings_field.name)
        raw = values.get(settings_field.name)
        if raw is None:
            parsed[settings_field.name] = default
            continue

        parser = _PARSERS[type(default)]
        try:
            parsed[settings_field.name] = parser(raw)
        except ValueError:
            logger.warning(f"⚠️ Invalid value {raw!r} for setting '{settings_field.name}', using {default!r}")
            parsed[settings_field.name] = default

    return Settings(**parsed)


class SettingsStore:

    def __init__(self, db: Database):
        self.db = db

    def get_settings(self) -> Settings:
        rows = self.db.read(lambda conn: conn.execute("SELECT key, value FROM settings").fetchall())
        return settings_from_mapping({row['key']: row['value'] for row in rows})

    def update_settings(self, settings: Settings):
        stamp = to_db_timestamp(utc_now())
        values = [(key, _format(value), stamp) for key, value in asdict(settings).items()]

        self.db.transaction(lambda conn: conn.executemany(
            """
            INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            values
        ))
        logger.info("Settings updated")
