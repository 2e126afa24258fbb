# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Account Store - Calendar feed accounts
"""
import logging
import sqlite3
from datetime import datetime
from typing import List, Optional

from models import Account, CalendarProvider
from store.db import Database
from utils.timezone import from_db_timestamp, to_db_timestamp, utc_now

logger = logging.getLogger(__name__)

_ACCOUNT_COLUMNS = "id, provider, account_name, auth_data, last_synced_at, created_at"


def _row_to_account(row: sqlite3.Row) -> Account:
    return Account(
        id=row['id'],
        provider=CalendarProvider(row['provider']),
        account_name=row['account_name'],
        auth_data=row['auth_data'],
        last_synced_at=from_db_timestamp(row['last_synced_at']),
        created_at=from_db_timestamp(row['created_at']),
    )


class AccountStore:

    def __init__(self, db: Database):
        self.db = db

    def add_account(self, provider: CalendarProvider, account_name: str, auth_data: str) -> Account:
        stamp = to_db_timestamp(utc_now())
        account_id = self.db.transaction(lambda conn: conn.execute(
            """
            INSERT INTO accounts (provider, account_name, auth_data, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (provider.value, account_name, auth_data, stamp, stamp)
        ).lastrowid)
        logger.info(f"Added {provider.value} account '{account_name}' (id {account_id})")
        return self.get_account(account_id)

    def get_account(self, account_id: int) -> Optional[Account]:
        row = self.db.read(lambda conn: conn.execute(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = ?", (account_id,)
        ).fetchone())
        return _row_to_account(row) if row else None

    def get_accounts(self) -> List[Account]:
        rows = self.db.read(lambda conn: conn.execute(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts ORDER BY id"
        ).fetchall())
        return [_row_to_account(row) for row in rows]

    def delete_account(self, account_id: int) -> bool:
        """Delete an account; its events go with it (ON DELETE CASCADE)"""
        deleted = self.db.transaction(lambda conn: conn.execute(
            "DELETE FROM accounts WHERE id = ?", (account_id,)
        ).rowcount)
        if deleted:
            logger.info(f"Removed account {account_id} and its events")
        return deleted == 1

    def update_sync_time(self, account_id: int, synced_at: Optional[datetime] = None):
        stamp = to_db_timestamp(synced_at or utc_now())
        self.db.transaction(lambda conn: conn.execute(
            "UPDATE accounts SET last_synced_at = ?, updated_at = ? WHERE id = ?",
            (stamp, stamp, account_id)
        ))
