# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Sync Engine - Fetch, normalize and reconcile every account's feed
"""
import logging
import sqlite3
import time
from datetime import tzinfo
from threading import Lock
from typing import Callable, Optional

from cal_ops.parser import FeedNormalizer, FeedParseError
from cal_ops.reader import FeedFetchError, FeedFetcher
from cal_ops.validator import FeedValidationError, validate_feed_url
from cal_ops.writer import EventReconciler
from models import Account, CalendarProvider, SyncResult, SyncSummary
from store.accounts import AccountStore
from store.db import Database, StoragePoolTimeoutError
from utils.circuit_breaker import CircuitBreakerOpenError
from utils.logger import StructuredLogger, redact_url
from utils.retry import RetryExhaustedError
from utils.timezone import utc_now

logger = logging.getLogger(__name__)

# Failures confined to a single account during a multi-account sync
ACCOUNT_SYNC_ERRORS = (
    FeedValidationError,
    FeedFetchError,
    FeedParseError,
    CircuitBreakerOpenError,
    RetryExhaustedError,
    StoragePoolTimeoutError,
    sqlite3.Error,
)


class SyncError(Exception):
    """Every account failed to sync"""
    pass


class SyncInProgressError(SyncError):
    """Another sync is already running"""
    pass


class SyncEngine:
    """Core engine for calendar synchronization"""

    def __init__(
        self,
        db: Database,
        fetcher: FeedFetcher,
        normalizer_factory: Optional[Callable[[Account], FeedNormalizer]] = None,
        local_tz: Optional[tzinfo] = None
    ):
        self.db = db
        self.fetcher = fetcher
        self.accounts = AccountStore(db)
        self.reconciler = EventReconciler(db)
        self.local_tz = local_tz
        self.normalizer_factory = normalizer_factory or self._default_normalizer

        self.sync_lock = Lock()
        self.last_summary: Optional[SyncSummary] = None
        self.structured_logger = StructuredLogger(__name__)

    def _default_normalizer(self, account: Account) -> FeedNormalizer:
        return FeedNormalizer(id_prefix=account.provider.value, local_tz=self.local_tz)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def add_account(self, provider: CalendarProvider, account_name: str, ics_url: str) -> Account:
        """Validate the feed URL, then persist the account"""
        validate_feed_url(ics_url)
        return self.accounts.add_account(provider, account_name, ics_url.strip())

    def remove_account(self, account_id: int) -> bool:
        return self.accounts.delete_account(account_id)

    def test_connection(self, account: Account) -> bool:
        """Check that an account's feed is reachable and parses; never raises"""
        try:
            raw = self.fetcher.fetch(account.auth_data, account.service_name)
            self.normalizer_factory(account).normalize(raw)
        except ACCOUNT_SYNC_ERRORS as e:
            logger.warning(f"⚠️ Connection test failed for {redact_url(account.auth_data)}: {e}")
            return False

        logger.info(f"✅ Feed is valid and accessible: {redact_url(account.auth_data)}")
        return True

    # =========================================================================
    # SYNC
    # =========================================================================

    def sync_account(self, account: Account) -> SyncResult:
        """
        Sync a single account

        Returns a failed SyncResult instead of raising for any error that is
        scoped to this account.
        """
        started = time.monotonic()

        try:
            raw = self.fetcher.fetch(account.auth_data, account.service_name)
            candidates = self.normalizer_factory(account).normalize(raw)
            added, updated = self.reconciler.reconcile(account.id, candidates)
            synced_at = utc_now()
            self.accounts.update_sync_time(account.id, synced_at)

        except ACCOUNT_SYNC_ERRORS as e:
            logger.error(f"❌ Sync failed for account {account.id} ({account.account_name}): {e}")
            self.structured_logger.log_sync_event('account_sync_failed', {
                'account_id': account.id,
                'provider': account.provider.value,
                'error_type': type(e).__name__,
                'error': str(e)
            })
            return SyncResult.with_error(account.id, str(e), utc_now())

        self.structured_logger.log_performance(
            f"sync_account_{account.id}", time.monotonic() - started, item_count=len(candidates)
        )
        return SyncResult.with_counts(account.id, added, updated, synced_at)

    def sync_all_accounts(self) -> SyncSummary:
        """
        Sync every account, isolating failures per account

        Returns:
            Aggregate counts across the accounts that succeeded

        Raises:
            SyncInProgressError: A sync is already running
            SyncError: Every account failed
        """
        if not self.sync_lock.acquire(blocking=False):
            raise SyncInProgressError("Sync already in progress")

        try:
            return self._sync_all()
        finally:
            self.sync_lock.release()

    def _sync_all(self) -> SyncSummary:
        started = time.monotonic()
        accounts = self.accounts.get_accounts()

        logger.info(f"🚀 Starting sync of {len(accounts)} account(s)")
        self.structured_logger.log_sync_event('sync_started', {'account_count': len(accounts)})

        summary = SyncSummary()
        # Sequential on purpose: keeps each account's writes serialized
        for account in accounts:
            result = self.sync_account(account)
            summary.results.append(result)
            if result.success:
                summary.added += result.events_added
                summary.updated += result.events_updated

        failed = summary.failed
        all_failed = bool(accounts) and len(failed) == len(accounts)
        for result in failed:
            logger.warning(f"⚠️ Account {result.account_id} failed: {result.error_message}")

        self.structured_logger.log_performance(
            'sync_all_accounts', time.monotonic() - started,
            item_count=summary.added + summary.updated, success=not all_failed
        )

        if all_failed:
            messages = "; ".join(f"account {r.account_id}: {r.error_message}" for r in failed)
            self.structured_logger.log_sync_event('sync_failed', {'failed_accounts': len(failed)})
            raise SyncError(f"All accounts failed to sync: {messages}")

        self.last_summary = summary
        logger.info(f"✅ Sync complete: {summary.added} added, {summary.updated} updated")
        self.structured_logger.log_sync_event('sync_completed', {
            'added': summary.added,
            'updated': summary.updated,
            'failed_accounts': len(failed)
        })
        return summary
