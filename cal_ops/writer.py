# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Calendar Writer - Reconciles normalized feed events into local storage
"""
import logging
from collections import OrderedDict
from typing import Iterable, Tuple

from models import CandidateEvent
from store.db import Database
from store.events import find_by_external_id, insert_event, update_event_content
from utils.timezone import utc_now

logger = logging.getLogger(__name__)


class EventReconciler:
    """Upserts candidate events for one account, preserving alert state"""

    def __init__(self, db: Database):
        self.db = db

    def reconcile(self, account_id: int, candidates: Iterable[CandidateEvent]) -> Tuple[int, int]:
        """
        Insert new events and update changed ones

        Existing rows keep their alert, snooze and dismiss fields; only title,
        description, times and video link are compared and rewritten.

        Args:
            account_id: Owning account
            candidates: Normalized events from the account's feed

        Returns:
            Tuple of (added, updated)
        """
        batch = self._dedupe(candidates)

        def _apply(conn) -> Tuple[int, int]:
            added = 0
            updated = 0
            now = utc_now()

            for candidate in batch:
                existing = find_by_external_id(conn, candidate.external_id, account_id)

                if existing is None:
                    insert_event(conn, account_id, candidate, now)
                    added += 1
                elif existing.content_differs(candidate):
                    update_event_content(conn, existing.id, candidate, now)
                    updated += 1

            return added, updated

        added, updated = self.db.transaction(_apply)

        if added or updated:
            logger.info(f"✅ Account {account_id}: {added} added, {updated} updated")
        else:
            logger.debug(f"Account {account_id}: no changes")
        return added, updated

    @staticmethod
    def _dedupe(candidates: Iterable[CandidateEvent]):
        """Collapse repeated external ids within one batch; the last one wins"""
        by_id: "OrderedDict[str, CandidateEvent]" = OrderedDict()
        for candidate in candidates:
            if candidate.external_id in by_id:
                logger.warning(f"⚠️ Duplicate external id in feed: {candidate.external_id}")
                del by_id[candidate.external_id]
            by_id[candidate.external_id] = candidate
        return list(by_id.values())
