# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Chime Sync - Background service that syncs calendar feeds and sounds meeting alerts
"""
import logging
import signal
import threading
from dataclasses import dataclass
from typing import Optional

import config
from cal_ops.reader import FeedFetcher
from store.db import Database
from sync.engine import SyncEngine
from sync.notifier import AlertTriggered, AudioPlayer, ErrorReported, LoggingAudioPlayer, Notifier, SyncCompleted
from sync.scheduler import AlertScheduler
from utils.circuit_breaker import CircuitBreakerRegistry
from utils.logger import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class Components:
    db: Database
    registry: CircuitBreakerRegistry
    sync_engine: SyncEngine
    notifier: Notifier
    scheduler: AlertScheduler


def initialize_components(
    database_path: Optional[str] = None,
    audio: Optional[AudioPlayer] = None,
    http_profile: str = 'default'
) -> Components:
    """Build the object graph once; the breaker registry is shared by every fetch"""
    db = Database(database_path)
    registry = CircuitBreakerRegistry()
    fetcher = FeedFetcher(registry, profile=http_profile)
    sync_engine = SyncEngine(db, fetcher)
    notifier = Notifier()
    scheduler = AlertScheduler(db, sync_engine, audio or LoggingAudioPlayer(), notifier)

    logger.info(f"✅ Components initialized (database: {db.path}, profile: {http_profile})")
    return Components(db, registry, sync_engine, notifier, scheduler)


def describe(notification) -> str:
    """One-line summary of a notification for the service log"""
    if isinstance(notification, AlertTriggered):
        return f"🔔 {notification.alert_type.label}: {notification.event.title}"
    if isinstance(notification, SyncCompleted):
        return f"🔄 Sync completed: {notification.added} added, {notification.updated} updated"
    if isinstance(notification, ErrorReported):
        return f"❌ {notification.message}"
    return repr(notification)


class GracefulShutdownHandler:

    def __init__(self):
        self.shutdown_requested = threading.Event()
        signal.signal(signal.SIGTERM, self.handle_sigterm)
        signal.signal(signal.SIGINT, self.handle_sigterm)

    def handle_sigterm(self, signum, frame):
        logger.warning(f"Received signal {signum}, initiating graceful shutdown...")
        self.shutdown_requested.set()


def main():
    setup_logging()
    logger.info(f"🚀 Starting Chime Sync ({config.ENVIRONMENT})")

    components = initialize_components()
    shutdown_handler = GracefulShutdownHandler()
    components.scheduler.start()

    try:
        while not shutdown_handler.shutdown_requested.is_set():
            notification = components.notifier.get(timeout=1.0)
            if notification is not None:
                logger.info(describe(notification))
    finally:
        components.scheduler.stop(timeout=30)
        components.db.close()
        logger.info("Graceful shutdown completed")


if __name__ == '__main__':
    main()
