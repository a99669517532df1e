"""Scheduler for periodically refreshing saved segment audience sizes."""

from __future__ import annotations

import logging
import signal
import sys
from datetime import datetime, timezone
from typing import Dict, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from segment_studio.config import get_settings
from segment_studio.db.database import get_db
from segment_studio.core.rules.registry import FieldRegistry, default_registry
from segment_studio.core.segments.service import SegmentService

logger = logging.getLogger(__name__)
settings = get_settings()


def run_refresh_cycle(registry: Optional[FieldRegistry] = None) -> Dict[str, int]:
    """Recalculate every saved segment in one database session.

    Returns:
        Mapping of segment name to audience size
    """
    registry = registry or default_registry()
    with get_db() as db:
        return SegmentService(db, registry).refresh_all()


class AudienceRefreshScheduler:
    """Scheduler for periodic audience refreshes."""

    def __init__(
        self,
        interval_seconds: Optional[int] = None,
        registry: Optional[FieldRegistry] = None,
    ):
        """Initialize the scheduler.

        Args:
            interval_seconds: Seconds between cycles (defaults to settings)
            registry: Field registry (defaults to the built-in customer fields)
        """
        self.interval = interval_seconds or settings.audience_refresh_seconds
        self.registry = registry or default_registry()
        self.scheduler = BlockingScheduler()
        self._cycle_count = 0
        self._shutdown_requested = False

    def _run_cycle(self) -> None:
        """Execute a single refresh cycle."""
        self._cycle_count += 1
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

        logger.info(f"[Cycle {self._cycle_count}] Starting at {timestamp}")

        try:
            sizes = run_refresh_cycle(self.registry)
            logger.info(f"[Cycle {self._cycle_count}] Refreshed {len(sizes)} segment(s)")
        except Exception as e:
            logger.error(f"[Cycle {self._cycle_count}] Error: {e}")

    def _handle_signal(self, signum, frame) -> None:
        """Handle shutdown signals gracefully."""
        if self._shutdown_requested:
            logger.warning("Received second shutdown signal, forcing exit...")
            sys.exit(1)

        logger.info("Received shutdown signal, stopping scheduler...")
        self._shutdown_requested = True
        self.stop()

    def start(self) -> None:
        """Start the scheduler (blocking)."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

        self.scheduler.add_job(
            self._run_cycle,
            trigger=IntervalTrigger(seconds=self.interval),
            id="audience_refresh",
            name="Audience Refresh",
            replace_existing=True,
        )

        logger.info(f"Refreshing segment audiences every {self.interval}s")
        logger.info("Press Ctrl+C to stop")

        self._run_cycle()

        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            pass
        finally:
            logger.info("Scheduler stopped")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler shutdown complete")


def start_scheduler(interval_seconds: Optional[int] = None) -> None:
    """Start the audience refresh scheduler (convenience function)."""
    AudienceRefreshScheduler(interval_seconds=interval_seconds).start()
