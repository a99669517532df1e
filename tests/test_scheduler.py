"""Tests for the audience refresh scheduler."""

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

from segment_studio.core.rules.models import serialize_tree
from segment_studio.core.scheduler import AudienceRefreshScheduler, run_refresh_cycle
from segment_studio.core.segments.service import SegmentService


class TestRunRefreshCycle:
    """Tests for run_refresh_cycle."""

    def test_refreshes_saved_segments(self, db, registry, spend_and_visits_tree):
        """Should recalculate every segment in one session."""
        SegmentService(db, registry).create_segment("VIP", rules=serialize_tree(spend_and_visits_tree))

        @contextmanager
        def fake_get_db():
            yield db

        with patch("segment_studio.core.scheduler.get_db", fake_get_db):
            sizes = run_refresh_cycle(registry)

        assert sizes == {"VIP": 0}


class TestAudienceRefreshScheduler:
    """Tests for the scheduler wrapper."""

    def test_cycle_errors_are_logged_not_raised(self):
        """A failing cycle should not stop the scheduler."""
        scheduler = AudienceRefreshScheduler(interval_seconds=5)
        with patch("segment_studio.core.scheduler.run_refresh_cycle", side_effect=RuntimeError("db down")):
            scheduler._run_cycle()
        assert scheduler._cycle_count == 1

    def test_interval_defaults_to_settings(self):
        """Should read the interval from settings when not given."""
        with patch("segment_studio.core.scheduler.settings", MagicMock(audience_refresh_seconds=321)):
            assert AudienceRefreshScheduler().interval == 321

    def test_stop_when_not_running(self):
        """Stopping an idle scheduler should be a no-op."""
        AudienceRefreshScheduler(interval_seconds=5).stop()
