"""
Tests for the action log
"""
from datetime import datetime, timedelta
from unittest.mock import patch

from errors import PersistenceError
from models import LogAction, LogStatus, LogEntry


class TestActionLog:
    """Tests for ActionLog class"""

    def test_append_returns_entry(self, action_log):
        """Test a successful append returns the stored entry"""
        entry = action_log.append(LogAction.ANALYZE, LogStatus.SUCCESS, "done",
                                  entity_type='content', entity_id=5, details={'score': 70},
                                  duration_ms=12.5)
        assert entry is not None
        assert entry.id is not None
        assert entry.action == "analyze"
        assert entry.entity_id == "5"

        stored = action_log.query()[0]
        assert stored.message == "done"
        assert stored.details == {'score': 70}
        assert stored.is_scheduled is False

    def test_append_never_raises(self, action_log):
        """Test storage failures are swallowed and reported as None"""
        with patch.object(action_log.db_manager, 'insert_log',
                          side_effect=PersistenceError("disk full")) as mock_insert:
            assert action_log.append(LogAction.ANALYZE, LogStatus.SUCCESS, "x") is None
        # one retry after the first failure
        assert mock_insert.call_count == 2

    def test_append_swallows_unexpected_errors(self, action_log):
        """Test non-persistence errors are not retried but still swallowed"""
        with patch.object(action_log.db_manager, 'insert_log',
                          side_effect=TypeError("bad details")) as mock_insert:
            assert action_log.append(LogAction.ANALYZE, LogStatus.SUCCESS, "x") is None
        assert mock_insert.call_count == 1

    def test_query_filters(self, action_log):
        """Test filtering by action and status"""
        action_log.append(LogAction.ANALYZE, LogStatus.SUCCESS)
        action_log.append(LogAction.ANALYZE, LogStatus.FAILED)
        action_log.append(LogAction.SUBMIT_INDEX, LogStatus.SKIPPED)

        assert len(action_log.query(action="analyze")) == 2
        assert [e.status for e in action_log.query(status="skipped")] == ["skipped"]

    def test_summarize_since(self, action_log):
        """Test per-action counts"""
        action_log.append(LogAction.ANALYZE, LogStatus.SUCCESS)
        action_log.append(LogAction.ANALYZE, LogStatus.SUCCESS)
        action_log.append(LogAction.CHECK_INDEX, LogStatus.SUCCESS)
        since = (datetime.now() - timedelta(minutes=5)).isoformat()
        assert action_log.summarize_since(since) == {"analyze": 2, "check-index": 1}

    def test_purge_older_than(self, action_log, db_manager):
        """Test retention purge removes only entries older than the window"""
        now = datetime(2024, 6, 1, 12, 0, 0)
        db_manager.insert_log(LogEntry(action="analyze", status="success",
                                       created_at=(now - timedelta(days=120)).isoformat()))
        db_manager.insert_log(LogEntry(action="analyze", status="success",
                                       created_at=(now - timedelta(days=10)).isoformat()))

        result = action_log.purge_older_than(90, now=now)
        assert result["deleted_count"] == 1
        assert result["cutoff_date"] == (now - timedelta(days=90)).isoformat()
        assert len(action_log.query()) == 1

        # Re-running is harmless
        assert action_log.purge_older_than(90, now=now)["deleted_count"] == 0
