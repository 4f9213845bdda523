"""
Tests for index status tracking
"""
import time
import pytest
from datetime import datetime, timedelta

from conftest import FakeSubmissionProvider, FakeInspectionProvider
from errors import ValidationError
from index_tracker import IndexStatusTracker
from models import IndexRecord

URL = "https://example.com/python-packaging-guide/"


def old_record(db_manager, url=URL, status="submitted", hours=48, now=None):
    now = now or datetime.now()
    stamp = (now - timedelta(hours=hours)).isoformat()
    record = IndexRecord(url=url, status=status, submitted_at=stamp, created_at=stamp, updated_at=stamp)
    db_manager.save_index_record(record)
    return record


class TestSubmit:
    """Tests for URL submission"""

    def test_submit_without_provider_is_pending(self, index_tracker, action_log):
        """Test submission without a provider queues the URL as pending"""
        record = index_tracker.submit(URL, content_id=3)
        assert record.status == "pending"
        assert record.content_id == 3
        assert action_log.query(action="submit-index")[0].status == "skipped"

    def test_submit_twice_is_idempotent(self, index_tracker, db_manager):
        """Test repeated submission keeps a single record and status"""
        index_tracker.submit(URL)
        index_tracker.submit(URL)
        assert db_manager.count_index_records() == 1
        assert index_tracker.get(URL).status == "pending"

    def test_submit_with_provider(self, db_manager, action_log, test_config):
        """Test accepted submission moves the record to submitted"""
        provider = FakeSubmissionProvider()
        tracker = IndexStatusTracker(db_manager, action_log, submission_provider=provider, config=test_config)

        first = tracker.submit(URL)
        second = tracker.submit(URL)

        assert first.status == second.status == "submitted"
        assert first.submitted_at is not None
        assert db_manager.count_index_records() == 1
        assert provider.calls == [(URL, "URL_UPDATED"), (URL, "URL_UPDATED")]
        assert action_log.query(action="submit-index")[0].status == "success"

    def test_submit_provider_error(self, db_manager, action_log, test_config, provider_error):
        """Test provider failure is logged and leaves the record pending"""
        provider = FakeSubmissionProvider(error=provider_error)
        tracker = IndexStatusTracker(db_manager, action_log, submission_provider=provider, config=test_config)

        record = tracker.submit(URL)
        assert record.status == "pending"
        assert "service unavailable" in record.error_message
        assert action_log.query(action="submit-index")[0].status == "failed"

    def test_submit_rejected(self, db_manager, action_log, test_config):
        """Test an unsuccessful provider result counts as a failure"""
        tracker = IndexStatusTracker(db_manager, action_log,
                                     submission_provider=FakeSubmissionProvider(success=False),
                                     config=test_config)
        assert tracker.submit(URL).status == "pending"

    def test_resubmit_indexed_url(self, index_tracker, db_manager):
        """Test resubmitting an already indexed URL queues it again"""
        db_manager.save_index_record(IndexRecord(url=URL, status="indexed"))
        assert index_tracker.submit(URL).status == "pending"

    def test_submit_empty_url(self, index_tracker):
        """Test empty URL is rejected"""
        with pytest.raises(ValidationError):
            index_tracker.submit("")


class TestPoll:
    """Tests for scheduled index polling"""

    def _tracker(self, db_manager, action_log, test_config, inspection):
        return IndexStatusTracker(db_manager, action_log, inspection_provider=inspection, config=test_config)

    def test_poll_without_provider_skips(self, index_tracker, action_log):
        """Test polling without a provider does nothing"""
        result = index_tracker.poll()
        assert result == {'checked': 0, 'skipped': True}
        assert action_log.query(action="check-index")[0].status == "skipped"

    def test_poll_promotes_stale_records(self, db_manager, action_log, test_config):
        """Test stale pending and submitted records take the provider verdict"""
        now = datetime.now()
        old_record(db_manager, "https://example.com/a/", "pending", now=now)
        old_record(db_manager, "https://example.com/b/", "submitted", now=now)
        old_record(db_manager, "https://example.com/c/", "submitted", now=now)
        inspection = FakeInspectionProvider(verdicts={"https://example.com/b/": "not_indexed",
                                                      "https://example.com/c/": "removed"})
        tracker = self._tracker(db_manager, action_log, test_config, inspection)

        result = tracker.poll(now=now)

        assert result['checked'] == 3
        assert result['indexed'] == 1
        assert result['not_indexed'] == 1
        assert result['removed'] == 1
        assert result['still_pending'] == 0
        indexed = tracker.get("https://example.com/a/")
        assert indexed.status == "indexed"
        assert indexed.indexed_at == now.isoformat()
        assert indexed.crawl_status == "SUCCESSFUL"
        assert tracker.get("https://example.com/b/").status == "not_indexed"
        assert tracker.get("https://example.com/c/").status == "removed"

    def test_poll_skips_fresh_records(self, db_manager, action_log, test_config):
        """Test records newer than the staleness threshold are left alone"""
        now = datetime.now()
        old_record(db_manager, hours=2, now=now)
        inspection = FakeInspectionProvider()
        tracker = self._tracker(db_manager, action_log, test_config, inspection)

        assert tracker.poll(now=now)['checked'] == 0
        assert inspection.calls == []
        assert tracker.get(URL).status == "submitted"

    def test_poll_ignores_terminal_records(self, db_manager, action_log, test_config):
        """Test terminal records are never polled"""
        old_record(db_manager, status="indexed")
        inspection = FakeInspectionProvider()
        tracker = self._tracker(db_manager, action_log, test_config, inspection)
        assert tracker.poll()['checked'] == 0

    def test_poll_errors_retry_then_fail(self, db_manager, action_log, test_config, provider_error):
        """Test provider errors bump the retry count until the record errors out"""
        now = datetime.now()
        old_record(db_manager, now=now)
        tracker = self._tracker(db_manager, action_log, test_config,
                                FakeInspectionProvider(error=provider_error))

        for attempt in range(1, test_config.index_max_retries):
            result = tracker.poll(now=now)
            assert result['errors'] == 1
            record = tracker.get(URL)
            assert record.retry_count == attempt
            assert record.status == "submitted"

        tracker.poll(now=now)
        record = tracker.get(URL)
        assert record.retry_count == test_config.index_max_retries
        assert record.status == "error"

    def test_poll_timeout_counts_as_error(self, db_manager, action_log, test_config):
        """Test a provider that exceeds the deadline is treated as a failure"""
        class SlowInspection(FakeInspectionProvider):
            def inspect(self, url):
                time.sleep(1)
                return super().inspect(url)

        test_config.provider_timeout = 0.1
        old_record(db_manager)
        tracker = self._tracker(db_manager, action_log, test_config, SlowInspection())

        result = tracker.poll()
        assert result['errors'] == 1
        assert "timed out" in tracker.get(URL).error_message

    def test_poll_idempotent_after_terminal(self, db_manager, action_log, test_config):
        """Test a second poll does not touch already promoted records"""
        now = datetime.now()
        old_record(db_manager, now=now)
        inspection = FakeInspectionProvider()
        tracker = self._tracker(db_manager, action_log, test_config, inspection)

        tracker.poll(now=now)
        tracker.poll(now=now)
        assert len(inspection.calls) == 1


class TestPerformanceScores:
    """Tests for storing performance scores"""

    def test_record_performance_keeps_status(self, index_tracker, db_manager):
        """Test device scores are stored without changing lifecycle status"""
        db_manager.save_index_record(IndexRecord(url=URL, status="submitted"))
        index_tracker.record_performance(URL, "mobile", 72)
        index_tracker.record_performance(URL, "desktop", 91)

        record = index_tracker.get(URL)
        assert record.status == "submitted"
        assert (record.mobile_score, record.desktop_score) == (72, 91)
