"""
Index status tracking: submission and scheduled promotion of URLs
"""
import logging
import time
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from action_log import ActionLog
from config import config as default_config, EngineConfig
from database import DatabaseManager
from errors import ExternalProviderError, ValidationError
from models import IndexRecord, IndexStatus, LogAction, LogStatus
from providers import IndexSubmissionProvider, UrlInspectionProvider, call_with_timeout
from utils import parse_timestamp

logger = logging.getLogger(__name__)

POLLED_STATUSES = (IndexStatus.PENDING.value, IndexStatus.SUBMITTED.value)

VERDICT_STATUS = {
    'indexed': IndexStatus.INDEXED,
    'not_indexed': IndexStatus.NOT_INDEXED,
    'removed': IndexStatus.REMOVED,
}


class IndexStatusTracker:
    """Owns the pending -> submitted -> terminal lifecycle of each URL"""

    def __init__(self, db_manager: DatabaseManager, action_log: ActionLog,
                 submission_provider: IndexSubmissionProvider = None,
                 inspection_provider: UrlInspectionProvider = None,
                 config: EngineConfig = None):
        self.db_manager = db_manager
        self.action_log = action_log
        self.submission_provider = submission_provider
        self.inspection_provider = inspection_provider
        self.config = config or default_config

    def get(self, url: str) -> Optional[IndexRecord]:
        return self.db_manager.get_index_record(url)

    def list_records(self, status: str = None, limit: int = 100) -> List[IndexRecord]:
        return self.db_manager.list_index_records(statuses=[status] if status else None, limit=limit)

    def submit(self, url: str, content_id: int = None, change_type: str = "URL_UPDATED") -> IndexRecord:
        """Upsert the URL as pending, or submitted when the provider accepts it"""
        if not url or not isinstance(url, str):
            raise ValidationError("URL must be a non-empty string")

        now = datetime.now().isoformat()
        record = self.db_manager.get_index_record(url) or IndexRecord(url=url, created_at=now)
        if content_id is not None:
            record.content_id = content_id
        record.updated_at = now

        if self.submission_provider is None:
            if record.status not in POLLED_STATUSES:
                record.status = IndexStatus.PENDING.value
            record.submission_method = record.submission_method or 'indexing_api'
            self.db_manager.save_index_record(record)
            self.action_log.append(LogAction.SUBMIT_INDEX, LogStatus.SKIPPED,
                                   "Index submission provider not configured - queued as pending",
                                   entity_type='content', entity_id=content_id, entity_url=url,
                                   details={'type': change_type})
            return record

        start = time.monotonic()
        try:
            result = call_with_timeout(self.submission_provider.submit_url, url, change_type,
                                       timeout=self.config.provider_timeout,
                                       provider=self.submission_provider.name)
            if not result.success:
                raise ExternalProviderError(result.message or "Submission rejected",
                                            provider=self.submission_provider.name)
        except ExternalProviderError as e:
            duration = (time.monotonic() - start) * 1000
            if record.status not in POLLED_STATUSES:
                record.status = IndexStatus.PENDING.value
            record.error_message = str(e)
            self.db_manager.save_index_record(record)
            self.action_log.append(LogAction.SUBMIT_INDEX, LogStatus.FAILED, str(e),
                                   entity_type='content', entity_id=content_id, entity_url=url,
                                   duration_ms=duration)
            logger.warning(f"Index submission failed for {url}: {e}")
            return record

        duration = (time.monotonic() - start) * 1000
        record.status = IndexStatus.SUBMITTED.value
        record.submitted_at = now
        record.submission_method = 'indexing_api'
        record.error_message = None
        self.db_manager.save_index_record(record)
        self.action_log.append(LogAction.SUBMIT_INDEX, LogStatus.SUCCESS,
                               "URL submitted for indexing",
                               entity_type='content', entity_id=content_id, entity_url=url,
                               details={'type': change_type, 'response': result.response},
                               duration_ms=duration)
        logger.info(f"Submitted {url} for indexing")
        return record

    def poll(self, now: datetime = None, is_scheduled: bool = True) -> Dict[str, Any]:
        """Promote stale pending/submitted records using the inspection provider"""
        now = now or datetime.now()
        if self.inspection_provider is None:
            self.action_log.append(LogAction.CHECK_INDEX, LogStatus.SKIPPED,
                                   "URL inspection provider not configured",
                                   is_scheduled=is_scheduled)
            return {'checked': 0, 'skipped': True}

        threshold = timedelta(hours=self.config.index_staleness_hours)
        candidates = self.db_manager.list_index_records(statuses=POLLED_STATUSES,
                                                        limit=self.config.index_poll_limit,
                                                        oldest_first=True)
        counts = {'checked': 0, 'indexed': 0, 'not_indexed': 0, 'removed': 0, 'errors': 0}

        for record in candidates:
            since = parse_timestamp(record.submitted_at or record.created_at)
            if since is not None and now - since < threshold:
                continue

            counts['checked'] += 1
            self._check_record(record, now, counts)

        counts['still_pending'] = counts['checked'] - counts['indexed'] - counts['not_indexed'] - counts['removed']
        self.action_log.append(LogAction.CHECK_INDEX, LogStatus.SUCCESS,
                               f"Checked {counts['checked']} URLs, {counts['indexed']} indexed",
                               details=counts, is_scheduled=is_scheduled)
        return counts

    def _check_record(self, record: IndexRecord, now: datetime, counts: Dict[str, int]):
        stamp = now.isoformat()
        record.last_checked_at = stamp
        record.updated_at = stamp

        try:
            result = call_with_timeout(self.inspection_provider.inspect, record.url,
                                       timeout=self.config.provider_timeout,
                                       provider=self.inspection_provider.name)
        except ExternalProviderError as e:
            record.retry_count += 1
            record.error_message = str(e)
            if record.retry_count >= self.config.index_max_retries:
                record.status = IndexStatus.ERROR.value
            counts['errors'] += 1
            self.db_manager.save_index_record(record)
            logger.warning(f"Index check failed for {record.url} (attempt {record.retry_count}): {e}")
            return

        status = VERDICT_STATUS.get(result.verdict, IndexStatus.NOT_INDEXED)
        record.status = status.value
        record.crawl_status = result.page_fetch_state
        record.indexing_status = result.indexing_state or result.coverage_state
        record.last_crawled_at = result.last_crawl_time or record.last_crawled_at
        record.error_message = None
        record.retry_count = 0
        if status is IndexStatus.INDEXED and not record.indexed_at:
            record.indexed_at = stamp

        counts[status.value] += 1
        self.db_manager.save_index_record(record)

    def record_performance(self, url: str, strategy: str, score: int) -> IndexRecord:
        """Store a device performance score without changing lifecycle status"""
        now = datetime.now().isoformat()
        record = self.db_manager.get_index_record(url) or IndexRecord(url=url, created_at=now)
        if strategy == 'desktop':
            record.desktop_score = score
        else:
            record.mobile_score = score
        record.last_checked_at = now
        record.updated_at = now
        self.db_manager.save_index_record(record)
        return record
