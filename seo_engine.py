"""
SEO engine: analysis entry points, publish hook and dashboard queries
"""
import logging
import time
from dataclasses import asdict, replace
from datetime import datetime
from typing import Optional, Dict, Any, List

from action_log import ActionLog
from config import config as default_config, EngineConfig
from content_repository import ContentRepository
from database import DatabaseManager
from errors import ValidationError, NotFoundError, ExternalProviderError
from index_tracker import IndexStatusTracker
from keyword_tracker import KeywordTracker
from models import ContentItem, ScoreSnapshot, LogAction, LogStatus, IndexStatus
from providers import PerformanceProvider, call_with_timeout
from scoring import ScoringEngine

logger = logging.getLogger(__name__)

SCORE_BUCKETS = [
    ('0-20', 20),
    ('21-40', 40),
    ('41-60', 60),
    ('61-80', 80),
    ('81-100', 100),
]


def validate_content_id(content_id) -> int:
    """Accept positive integers or their decimal string form"""
    if isinstance(content_id, bool):
        raise ValidationError(f"Invalid content id: {content_id!r}")
    if isinstance(content_id, str) and content_id.strip().isdigit():
        content_id = int(content_id.strip())
    if not isinstance(content_id, int) or content_id <= 0:
        raise ValidationError(f"Invalid content id: {content_id!r}")
    return content_id


class SEOEngine:
    """Scores content, persists snapshots and records every action"""

    def __init__(self, db_manager: DatabaseManager, content_repository: ContentRepository,
                 action_log: ActionLog, index_tracker: IndexStatusTracker,
                 keyword_tracker: KeywordTracker, scoring_engine: ScoringEngine = None,
                 performance_provider: PerformanceProvider = None, config: EngineConfig = None):
        self.db_manager = db_manager
        self.content_repository = content_repository
        self.action_log = action_log
        self.index_tracker = index_tracker
        self.keyword_tracker = keyword_tracker
        self.scoring_engine = scoring_engine or ScoringEngine()
        self.performance_provider = performance_provider
        self.config = config or default_config

    def content_url(self, item: ContentItem) -> str:
        if item.canonical_url:
            return item.canonical_url
        return self.config.content_url_pattern.format(slug=item.slug)

    def analyze(self, content_id, focus_keyword: str = None,
                is_scheduled: bool = False) -> ScoreSnapshot:
        """Score a content item and overwrite its snapshot. Raises on failure."""
        content_id = validate_content_id(content_id)
        item = self.content_repository.get(content_id)
        if item is None:
            raise NotFoundError(f"Content {content_id} not found")

        start = time.monotonic()
        previous = self.db_manager.get_score(content_id)
        snapshot = self.scoring_engine.score(item, focus_keyword)
        if previous is not None and replace(snapshot, checked_at=previous.checked_at) == previous:
            # Unchanged result keeps the time it was first produced
            snapshot.checked_at = previous.checked_at
        self.db_manager.upsert_score(snapshot, analyzed_at=datetime.now().isoformat())
        duration = (time.monotonic() - start) * 1000

        self.action_log.append(LogAction.ANALYZE, LogStatus.SUCCESS,
                               f"SEO analysis completed with score {snapshot.overall_score}",
                               entity_type='content', entity_id=content_id,
                               details={'overall_score': snapshot.overall_score,
                                        'focus_keyword': snapshot.analysis.focus_keyword},
                               duration_ms=duration, is_scheduled=is_scheduled)
        logger.info(f"Analyzed content {content_id}: score {snapshot.overall_score}")
        return snapshot

    def analyze_content(self, content_id, focus_keyword: str = None) -> Dict[str, Any]:
        """Manual "analyze now": returns a result dict instead of raising"""
        try:
            snapshot = self.analyze(content_id, focus_keyword)
            return {"success": True, "data": snapshot.to_dict()}
        except Exception as e:
            logger.warning(f"Analysis of content {content_id} failed: {e}")
            self.action_log.append(LogAction.ANALYZE, LogStatus.FAILED, str(e),
                                   entity_type='content', entity_id=content_id)
            return {"success": False, "error": str(e)}

    def get_score(self, content_id) -> Optional[ScoreSnapshot]:
        return self.db_manager.get_score(validate_content_id(content_id))

    def on_content_published(self, content_id) -> Dict[str, Any]:
        """Publish hook: one analysis and one index submission, both best-effort"""
        outcome = {"analyzed": False, "submitted": False}
        try:
            snapshot = self.analyze(content_id)
            outcome["analyzed"] = True
            outcome["overall_score"] = snapshot.overall_score
        except Exception as e:
            logger.error(f"Publish-time analysis failed for content {content_id}: {e}")
            self.action_log.append(LogAction.ANALYZE, LogStatus.FAILED, str(e),
                                   entity_type='content', entity_id=content_id)

        try:
            item = self.content_repository.get(validate_content_id(content_id))
            if item is None:
                raise NotFoundError(f"Content {content_id} not found")
            record = self.index_tracker.submit(self.content_url(item), content_id=item.id)
            outcome["submitted"] = record.status == IndexStatus.SUBMITTED.value
            outcome["index_status"] = record.status
        except Exception as e:
            logger.error(f"Publish-time index submission failed for content {content_id}: {e}")
            self.action_log.append(LogAction.SUBMIT_INDEX, LogStatus.FAILED, str(e),
                                   entity_type='content', entity_id=content_id)
        return outcome

    def check_page_speed(self, url: str, strategy: str = 'mobile') -> Dict[str, Any]:
        """Run the performance provider and store the score on the index record"""
        if strategy not in ('mobile', 'desktop'):
            return {"success": False, "error": f"Unknown strategy: {strategy}"}
        if self.performance_provider is None:
            self.action_log.append(LogAction.PAGESPEED_CHECK, LogStatus.SKIPPED,
                                   "Performance provider not configured", entity_url=url)
            return {"success": False, "error": "Performance provider not configured"}

        full_url = url if url.startswith('http') else f"{self.config.site_url}{url}"
        start = time.monotonic()
        try:
            result = call_with_timeout(self.performance_provider.run, full_url, strategy,
                                       timeout=self.config.provider_timeout,
                                       provider=self.performance_provider.name)
        except ExternalProviderError as e:
            self.action_log.append(LogAction.PAGESPEED_CHECK, LogStatus.FAILED, str(e),
                                   entity_url=full_url, duration_ms=(time.monotonic() - start) * 1000)
            return {"success": False, "error": str(e)}

        self.index_tracker.record_performance(url, strategy, result.performance_score)
        self.action_log.append(LogAction.PAGESPEED_CHECK, LogStatus.SUCCESS,
                               f"Performance: {result.performance_score}, SEO: {result.seo_score}",
                               entity_url=full_url,
                               details={'strategy': strategy,
                                        'performance_score': result.performance_score,
                                        'seo_score': result.seo_score,
                                        'accessibility_score': result.accessibility_score},
                               duration_ms=(time.monotonic() - start) * 1000)
        return {"success": True, "data": asdict(result)}

    def get_index_status(self, url: str):
        return self.index_tracker.get(url)

    def list_index_records(self, status: str = None, limit: int = 100):
        return self.index_tracker.list_records(status=status, limit=limit)

    def get_recent_logs(self, limit: int = 50, action: str = None, status: str = None):
        return self.action_log.query(action=action, status=status, limit=limit)

    def get_dashboard_stats(self) -> Dict[str, Any]:
        """Overview counts, average score and score distribution"""
        scores = self.db_manager.get_overall_scores()
        avg_score = round(sum(scores) / len(scores)) if scores else 0

        return {
            "total_posts": self.content_repository.count_published(),
            "analyzed_posts": len(scores),
            "avg_score": avg_score,
            "indexed_urls": self.db_manager.count_index_records(status=IndexStatus.INDEXED.value),
            "pending_urls": self.db_manager.count_index_records(status=IndexStatus.PENDING.value),
            "tracked_keywords": self.db_manager.count_tracked_keywords(),
            "recent_activity": self.get_recent_logs(limit=10),
            "score_distribution": self._score_distribution(scores),
        }

    def _score_distribution(self, scores: List[int]) -> List[Dict[str, Any]]:
        counts = {label: 0 for label, _ in SCORE_BUCKETS}
        for score in scores:
            for label, ceiling in SCORE_BUCKETS:
                if score <= ceiling:
                    counts[label] += 1
                    break
        return [{"range": label, "count": counts[label]} for label, _ in SCORE_BUCKETS]
