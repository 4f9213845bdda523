"""
Periodic SEO reports over the current store state
"""
import logging
import threading
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from action_log import ActionLog
from config import config as default_config, EngineConfig
from content_repository import ContentRepository
from database import DatabaseManager
from errors import ValidationError
from models import Report, ReportPeriod, ScoreSnapshot, LogAction, LogStatus, IndexStatus

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    ReportPeriod.DAILY: 1,
    ReportPeriod.WEEKLY: 7,
    ReportPeriod.MONTHLY: 30,
}

# Subscore attribute -> issue raised when it falls under the issue threshold
ISSUE_RULES = [
    ('title', 'Title needs improvement'),
    ('meta_description', 'Meta description missing/weak'),
    ('content', 'Content too short'),
    ('keyword', 'Keyword optimization needed'),
]

UNRANKED_POSITION = 100


def parse_period(period) -> ReportPeriod:
    if isinstance(period, ReportPeriod):
        return period
    try:
        return ReportPeriod(period)
    except ValueError:
        raise ValidationError(f"Unknown report period: {period!r}")


class ReportGenerator:
    """Builds reports and keeps the last one per period in an explicit cache"""

    def __init__(self, db_manager: DatabaseManager, content_repository: ContentRepository,
                 action_log: ActionLog, config: EngineConfig = None):
        self.db_manager = db_manager
        self.content_repository = content_repository
        self.action_log = action_log
        self.config = config or default_config
        self._cache: Dict[ReportPeriod, Report] = {}
        self._cache_lock = threading.Lock()

    def get_last_report(self, period=None) -> Optional[Report]:
        """Last cached report for a period, or the most recent of any period"""
        with self._cache_lock:
            if period is not None:
                return self._cache.get(parse_period(period))
            reports = list(self._cache.values())
        return max(reports, key=lambda r: r.generated_at) if reports else None

    def set_last_report(self, report: Report):
        with self._cache_lock:
            self._cache[parse_period(report.period)] = report

    def generate(self, period, now: datetime = None, is_scheduled: bool = True) -> Report:
        """Aggregate scores, index state and rankings; caches and logs the result"""
        period = parse_period(period)
        now = now or datetime.now()
        window_start = (now - timedelta(days=PERIOD_DAYS[period])).isoformat()
        previous = self.get_last_report(period)

        scores = self.db_manager.get_overall_scores()
        avg_score = round(sum(scores) / len(scores)) if scores else 0

        keywords = self.db_manager.list_keywords(tracking_only=True, by_position=True,
                                                 limit=self.config.report_keyword_limit)
        keyword_rankings = [self._keyword_entry(kw) for kw in keywords]
        avg_position = 0
        if keywords:
            positions = [kw.current_position or UNRANKED_POSITION for kw in keywords]
            avg_position = round(sum(positions) / len(positions))

        summary = {
            'total_posts': self.content_repository.count_published(),
            'analyzed_posts': len(scores),
            'avg_score': avg_score,
            'score_change': avg_score - previous.summary['avg_score'] if previous else 0,
            'indexed_urls': self.db_manager.count_index_records(status=IndexStatus.INDEXED.value),
            'new_indexed': self.db_manager.count_index_records(status=IndexStatus.INDEXED.value,
                                                               indexed_since=window_start),
            'tracked_keywords': self.db_manager.count_tracked_keywords(),
            'avg_position': avg_position,
            # Positive when the average position moved up the results page
            'position_change': previous.summary['avg_position'] - avg_position if previous else 0,
        }

        report = Report(
            generated_at=now.isoformat(),
            period=period.value,
            summary=summary,
            top_performers=self._top_performers(),
            needs_attention=self._needs_attention(),
            keyword_rankings=keyword_rankings,
            actions=self._actions_since(window_start),
        )

        self.set_last_report(report)
        self.action_log.append(LogAction.REPORT_GENERATED, LogStatus.SUCCESS,
                               f"{period.value.capitalize()} SEO report generated",
                               details={'summary': summary}, is_scheduled=is_scheduled)
        logger.info(f"Generated {period.value} report: avg score {avg_score}, "
                    f"{summary['indexed_urls']} indexed URLs")
        return report

    def _top_performers(self) -> List[Dict[str, Any]]:
        snapshots = self.db_manager.list_scores(ascending=False, limit=self.config.report_top_n)
        return [
            {'content_id': s.content_id, 'title': title, 'score': s.overall_score}
            for s, title in self._with_titles(snapshots)
        ]

    def _needs_attention(self) -> List[Dict[str, Any]]:
        snapshots = self.db_manager.list_scores(ascending=True, limit=self.config.report_top_n,
                                                below=self.config.report_attention_threshold)
        return [
            {'content_id': s.content_id, 'title': title, 'score': s.overall_score,
             'issues': self._issues(s)}
            for s, title in self._with_titles(snapshots)
        ]

    def _with_titles(self, snapshots: List[ScoreSnapshot]):
        # Snapshots whose content has since been deleted are left out
        for snapshot in snapshots:
            item = self.content_repository.get(snapshot.content_id)
            if item is not None:
                yield snapshot, item.title

    def _issues(self, snapshot: ScoreSnapshot) -> List[str]:
        threshold = self.config.report_issue_threshold
        return [message for attr, message in ISSUE_RULES
                if getattr(snapshot.scores, attr) < threshold]

    def _keyword_entry(self, keyword) -> Dict[str, Any]:
        return {
            'keyword': keyword.keyword,
            'target_url': keyword.target_url,
            'position': keyword.current_position or 0,
            'previous_position': keyword.previous_position or 0,
            'change': keyword.position_change or 0,
            'clicks': keyword.clicks or 0,
            'impressions': keyword.impressions or 0,
        }

    def _actions_since(self, since: str) -> List[Dict[str, Any]]:
        counts = self.action_log.summarize_since(since)
        return [
            {'type': action, 'description': f"{count} {action} entries", 'affected_count': count}
            for action, count in counts.items()
        ]
