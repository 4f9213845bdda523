"""
Keyword ranking tracker with bounded ranking history
"""
import logging
import time
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Tuple

from action_log import ActionLog
from config import config as default_config, EngineConfig
from database import DatabaseManager
from errors import ExternalProviderError, ValidationError, NotFoundError
from models import TrackedKeyword, RankingEntry, LogAction, LogStatus
from providers import RankingProvider, RankingRow, call_with_timeout

logger = logging.getLogger(__name__)


class KeywordTracker:
    """Keyed upserts of (keyword, target url) pairs and periodic ranking sync"""

    def __init__(self, db_manager: DatabaseManager, action_log: ActionLog,
                 ranking_provider: RankingProvider = None, config: EngineConfig = None):
        self.db_manager = db_manager
        self.action_log = action_log
        self.ranking_provider = ranking_provider
        self.config = config or default_config

    def track(self, keyword: str, target_url: str = None, content_id: int = None,
              language: str = None, country: str = None,
              search_volume: int = None) -> TrackedKeyword:
        """Start tracking a keyword, or refresh the metadata of an existing pair"""
        keyword = (keyword or '').strip()
        if not keyword:
            raise ValidationError("Keyword must be a non-empty string")
        target_url = target_url or ''

        now = datetime.now().isoformat()
        tracked = self.db_manager.get_keyword(keyword, target_url)
        if tracked is None:
            tracked = TrackedKeyword(keyword=keyword, target_url=target_url,
                                     language=language or 'en', country=country or 'US',
                                     created_at=now)
            message = f"Started tracking keyword '{keyword}'"
        else:
            if language:
                tracked.language = language
            if country:
                tracked.country = country
            message = f"Updated tracked keyword '{keyword}'"

        if content_id is not None:
            tracked.content_id = content_id
        if search_volume:
            tracked.search_volume = search_volume
        tracked.is_tracking = True
        tracked.updated_at = now

        self.db_manager.save_keyword(tracked)
        self.action_log.append(LogAction.KEYWORD_TRACK, LogStatus.SUCCESS, message,
                               entity_type='keyword', entity_url=target_url or None,
                               details={'keyword': keyword})
        return tracked

    def untrack(self, keyword: str, target_url: str = None) -> TrackedKeyword:
        tracked = self.db_manager.get_keyword(keyword, target_url or '')
        if tracked is None:
            raise NotFoundError(f"Keyword '{keyword}' is not tracked for '{target_url or ''}'")
        tracked.is_tracking = False
        tracked.updated_at = datetime.now().isoformat()
        self.db_manager.save_keyword(tracked)
        return tracked

    def get(self, keyword: str, target_url: str = None) -> Optional[TrackedKeyword]:
        return self.db_manager.get_keyword(keyword, target_url or '')

    def list_tracked(self, content_id: int = None) -> List[TrackedKeyword]:
        return self.db_manager.list_keywords(tracking_only=True, content_id=content_id)

    def sync_rankings(self, today: datetime = None, is_scheduled: bool = True) -> Dict[str, Any]:
        """Pull fresh readings for every tracked keyword and append to its history"""
        today = today or datetime.now()
        keywords = self.db_manager.list_keywords(tracking_only=True)

        if self.ranking_provider is None:
            self.action_log.append(LogAction.CHECK_RANKING, LogStatus.SKIPPED,
                                   "Ranking provider not configured", is_scheduled=is_scheduled)
            return {'tracked': len(keywords), 'updated': 0, 'skipped': True}

        end_date = today.date().isoformat()
        start_date = (today - timedelta(days=self.config.ranking_lookback_days)).date().isoformat()

        start = time.monotonic()
        try:
            rows = call_with_timeout(self.ranking_provider.search_analytics,
                                     start_date, end_date, ['query', 'page'],
                                     timeout=self.config.provider_timeout,
                                     provider=self.ranking_provider.name)
        except ExternalProviderError as e:
            self.action_log.append(LogAction.CHECK_RANKING, LogStatus.FAILED, str(e),
                                   duration_ms=(time.monotonic() - start) * 1000,
                                   is_scheduled=is_scheduled)
            raise

        readings = self._index_rows(rows)
        updated = 0
        missing = 0
        for tracked in keywords:
            row = self._match(readings, tracked)
            if row is None:
                missing += 1
                continue
            self.apply_reading(tracked, row, end_date)
            updated += 1

        result = {'tracked': len(keywords), 'updated': updated, 'missing': missing,
                  'rows': len(rows), 'start_date': start_date, 'end_date': end_date}
        self.action_log.append(LogAction.CHECK_RANKING, LogStatus.SUCCESS,
                               f"Synced rankings for {updated}/{len(keywords)} keywords",
                               details=result, duration_ms=(time.monotonic() - start) * 1000,
                               is_scheduled=is_scheduled)
        return result

    def apply_reading(self, tracked: TrackedKeyword, row: RankingRow, date: str) -> TrackedKeyword:
        """Roll the current position into previous and append one history entry"""
        tracked.previous_position = tracked.current_position
        tracked.current_position = row.position
        if tracked.previous_position is None:
            tracked.position_change = 0
        else:
            tracked.position_change = tracked.previous_position - row.position
        if tracked.best_position is None or row.position < tracked.best_position:
            tracked.best_position = row.position

        tracked.impressions = row.impressions
        tracked.clicks = row.clicks
        tracked.ctr = (row.clicks / row.impressions) * 100 if row.impressions > 0 else 0.0

        history = list(tracked.ranking_history)
        history.append(RankingEntry(date=date, position=row.position,
                                    clicks=row.clicks, impressions=row.impressions))
        tracked.ranking_history = history[-self.config.ranking_history_limit:]

        now = datetime.now().isoformat()
        tracked.last_checked_at = now
        tracked.updated_at = now
        self.db_manager.save_keyword(tracked)
        return tracked

    def _index_rows(self, rows: List[RankingRow]) -> Dict[Tuple[str, str], RankingRow]:
        readings = {}
        for row in rows:
            readings[(row.keyword.lower(), row.page)] = row
        return readings

    def _match(self, readings: Dict[Tuple[str, str], RankingRow],
               tracked: TrackedKeyword) -> Optional[RankingRow]:
        """Exact page match, or the best-positioned row when no target url is set"""
        key = tracked.keyword.lower()
        if tracked.target_url:
            row = readings.get((key, tracked.target_url))
            if row is None and tracked.target_url.startswith('/'):
                row = readings.get((key, self.config.site_url + tracked.target_url))
            return row
        candidates = [row for (kw, _), row in readings.items() if kw == key]
        return min(candidates, key=lambda r: r.position) if candidates else None
