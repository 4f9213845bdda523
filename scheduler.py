"""
Cadence scheduler for automated SEO tasks
"""
import functools
import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, List, Callable, Any, Tuple

import schedule

from config import config as default_config, EngineConfig
from content_analyzer import extract_link_targets
from errors import ExternalProviderError
from models import ContentItem, TaskResult, LogAction, LogStatus, ReportPeriod
from providers import LinkChecker, call_with_timeout
from report_generator import ReportGenerator
from seo_engine import SEOEngine
from utils import PerformanceMonitor, validate_url, parse_timestamp, calculate_time_difference

logger = logging.getLogger(__name__)

CADENCES = ('hourly', 'daily', 'weekly', 'monthly')

Task = Tuple[str, Callable[[], Dict[str, Any]]]


class Scheduler:
    """Owns the cadence timers, one lock per cadence and the task bodies"""

    def __init__(self, engine: SEOEngine, report_generator: ReportGenerator,
                 link_checker: LinkChecker = None, config: EngineConfig = None):
        self.engine = engine
        self.report_generator = report_generator
        self.link_checker = link_checker
        self.config = config or default_config

        self._scheduler = schedule.Scheduler()
        self._locks = {cadence: threading.Lock() for cadence in CADENCES}
        self._stop_event = threading.Event()
        self.scheduler_thread = None
        self.is_running = False
        self.performance_monitor = PerformanceMonitor()

    # Lifecycle

    def start(self):
        """Register the cadence jobs and start the timer thread"""
        if self.is_running:
            logger.warning("Scheduler is already running")
            return

        self._scheduler.every().hour.at(self.config.hourly_at).do(self._dispatch, 'hourly').tag('hourly')
        self._scheduler.every().day.at(self.config.daily_at).do(self._dispatch, 'daily').tag('daily')
        self._scheduler.every().sunday.at(self.config.weekly_at).do(self._dispatch, 'weekly').tag('weekly')
        # schedule has no monthly unit; fire daily and only run on the 1st
        self._scheduler.every().day.at(self.config.monthly_at).do(self._dispatch_monthly).tag('monthly')

        self._stop_event.clear()
        self.is_running = True
        self.scheduler_thread = threading.Thread(target=self._run_scheduler, name="seo-scheduler", daemon=True)
        self.scheduler_thread.start()

        logger.info("SEO scheduler started")
        logger.info(f"  - Hourly check: every hour at {self.config.hourly_at}")
        logger.info(f"  - Daily tasks: {self.config.daily_at}")
        logger.info(f"  - Weekly tasks: Sunday {self.config.weekly_at}")
        logger.info(f"  - Monthly tasks: 1st of month {self.config.monthly_at}")

    def stop(self):
        """Cancel every timer and wait for the timer thread to exit"""
        self._stop_event.set()
        self._scheduler.clear()
        if self.scheduler_thread:
            self.scheduler_thread.join(timeout=5)
            self.scheduler_thread = None
        self.is_running = False
        logger.info("SEO scheduler stopped")

    def _run_scheduler(self):
        """Main scheduler loop"""
        while not self._stop_event.is_set():
            try:
                self._scheduler.run_pending()
            except Exception as e:
                logger.error(f"Scheduler error: {e}")
            self._stop_event.wait(1)

    def _dispatch(self, cadence: str):
        # Each batch gets its own thread so a long daily run does not hold back the hourly one
        threading.Thread(target=self._run_timed, args=(cadence,),
                         name=f"seo-{cadence}", daemon=True).start()

    def _dispatch_monthly(self):
        if datetime.now().day == 1:
            self._dispatch('monthly')

    def _run_timed(self, cadence: str):
        lock = self._locks[cadence]
        if not lock.acquire(blocking=False):
            logger.warning(f"Skipping {cadence} run: previous {cadence} batch still running")
            return
        try:
            self.run_batch(cadence, self._tasks_for(cadence, is_scheduled=True), is_scheduled=True)
        finally:
            lock.release()

    def _run_manual(self, cadence: str) -> List[TaskResult]:
        logger.info(f"Manually triggering {cadence} tasks...")
        with self._locks[cadence]:
            return self.run_batch(cadence, self._tasks_for(cadence, is_scheduled=False), is_scheduled=False)

    # Manual entry points, same code path as the timers

    def trigger_hourly_tasks(self) -> List[TaskResult]:
        return self._run_manual('hourly')

    def trigger_daily_tasks(self) -> List[TaskResult]:
        return self._run_manual('daily')

    def trigger_weekly_tasks(self) -> List[TaskResult]:
        return self._run_manual('weekly')

    def trigger_monthly_tasks(self) -> List[TaskResult]:
        return self._run_manual('monthly')

    def trigger(self, cadence: str) -> List[TaskResult]:
        if cadence not in CADENCES:
            raise ValueError(f"Unknown cadence: {cadence}")
        return self._run_manual(cadence)

    # Batches

    def _tasks_for(self, cadence: str, is_scheduled: bool = True) -> List[Task]:
        p = functools.partial
        if cadence == 'hourly':
            return [
                ('analyze_new_content', p(self.analyze_new_content, is_scheduled=is_scheduled)),
            ]
        if cadence == 'daily':
            return [
                ('analyze_new_content', p(self.analyze_new_content, is_scheduled=is_scheduled)),
                ('check_index_status', p(self.engine.index_tracker.poll, is_scheduled=is_scheduled)),
                ('sync_rankings', p(self.engine.keyword_tracker.sync_rankings, is_scheduled=is_scheduled)),
                ('generate_report', p(self.generate_report, ReportPeriod.DAILY, is_scheduled=is_scheduled)),
            ]
        if cadence == 'weekly':
            return [
                ('full_seo_audit', p(self.full_seo_audit, is_scheduled=is_scheduled)),
                ('check_broken_links', p(self.check_broken_links, is_scheduled=is_scheduled)),
                ('content_freshness', p(self.check_content_freshness, is_scheduled=is_scheduled)),
                ('generate_report', p(self.generate_report, ReportPeriod.WEEKLY, is_scheduled=is_scheduled)),
            ]
        if cadence == 'monthly':
            return [
                ('monthly_report', p(self.generate_report, ReportPeriod.MONTHLY, is_scheduled=is_scheduled)),
                ('archive_logs', self.archive_old_logs),
                ('reanalyze_low_scores', p(self.reanalyze_low_scores, is_scheduled=is_scheduled)),
            ]
        raise ValueError(f"Unknown cadence: {cadence}")

    def run_batch(self, cadence: str, tasks: List[Task], is_scheduled: bool = True) -> List[TaskResult]:
        """Run tasks in order; one outcome per task and one summary log entry"""
        results = [self._execute_task(cadence, name, func) for name, func in tasks]

        succeeded = len([r for r in results if r.success])
        self.engine.action_log.append(
            LogAction.SCHEDULED_TASK,
            LogStatus.SUCCESS if succeeded == len(results) else LogStatus.WARNING,
            f"{cadence.capitalize()} SEO tasks completed: {succeeded}/{len(results)} successful",
            details={'cadence': cadence,
                     'tasks': [{'task': r.task, 'success': r.success, 'duration': r.duration}
                               for r in results]},
            duration_ms=sum(r.duration for r in results),
            is_scheduled=is_scheduled,
        )
        logger.info(f"{cadence.capitalize()} tasks finished: {succeeded}/{len(results)} successful")
        return results

    def _execute_task(self, cadence: str, name: str, func: Callable[[], Dict[str, Any]]) -> TaskResult:
        """Run one task; any exception becomes a failed outcome"""
        timer = f"{cadence}.{name}"
        start_time = datetime.now()
        self.performance_monitor.start_timer(timer)
        try:
            details = func() or {}
            error = None
        except Exception as e:
            logger.error(f"Task {name} failed: {e}")
            details = {}
            error = str(e)
        duration = self.performance_monitor.end_timer(timer)

        return TaskResult(
            task=name,
            success=error is None,
            start_time=start_time.isoformat(),
            end_time=datetime.now().isoformat(),
            duration=duration,
            details=details,
            error=error,
        )

    # Task bodies

    def analyze_new_content(self, is_scheduled: bool = True) -> Dict[str, Any]:
        """Analyze published items never scored or updated since their last analysis"""
        items = self.engine.content_repository.list_published(limit=self.config.hourly_scan_limit)
        analyzed_at = self.engine.db_manager.get_analyzed_at_map()
        to_analyze = [item for item in items if self._needs_analysis(item, analyzed_at)]
        to_analyze = to_analyze[:self.config.hourly_analyze_limit]

        analyzed = 0
        failed = 0
        for item in to_analyze:
            try:
                self.engine.analyze(item.id, is_scheduled=is_scheduled)
                analyzed += 1
            except Exception as e:
                failed += 1
                logger.error(f"Failed to analyze content {item.id}: {e}")

        return {'total_found': len(to_analyze), 'analyzed': analyzed, 'failed': failed}

    def _needs_analysis(self, item: ContentItem, analyzed_at: Dict[int, str]) -> bool:
        if item.id not in analyzed_at:
            return True
        updated = parse_timestamp(item.updated_at)
        last_run = parse_timestamp(analyzed_at[item.id])
        if updated is None or last_run is None:
            return False
        return updated > last_run

    def generate_report(self, period: ReportPeriod, is_scheduled: bool = True) -> Dict[str, Any]:
        report = self.report_generator.generate(period, is_scheduled=is_scheduled)
        return {'report_generated': True, 'period': report.period}

    def full_seo_audit(self, is_scheduled: bool = True) -> Dict[str, Any]:
        """Re-analyze every published item"""
        items = self.engine.content_repository.list_published(recently_updated_first=False)
        audited = 0
        low_score = 0
        high_score = 0
        failed = 0

        for item in items:
            try:
                snapshot = self.engine.analyze(item.id, is_scheduled=is_scheduled)
            except Exception as e:
                failed += 1
                logger.error(f"Audit failed for content {item.id}: {e}")
                continue
            audited += 1
            if snapshot.overall_score < self.config.low_score_threshold:
                low_score += 1
            elif snapshot.overall_score >= 80:
                high_score += 1

        result = {'total': len(items), 'audited': audited, 'low_score': low_score,
                  'high_score': high_score, 'failed': failed}
        self.engine.action_log.append(LogAction.AUDIT_RUN, LogStatus.SUCCESS,
                                      f"Full SEO audit of {audited}/{len(items)} items",
                                      details=result, is_scheduled=is_scheduled)
        return result

    def check_broken_links(self, is_scheduled: bool = True) -> Dict[str, Any]:
        """Flag malformed absolute links, and dead ones when a link checker is set"""
        items = self.engine.content_repository.list_published(recently_updated_first=False)
        items_checked = 0
        links_checked = 0
        unchecked = 0
        broken_links = []

        for item in items:
            if not item.body:
                continue
            for url in extract_link_targets(item.body):
                if not url.startswith('http'):
                    continue
                links_checked += 1
                try:
                    broken = self._is_broken(url)
                except ExternalProviderError as e:
                    unchecked += 1
                    logger.debug(f"Could not check {url}: {e}")
                    continue
                if broken:
                    broken_links.append({'content_id': item.id, 'url': url})
            items_checked += 1

        if broken_links:
            self.engine.action_log.append(
                LogAction.BROKEN_LINK_CHECK, LogStatus.WARNING,
                f"Found {len(broken_links)} broken links in {items_checked} items",
                details={'broken_links': broken_links[:10]}, is_scheduled=is_scheduled)

        return {'items_checked': items_checked, 'links_checked': links_checked,
                'broken_links_found': len(broken_links), 'unchecked': unchecked,
                'broken_links': broken_links[:10]}

    def _is_broken(self, url: str) -> bool:
        if not validate_url(url):
            return True
        if self.link_checker is None:
            return False
        return call_with_timeout(self.link_checker.is_broken, url,
                                 timeout=self.config.provider_timeout,
                                 provider=self.link_checker.name)

    def check_content_freshness(self, now: datetime = None, is_scheduled: bool = True) -> Dict[str, Any]:
        """List published items untouched for longer than the stale-content age"""
        now = now or datetime.now()
        cutoff = now - timedelta(days=self.config.stale_content_days)
        stale = self.engine.content_repository.list_updated_before(cutoff.isoformat())

        needs_update = [
            {'id': item.id, 'title': item.title, 'last_updated': item.updated_at,
             'days_since_update': calculate_time_difference(item.updated_at, now).days}
            for item in stale
        ]

        if needs_update:
            self.engine.action_log.append(
                LogAction.CONTENT_FRESHNESS, LogStatus.INFO,
                f"Found {len(needs_update)} items not updated in {self.config.stale_content_days}+ days",
                details={'stale_content': needs_update[:10]}, is_scheduled=is_scheduled)

        return {'total_stale': len(needs_update), 'list': needs_update[:20]}

    def archive_old_logs(self) -> Dict[str, Any]:
        return self.engine.action_log.purge_older_than(self.config.log_retention_days)

    def reanalyze_low_scores(self, is_scheduled: bool = True) -> Dict[str, Any]:
        """Re-score the worst items and count how many went up"""
        low_scores = self.engine.db_manager.list_scores(ascending=True,
                                                        limit=self.config.low_score_limit,
                                                        below=self.config.low_score_threshold)
        reanalyzed = 0
        improved = 0
        failed = 0
        for previous in low_scores:
            try:
                snapshot = self.engine.analyze(previous.content_id, is_scheduled=is_scheduled)
            except Exception as e:
                failed += 1
                logger.error(f"Re-analysis failed for content {previous.content_id}: {e}")
                continue
            reanalyzed += 1
            if snapshot.overall_score > previous.overall_score:
                improved += 1

        return {'found': len(low_scores), 'reanalyzed': reanalyzed, 'improved': improved, 'failed': failed}

    # Status

    def get_status(self) -> Dict[str, Any]:
        next_runs = {}
        for job in self._scheduler.get_jobs():
            for tag in job.tags:
                next_runs[tag] = job.next_run.isoformat() if job.next_run else None

        last_report = self.report_generator.get_last_report()
        return {
            'is_running': self.is_running,
            'jobs_count': len(self._scheduler.get_jobs()),
            'next_runs': next_runs,
            'busy': {cadence: lock.locked() for cadence, lock in self._locks.items()},
            'last_report': last_report.to_dict() if last_report else None,
        }
