"""
Main application for the SEO analysis engine - wires components and exposes the CLI
"""
import argparse
import json
import sys
import time
import logging
from dataclasses import asdict, is_dataclass, replace
from typing import Dict, Any, List

from action_log import ActionLog
from config import config as default_config, EngineConfig
from content_repository import ContentRepository
from database import DatabaseManager
from errors import SEOEngineError
from index_tracker import IndexStatusTracker
from keyword_tracker import KeywordTracker
from monitoring import setup_logging
from providers import (
    IndexSubmissionProvider, UrlInspectionProvider, RankingProvider, PerformanceProvider,
    LinkChecker, PageSpeedInsightsClient, HttpLinkChecker
)
from report_generator import ReportGenerator
from scheduler import Scheduler, CADENCES
from seo_engine import SEOEngine

logger = logging.getLogger(__name__)


class SEOEngineApp:
    """Builds the engine, trackers, report generator and scheduler around one database"""

    def __init__(self, config: EngineConfig = None,
                 submission_provider: IndexSubmissionProvider = None,
                 inspection_provider: UrlInspectionProvider = None,
                 ranking_provider: RankingProvider = None,
                 performance_provider: PerformanceProvider = None,
                 link_checker: LinkChecker = None,
                 init_logging: bool = True):
        self.config = config or default_config
        if init_logging:
            setup_logging(self.config.log_level, self.config.log_directory)

        if performance_provider is None:
            performance_provider = PageSpeedInsightsClient(api_key=self.config.pagespeed_api_key,
                                                           timeout=self.config.provider_timeout)
        if link_checker is None and self.config.check_links_over_http:
            link_checker = HttpLinkChecker(timeout=self.config.provider_timeout)

        self.db_manager = DatabaseManager(self.config.db_path)
        self.content_repository = ContentRepository(self.db_manager)
        self.action_log = ActionLog(self.db_manager)
        self.index_tracker = IndexStatusTracker(self.db_manager, self.action_log,
                                                submission_provider, inspection_provider,
                                                config=self.config)
        self.keyword_tracker = KeywordTracker(self.db_manager, self.action_log,
                                              ranking_provider, config=self.config)
        self.engine = SEOEngine(self.db_manager, self.content_repository, self.action_log,
                                self.index_tracker, self.keyword_tracker,
                                performance_provider=performance_provider, config=self.config)
        self.report_generator = ReportGenerator(self.db_manager, self.content_repository,
                                                self.action_log, config=self.config)
        self.scheduler = Scheduler(self.engine, self.report_generator,
                                   link_checker=link_checker, config=self.config)

        logger.info("SEO engine application initialized")

    def get_last_report(self, period: str = None):
        return self.report_generator.get_last_report(period)

    def get_system_status(self) -> Dict[str, Any]:
        return {
            "scheduler": self.scheduler.get_status(),
            "stats": self.engine.get_dashboard_stats(),
        }

    def shutdown(self):
        """Gracefully shutdown the application"""
        logger.info("Shutting down SEO engine application")
        self.scheduler.stop()


def to_jsonable(value):
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def create_cli():
    """Create command line interface"""
    parser = argparse.ArgumentParser(description="SEO engine - content scoring, index and ranking tracking")
    parser.add_argument("--db", help="Database path (overrides SEO_ENGINE_DB_PATH)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    analyze_parser = subparsers.add_parser("analyze", help="Analyze a content item now")
    analyze_parser.add_argument("content_id", help="Content item id")
    analyze_parser.add_argument("--keyword", help="Focus keyword (overrides the stored one)")

    score_parser = subparsers.add_parser("score", help="Show the stored score snapshot")
    score_parser.add_argument("content_id", help="Content item id")

    subparsers.add_parser("stats", help="Dashboard statistics")

    logs_parser = subparsers.add_parser("logs", help="Recent action log entries")
    logs_parser.add_argument("--action", help="Filter by action tag")
    logs_parser.add_argument("--status", help="Filter by status")
    logs_parser.add_argument("--limit", type=int, default=50, help="Number of entries")

    report_parser = subparsers.add_parser("report", help="Generate a report")
    report_parser.add_argument("period", choices=["daily", "weekly", "monthly"])

    run_parser = subparsers.add_parser("run", help="Run a cadence batch now")
    run_parser.add_argument("cadence", choices=list(CADENCES))

    track_parser = subparsers.add_parser("track-keyword", help="Start tracking a keyword")
    track_parser.add_argument("keyword", help="Keyword to track")
    track_parser.add_argument("--url", default="", help="Target URL")
    track_parser.add_argument("--content-id", type=int, help="Related content id")
    track_parser.add_argument("--language", help="Language code")
    track_parser.add_argument("--country", help="Country code")

    submit_parser = subparsers.add_parser("submit-url", help="Submit a URL for indexing")
    submit_parser.add_argument("url", help="URL to submit")
    submit_parser.add_argument("--content-id", type=int, help="Related content id")

    pagespeed_parser = subparsers.add_parser("pagespeed", help="Check page performance")
    pagespeed_parser.add_argument("url", help="URL or site path")
    pagespeed_parser.add_argument("--strategy", choices=["mobile", "desktop"], default="mobile")

    subparsers.add_parser("serve", help="Start the scheduler and block")

    return parser


def main(argv: List[str] = None) -> int:
    """Main application entry point"""
    parser = create_cli()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    engine_config = default_config
    if args.db:
        # replace() reruns env overrides, so the path is set on the copy
        engine_config = replace(default_config)
        engine_config.db_path = args.db

    app = SEOEngineApp(engine_config)

    def emit(value):
        print(json.dumps(to_jsonable(value), indent=2, default=str))

    try:
        if args.command == "analyze":
            result = app.engine.analyze_content(args.content_id, args.keyword)
            emit(result)
            return 0 if result["success"] else 1

        elif args.command == "score":
            snapshot = app.engine.get_score(args.content_id)
            if snapshot is None:
                print(f"No score stored for content {args.content_id}")
                return 1
            emit(snapshot)

        elif args.command == "stats":
            emit(app.engine.get_dashboard_stats())

        elif args.command == "logs":
            emit(app.engine.get_recent_logs(limit=args.limit, action=args.action, status=args.status))

        elif args.command == "report":
            emit(app.report_generator.generate(args.period, is_scheduled=False))

        elif args.command == "run":
            results = app.scheduler.trigger(args.cadence)
            emit(results)
            return 0 if all(r.success for r in results) else 1

        elif args.command == "track-keyword":
            emit(app.keyword_tracker.track(args.keyword, args.url, content_id=args.content_id,
                                           language=args.language, country=args.country))

        elif args.command == "submit-url":
            emit(app.index_tracker.submit(args.url, content_id=args.content_id))

        elif args.command == "pagespeed":
            result = app.engine.check_page_speed(args.url, args.strategy)
            emit(result)
            return 0 if result["success"] else 1

        elif args.command == "serve":
            app.scheduler.start()
            print("SEO scheduler running. Press Ctrl+C to stop...")
            try:
                while True:
                    time.sleep(60)
            except KeyboardInterrupt:
                print("\nStopping scheduler...")

    except SEOEngineError as e:
        logger.error(f"Application error: {e}")
        print(f"Error: {e}")
        return 1
    finally:
        app.shutdown()

    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
