"""
Pytest configuration and shared fixtures
"""
import pytest
import os
import tempfile
from datetime import datetime

# Add project root to path
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from action_log import ActionLog
from config import EngineConfig
from content_repository import ContentRepository
from database import DatabaseManager
from errors import ExternalProviderError
from index_tracker import IndexStatusTracker
from keyword_tracker import KeywordTracker
from models import ContentItem
from providers import (
    IndexSubmissionProvider, UrlInspectionProvider, RankingProvider, PerformanceProvider,
    SubmissionResult, InspectionResult, RankingRow, PerformanceResult
)
from report_generator import ReportGenerator
from scheduler import Scheduler
from seo_engine import SEOEngine


@pytest.fixture
def temp_db():
    """Create a temporary database for testing"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture
def test_config(temp_db):
    """Test configuration with temporary database"""
    config = EngineConfig()
    config.db_path = temp_db
    config.site_url = "https://example.com"
    config.provider_timeout = 2
    config.check_links_over_http = False
    return config


@pytest.fixture
def db_manager(temp_db):
    """Database manager with temporary database"""
    return DatabaseManager(temp_db)


@pytest.fixture
def insert_content(db_manager):
    """Insert a content item row; keyword arguments override the defaults"""
    counter = {'next_id': 1}

    def _insert(**fields) -> ContentItem:
        now = datetime.now().isoformat()
        data = {
            'id': counter['next_id'],
            'title': 'A Practical Guide to Python Packaging in 2024',
            'slug': 'python-packaging-guide',
            'status': 'published',
            'body': '<h2>Intro</h2><p>Python packaging is simple once you know the tools.</p>',
            'meta_title': None,
            'meta_description': None,
            'excerpt': None,
            'cover_image': None,
            'canonical_url': None,
            'category_id': None,
            'focus_keyword': None,
            'updated_at': now,
            'published_at': now,
        }
        data.update(fields)
        counter['next_id'] = max(counter['next_id'], data['id']) + 1

        columns = ', '.join(data.keys())
        placeholders = ', '.join('?' for _ in data)
        with db_manager.connection() as conn:
            conn.execute(f"INSERT OR REPLACE INTO content_items ({columns}) VALUES ({placeholders})",
                         tuple(data.values()))
        return ContentItem(**data)

    return _insert


class FakeSubmissionProvider(IndexSubmissionProvider):
    name = "fake-submission"

    def __init__(self, success=True, error=None):
        self.success = success
        self.error = error
        self.calls = []

    def submit_url(self, url, change_type="URL_UPDATED"):
        self.calls.append((url, change_type))
        if self.error:
            raise self.error
        return SubmissionResult(success=self.success, message="" if self.success else "rejected",
                                response={"url": url})


class FakeInspectionProvider(UrlInspectionProvider):
    name = "fake-inspection"

    def __init__(self, verdicts=None, default='indexed', error=None):
        self.verdicts = verdicts or {}
        self.default = default
        self.error = error
        self.calls = []

    def inspect(self, url):
        self.calls.append(url)
        if self.error:
            raise self.error
        return InspectionResult(verdict=self.verdicts.get(url, self.default),
                                coverage_state="Submitted and indexed",
                                indexing_state="INDEXING_ALLOWED",
                                page_fetch_state="SUCCESSFUL")


class FakeRankingProvider(RankingProvider):
    name = "fake-ranking"

    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = []

    def search_analytics(self, start_date, end_date, dimensions):
        self.calls.append((start_date, end_date, list(dimensions)))
        if self.error:
            raise self.error
        return list(self.rows)


class FakePerformanceProvider(PerformanceProvider):
    name = "fake-performance"

    def __init__(self, score=88, error=None):
        self.score = score
        self.error = error

    def run(self, url, strategy="mobile"):
        if self.error:
            raise self.error
        return PerformanceResult(performance_score=self.score, accessibility_score=90, seo_score=95)


@pytest.fixture
def action_log(db_manager):
    return ActionLog(db_manager)


@pytest.fixture
def content_repository(db_manager):
    return ContentRepository(db_manager)


@pytest.fixture
def index_tracker(db_manager, action_log, test_config):
    return IndexStatusTracker(db_manager, action_log, config=test_config)


@pytest.fixture
def keyword_tracker(db_manager, action_log, test_config):
    return KeywordTracker(db_manager, action_log, config=test_config)


@pytest.fixture
def engine(db_manager, content_repository, action_log, index_tracker, keyword_tracker, test_config):
    return SEOEngine(db_manager, content_repository, action_log, index_tracker, keyword_tracker,
                     performance_provider=FakePerformanceProvider(), config=test_config)


@pytest.fixture
def report_generator(db_manager, content_repository, action_log, test_config):
    return ReportGenerator(db_manager, content_repository, action_log, config=test_config)


@pytest.fixture
def scheduler(engine, report_generator, test_config):
    sched = Scheduler(engine, report_generator, config=test_config)
    yield sched
    sched.stop()


@pytest.fixture
def ranking_row():
    """Factory for search analytics rows"""
    def _row(keyword="python packaging", page="https://example.com/python-packaging-guide/",
             position=8.0, clicks=12, impressions=400):
        return RankingRow(keyword=keyword, page=page, position=position,
                          clicks=clicks, impressions=impressions)
    return _row


@pytest.fixture
def provider_error():
    return ExternalProviderError("service unavailable", provider="fake", status_code=503)
