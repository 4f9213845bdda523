"""
External signal providers: interfaces, timeout wrapper and HTTP clients

The engine never talks to indexing or ranking services directly. Callers
inject implementations of the interfaces below; every call goes through
call_with_timeout so a slow provider degrades to an ExternalProviderError
instead of stalling a batch.
"""
import logging
import concurrent.futures
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Any

import requests

from errors import ExternalProviderError
from utils import RobustSession

logger = logging.getLogger(__name__)

PAGESPEED_ENDPOINT = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"

_executor = concurrent.futures.ThreadPoolExecutor(max_workers=8, thread_name_prefix="provider")


@dataclass
class SubmissionResult:
    """Outcome of an index submission request"""
    success: bool
    message: str = ""
    response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class InspectionResult:
    """Indexing verdict for a URL: 'indexed', 'not_indexed' or 'removed'"""
    verdict: str
    coverage_state: Optional[str] = None
    indexing_state: Optional[str] = None
    page_fetch_state: Optional[str] = None
    last_crawl_time: Optional[str] = None


@dataclass
class RankingRow:
    """One search analytics row for a (query, page) pair"""
    keyword: str
    page: str
    position: float
    clicks: int
    impressions: int


@dataclass
class PerformanceResult:
    """Page performance reading for one device strategy"""
    performance_score: int
    accessibility_score: Optional[int] = None
    seo_score: Optional[int] = None
    metrics: Dict[str, Any] = field(default_factory=dict)
    suggestions: List[str] = field(default_factory=list)


class IndexSubmissionProvider:
    name = "index-submission"

    def submit_url(self, url: str, change_type: str = "URL_UPDATED") -> SubmissionResult:
        raise NotImplementedError


class UrlInspectionProvider:
    name = "url-inspection"

    def inspect(self, url: str) -> InspectionResult:
        raise NotImplementedError


class RankingProvider:
    name = "search-analytics"

    def search_analytics(self, start_date: str, end_date: str,
                         dimensions: List[str]) -> List[RankingRow]:
        raise NotImplementedError


class PerformanceProvider:
    name = "page-performance"

    def run(self, url: str, strategy: str = "mobile") -> PerformanceResult:
        raise NotImplementedError


class LinkChecker:
    name = "link-checker"

    def is_broken(self, url: str) -> bool:
        raise NotImplementedError


def call_with_timeout(func: Callable, *args, timeout: float, provider: str = "", **kwargs):
    """Run a provider call with a hard deadline, normalizing every failure"""
    future = _executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError:
        future.cancel()
        logger.warning(f"Provider {provider or func.__name__} timed out after {timeout}s")
        raise ExternalProviderError(f"{provider or 'provider'} timed out after {timeout}s", provider=provider)
    except ExternalProviderError:
        raise
    except Exception as e:
        logger.warning(f"Provider {provider or func.__name__} failed: {e}")
        raise ExternalProviderError(f"{provider or 'provider'} failed: {e}", provider=provider) from e


class PageSpeedInsightsClient(PerformanceProvider):
    """PageSpeed Insights v5 client"""
    name = "pagespeed-insights"

    def __init__(self, api_key: str = None, timeout: float = 30, session: RobustSession = None):
        self.api_key = api_key
        self.session = session or RobustSession(timeout=timeout)

    def run(self, url: str, strategy: str = "mobile") -> PerformanceResult:
        params = [("url", url), ("strategy", strategy),
                  ("category", "PERFORMANCE"), ("category", "SEO"), ("category", "ACCESSIBILITY")]
        if self.api_key:
            params.append(("key", self.api_key))

        response = self.session.get(PAGESPEED_ENDPOINT, params=params)
        if response.status_code != 200:
            raise ExternalProviderError(f"PageSpeed request failed with HTTP {response.status_code}",
                                        provider=self.name, status_code=response.status_code)

        lighthouse = response.json().get("lighthouseResult", {})
        categories = lighthouse.get("categories", {})
        audits = lighthouse.get("audits", {})

        def category_score(key):
            score = categories.get(key, {}).get("score")
            return round(score * 100) if isinstance(score, (int, float)) else 0

        def display(key):
            return audits.get(key, {}).get("displayValue")

        suggestions = [
            f"{key}: {audit['displayValue']}"
            for key, audit in audits.items()
            if isinstance(audit.get("score"), (int, float)) and audit["score"] < 0.9 and audit.get("displayValue")
        ]

        return PerformanceResult(
            performance_score=category_score("performance"),
            accessibility_score=category_score("accessibility"),
            seo_score=category_score("seo"),
            metrics={
                "first_contentful_paint": display("first-contentful-paint"),
                "largest_contentful_paint": display("largest-contentful-paint"),
                "total_blocking_time": display("total-blocking-time"),
                "cumulative_layout_shift": display("cumulative-layout-shift"),
                "speed_index": display("speed-index"),
            },
            suggestions=suggestions[:10],
        )


class HttpLinkChecker(LinkChecker):
    """HEAD request; a 4xx/5xx response marks the link as broken"""
    name = "http-link-checker"

    def __init__(self, timeout: float = 10, session: RobustSession = None):
        self.session = session or RobustSession(max_retries=0, timeout=timeout)

    def is_broken(self, url: str) -> bool:
        try:
            response = self.session.head(url)
        except requests.exceptions.RequestException as e:
            raise ExternalProviderError(f"Link check failed for {url}: {e}", provider=self.name) from e
        return response.status_code >= 400
