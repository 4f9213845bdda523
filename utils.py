"""
Utility functions for retries, HTTP sessions, timing and common operations
"""
import math
import time
import random
import logging
import functools
from typing import Callable, Optional
from datetime import datetime, timedelta
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)
perf_logger = logging.getLogger('performance')

def retry_on_failure(max_retries: int = 3, delay: float = 1.0, backoff: float = 2.0,
                    exceptions: tuple = (Exception,)):
    """
    Decorator for retrying functions on failure with exponential backoff

    Args:
        max_retries: Maximum number of retry attempts
        delay: Initial delay between retries in seconds
        backoff: Multiplier for delay after each retry
        exceptions: Tuple of exceptions to catch and retry on
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        logger.error(f"Function {func.__name__} failed after {max_retries} retries: {e}")
                        raise
                    logger.warning(f"Attempt {attempt + 1} failed for {func.__name__}: {e}. Retrying in {current_delay:.2f}s")
                    time.sleep(current_delay + random.uniform(0, current_delay / 2))
                    current_delay *= backoff
        return wrapper
    return decorator

class RobustSession:
    """Requests session with retry logic and a bounded timeout on every call"""

    def __init__(self, max_retries: int = 2, backoff_factor: float = 0.3,
                 timeout: float = 15, user_agent: str = None):
        self.session = requests.Session()
        self.timeout = timeout

        retry_strategy = Retry(
            total=max_retries,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
            backoff_factor=backoff_factor,
            raise_on_status=False
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self.session.headers.update({
            'User-Agent': user_agent or 'seo-engine/1.0 (+link-checker)',
            'Accept': 'text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8',
        })

    def get(self, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault('timeout', self.timeout)
        return self.session.get(url, **kwargs)

    def head(self, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault('timeout', self.timeout)
        kwargs.setdefault('allow_redirects', True)
        return self.session.head(url, **kwargs)

    def close(self):
        self.session.close()

def validate_url(url: str) -> bool:
    """Validate if an absolute URL is properly formatted"""
    if not url or any(ch.isspace() for ch in url):
        return False
    try:
        result = urlparse(url)
    except ValueError:
        return False
    return all([result.scheme in ('http', 'https'), result.netloc])

def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for non-negative values, unlike round()"""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor

def parse_timestamp(timestamp: Optional[str]) -> Optional[datetime]:
    if not timestamp:
        return None
    try:
        return datetime.fromisoformat(timestamp)
    except (TypeError, ValueError):
        return None

def calculate_time_difference(timestamp: Optional[str], now: datetime = None) -> timedelta:
    """Calculate time difference from ISO timestamp to now"""
    past_time = parse_timestamp(timestamp)
    if past_time is None:
        return timedelta(days=999)  # Treat unparseable timestamps as very old
    return (now or datetime.now()) - past_time

class PerformanceMonitor:
    """Monitor and log operation timings"""

    def __init__(self):
        self.metrics = {}

    def start_timer(self, operation: str):
        """Start timing an operation"""
        self.metrics[operation] = {'start': time.monotonic()}

    def end_timer(self, operation: str) -> float:
        """End timing, log and return the duration in milliseconds"""
        entry = self.metrics.get(operation)
        if not entry or 'start' not in entry:
            return 0.0
        duration = (time.monotonic() - entry['start']) * 1000
        entry['duration_ms'] = duration
        perf_logger.info(f"Operation '{operation}' completed in {duration:.1f} ms")
        return duration

    def get_metrics(self) -> dict:
        """Get all recorded metrics"""
        return self.metrics.copy()
