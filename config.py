"""
Configuration file for the SEO analysis engine
"""
import os
from dataclasses import dataclass

@dataclass
class EngineConfig:
    """Configuration settings for the SEO analysis engine"""

    # Database settings
    db_path: str = "seo_engine.db"

    # Site settings
    site_url: str = "http://localhost:3000"
    content_url_pattern: str = "/{slug}/"

    # External providers
    provider_timeout: float = 15.0
    pagespeed_api_key: str = None
    check_links_over_http: bool = False

    # Hourly analysis
    hourly_scan_limit: int = 50
    hourly_analyze_limit: int = 20

    # Index tracking
    index_poll_limit: int = 50
    index_staleness_hours: int = 24
    index_max_retries: int = 3

    # Keyword tracking
    ranking_lookback_days: int = 7
    ranking_history_limit: int = 90

    # Maintenance
    stale_content_days: int = 180
    log_retention_days: int = 90
    low_score_threshold: int = 50
    low_score_limit: int = 20

    # Reporting
    report_top_n: int = 5
    report_attention_threshold: int = 60
    report_issue_threshold: int = 50
    report_keyword_limit: int = 10

    # Cadence times
    hourly_at: str = ":00"
    daily_at: str = "02:00"
    weekly_at: str = "03:00"
    monthly_at: str = "04:00"

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(levelname)s - %(message)s"
    log_directory: str = "logs"

    def __post_init__(self):
        self.db_path = os.environ.get("SEO_ENGINE_DB_PATH", self.db_path)
        self.site_url = os.environ.get("SEO_ENGINE_SITE_URL", self.site_url).rstrip("/")
        self.log_level = os.environ.get("SEO_ENGINE_LOG_LEVEL", self.log_level).upper()
        if self.pagespeed_api_key is None:
            self.pagespeed_api_key = os.environ.get("GOOGLE_PAGESPEED_API_KEY")

# Default configuration instance
config = EngineConfig()
