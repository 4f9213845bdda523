"""
Data models for the SEO analysis engine
"""
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional
from enum import Enum


class LogAction(Enum):
    ANALYZE = "analyze"
    SUBMIT_INDEX = "submit-index"
    CHECK_INDEX = "check-index"
    CHECK_RANKING = "check-ranking"
    PAGESPEED_CHECK = "pagespeed-check"
    KEYWORD_TRACK = "keyword-track"
    AUDIT_RUN = "audit-run"
    SCHEDULED_TASK = "scheduled-task"
    BROKEN_LINK_CHECK = "broken-link-check"
    CONTENT_FRESHNESS = "content-freshness"
    REPORT_GENERATED = "report-generated"


class LogStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"
    SKIPPED = "skipped"
    WARNING = "warning"
    INFO = "info"


class IndexStatus(Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    INDEXED = "indexed"
    NOT_INDEXED = "not_indexed"
    ERROR = "error"
    REMOVED = "removed"


class ReportPeriod(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass
class ContentItem:
    """Read-only view of a content item supplied by the content repository"""
    id: int
    title: str
    slug: str = ""
    status: str = "draft"
    body: str = ""
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    excerpt: Optional[str] = None
    cover_image: Optional[str] = None
    canonical_url: Optional[str] = None
    category_id: Optional[int] = None
    focus_keyword: Optional[str] = None
    updated_at: Optional[str] = None
    published_at: Optional[str] = None

    @property
    def is_published(self) -> bool:
        return self.status == "published"


@dataclass
class AnalysisResult:
    """Structural statistics for one piece of content"""
    word_count: int = 0
    sentence_count: int = 0
    paragraph_count: int = 0
    avg_words_per_sentence: int = 0
    h1_count: int = 0
    h2_count: int = 0
    h3_count: int = 0
    h4_count: int = 0
    images_total: int = 0
    images_with_alt: int = 0
    images_without_alt: int = 0
    internal_links: int = 0
    external_links: int = 0
    keyword_density: float = 0.0
    focus_keyword: Optional[str] = None
    focus_keyword_count: int = 0
    reading_ease: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        return cls(**data)


@dataclass
class Suggestion:
    """One actionable finding produced by the suggestion rules"""
    type: str       # 'error', 'warning', 'success', 'info'
    category: str
    message: str
    priority: str   # 'high', 'medium', 'low'


@dataclass
class SubScores:
    """The nine weighted quality dimensions, each in [0, 100]"""
    title: int = 0
    meta_description: int = 0
    content: int = 0
    heading: int = 0
    keyword: int = 0
    readability: int = 0
    internal_link: int = 0
    image: int = 0
    technical: int = 0


@dataclass
class ScoreSnapshot:
    """Most recent scoring result for a content id"""
    content_id: int
    overall_score: int
    scores: SubScores
    analysis: AnalysisResult
    suggestions: List[Suggestion]
    checked_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LogEntry:
    """Immutable audit trail entry"""
    action: str
    status: str
    message: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    entity_url: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    duration_ms: Optional[float] = None
    is_scheduled: bool = False
    created_at: Optional[str] = None
    id: Optional[int] = None


@dataclass
class IndexRecord:
    """Indexing lifecycle state for one URL"""
    url: str
    status: str = IndexStatus.PENDING.value
    content_id: Optional[int] = None
    submission_method: Optional[str] = None
    submitted_at: Optional[str] = None
    indexed_at: Optional[str] = None
    last_crawled_at: Optional[str] = None
    crawl_status: Optional[str] = None
    indexing_status: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    mobile_score: Optional[int] = None
    desktop_score: Optional[int] = None
    last_checked_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class RankingEntry:
    """One point in a keyword's ranking history"""
    date: str
    position: float
    clicks: int
    impressions: int


@dataclass
class TrackedKeyword:
    """Ranking state for a (keyword, target url) pair"""
    keyword: str
    target_url: str = ""
    content_id: Optional[int] = None
    language: Optional[str] = None
    country: Optional[str] = None
    search_volume: Optional[int] = None
    current_position: Optional[float] = None
    previous_position: Optional[float] = None
    best_position: Optional[float] = None
    position_change: float = 0
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    ranking_history: List[RankingEntry] = field(default_factory=list)
    is_tracking: bool = True
    last_checked_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class TaskResult:
    """Outcome of one task inside a scheduled batch"""
    task: str
    success: bool
    start_time: str
    end_time: str
    duration: float  # milliseconds
    details: Dict[str, Any]
    error: Optional[str] = None


@dataclass
class Report:
    """Point-in-time aggregate of scores, index state and rankings"""
    generated_at: str
    period: str
    summary: Dict[str, Any]
    top_performers: List[Dict[str, Any]]
    needs_attention: List[Dict[str, Any]]
    keyword_rankings: List[Dict[str, Any]]
    actions: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
