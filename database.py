"""
Database utilities for the SEO analysis engine
"""
import sqlite3
import json
import logging
from contextlib import contextmanager
from dataclasses import asdict
from typing import Optional, List, Dict, Any, Iterable

from errors import PersistenceError
from models import (
    ScoreSnapshot, SubScores, AnalysisResult, Suggestion, LogEntry,
    IndexRecord, TrackedKeyword, RankingEntry
)

logger = logging.getLogger(__name__)

SCORE_COLUMNS = [
    'title_score', 'meta_description_score', 'content_score', 'heading_score',
    'keyword_score', 'readability_score', 'internal_link_score', 'image_score',
    'technical_score',
]

class DatabaseManager:
    """Manages SQLite storage for scores, logs, index records and keywords"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.setup_database()

    @contextmanager
    def connection(self):
        """Yield a connection, committing on success; sqlite errors become PersistenceError"""
        try:
            conn = sqlite3.connect(self.db_path, timeout=10)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row

        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    def setup_database(self):
        """Initialize SQLite database with complete schema"""
        with self.connection() as conn:
            cursor = conn.cursor()

            # Content items are owned by the CMS; the engine only reads them
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS content_items (
                    id INTEGER PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    slug TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'draft',
                    body TEXT,
                    meta_title TEXT,
                    meta_description TEXT,
                    excerpt TEXT,
                    cover_image TEXT,
                    canonical_url TEXT,
                    category_id INTEGER,
                    focus_keyword TEXT,
                    updated_at TEXT,
                    published_at TEXT
                )
            ''')

            # One live snapshot per content id
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS seo_scores (
                    content_id INTEGER PRIMARY KEY,
                    overall_score INTEGER NOT NULL,
                    title_score INTEGER,
                    meta_description_score INTEGER,
                    content_score INTEGER,
                    heading_score INTEGER,
                    keyword_score INTEGER,
                    readability_score INTEGER,
                    internal_link_score INTEGER,
                    image_score INTEGER,
                    technical_score INTEGER,
                    analysis TEXT,
                    suggestions TEXT,
                    checked_at TEXT,
                    analyzed_at TEXT
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS seo_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    action TEXT NOT NULL,
                    status TEXT NOT NULL,
                    message TEXT,
                    entity_type TEXT,
                    entity_id TEXT,
                    entity_url TEXT,
                    details TEXT,
                    duration_ms REAL,
                    is_scheduled BOOLEAN,
                    created_at TEXT NOT NULL
                )
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_seo_logs_created ON seo_logs (created_at)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_seo_logs_action ON seo_logs (action)')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS index_status (
                    url TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    content_id INTEGER,
                    submission_method TEXT,
                    submitted_at TEXT,
                    indexed_at TEXT,
                    last_crawled_at TEXT,
                    crawl_status TEXT,
                    indexing_status TEXT,
                    error_message TEXT,
                    retry_count INTEGER DEFAULT 0,
                    mobile_score INTEGER,
                    desktop_score INTEGER,
                    last_checked_at TEXT,
                    created_at TEXT,
                    updated_at TEXT
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS keywords (
                    keyword TEXT NOT NULL,
                    target_url TEXT NOT NULL DEFAULT '',
                    content_id INTEGER,
                    language TEXT,
                    country TEXT,
                    search_volume INTEGER,
                    current_position REAL,
                    previous_position REAL,
                    best_position REAL,
                    position_change REAL DEFAULT 0,
                    impressions INTEGER DEFAULT 0,
                    clicks INTEGER DEFAULT 0,
                    ctr REAL DEFAULT 0,
                    ranking_history TEXT,
                    is_tracking BOOLEAN DEFAULT 1,
                    last_checked_at TEXT,
                    created_at TEXT,
                    updated_at TEXT,
                    PRIMARY KEY (keyword, target_url)
                )
            ''')

        logger.info("Database schema initialized successfully")

    # Score snapshots

    def upsert_score(self, snapshot: ScoreSnapshot, analyzed_at: str = None):
        """Create or fully overwrite the snapshot for a content id

        analyzed_at records when the item was last run through the analyzer,
        which can be later than checked_at when the result did not change.
        """
        scores = snapshot.scores
        with self.connection() as conn:
            conn.execute('''
                INSERT OR REPLACE INTO seo_scores
                (content_id, overall_score, title_score, meta_description_score, content_score,
                 heading_score, keyword_score, readability_score, internal_link_score,
                 image_score, technical_score, analysis, suggestions, checked_at, analyzed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                snapshot.content_id, snapshot.overall_score,
                scores.title, scores.meta_description, scores.content, scores.heading,
                scores.keyword, scores.readability, scores.internal_link, scores.image,
                scores.technical,
                json.dumps(asdict(snapshot.analysis)),
                json.dumps([asdict(s) for s in snapshot.suggestions]),
                snapshot.checked_at,
                analyzed_at or snapshot.checked_at,
            ))
        logger.debug(f"Saved score snapshot for content {snapshot.content_id}")

    def get_score(self, content_id: int) -> Optional[ScoreSnapshot]:
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM seo_scores WHERE content_id = ?", (content_id,)).fetchone()
        return self._row_to_snapshot(row) if row else None

    def list_scores(self, ascending: bool = False, limit: int = None,
                    below: int = None) -> List[ScoreSnapshot]:
        """List snapshots ordered by overall score, optionally only those under a threshold"""
        query = "SELECT * FROM seo_scores"
        params: List[Any] = []
        if below is not None:
            query += " WHERE overall_score < ?"
            params.append(below)
        direction = "ASC" if ascending else "DESC"
        query += f" ORDER BY overall_score {direction}, content_id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_snapshot(row) for row in rows]

    def get_analyzed_at_map(self) -> Dict[int, str]:
        """Map content id to the time of its last analysis run"""
        with self.connection() as conn:
            rows = conn.execute("SELECT content_id, COALESCE(analyzed_at, checked_at) AS analyzed_at "
                                "FROM seo_scores").fetchall()
        return {row['content_id']: row['analyzed_at'] for row in rows}

    def get_overall_scores(self) -> List[int]:
        with self.connection() as conn:
            rows = conn.execute("SELECT overall_score FROM seo_scores").fetchall()
        return [row['overall_score'] for row in rows]

    def _row_to_snapshot(self, row: sqlite3.Row) -> ScoreSnapshot:
        return ScoreSnapshot(
            content_id=row['content_id'],
            overall_score=row['overall_score'],
            scores=SubScores(*(row[col] for col in SCORE_COLUMNS)),
            analysis=AnalysisResult.from_dict(json.loads(row['analysis'] or '{}')),
            suggestions=[Suggestion(**s) for s in json.loads(row['suggestions'] or '[]')],
            checked_at=row['checked_at'],
        )

    # Action log

    def insert_log(self, entry: LogEntry) -> int:
        with self.connection() as conn:
            cursor = conn.execute('''
                INSERT INTO seo_logs
                (action, status, message, entity_type, entity_id, entity_url,
                 details, duration_ms, is_scheduled, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                entry.action, entry.status, entry.message, entry.entity_type,
                entry.entity_id, entry.entity_url,
                json.dumps(entry.details, default=str) if entry.details is not None else None,
                entry.duration_ms, entry.is_scheduled, entry.created_at,
            ))
            return cursor.lastrowid

    def query_logs(self, action: str = None, status: str = None, limit: int = 50,
                   since: str = None) -> List[LogEntry]:
        """Newest-first log entries with optional filters"""
        clauses, params = [], []
        if action:
            clauses.append("action = ?")
            params.append(action)
        if status:
            clauses.append("status = ?")
            params.append(status)
        if since:
            clauses.append("created_at >= ?")
            params.append(since)

        query = "SELECT * FROM seo_logs"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)

        with self.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_log(row) for row in rows]

    def count_logs_by_action(self, since: str = None) -> Dict[str, int]:
        query = "SELECT action, COUNT(*) AS total FROM seo_logs"
        params = []
        if since:
            query += " WHERE created_at >= ?"
            params.append(since)
        query += " GROUP BY action ORDER BY total DESC, action ASC"
        with self.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return {row['action']: row['total'] for row in rows}

    def delete_logs_before(self, cutoff: str) -> int:
        """Range-bounded delete of log entries created before the cutoff"""
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM seo_logs WHERE created_at < ?", (cutoff,))
            deleted = cursor.rowcount
        logger.info(f"Deleted {deleted} log entries older than {cutoff}")
        return deleted

    def _row_to_log(self, row: sqlite3.Row) -> LogEntry:
        return LogEntry(
            id=row['id'],
            action=row['action'],
            status=row['status'],
            message=row['message'],
            entity_type=row['entity_type'],
            entity_id=row['entity_id'],
            entity_url=row['entity_url'],
            details=json.loads(row['details']) if row['details'] else None,
            duration_ms=row['duration_ms'],
            is_scheduled=bool(row['is_scheduled']),
            created_at=row['created_at'],
        )

    # Index records

    def save_index_record(self, record: IndexRecord):
        data = asdict(record)
        columns = ', '.join(data.keys())
        placeholders = ', '.join('?' for _ in data)
        with self.connection() as conn:
            conn.execute(f"INSERT OR REPLACE INTO index_status ({columns}) VALUES ({placeholders})",
                         tuple(data.values()))

    def get_index_record(self, url: str) -> Optional[IndexRecord]:
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM index_status WHERE url = ?", (url,)).fetchone()
        return IndexRecord(**dict(row)) if row else None

    def list_index_records(self, statuses: Iterable[str] = None, limit: int = 100,
                           oldest_first: bool = False) -> List[IndexRecord]:
        query = "SELECT * FROM index_status"
        params: List[Any] = []
        statuses = list(statuses or [])
        if statuses:
            query += f" WHERE status IN ({', '.join('?' for _ in statuses)})"
            params.extend(statuses)
        if oldest_first:
            query += " ORDER BY COALESCE(submitted_at, created_at) ASC"
        else:
            query += " ORDER BY updated_at DESC"
        query += " LIMIT ?"
        params.append(limit)

        with self.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [IndexRecord(**dict(row)) for row in rows]

    def count_index_records(self, status: str = None, indexed_since: str = None) -> int:
        clauses, params = [], []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if indexed_since:
            clauses.append("indexed_at >= ?")
            params.append(indexed_since)
        query = "SELECT COUNT(*) FROM index_status"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        with self.connection() as conn:
            return conn.execute(query, params).fetchone()[0]

    # Tracked keywords

    def save_keyword(self, keyword: TrackedKeyword):
        data = asdict(keyword)
        data['ranking_history'] = json.dumps(data['ranking_history'])
        columns = ', '.join(data.keys())
        placeholders = ', '.join('?' for _ in data)
        with self.connection() as conn:
            conn.execute(f"INSERT OR REPLACE INTO keywords ({columns}) VALUES ({placeholders})",
                         tuple(data.values()))

    def get_keyword(self, keyword: str, target_url: str = '') -> Optional[TrackedKeyword]:
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM keywords WHERE keyword = ? AND target_url = ?",
                               (keyword, target_url or '')).fetchone()
        return self._row_to_keyword(row) if row else None

    def list_keywords(self, tracking_only: bool = True, content_id: int = None,
                      by_position: bool = False, limit: int = None) -> List[TrackedKeyword]:
        clauses, params = [], []
        if tracking_only:
            clauses.append("is_tracking = 1")
        if content_id is not None:
            clauses.append("content_id = ?")
            params.append(content_id)

        query = "SELECT * FROM keywords"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        if by_position:
            # Unranked keywords sort last
            query += " ORDER BY current_position IS NULL, current_position ASC, keyword ASC"
        else:
            query += " ORDER BY search_volume IS NULL, search_volume DESC, keyword ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_keyword(row) for row in rows]

    def count_tracked_keywords(self) -> int:
        with self.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM keywords WHERE is_tracking = 1").fetchone()[0]

    def _row_to_keyword(self, row: sqlite3.Row) -> TrackedKeyword:
        data = dict(row)
        data['ranking_history'] = [RankingEntry(**e) for e in json.loads(data['ranking_history'] or '[]')]
        data['is_tracking'] = bool(data['is_tracking'])
        return TrackedKeyword(**data)
