"""
Read-only access to CMS content items
"""
import logging
from typing import Optional, List

from database import DatabaseManager
from models import ContentItem

logger = logging.getLogger(__name__)

class ContentRepository:
    """Reads content items from the shared database; never writes them"""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def get(self, content_id: int) -> Optional[ContentItem]:
        with self.db_manager.connection() as conn:
            row = conn.execute("SELECT * FROM content_items WHERE id = ?", (content_id,)).fetchone()
        return ContentItem(**dict(row)) if row else None

    def count_published(self) -> int:
        with self.db_manager.connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM content_items WHERE status = 'published'"
            ).fetchone()[0]

    def list_published(self, limit: int = None, recently_updated_first: bool = True) -> List[ContentItem]:
        query = "SELECT * FROM content_items WHERE status = 'published'"
        query += " ORDER BY updated_at DESC, id DESC" if recently_updated_first else " ORDER BY id ASC"
        params = []
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self.db_manager.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [ContentItem(**dict(row)) for row in rows]

    def list_updated_before(self, cutoff: str) -> List[ContentItem]:
        """Published items whose last update is older than the cutoff, oldest first"""
        with self.db_manager.connection() as conn:
            rows = conn.execute('''
                SELECT * FROM content_items
                WHERE status = 'published' AND updated_at < ?
                ORDER BY updated_at ASC
            ''', (cutoff,)).fetchall()
        return [ContentItem(**dict(row)) for row in rows]
