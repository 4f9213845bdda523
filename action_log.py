"""
Append-only audit trail of engine actions
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from database import DatabaseManager
from errors import PersistenceError
from models import LogEntry, LogAction, LogStatus
from utils import retry_on_failure

logger = logging.getLogger(__name__)

class ActionLog:
    """Best-effort writer and newest-first reader for LogEntry records"""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def append(self, action: LogAction, status: LogStatus, message: str = None,
               entity_type: str = None, entity_id: Any = None, entity_url: str = None,
               details: Dict[str, Any] = None, duration_ms: float = None,
               is_scheduled: bool = False) -> Optional[LogEntry]:
        """Record an entry. Failures are logged and swallowed; returns None on failure."""
        entry = LogEntry(
            action=action.value,
            status=status.value,
            message=message,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            entity_url=entity_url,
            details=details,
            duration_ms=duration_ms,
            is_scheduled=is_scheduled,
            created_at=datetime.now().isoformat(),
        )
        try:
            entry.id = self._write(entry)
        except Exception as e:
            logger.error(f"Failed to record {entry.action} log entry: {e}")
            return None
        return entry

    @retry_on_failure(max_retries=1, delay=0.05, exceptions=(PersistenceError,))
    def _write(self, entry: LogEntry) -> int:
        return self.db_manager.insert_log(entry)

    def query(self, action: str = None, status: str = None, limit: int = 50,
              since: str = None) -> List[LogEntry]:
        return self.db_manager.query_logs(action=action, status=status, limit=limit, since=since)

    def summarize_since(self, since: str) -> Dict[str, int]:
        """Entry counts per action tag since the given time"""
        return self.db_manager.count_logs_by_action(since=since)

    def purge_older_than(self, days: int, now: datetime = None) -> Dict[str, Any]:
        cutoff = ((now or datetime.now()) - timedelta(days=days)).isoformat()
        deleted = self.db_manager.delete_logs_before(cutoff)
        return {"deleted_count": deleted, "cutoff_date": cutoff}
