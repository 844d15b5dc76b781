"""Authoritative, cross-process record of browser sessions keyed by tab id."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from browser_control.storage.relational_database import RecordNotFoundError, RelationalDatabase

logger = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_CLOSED = "closed"


@dataclass(frozen=True)
class SessionRecord:
    tab_id: str
    cloud_session_id: Optional[str]
    status: str
    created_at: float
    updated_at: float

    @property
    def is_running(self) -> bool:
        return self.status == STATUS_RUNNING

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SessionRecord":
        return cls(
            tab_id=str(row["id"]),
            cloud_session_id=row.get("cloud_session_id") or None,
            status=str(row.get("status") or STATUS_CLOSED),
            created_at=float(row.get("created_at") or 0.0),
            updated_at=float(row.get("updated_at") or 0.0),
        )


class SessionRecordStore:
    """Reads and writes session records through a ``RelationalDatabase``.

    ``id`` holds the caller's tab id, so a tab can own at most one record.
    """

    TABLE = "browser_sessions"

    def __init__(
        self,
        database: RelationalDatabase,
        *,
        retention_seconds: int = 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db = database
        self._retention_seconds = int(retention_seconds)
        self._clock = clock
        self.ensure_schema()

    @property
    def database(self) -> RelationalDatabase:
        return self._db

    def ensure_schema(self) -> None:
        self._db.execute_sql(
            f"CREATE TABLE IF NOT EXISTS {self.TABLE} ("
            "id TEXT PRIMARY KEY, "
            "cloud_session_id TEXT, "
            "status TEXT NOT NULL, "
            "created_at REAL NOT NULL, "
            "updated_at REAL NOT NULL)"
        )

    def get(self, tab_id: str) -> Optional[SessionRecord]:
        try:
            row = self._db.get_record(self.TABLE, tab_id)
        except RecordNotFoundError:
            return None
        return SessionRecord.from_row(row)

    def mark_running(self, tab_id: str, cloud_session_id: Optional[str]) -> None:
        now = self._clock()
        self._db.upsert_record(
            self.TABLE,
            {
                "id": tab_id,
                "cloud_session_id": cloud_session_id,
                "status": STATUS_RUNNING,
                "created_at": now,
                "updated_at": now,
            },
            preserve=("created_at",),
        )

    def mark_closed(self, tab_id: str) -> bool:
        try:
            self._db.update_record(
                self.TABLE,
                tab_id,
                {"status": STATUS_CLOSED, "updated_at": self._clock()},
            )
        except RecordNotFoundError:
            return False
        return True

    def purge(self) -> int:
        """Delete records, running or closed, not touched within the retention window.

        Closed records stay readable until then, so a closed tab keeps
        refusing fallback resolution for the whole window.
        """
        cutoff = self._clock() - self._retention_seconds
        deleted = self._db.execute_sql(
            f"DELETE FROM {self.TABLE} WHERE updated_at < :cutoff",
            {"cutoff": cutoff},
        )
        if deleted:
            logger.info("Purged %s stale session records", deleted)
        return int(deleted or 0)

    def list_running(self) -> list[SessionRecord]:
        rows = self._db.query_records(self.TABLE, {"status": STATUS_RUNNING})
        return [SessionRecord.from_row(row) for row in rows]

    def close(self) -> None:
        self._db.close()
