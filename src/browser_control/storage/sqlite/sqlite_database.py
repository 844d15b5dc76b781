import logging
import re
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from browser_control.storage.relational_database import (
    RecordNotFoundError,
    RelationalDatabase,
    StorageError,
)

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _ident(name: str) -> str:
    if not _IDENTIFIER_RE.match(name or ""):
        raise StorageError(f"Invalid SQL identifier: {name!r}")
    return name


class SQLiteDatabase(RelationalDatabase):
    """Relational database implementation backed by the stdlib sqlite3 driver."""

    def __init__(self, config: Dict[str, Any]) -> None:
        self.config = config
        self.database_path = config.get("database", ":memory:")
        self.primary_key = _ident(config.get("primary_key", "id"))
        self._lock = threading.RLock()
        self._in_transaction = False

        if self.database_path != ":memory:":
            Path(self.database_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(
                str(Path(self.database_path).expanduser()) if self.database_path != ":memory:" else ":memory:",
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to open SQLite database: {exc}") from exc
        self._conn.row_factory = sqlite3.Row

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _execute(self, query: str, parameters: Any = ()) -> sqlite3.Cursor:
        if self._conn is None:
            raise StorageError("SQLite database is closed")
        with self._lock:
            try:
                cursor = self._conn.execute(query, parameters)
                if not self._in_transaction:
                    self._conn.commit()
                return cursor
            except sqlite3.Error as exc:
                raise StorageError(f"SQLite error: {exc}") from exc

    def insert_record(self, table: str, record: Dict[str, Any]) -> Any:
        columns = [_ident(column) for column in record]
        placeholders = ", ".join(f":{column}" for column in columns)
        query = f"INSERT INTO {_ident(table)} ({', '.join(columns)}) VALUES ({placeholders})"
        self._execute(query, record)
        return record.get(self.primary_key)

    def upsert_record(self, table: str, record: Dict[str, Any], preserve: Sequence[str] = ()) -> None:
        columns = [_ident(column) for column in record]
        placeholders = ", ".join(f":{column}" for column in columns)
        kept = set(preserve) | {self.primary_key}
        updates = ", ".join(
            f"{column}=excluded.{column}" for column in columns if column not in kept
        )
        query = (
            f"INSERT INTO {_ident(table)} ({', '.join(columns)}) VALUES ({placeholders}) "
            f"ON CONFLICT({self.primary_key}) DO UPDATE SET {updates}"
        )
        self._execute(query, record)

    def get_record(self, table: str, primary_key: Any) -> Dict[str, Any]:
        query = f"SELECT * FROM {_ident(table)} WHERE {self.primary_key} = ?"
        row = self._execute(query, (primary_key,)).fetchone()
        if row is None:
            raise RecordNotFoundError(f"No record {primary_key!r} in {table}")
        return dict(row)

    def update_record(self, table: str, primary_key: Any, updates: Dict[str, Any]) -> None:
        if not updates:
            return
        assignments = ", ".join(f"{_ident(column)} = :{column}" for column in updates)
        params = dict(updates)
        params["__pk"] = primary_key
        query = f"UPDATE {_ident(table)} SET {assignments} WHERE {self.primary_key} = :__pk"
        cursor = self._execute(query, params)
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"No record {primary_key!r} in {table}")

    def delete_record(self, table: str, primary_key: Any) -> None:
        query = f"DELETE FROM {_ident(table)} WHERE {self.primary_key} = ?"
        self._execute(query, (primary_key,))

    def query_records(self, table: str, conditions: Optional[Dict[str, Any]] = None, limit: Optional[int] = None, offset: Optional[int] = None) -> List[Dict[str, Any]]:
        query = f"SELECT * FROM {_ident(table)}"
        params: Dict[str, Any] = {}
        if conditions:
            clauses = []
            for column, value in conditions.items():
                clauses.append(f"{_ident(column)} = :{column}")
                params[column] = value
            query += " WHERE " + " AND ".join(clauses)
        if limit is not None:
            query += " LIMIT :__limit"
            params["__limit"] = int(limit)
            if offset is not None:
                query += " OFFSET :__offset"
                params["__offset"] = int(offset)
        return [dict(row) for row in self._execute(query, params).fetchall()]

    def execute_sql(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> Any:
        cursor = self._execute(query, parameters or {})
        if cursor.description is None:
            return cursor.rowcount
        return [dict(row) for row in cursor.fetchall()]

    def begin_transaction(self) -> None:
        with self._lock:
            self._in_transaction = True

    def commit_transaction(self) -> None:
        with self._lock:
            self._in_transaction = False
            if self._conn is not None:
                self._conn.commit()

    def rollback_transaction(self) -> None:
        with self._lock:
            self._in_transaction = False
            if self._conn is not None:
                self._conn.rollback()
