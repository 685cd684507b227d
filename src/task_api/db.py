from __future__ import annotations

import os
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Generator, List, Optional, Tuple

from .errors import DocumentStoreError
from .models import TaskEntity, TaskFields
from .repositories import ListQuery, Repository, utcnow, writable


@dataclass(frozen=True)
class _Cols:
    table: str = "tasks"
    id: str = "id"
    title: str = "title"
    detail: str = "detail"
    image_url: str = "image_url"
    is_completed: str = "is_completed"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()


def _ts(value: datetime) -> str:
    # Fixed-width ISO strings so that text ordering matches time ordering.
    return value.isoformat(timespec="microseconds")


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository storing one row per task document.
    """

    name = "sqlite"

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise DocumentStoreError(f"Cannot open task database: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            raise DocumentStoreError(f"Task database error: {exc}") from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} TEXT PRIMARY KEY,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.detail} TEXT NOT NULL,
                    {_COLS.image_url} TEXT NOT NULL DEFAULT '',
                    {_COLS.is_completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_completed ON {_COLS.table}({_COLS.is_completed})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_created_at ON {_COLS.table}({_COLS.created_at})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TaskEntity:
        return {
            "id": str(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "detail": str(row[_COLS.detail]),
            "image_url": row[_COLS.image_url] or "",
            "is_completed": bool(row[_COLS.is_completed]),
            "created_at": datetime.fromisoformat(row[_COLS.created_at]),
            "updated_at": datetime.fromisoformat(row[_COLS.updated_at]),
        }

    def _fetch(self, conn: sqlite3.Connection, task_id: str) -> Optional[sqlite3.Row]:
        return conn.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,)).fetchone()

    def create(self, fields: TaskFields) -> TaskEntity:
        now = _ts(utcnow())
        new_id = uuid.uuid4().hex
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.id}, {_COLS.title}, {_COLS.detail}, {_COLS.image_url},
                    {_COLS.is_completed}, {_COLS.created_at}, {_COLS.updated_at})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    new_id,
                    fields["title"],
                    fields["detail"],
                    fields.get("image_url", ""),
                    1 if fields.get("is_completed", False) else 0,
                    now,
                    now,
                ),
            )
            row = self._fetch(conn, new_id)
            assert row is not None
            return self._row_to_entity(row)

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._conn() as conn:
            row = self._fetch(conn, task_id)
            return self._row_to_entity(row) if row else None

    def update(self, task_id: str, changes: TaskFields) -> Optional[TaskEntity]:
        values = dict(writable(changes))
        if "is_completed" in values:
            values["is_completed"] = 1 if values["is_completed"] else 0
        values[_COLS.updated_at] = _ts(utcnow())

        assignments = ", ".join(f"{col} = ?" for col in values)
        with self._conn() as conn:
            cur = conn.execute(
                f"UPDATE {_COLS.table} SET {assignments} WHERE {_COLS.id} = ?",
                [*values.values(), task_id],
            )
            if cur.rowcount == 0:
                return None
            row = self._fetch(conn, task_id)
            assert row is not None
            return self._row_to_entity(row)

    def delete(self, task_id: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,))
            return cur.rowcount > 0

    def list(self, query: Optional[ListQuery] = None) -> Tuple[List[TaskEntity], int]:
        q = query or ListQuery()
        where_sql = ""
        params: list = []

        if q.completed is not None:
            where_sql = f"WHERE {_COLS.is_completed} = ?"
            params.append(1 if q.completed else 0)

        order_sql = f"ORDER BY {_COLS.created_at} {'DESC' if q.descending else 'ASC'}"

        with self._conn() as conn:
            count_row = conn.execute(
                f"SELECT COUNT(*) as cnt FROM {_COLS.table} {where_sql}", params
            ).fetchone()
            total = int(count_row["cnt"]) if count_row else 0

            rows = conn.execute(
                f"""
                SELECT * FROM {_COLS.table}
                {where_sql}
                {order_sql}
                LIMIT ? OFFSET ?
                """,
                [*params, max(q.limit, 0), max(q.offset, 0)],
            ).fetchall()
            return [self._row_to_entity(r) for r in rows], total

    def image_urls(self) -> List[Tuple[str, str]]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {_COLS.id}, {_COLS.image_url} FROM {_COLS.table} WHERE {_COLS.image_url} != ''"
            ).fetchall()
            return [(str(r[_COLS.id]), str(r[_COLS.image_url])) for r in rows]

    def clear_image_url(self, task_id: str, expected_url: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                UPDATE {_COLS.table} SET {_COLS.image_url} = '', {_COLS.updated_at} = ?
                WHERE {_COLS.id} = ? AND {_COLS.image_url} = ?
                """,
                (_ts(utcnow()), task_id, expected_url),
            )
            return cur.rowcount > 0
