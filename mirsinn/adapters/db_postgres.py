from __future__ import annotations

import contextlib
from typing import Any, Dict, List, Mapping, Optional, Tuple

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from mirsinn.adapters.docstore import DocumentRow, document_id, parent_path, split_path
from mirsinn.config import get_settings
from mirsinn.domain.errors import CommitError

_CONNECTION: Optional[psycopg.Connection] = None
_ADAPTER: Optional["PostgresDocumentStore"] = None


def _get_connection() -> psycopg.Connection:
    global _CONNECTION
    settings = get_settings()
    if _CONNECTION is None or _CONNECTION.closed:
        _CONNECTION = psycopg.connect(
            host=settings.db_host,
            port=settings.db_port,
            user=settings.db_user,
            password=settings.db_password,
            dbname=settings.db_name,
            autocommit=True,
        )
        schema = settings.db_schema or "public"
        with _CONNECTION.cursor() as cur:
            cur.execute(sql.SQL("SET search_path TO {}").format(sql.Identifier(schema)))
    return _CONNECTION


class PostgresWriteBatch:
    def __init__(self, store: "PostgresDocumentStore") -> None:
        self._store = store
        self._ops: List[Tuple[str, Dict[str, Any], bool]] = []

    def set(self, path: str, data: Mapping[str, Any], *, merge: bool = False) -> None:
        parent_path(path)
        self._ops.append((path, dict(data), merge))

    def commit(self) -> None:
        self._store._commit(self._ops)

    def __len__(self) -> int:
        return len(self._ops)


class PostgresDocumentStore:
    """Document store kept as JSONB rows in a single PostgreSQL table."""

    def __init__(self, connection: Optional[psycopg.Connection] = None, *, table: Optional[str] = None) -> None:
        self._settings = get_settings()
        self._table = sql.Identifier(table or self._settings.documents_table)
        self._conn = connection or _get_connection()

    def _conn_cursor(self):
        if self._conn.closed:
            self._conn = _get_connection()
        return self._conn.cursor(row_factory=dict_row)

    @contextlib.contextmanager
    def _cursor(self):
        cur = self._conn_cursor()
        try:
            yield cur
            if not self._conn.autocommit:
                self._conn.commit()
        except Exception:
            if not self._conn.autocommit:
                self._conn.rollback()
            raise
        finally:
            cur.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            cur.execute(
                sql.SQL(
                    """
                    CREATE TABLE IF NOT EXISTS {table} (
                        path text PRIMARY KEY,
                        parent text NOT NULL,
                        doc_id text NOT NULL,
                        data jsonb NOT NULL DEFAULT '{{}}'::jsonb,
                        created_at timestamptz NOT NULL DEFAULT now(),
                        updated_at timestamptz NOT NULL DEFAULT now()
                    )
                    """
                ).format(table=self._table)
            )
            cur.execute(
                sql.SQL("CREATE INDEX IF NOT EXISTS {index} ON {table} (parent)").format(
                    index=sql.Identifier(f"{self._settings.documents_table}_parent_idx"),
                    table=self._table,
                )
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, path: str) -> Optional[Dict[str, Any]]:
        key = "/".join(split_path(path))
        with self._cursor() as cur:
            cur.execute(sql.SQL("SELECT data FROM {table} WHERE path = %s").format(table=self._table), (key,))
            row = cur.fetchone()
        return dict(row["data"]) if row else None

    def list(self, collection_path: str) -> List[DocumentRow]:
        parent = "/".join(split_path(collection_path))
        with self._cursor() as cur:
            cur.execute(
                sql.SQL("SELECT path, data FROM {table} WHERE parent = %s ORDER BY path").format(table=self._table),
                (parent,),
            )
            rows = cur.fetchall()
        return [(row["path"], dict(row["data"])) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def _upsert(self, cur, path: str, data: Mapping[str, Any], merge: bool) -> None:
        key = "/".join(split_path(path))
        if merge:
            conflict = sql.SQL("data = {table}.data || EXCLUDED.data").format(table=self._table)
        else:
            conflict = sql.SQL("data = EXCLUDED.data")
        cur.execute(
            sql.SQL(
                """
                INSERT INTO {table} (path, parent, doc_id, data)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (path) DO UPDATE SET {conflict}, updated_at = now()
                """
            ).format(table=self._table, conflict=conflict),
            (key, parent_path(key), document_id(key), Jsonb(dict(data))),
        )

    def set(self, path: str, data: Mapping[str, Any], *, merge: bool = False) -> None:
        with self._cursor() as cur:
            self._upsert(cur, path, data, merge)

    def batch(self) -> PostgresWriteBatch:
        return PostgresWriteBatch(self)

    def _commit(self, ops: List[Tuple[str, Dict[str, Any], bool]]) -> None:
        if self._conn.closed:
            self._conn = _get_connection()
        try:
            with self._conn.transaction():
                with self._conn.cursor() as cur:
                    for path, data, merge in ops:
                        self._upsert(cur, path, data, merge)
        except psycopg.Error as exc:
            raise CommitError(f"Batch commit failed: {exc}") from exc


def get_adapter() -> PostgresDocumentStore:
    global _ADAPTER
    if _ADAPTER is None:
        _ADAPTER = PostgresDocumentStore()
        _ADAPTER.ensure_schema()
    return _ADAPTER


__all__ = ["PostgresDocumentStore", "PostgresWriteBatch", "get_adapter"]
