"""SQLite FTS5 full-text engine backing one persisted index per entity type.

Each index lives in its own directory and holds a single database with two
tables: an FTS5 ``__documents`` table (one column per searchable field plus the
unindexed ``__key`` and ``type`` columns) and an ``index_meta`` table that
records the entity name and field set the index was created with.
"""

import json
import shutil
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import BaseModel, ConfigDict

from entity_search.search.errors import IndexOpenError, IndexWriteError, QueryError
from entity_search.search.types import DOCUMENTS_TABLE, KEY_FIELD, TYPE_FIELD

logger = structlog.get_logger()

DB_FILENAME = "index.db"
TABLE = DOCUMENTS_TABLE
KEY_COLUMN = KEY_FIELD


class TypeScopedQuery(BaseModel):
    """Free-text query restricted to documents of one entity type.

    Attributes:
        type_name: Exact value required in the reserved type field.
        text: Caller's query in FTS5 syntax, passed through unescaped.
    """

    model_config = ConfigDict(frozen=True)

    type_name: str
    text: str


class SearchHit(BaseModel):
    """Ranked hit returned by the engine.

    Attributes:
        key: Document key the hit was stored under.
        score: BM25 relevance score (lower is better).
    """

    key: str
    score: float


class EngineIndex(Protocol):
    """Open handle on one persisted full-text index."""

    @property
    def entity_name(self) -> str: ...

    @property
    def fields(self) -> tuple[str, ...]: ...

    def index(self, key: str, document: dict[str, str]) -> None: ...

    def delete(self, key: str) -> None: ...

    def query(
        self, query: TypeScopedQuery, limit: int, offset: int
    ) -> tuple[list[SearchHit], int]: ...

    def count(self, type_name: str) -> int: ...

    def close(self) -> None: ...


class FullTextEngine(Protocol):
    """Factory for persisted full-text indexes."""

    def exists(self, path: Path) -> bool: ...

    def create(
        self, path: Path, entity_name: str, fields: tuple[str, ...]
    ) -> EngineIndex: ...

    def open(self, path: Path) -> EngineIndex: ...

    def remove(self, path: Path) -> None: ...


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class Fts5Index:
    """FTS5-backed index handle.

    Thread-safe via a lock around the connection, which is opened with
    check_same_thread=False so writes may come from worker threads.
    """

    def __init__(
        self,
        path: Path,
        conn: sqlite3.Connection,
        entity_name: str,
        fields: tuple[str, ...],
    ) -> None:
        """Initialize index handle.

        Args:
            path: Index directory.
            conn: Open connection to the index database.
            entity_name: Entity type the index was created for.
            fields: Searchable fields stored as FTS5 columns.
        """
        self.path = path
        self._conn: sqlite3.Connection | None = conn
        self._entity_name = entity_name
        self._fields = fields
        self._lock = threading.Lock()

    @property
    def entity_name(self) -> str:
        return self._entity_name

    @property
    def fields(self) -> tuple[str, ...]:
        return self._fields

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise IndexOpenError(
                f"index at {self.path} is closed", entity_name=self._entity_name
            )
        return self._conn

    def index(self, key: str, document: dict[str, str]) -> None:
        """Insert or replace the document stored under a key.

        Args:
            key: Document key.
            document: Field values, including the reserved type field.

        Raises:
            IndexWriteError: If the document has unknown fields or the write fails.
        """
        unknown = set(document) - set(self._fields) - {TYPE_FIELD}
        if unknown:
            raise IndexWriteError(
                f"fields not in index schema: {', '.join(sorted(unknown))}",
                entity_name=self._entity_name,
            )

        columns = [KEY_COLUMN, *document]
        sql = "INSERT INTO {} ({}) VALUES ({})".format(
            _quote(TABLE),
            ", ".join(_quote(c) for c in columns),
            ", ".join("?" for _ in columns),
        )

        with self._lock:
            conn = self._connection()
            try:
                conn.execute(
                    f"DELETE FROM {_quote(TABLE)} WHERE {_quote(KEY_COLUMN)} = ?", (key,)
                )
                conn.execute(sql, (key, *document.values()))
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise IndexWriteError(
                    f"failed to index {key}: {e}", entity_name=self._entity_name
                ) from e

    def delete(self, key: str) -> None:
        """Remove the document stored under a key, if any.

        Raises:
            IndexWriteError: If the delete fails.
        """
        with self._lock:
            conn = self._connection()
            try:
                conn.execute(
                    f"DELETE FROM {_quote(TABLE)} WHERE {_quote(KEY_COLUMN)} = ?", (key,)
                )
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise IndexWriteError(
                    f"failed to delete {key}: {e}", entity_name=self._entity_name
                ) from e

    def query(
        self, query: TypeScopedQuery, limit: int, offset: int
    ) -> tuple[list[SearchHit], int]:
        """Execute a type-scoped query with BM25 ranking.

        A blank query text matches every document of the type in
        insertion order.

        Args:
            query: Type-scoped query.
            limit: Maximum hits to return.
            offset: Number of hits to skip.

        Returns:
            Ranked hits for the requested page and the total hit count.

        Raises:
            QueryError: If the engine rejects the query.
        """
        type_clause = f"{_quote(TYPE_FIELD)} = ?"
        if query.text.strip():
            where = f"{_quote(TABLE)} MATCH ? AND {type_clause}"
            params: tuple[str, ...] = (query.text, query.type_name)
            order = "score, rowid"
            score = f"bm25({_quote(TABLE)})"
        else:
            where = type_clause
            params = (query.type_name,)
            order = "rowid"
            score = "0.0"

        count_sql = f"SELECT COUNT(*) FROM {_quote(TABLE)} WHERE {where}"
        search_sql = (
            f"SELECT {_quote(KEY_COLUMN)}, {score} AS score FROM {_quote(TABLE)} "
            f"WHERE {where} ORDER BY {order} LIMIT ? OFFSET ?"
        )

        with self._lock:
            conn = self._connection()
            try:
                total = conn.execute(count_sql, params).fetchone()[0]
                rows = conn.execute(search_sql, (*params, limit, offset)).fetchall()
            except sqlite3.Error as e:
                raise QueryError(
                    f"invalid query {query.text!r} for type {query.type_name}: {e}", entity_name=self._entity_name
                ) from e

        return [SearchHit(key=key, score=score) for key, score in rows], total

    def count(self, type_name: str) -> int:
        """Count documents of one entity type."""
        with self._lock:
            conn = self._connection()
            return conn.execute(
                f"SELECT COUNT(*) FROM {_quote(TABLE)} WHERE {_quote(TYPE_FIELD)} = ?",
                (type_name,),
            ).fetchone()[0]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.debug("search_engine_index_closed", path=str(self.path))


class Fts5Engine:
    """Creates, opens and removes FTS5 index directories."""

    def __init__(self, tokenizer: str = "porter unicode61") -> None:
        """Initialize engine.

        Args:
            tokenizer: FTS5 tokenizer specification for new indexes.
        """
        self.tokenizer = tokenizer

    def exists(self, path: Path) -> bool:
        return (path / DB_FILENAME).is_file()

    def create(
        self, path: Path, entity_name: str, fields: tuple[str, ...]
    ) -> Fts5Index:
        """Create a fresh index directory.

        Args:
            path: Index directory, created if missing.
            entity_name: Entity type the index serves.
            fields: Searchable field set, one FTS5 column each.

        Returns:
            Open handle on the new index.

        Raises:
            IndexOpenError: If the directory or database cannot be created.
        """
        columns = [
            f"{_quote(KEY_COLUMN)} UNINDEXED",
            f"{_quote(TYPE_FIELD)} UNINDEXED",
            *(_quote(name) for name in fields),
        ]
        tokenize = self.tokenizer.replace("'", "''")

        try:
            path.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(path / DB_FILENAME, check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            raise IndexOpenError(
                f"failed to create index at {path}: {e}", entity_name=entity_name
            ) from e

        try:
            conn.execute(
                f"CREATE VIRTUAL TABLE {_quote(TABLE)} USING fts5("
                f"{', '.join(columns)}, tokenize='{tokenize}')"
            )
            conn.execute(
                "CREATE TABLE index_meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
            conn.executemany(
                "INSERT INTO index_meta (key, value) VALUES (?, ?)",
                [
                    ("entity_name", entity_name),
                    ("fields", json.dumps(list(fields))),
                    ("created_at", datetime.now(UTC).isoformat()),
                ],
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.close()
            raise IndexOpenError(
                f"failed to create index at {path}: {e}", entity_name=entity_name
            ) from e

        logger.debug("search_engine_index_created", path=str(path), fields=list(fields))
        return Fts5Index(path, conn, entity_name, tuple(fields))

    def open(self, path: Path) -> Fts5Index:
        """Open an existing index directory.

        Raises:
            IndexOpenError: If no readable index exists at the path.
        """
        db_path = path / DB_FILENAME
        try:
            conn = sqlite3.connect(
                f"{db_path.resolve().as_uri()}?mode=rw",
                uri=True,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise IndexOpenError(f"failed to open index at {path}: {e}") from e

        try:
            meta = dict(conn.execute("SELECT key, value FROM index_meta").fetchall())
            entity_name = meta["entity_name"]
            fields = tuple(json.loads(meta["fields"]))
        except (sqlite3.Error, KeyError, ValueError) as e:
            conn.close()
            raise IndexOpenError(f"invalid index at {path}: {e}") from e

        return Fts5Index(path, conn, entity_name, fields)

    def remove(self, path: Path) -> None:
        """Delete an index directory and everything in it.

        Raises:
            IndexOpenError: If the directory exists but cannot be removed.
        """
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise IndexOpenError(f"failed to remove existing index: {e}") from e
