"""
SQLite3 storage for localized content.

Provides:
- Schema creation for every content kind (base, translation and tag tables)
- Row insert/update/delete and composite-key upsert
- Nested fetch helpers used by the repositories
- Optional multi-statement transactions

Each call opens its own connection and closes it again, unless it runs inside
``transaction()``, where the calling thread reuses one connection until the
block ends. Driver errors are translated into the portfolio error kinds:
constraint violations become ConflictOnWrite, everything else StoreUnavailable.
"""

import logging
import re
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import ConflictOnWrite, StoreUnavailable
from .kinds import KINDS, ContentKind

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data/db/portfolio.db")

# Schema version for migrations
SCHEMA_VERSION = 1

META_SQL = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Order = Sequence[Tuple[str, bool]]


def _utcnow() -> str:
    """Return current UTC time as ISO format string."""
    return datetime.now(timezone.utc).isoformat()


def _ident(name: str) -> str:
    """Validate a table or column name before it is interpolated into SQL."""
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def build_schema_sql(kinds: Iterable[ContentKind]) -> str:
    """Build CREATE TABLE statements for the given content kinds."""
    statements = [META_SQL]
    for kind in kinds:
        table = _ident(kind.table)
        fk = _ident(kind.foreign_key)

        columns = ["id TEXT PRIMARY KEY"]
        for name in kind.shared_fields:
            column = f"{_ident(name)} {kind.column_type(name)}"
            if name == "slug":
                column += " UNIQUE"
            columns.append(column)
        columns += ["created_at TEXT NOT NULL", "updated_at TEXT NOT NULL"]
        statements.append(
            f"CREATE TABLE IF NOT EXISTS {table} (\n    " + ",\n    ".join(columns) + "\n);"
        )

        trans_table = _ident(kind.translation_table)
        trans_columns = [
            "id INTEGER PRIMARY KEY AUTOINCREMENT",
            f"{fk} TEXT NOT NULL",
            "locale TEXT NOT NULL",
        ]
        trans_columns += [f"{_ident(name)} TEXT" for name in kind.localized_fields]
        trans_columns += [
            "created_at TEXT NOT NULL",
            "updated_at TEXT NOT NULL",
            f"UNIQUE ({fk}, locale)",
            f"FOREIGN KEY ({fk}) REFERENCES {table}(id) ON DELETE CASCADE",
        ]
        statements.append(
            f"CREATE TABLE IF NOT EXISTS {trans_table} (\n    "
            + ",\n    ".join(trans_columns)
            + "\n);"
        )
        statements.append(
            f"CREATE INDEX IF NOT EXISTS idx_{trans_table}_{fk} ON {trans_table}({fk});"
        )

        if kind.tag_table:
            tag_table = _ident(kind.tag_table)
            statements.append(
                f"CREATE TABLE IF NOT EXISTS {tag_table} (\n"
                "    id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
                f"    {fk} TEXT NOT NULL,\n"
                "    tag TEXT NOT NULL,\n"
                f"    FOREIGN KEY ({fk}) REFERENCES {table}(id) ON DELETE CASCADE\n"
                ");"
            )
            statements.append(
                f"CREATE INDEX IF NOT EXISTS idx_{tag_table}_{fk} ON {tag_table}({fk});"
            )
            statements.append(
                f"CREATE INDEX IF NOT EXISTS idx_{tag_table}_tag ON {tag_table}(tag);"
            )
    return "\n".join(statements)


def _translate_error(exc: sqlite3.Error) -> Exception:
    if isinstance(exc, sqlite3.IntegrityError):
        return ConflictOnWrite(f"Constraint violation: {exc}")
    return StoreUnavailable(f"Store error: {exc}")


def _order_sql(order: Optional[Order]) -> str:
    if not order:
        return ""
    parts = []
    for column, descending in order:
        col = _ident(column)
        # NULLs sort last in both directions
        parts.append(f"{col} IS NULL")
        parts.append(f"{col} {'DESC' if descending else 'ASC'}")
    return " ORDER BY " + ", ".join(parts)


class SQLiteStore:
    """
    Relational store backed by a single SQLite database file.

    All row values passed in must already be SQLite-compatible; JSON and
    boolean encoding is the repository's job.
    """

    supports_transactions = True

    def __init__(
        self,
        db_path: Path,
        kinds: Optional[Iterable[ContentKind]] = None,
        timeout: float = 30,
    ):
        self.db_path = Path(db_path)
        self.kinds = list(kinds) if kinds is not None else list(KINDS.values())
        self.timeout = timeout
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def init_schema(self, force: bool = False) -> Path:
        """
        Create the database file and all tables.

        Args:
            force: If True, delete an existing database first.

        Returns:
            Path to the database file.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        if self.db_path.exists() and force:
            logger.info(f"Removing existing database: {self.db_path}")
            self.db_path.unlink()

        conn = self._open()
        try:
            conn.executescript(build_schema_sql(self.kinds))
            row = conn.execute(
                "SELECT value FROM meta WHERE key = 'schema_version'"
            ).fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO meta (key, value, updated_at) VALUES (?, ?, ?)",
                    ("schema_version", str(SCHEMA_VERSION), _utcnow()),
                )
                logger.info(f"Database initialized with schema version {SCHEMA_VERSION}")
            elif int(row["value"]) != SCHEMA_VERSION:
                logger.warning(
                    f"Schema version mismatch: DB has v{row['value']}, "
                    f"expected v{SCHEMA_VERSION}"
                )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise _translate_error(e) from e
        finally:
            conn.close()
        return self.db_path

    # ------------------------------------------------------------------
    # Connections and transactions
    # ------------------------------------------------------------------

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "conn", None) is not None

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        active = getattr(self._local, "conn", None)
        if active is not None:
            try:
                yield active
            except sqlite3.Error as e:
                raise _translate_error(e) from e
            return

        if not self.db_path.exists():
            raise StoreUnavailable(f"Database not found: {self.db_path}")

        try:
            conn = self._open()
        except sqlite3.Error as e:
            raise _translate_error(e) from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise _translate_error(e) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator["SQLiteStore"]:
        """
        Run every store call of the block on one connection and commit once.

        Nested blocks join the outer transaction. Any exception rolls the
        whole transaction back and propagates.
        """
        if self.in_transaction:
            yield self
            return

        if not self.db_path.exists():
            raise StoreUnavailable(f"Database not found: {self.db_path}")

        try:
            conn = self._open()
        except sqlite3.Error as e:
            raise _translate_error(e) from e
        self._local.conn = conn
        try:
            yield self
            conn.commit()
            logger.debug("Transaction committed")
        except sqlite3.Error as e:
            conn.rollback()
            logger.debug(f"Transaction rolled back: {e}")
            raise _translate_error(e) from e
        except Exception as e:
            conn.rollback()
            logger.debug(f"Transaction rolled back: {e}")
            raise
        finally:
            self._local.conn = None
            conn.close()

    # ------------------------------------------------------------------
    # Row operations
    # ------------------------------------------------------------------

    def insert(self, table: str, row: Mapping[str, Any]) -> None:
        columns = [_ident(c) for c in row]
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {_ident(table)} ({', '.join(columns)}) VALUES ({placeholders})"
        with self._connect() as conn:
            conn.execute(sql, tuple(row.values()))

    def insert_many(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        if not rows:
            return 0
        columns = [_ident(c) for c in rows[0]]
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {_ident(table)} ({', '.join(columns)}) VALUES ({placeholders})"
        with self._connect() as conn:
            conn.executemany(sql, [tuple(row[c] for c in columns) for row in rows])
        return len(rows)

    def update(self, table: str, key: Tuple[str, Any], values: Mapping[str, Any]) -> int:
        """Update matching rows. Returns the number of rows changed."""
        key_column, key_value = key
        if not values:
            return 0
        assignments = ", ".join(f"{_ident(c)} = ?" for c in values)
        sql = f"UPDATE {_ident(table)} SET {assignments} WHERE {_ident(key_column)} = ?"
        with self._connect() as conn:
            cursor = conn.execute(sql, (*values.values(), key_value))
            return cursor.rowcount

    def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        conflict: Sequence[str],
        preserve: Sequence[str] = (),
    ) -> None:
        """
        Insert a row, or overwrite the existing row with the same conflict key.

        Args:
            table: Table name.
            row: Column values.
            conflict: Columns of the uniqueness constraint.
            preserve: Columns kept from the existing row on conflict.
        """
        columns = [_ident(c) for c in row]
        placeholders = ", ".join("?" for _ in columns)
        updates = [c for c in columns if c not in conflict and c not in preserve]
        set_sql = ", ".join(f"{c} = excluded.{c}" for c in updates)
        conflict_sql = ", ".join(_ident(c) for c in conflict)
        sql = (
            f"INSERT INTO {_ident(table)} ({', '.join(columns)}) VALUES ({placeholders}) "
            f"ON CONFLICT ({conflict_sql}) DO "
            + (f"UPDATE SET {set_sql}" if set_sql else "NOTHING")
        )
        with self._connect() as conn:
            conn.execute(sql, tuple(row.values()))

    def delete(self, table: str, key: Tuple[str, Any]) -> int:
        key_column, key_value = key
        sql = f"DELETE FROM {_ident(table)} WHERE {_ident(key_column)} = ?"
        with self._connect() as conn:
            cursor = conn.execute(sql, (key_value,))
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _where(
        self,
        where: Optional[Mapping[str, Any]],
        in_: Optional[Tuple[str, Sequence[Any]]],
    ) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        for column, value in (where or {}).items():
            if value is None:
                clauses.append(f"{_ident(column)} IS NULL")
            else:
                clauses.append(f"{_ident(column)} = ?")
                params.append(value)
        if in_ is not None:
            column, values = in_
            values = list(values)
            if not values:
                clauses.append("0")
            else:
                clauses.append(f"{_ident(column)} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def select(
        self,
        table: str,
        where: Optional[Mapping[str, Any]] = None,
        in_: Optional[Tuple[str, Sequence[Any]]] = None,
        order: Optional[Order] = None,
        limit: Optional[int] = None,
        columns: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Select rows as dicts."""
        column_sql = ", ".join(_ident(c) for c in columns) if columns else "*"
        where_sql, params = self._where(where, in_)
        sql = f"SELECT {column_sql} FROM {_ident(table)}{where_sql}{_order_sql(order)}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._connect() as conn:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]

    def count(
        self,
        table: str,
        where: Optional[Mapping[str, Any]] = None,
        in_: Optional[Tuple[str, Sequence[Any]]] = None,
    ) -> int:
        where_sql, params = self._where(where, in_)
        with self._connect() as conn:
            row = conn.execute(f"SELECT COUNT(*) FROM {_ident(table)}{where_sql}", params).fetchone()
            return int(row[0])

    def distinct_values(
        self,
        table: str,
        column: str,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[Any]:
        """Distinct values of one column, in first-seen row order."""
        where_sql, params = self._where(where, None)
        sql = (
            f"SELECT {_ident(column)} FROM {_ident(table)}{where_sql} "
            f"GROUP BY {_ident(column)} ORDER BY MIN(rowid)"
        )
        with self._connect() as conn:
            return [row[0] for row in conn.execute(sql, params).fetchall()]

    def search_values(
        self,
        table: str,
        column: str,
        search_columns: Sequence[str],
        needle: str,
    ) -> List[Any]:
        """
        Distinct ``column`` values of rows where any search column contains
        ``needle`` (case-insensitive for ASCII).
        """
        if not search_columns:
            return []
        escaped = needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        clauses = " OR ".join(f"{_ident(c)} LIKE ? ESCAPE '\\'" for c in search_columns)
        sql = f"SELECT DISTINCT {_ident(column)} FROM {_ident(table)} WHERE {clauses}"
        with self._connect() as conn:
            rows = conn.execute(sql, [pattern] * len(search_columns)).fetchall()
            return [row[0] for row in rows]
