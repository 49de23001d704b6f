from __future__ import annotations

import logging
import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

from order_tracker.schema import INDEXES_SQL, get_schema_sql


log = logging.getLogger(__name__)

# Transaction-scoped advisory lock held by init_db on Postgres, so several
# workers starting at once don't run DDL concurrently.
_SCHEMA_LOCK_KEY = 2147483646


def _debug(msg: str) -> None:
    log.info("[db] %s", msg)


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' for postgres:// or postgresql:// DSNs, 'sqlite' otherwise."""
    try:
        scheme = urlparse((dsn or "").strip()).scheme.lower()
    except ValueError:
        return "sqlite"
    return "postgres" if scheme in ("postgres", "postgresql") else "sqlite"


# A quoted literal or identifier (doubled quotes escape), or a bare ? or %.
_SQL_TOKEN = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|[?%]")


def _qmark_to_pct(sql: str) -> str:
    """Rewrite qmark SQL for psycopg2.

    `?` outside quotes becomes `%s`. Every literal `%` is doubled, quoted or
    not, since psycopg2 scans the whole query text for placeholders.
    """

    def _sub(m: re.Match) -> str:
        tok = m.group(0)
        if tok == "?":
            return "%s"
        return tok.replace("%", "%%")

    return _SQL_TOKEN.sub(_sub, sql)


class PostgresConnection:
    """Gives a psycopg2 connection the sqlite3 surface the stores use.

    `execute()` takes qmark SQL and returns the (RealDictCursor) cursor, so
    `.fetchone()`, `.fetchall()` and `.rowcount` work the same on both engines.
    """

    dialect = "postgres"

    def __init__(self, raw: Any):
        self._raw = raw

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        cur = self._raw.cursor()
        cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return cur

    def executescript(self, script: str) -> None:
        # Our DDL has no `;` inside literals, so splitting on it is enough.
        for stmt in script.split(";"):
            if stmt.strip():
                self.execute(stmt.strip())

    def commit(self) -> None:
        self._raw.commit()

    def rollback(self) -> None:
        self._raw.rollback()

    def close(self) -> None:
        self._raw.close()


def _open_postgres(dsn: str) -> PostgresConnection:
    try:
        import psycopg2
        import psycopg2.extras
    except ImportError as e:
        raise RuntimeError(
            "Postgres selected but psycopg2 is not installed. "
            "Install the 'postgres' extra (psycopg2-binary) and try again."
        ) from e
    return PostgresConnection(psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor))


def _open_sqlite(dsn: str) -> sqlite3.Connection:
    if dsn.lower().startswith("sqlite:///"):
        dsn = dsn[len("sqlite:///") :]
    Path(dsn).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(dsn, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")
    # Cascade deletes (user -> projects -> orders) depend on this.
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Open one connection for the duration of a unit of work.

    Commits when the block exits normally and rolls back on any exception.
    """
    dsn = (db_dsn or "").strip()
    conn = _open_postgres(dsn) if _detect_dialect(dsn) == "postgres" else _open_sqlite(dsn)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_dsn: str) -> None:
    """Create missing tables, bring older databases forward, then create indexes."""
    dialect = _detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect}) at {db_dsn}")
    with connect(db_dsn) as conn:
        if dialect == "postgres":
            conn.execute("SELECT pg_advisory_xact_lock(?)", (_SCHEMA_LOCK_KEY,))
        conn.executescript(get_schema_sql(dialect))
        _migrate(conn, dialect=dialect)
        conn.executescript(INDEXES_SQL)


def _has_column(conn: Any, table: str, col: str, *, dialect: str) -> bool:
    if dialect == "postgres":
        row = conn.execute(
            "SELECT 1 FROM information_schema.columns"
            " WHERE table_schema = current_schema() AND table_name=? AND column_name=?",
            (table, col),
        ).fetchone()
        return row is not None

    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(r["name"] == col for r in rows)


# (table, column, statement adding it, backfill for rows that predate it)
_COLUMN_MIGRATIONS = (
    # Accounts from before the approval gate could already sign in.
    (
        "users",
        "status",
        "ALTER TABLE users ADD COLUMN status TEXT NOT NULL DEFAULT 'pending'"
        " CHECK (status IN ('pending','approved','rejected'))",
        "UPDATE users SET status='approved'",
    ),
    ("users", "role", "ALTER TABLE users ADD COLUMN role TEXT NOT NULL DEFAULT 'user'", None),
    # Unowned projects go to the oldest admin. With no admin they stay unlisted.
    (
        "projects",
        "user_id",
        "ALTER TABLE projects ADD COLUMN user_id INTEGER REFERENCES users(user_id) ON DELETE CASCADE",
        "UPDATE projects SET user_id=(SELECT MIN(user_id) FROM users WHERE role='admin') WHERE user_id IS NULL",
    ),
    ("orders", "quantity", "ALTER TABLE orders ADD COLUMN quantity INTEGER NOT NULL DEFAULT 1", None),
)


def _migrate(conn: Any, *, dialect: str) -> None:
    """Forward-only column additions for databases created by older releases."""
    for table, col, ddl, backfill in _COLUMN_MIGRATIONS:
        if _has_column(conn, table, col, dialect=dialect):
            continue
        conn.execute(ddl)
        if backfill:
            conn.execute(backfill)
        _debug(f"Migrated: added {table}.{col}")
