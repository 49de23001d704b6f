import pytest

from order_tracker import db
from order_tracker.auth.crud import create_user
from order_tracker.db import PostgresConnection, _detect_dialect, _qmark_to_pct, connect, init_db
from order_tracker.orders.crud import create_order
from order_tracker.projects.crud import create_project
from order_tracker.schema import SCHEMA_POSTGRES


class FakeCursor:
    def __init__(self, log):
        self._log = log
        self.rowcount = 0

    def execute(self, sql, params=()):
        self._log.append((sql, params))

    def fetchone(self):
        return None

    def fetchall(self):
        return []


class FakePsycopg2Connection:
    """Records what would be sent to Postgres; every lookup comes back empty."""

    def __init__(self):
        self.statements = []
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self):
        return FakeCursor(self.statements)

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


@pytest.fixture
def fake_pg(monkeypatch):
    raw = FakePsycopg2Connection()
    monkeypatch.setattr(db, "_open_postgres", lambda dsn: PostgresConnection(raw))
    return raw


def test_qmark_to_pct():
    assert _qmark_to_pct("SELECT * FROM t WHERE a=? AND b=?") == "SELECT * FROM t WHERE a=%s AND b=%s"
    # Quoted '?' stays; literal '%' is escaped for psycopg2.
    assert _qmark_to_pct("SELECT '?' , x LIKE ?") == "SELECT '?' , x LIKE %s"
    assert _qmark_to_pct("SELECT 'it''s ?', ?") == "SELECT 'it''s ?', %s"
    assert _qmark_to_pct("SELECT '100%'") == "SELECT '100%%'"


def test_detect_dialect():
    assert _detect_dialect("postgresql://u:p@localhost/db") == "postgres"
    assert _detect_dialect("postgres://u:p@localhost/db") == "postgres"
    assert _detect_dialect("sqlite:///tmp/x.sqlite") == "sqlite"
    assert _detect_dialect("./data/x.sqlite") == "sqlite"
    assert _detect_dialect("") == "sqlite"


def test_init_db_is_idempotent(cfg):
    init_db(cfg.DB_DSN)
    init_db(cfg.DB_DSN)
    with connect(cfg.DB_DSN) as conn:
        names = {r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()}
    assert {"users", "projects", "orders"} <= names


def test_connect_rolls_back_on_error(cfg):
    init_db(cfg.DB_DSN)
    try:
        with connect(cfg.DB_DSN) as conn:
            create_user(conn, email="a@x.com", password="secret1", bcrypt_rounds=4)
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    with connect(cfg.DB_DSN) as conn:
        assert conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"] == 0


def test_cascade_delete_user_project_orders(conn):
    u = create_user(conn, email="a@x.com", password="secret1", bcrypt_rounds=4)
    p = create_project(conn, user_id=u["id"], name="P1")
    create_order(conn, project_id=p["id"], title="Widget")
    create_order(conn, project_id=p["id"], title="Gadget")

    conn.execute("DELETE FROM projects WHERE project_id=?", (p["id"],))
    assert conn.execute("SELECT COUNT(*) AS n FROM orders").fetchone()["n"] == 0

    p2 = create_project(conn, user_id=u["id"], name="P2")
    create_order(conn, project_id=p2["id"], title="Widget")
    conn.execute("DELETE FROM users WHERE user_id=?", (u["id"],))
    assert conn.execute("SELECT COUNT(*) AS n FROM projects").fetchone()["n"] == 0
    assert conn.execute("SELECT COUNT(*) AS n FROM orders").fetchone()["n"] == 0


LEGACY_SCHEMA = """
CREATE TABLE users (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    last_login_at TEXT
);
CREATE TABLE projects (
    project_id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL
);
CREATE TABLE orders (
    order_id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL REFERENCES projects(project_id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT,
    product_url TEXT,
    invoice_number TEXT,
    payment_status TEXT NOT NULL DEFAULT 'unpaid',
    delivery_status TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
INSERT INTO users (email, password_hash, created_at, updated_at)
    VALUES ('old@x.com', 'x', '2023-01-01T00:00:00Z', '2023-01-01T00:00:00Z');
INSERT INTO projects (name, created_at) VALUES ('Old project', '2023-01-01T00:00:00Z');
INSERT INTO orders (project_id, title, created_at, updated_at)
    VALUES (1, 'Old order', '2023-01-01T00:00:00Z', '2023-01-01T00:00:00Z');
"""


def test_init_db_upgrades_database_from_before_approval_and_ownership(cfg):
    with connect(cfg.DB_DSN) as conn:
        conn.executescript(LEGACY_SCHEMA)

    init_db(cfg.DB_DSN)
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        user = conn.execute("SELECT * FROM users WHERE email='old@x.com'").fetchone()
        assert user["status"] == "approved"
        assert user["role"] == "user"

        # No admin to hand the project to, so it stays unowned.
        assert conn.execute("SELECT user_id FROM projects").fetchone()["user_id"] is None
        assert conn.execute("SELECT quantity FROM orders").fetchone()["quantity"] == 1

        indexes = {r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='index'").fetchall()}
        assert {"idx_users_status", "idx_projects_user_created", "idx_orders_project_created"} <= indexes

        # New registrations still start pending.
        assert create_user(conn, email="new@x.com", password="secret1", bcrypt_rounds=4)["status"] == "pending"


def test_postgres_schema_has_no_sqlite_syntax():
    assert "BIGSERIAL PRIMARY KEY" in SCHEMA_POSTGRES
    assert "AUTOINCREMENT" not in SCHEMA_POSTGRES
    assert "PRAGMA" not in SCHEMA_POSTGRES


def test_postgres_connection_rewrites_placeholders(fake_pg):
    conn = PostgresConnection(fake_pg)
    cur = conn.execute("SELECT * FROM orders WHERE project_id=? AND title LIKE '%x'", (7,))

    assert fake_pg.statements == [("SELECT * FROM orders WHERE project_id=%s AND title LIKE '%%x'", (7,))]
    assert cur.fetchone() is None
    assert cur.rowcount == 0


def test_init_db_on_postgres(fake_pg):
    init_db("postgresql://u:p@localhost/orders")

    sql = [s for s, _ in fake_pg.statements]
    assert sql[0] == "SELECT pg_advisory_xact_lock(%s)"
    assert not any("PRAGMA" in s or "AUTOINCREMENT" in s for s in sql)
    assert any("CREATE TABLE IF NOT EXISTS users" in s and "BIGSERIAL" in s for s in sql)

    # The fake reports every column missing, so each migration runs, before any index.
    alters = [i for i, s in enumerate(sql) if s.startswith("ALTER TABLE")]
    indexes = [i for i, s in enumerate(sql) if s.startswith("CREATE INDEX")]
    assert len(alters) == 4
    assert len(indexes) == 5
    assert max(alters) < min(indexes)

    assert fake_pg.committed and fake_pg.closed
    assert not fake_pg.rolled_back


def test_connect_rolls_back_postgres_on_error(fake_pg):
    with pytest.raises(RuntimeError):
        with connect("postgres://u:p@localhost/orders") as conn:
            conn.execute("SELECT 1")
            raise RuntimeError("boom")

    assert fake_pg.rolled_back and fake_pg.closed
    assert not fake_pg.committed
