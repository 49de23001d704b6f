"""Database schema for the Order Tracker.

SQLite is the default for local development; Postgres is supported for deployments.

Timestamps are ISO-8601 TEXT (UTC, with 'Z') for portability across engines. ISO strings
sort lexicographically in time order, so `ORDER BY created_at DESC` means newest first.

NOTE: The Postgres schema is generated from the SQLite schema with a small set of
transformations (types + autoincrement).
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Users / Auth
-- Accounts start as 'pending' and can only log in once an admin approves them.
CREATE TABLE IF NOT EXISTS users (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','approved','rejected')),
    role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('admin','user')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    last_login_at TEXT
);

CREATE TABLE IF NOT EXISTS projects (
    project_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS orders (
    order_id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    product_url TEXT,
    quantity INTEGER NOT NULL DEFAULT 1 CHECK (quantity >= 1),
    invoice_number TEXT,
    payment_status TEXT NOT NULL DEFAULT 'unpaid' CHECK (payment_status IN ('unpaid','partial','paid')),
    delivery_status TEXT NOT NULL DEFAULT 'pending' CHECK (delivery_status IN ('pending','shipping','delivered')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (project_id) REFERENCES projects(project_id) ON DELETE CASCADE
);
"""

# Indexes reference columns that older databases only get from migrations,
# so they are created after the migrations have run.
INDEXES_SQL = r"""
CREATE INDEX IF NOT EXISTS idx_users_status ON users (status, created_at);
CREATE INDEX IF NOT EXISTS idx_projects_user_created ON projects (user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_orders_project_created ON orders (project_id, created_at);
CREATE INDEX IF NOT EXISTS idx_orders_project_payment ON orders (project_id, payment_status);
CREATE INDEX IF NOT EXISTS idx_orders_project_delivery ON orders (project_id, delivery_status);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Remove SQLite pragmas
    lines = [line for line in ddl.splitlines() if not line.strip().upper().startswith("PRAGMA ")]
    out = "\n".join(lines)

    # AUTOINCREMENT primary keys
    out = re.sub(
        r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        "BIGSERIAL PRIMARY KEY",
        out,
        flags=re.IGNORECASE,
    )
    return re.sub(r"\bAUTOINCREMENT\b", "", out, flags=re.IGNORECASE)


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    """Table DDL for `dialect` ('sqlite' or 'postgres')."""
    if (dialect or "").lower().startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
