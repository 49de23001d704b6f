from __future__ import annotations

from typing import Any, Dict, List, Optional

from order_tracker.config import Config
from order_tracker.db import connect
from order_tracker.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
    field_error,
)
from order_tracker.models import USER_ROLES, USER_STATUSES
from order_tracker.util.time import utcnow_iso

from .security import DEFAULT_BCRYPT_ROUNDS, hash_password, verify_password


PENDING_MESSAGE = "Your account is pending approval. Please wait for administrator review."
REJECTED_MESSAGE = "Your registration has been rejected. Please contact administrator."


def normalize_email(email: str) -> str:
    # Emails are stored (and matched) exactly as entered, minus surrounding whitespace.
    return (email or "").strip()


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    return {
        "id": int(d["user_id"]),
        "email": d["email"],
        "status": d["status"],
        "role": d.get("role") or "user",
        "createdAt": d["created_at"],
    }


def get_user_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE user_id=?",
        (int(user_id),),
    ).fetchone()


def list_users(conn: Any) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT * FROM users ORDER BY created_at DESC, user_id DESC").fetchall()
    return [public_user(r) for r in rows]


def verify_user_credentials(conn: Any, email: str, password: str) -> Optional[Any]:
    """Return the user row when email + password match, else None.

    Approval status is not checked here; see ensure_login_allowed().
    """
    row = get_user_by_email(conn, email)
    if row is None:
        return None
    if not verify_password(password, str(row["password_hash"])):
        return None
    return row


def ensure_login_allowed(row: Any) -> None:
    """Approval gate: only approved accounts may hold a session."""
    status = str(row["status"])
    if status == "approved":
        return
    if status == "rejected":
        raise AuthorizationError("account_rejected", REJECTED_MESSAGE)
    raise AuthorizationError("account_pending", PENDING_MESSAGE)


def create_user(
    conn: Any,
    *,
    email: str,
    password: str,
    role: str = "user",
    status: str = "pending",
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
) -> Dict[str, Any]:
    e = normalize_email(email)
    if not e:
        raise ValidationError(errors=[field_error("email", "Email is required")])
    if not password:
        raise ValidationError(errors=[field_error("password", "Password is required")])
    if role not in USER_ROLES:
        raise ValidationError("invalid_role", "Invalid role")
    if status not in USER_STATUSES:
        raise ValidationError("invalid_status", "Invalid status")

    existing = conn.execute("SELECT 1 FROM users WHERE email=?", (e,)).fetchone()
    if existing is not None:
        raise ConflictError("email_exists", "User already exists")

    # A concurrent registration can land between the check above and this insert;
    # the UNIQUE(email) conflict then yields no row instead of an IntegrityError.
    now = utcnow_iso()
    row = conn.execute(
        """
        INSERT INTO users (email, password_hash, status, role, created_at, updated_at)
        VALUES (?,?,?,?,?,?)
        ON CONFLICT (email) DO NOTHING
        RETURNING *
        """,
        (e, hash_password(password, rounds=bcrypt_rounds), status, role, now, now),
    ).fetchone()
    if row is None:
        raise ConflictError("email_exists", "User already exists")
    return public_user(row)


def update_user_status(conn: Any, user_id: int, status: str) -> Dict[str, Any]:
    """Approval workflow transition (admin only at the API layer)."""
    if status not in USER_STATUSES:
        raise ValidationError("invalid_status", "Invalid status")

    row = conn.execute(
        "UPDATE users SET status=?, updated_at=? WHERE user_id=? RETURNING *",
        (status, utcnow_iso(), int(user_id)),
    ).fetchone()
    if row is None:
        raise NotFoundError("user_not_found", "User not found")
    return public_user(row)


def touch_last_login(conn: Any, user_id: int) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET last_login_at=?, updated_at=? WHERE user_id=?",
        (now, now, int(user_id)),
    )


def bootstrap_admin_if_needed(cfg: Config) -> Optional[Dict[str, Any]]:
    """Create the first admin user if the users table is empty.

    Controlled via environment variables so a new deployment has a deterministic way to
    approve the first registrations.

    - AUTH_BOOTSTRAP_ADMIN_EMAIL (default: admin@example.com)
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD (no default; unset means no bootstrap)

    This only runs when there are 0 rows in `users`.
    """

    email = normalize_email(cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL)
    password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD or ""
    if not email or not password:
        return None

    with connect(cfg.DB_DSN) as conn:
        n = conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"]
        if int(n) > 0:
            return None

        return create_user(
            conn,
            email=email,
            password=password,
            role="admin",
            status="approved",
            bcrypt_rounds=cfg.AUTH_BCRYPT_ROUNDS,
        )
