from __future__ import annotations

from typing import Any, Dict, List, Optional

from order_tracker.errors import AuthorizationError, NotFoundError, ValidationError, field_error
from order_tracker.util.time import utcnow_iso


def public_project(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    return {
        "id": int(d["project_id"]),
        "name": d["name"],
        "description": d.get("description"),
        "userId": int(d["user_id"]),
        "createdAt": d["created_at"],
    }


def list_projects(conn: Any, user_id: int) -> List[Dict[str, Any]]:
    """Projects owned by `user_id`, oldest first (the client selects the first one)."""
    rows = conn.execute(
        "SELECT * FROM projects WHERE user_id=? ORDER BY created_at ASC, project_id ASC",
        (int(user_id),),
    ).fetchall()
    return [public_project(r) for r in rows]


def get_project(conn: Any, project_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        "SELECT * FROM projects WHERE project_id=?",
        (int(project_id),),
    ).fetchone()
    return public_project(row) if row is not None else None


def require_owned_project(conn: Any, project_id: int, user_id: int) -> Dict[str, Any]:
    project = get_project(conn, project_id)
    if project is None:
        raise NotFoundError("project_not_found", "Project not found")
    if project["userId"] != int(user_id):
        raise AuthorizationError("access_denied", "Access denied")
    return project


def create_project(
    conn: Any,
    *,
    user_id: int,
    name: str,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    n = (name or "").strip()
    if not n:
        raise ValidationError(errors=[field_error("name", "Name is required")])

    row = conn.execute(
        """
        INSERT INTO projects (user_id, name, description, created_at)
        VALUES (?,?,?,?)
        RETURNING *
        """,
        (int(user_id), n, description or None, utcnow_iso()),
    ).fetchone()
    return public_project(row)
