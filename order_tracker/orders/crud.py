from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from order_tracker.errors import NotFoundError, ValidationError, field_error
from order_tracker.models import DELIVERY_STATUSES, PAYMENT_STATUSES, OrderFilters, OrderPage
from order_tracker.util.time import utcnow_iso


# Column -> JSON key. Column order is also the INSERT order.
_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("project_id", "projectId"),
    ("title", "title"),
    ("description", "description"),
    ("product_url", "productUrl"),
    ("quantity", "quantity"),
    ("invoice_number", "invoiceNumber"),
    ("payment_status", "paymentStatus"),
    ("delivery_status", "deliveryStatus"),
)
_UPDATABLE = {col for col, _ in _FIELDS}
_NOT_NULL = {"project_id", "title", "quantity", "payment_status", "delivery_status"}


def public_order(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    out: Dict[str, Any] = {"id": int(d["order_id"])}
    for col, key in _FIELDS:
        out[key] = d.get(col)
    out["createdAt"] = d["created_at"]
    out["updatedAt"] = d.get("updated_at")
    return out


def _escape_like(s: str) -> str:
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _validate(values: Dict[str, Any]) -> None:
    """Field checks shared by create and partial update (only keys present are checked)."""
    errors: List[Dict[str, Any]] = []
    for col, key in _FIELDS:
        if col in values and values[col] is None and col in _NOT_NULL:
            errors.append(field_error(key, "Field cannot be null"))

    if "title" in values and values["title"] is not None and not str(values["title"]).strip():
        errors.append(field_error("title", "Title is required"))
    if values.get("payment_status") is not None and values["payment_status"] not in PAYMENT_STATUSES:
        errors.append(field_error("paymentStatus", f"Must be one of: {', '.join(PAYMENT_STATUSES)}", "enum"))
    if values.get("delivery_status") is not None and values["delivery_status"] not in DELIVERY_STATUSES:
        errors.append(field_error("deliveryStatus", f"Must be one of: {', '.join(DELIVERY_STATUSES)}", "enum"))
    if values.get("quantity") is not None:
        q = values["quantity"]
        if isinstance(q, bool) or not isinstance(q, int) or q < 1:
            errors.append(field_error("quantity", "Quantity must be an integer >= 1"))

    if errors:
        raise ValidationError(errors=errors)


def _ensure_project_exists(conn: Any, project_id: int) -> None:
    row = conn.execute("SELECT 1 FROM projects WHERE project_id=?", (int(project_id),)).fetchone()
    if row is None:
        raise NotFoundError("project_not_found", "Project not found")


def _filter_sql(project_id: int, filters: OrderFilters) -> Tuple[str, List[Any]]:
    where = ["project_id=?"]
    params: List[Any] = [int(project_id)]

    if filters.payment_status:
        if filters.payment_status not in PAYMENT_STATUSES:
            raise ValidationError("invalid_payment_status", "Invalid payment status")
        where.append("payment_status=?")
        params.append(filters.payment_status)

    if filters.delivery_status:
        if filters.delivery_status not in DELIVERY_STATUSES:
            raise ValidationError("invalid_delivery_status", "Invalid delivery status")
        where.append("delivery_status=?")
        params.append(filters.delivery_status)

    search = (filters.search or "").strip()
    if search:
        # LOWER() on both sides: Postgres LIKE is case-sensitive, SQLite's is not.
        where.append("LOWER(title) LIKE LOWER(?) ESCAPE '\\'")
        params.append(f"%{_escape_like(search)}%")

    return " AND ".join(where), params


def list_orders(
    conn: Any,
    project_id: int,
    filters: Optional[OrderFilters] = None,
    *,
    page: int = 1,
    limit: int = 20,
) -> OrderPage:
    """One page of a project's orders, newest first, plus the total match count.

    All filters must hold. `page` is 1-based; out-of-range values are clamped to 1.
    """
    page = max(1, int(page))
    limit = max(1, int(limit))
    offset = (page - 1) * limit

    where_sql, params = _filter_sql(project_id, filters or OrderFilters())

    total = conn.execute(
        f"SELECT COUNT(*) AS n FROM orders WHERE {where_sql}",
        tuple(params),
    ).fetchone()["n"]

    rows = conn.execute(
        f"""
        SELECT * FROM orders
        WHERE {where_sql}
        ORDER BY created_at DESC, order_id DESC
        LIMIT ? OFFSET ?
        """,
        (*params, limit, offset),
    ).fetchall()

    return OrderPage(orders=[public_order(r) for r in rows], total=int(total))


def get_order(conn: Any, order_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM orders WHERE order_id=?", (int(order_id),)).fetchone()
    return public_order(row) if row is not None else None


def create_order(
    conn: Any,
    *,
    project_id: int,
    title: str,
    description: Optional[str] = None,
    product_url: Optional[str] = None,
    quantity: int = 1,
    invoice_number: Optional[str] = None,
    payment_status: str = "unpaid",
    delivery_status: str = "pending",
) -> Dict[str, Any]:
    values: Dict[str, Any] = {
        "project_id": project_id,
        "title": title,
        "description": description,
        "product_url": product_url,
        "quantity": quantity,
        "invoice_number": invoice_number,
        "payment_status": payment_status,
        "delivery_status": delivery_status,
    }
    _validate(values)
    values["title"] = str(title).strip()
    _ensure_project_exists(conn, project_id)

    now = utcnow_iso()
    cols = [col for col, _ in _FIELDS] + ["created_at", "updated_at"]
    params = [values[col] for col, _ in _FIELDS] + [now, now]
    row = conn.execute(
        f"""
        INSERT INTO orders ({", ".join(cols)})
        VALUES ({", ".join("?" for _ in cols)})
        RETURNING *
        """,
        tuple(params),
    ).fetchone()
    return public_order(row)


def update_order(conn: Any, order_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Partial update: only the columns present in `changes` are written.

    The order id itself is immutable. Concurrent updates are last-write-wins per column.
    """
    unknown = set(changes) - _UPDATABLE
    if unknown:
        raise ValidationError(
            "unknown_fields",
            "Unknown fields",
            errors=[field_error(k, "Field cannot be updated") for k in sorted(unknown)],
        )
    _validate(changes)

    if get_order(conn, order_id) is None:
        raise NotFoundError("order_not_found", "Order not found")

    fields = [(col, changes[col]) for col, _ in _FIELDS if col in changes]
    if "title" in changes:
        fields = [(c, str(v).strip() if c == "title" else v) for c, v in fields]
    if "project_id" in changes:
        _ensure_project_exists(conn, changes["project_id"])

    fields.append(("updated_at", utcnow_iso()))
    sets = ", ".join([f"{k}=?" for k, _ in fields])
    row = conn.execute(
        f"UPDATE orders SET {sets} WHERE order_id=? RETURNING *",
        [v for _, v in fields] + [int(order_id)],
    ).fetchone()
    if row is None:
        # Deleted between the existence check and the update.
        raise NotFoundError("order_not_found", "Order not found")
    return public_order(row)


def delete_order(conn: Any, order_id: int) -> bool:
    """Delete one order. Returns False when no row had that id."""
    cur = conn.execute("DELETE FROM orders WHERE order_id=?", (int(order_id),))
    return cur.rowcount > 0
