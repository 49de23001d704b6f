"""Domain errors.

Every error carries the HTTP status it maps to, a short machine-readable
`detail` code (stable, for frontends) and a human-readable `message`.
The API layer turns them into JSON responses; store code raises them.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class AppError(Exception):
    status_code: int = 500
    default_detail: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(
        self,
        detail: Optional[str] = None,
        message: Optional[str] = None,
        *,
        errors: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.detail = detail or self.default_detail
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.detail, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(AppError):
    status_code = 400
    default_detail = "invalid_input"
    default_message = "Invalid input"


class AuthenticationError(AppError):
    status_code = 401
    default_detail = "not_authenticated"
    default_message = "Authentication required"


class AuthorizationError(AppError):
    status_code = 403
    default_detail = "access_denied"
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = 404
    default_detail = "not_found"
    default_message = "Not found"


class ConflictError(AppError):
    # Duplicate registrations have always answered 400; clients depend on it.
    status_code = 400
    default_detail = "conflict"
    default_message = "Resource already exists"


class InternalError(AppError):
    pass


def field_error(field: str, msg: str, type_: str = "value_error") -> Dict[str, Any]:
    """One entry of a ValidationError's `errors` list."""
    return {"loc": ["body", field], "msg": msg, "type": type_}
