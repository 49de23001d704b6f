from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Literal, Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from order_tracker import __version__
from order_tracker.config import Config, load_config
from order_tracker.db import connect, init_db
from order_tracker.errors import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    InternalError,
    NotFoundError,
    ValidationError,
)

from order_tracker.auth import get_current_user, require_admin
from order_tracker.auth.crud import (
    bootstrap_admin_if_needed,
    create_user,
    ensure_login_allowed,
    list_users,
    public_user,
    touch_last_login,
    update_user_status,
    verify_user_credentials,
)
from order_tracker.auth.deps import get_config
from order_tracker.auth.security import create_access_token
from order_tracker.models import OrderFilters
from order_tracker.orders.crud import create_order, delete_order, get_order, list_orders, update_order
from order_tracker.projects.crud import create_project, list_projects, require_owned_project


log = logging.getLogger(__name__)


def _debug(msg: str) -> None:
    log.info("[api] %s", msg)


router = APIRouter()


# -----------------------------
# Health
# -----------------------------


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok", "version": __version__}


# -----------------------------
# Auth
# -----------------------------

def _cookie_secure(cfg: Config) -> bool:
    """Return whether auth cookies should be marked Secure."""
    samesite = str(cfg.AUTH_COOKIE_SAMESITE or "strict").lower()
    # Browsers require Secure when SameSite=None
    if samesite == "none":
        return True
    return bool(cfg.AUTH_COOKIE_SECURE)


def _set_auth_cookie(response: Response, *, token: str, cfg: Config) -> None:
    """Set the httpOnly session cookie; it lives exactly as long as the token."""
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=str(token),
        httponly=True,
        samesite=str(cfg.AUTH_COOKIE_SAMESITE or "strict").lower(),
        secure=_cookie_secure(cfg),
        max_age=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES) * 60,
        path=cfg.AUTH_COOKIE_PATH or "/",
        domain=cfg.AUTH_COOKIE_DOMAIN,
    )


def _clear_auth_cookie(response: Response, cfg: Config) -> None:
    response.delete_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        path=cfg.AUTH_COOKIE_PATH or "/",
        domain=cfg.AUTH_COOKIE_DOMAIN,
        secure=_cookie_secure(cfg),
        httponly=True,
        samesite=str(cfg.AUTH_COOKIE_SAMESITE or "strict").lower(),
    )


class _Body(BaseModel):
    """Request bodies use camelCase on the wire; snake_case is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(_Body):
    email: str
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def check_email_shape(cls, v: str) -> str:
        # Check the address but keep it as typed: logins match the stored text exactly,
        # and the validator's normalized form lowercases the domain.
        try:
            validate_email(v.strip(), check_deliverability=False)
        except EmailNotValidError as e:
            raise ValueError(str(e)) from e
        return v


class LoginRequest(_Body):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserStatusRequest(_Body):
    status: str


@router.post("/api/auth/register", status_code=201)
def auth_register(payload: RegisterRequest, cfg: Config = Depends(get_config)) -> Dict[str, Any]:
    """Submit a registration request. The account stays `pending` until an admin acts on it."""
    with connect(cfg.DB_DSN) as conn:
        u = create_user(
            conn,
            email=str(payload.email),
            password=payload.password,
            bcrypt_rounds=cfg.AUTH_BCRYPT_ROUNDS,
        )
    _debug(f"Registration received: user_id={u['id']}")
    return {
        "user": {"id": u["id"], "email": u["email"]},
        "message": "Registration request submitted. Please wait for approval.",
    }


@router.post("/api/auth/login")
def auth_login(payload: LoginRequest, response: Response, cfg: Config = Depends(get_config)) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        user_row = verify_user_credentials(conn, payload.email, payload.password)
        if user_row is None:
            raise AuthenticationError("invalid_credentials", "Invalid credentials")

        try:
            ensure_login_allowed(user_row)
        except AuthorizationError as e:
            _debug(f"Login refused: user_id={user_row['user_id']} reason={e.detail}")
            raise

        touch_last_login(conn, int(user_row["user_id"]))
        u = public_user(user_row)

    token = create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        user_id=u["id"],
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )
    _set_auth_cookie(response, token=token, cfg=cfg)

    return {"user": {"id": u["id"], "email": u["email"]}, "message": "Login successful"}


@router.post("/api/auth/logout")
def auth_logout(response: Response, cfg: Config = Depends(get_config)) -> Dict[str, Any]:
    """Clear the session cookie. The token itself stays valid until it expires."""
    _clear_auth_cookie(response, cfg)
    return {"message": "Logout successful"}


@router.get("/api/auth/me")
def auth_me(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return {"user": user}


# -----------------------------
# Admin: approval workflow
# -----------------------------


@router.get("/api/admin/users")
def admin_list_users(
    cfg: Config = Depends(get_config),
    _admin: Dict[str, Any] = Depends(require_admin),
) -> List[Dict[str, Any]]:
    with connect(cfg.DB_DSN) as conn:
        return list_users(conn)


@router.patch("/api/admin/users/{user_id}/status")
def admin_update_user_status(
    user_id: int,
    payload: UserStatusRequest,
    cfg: Config = Depends(get_config),
    admin: Dict[str, Any] = Depends(require_admin),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        u = update_user_status(conn, user_id, payload.status)
    _debug(f"User status changed: user_id={user_id} status={u['status']} by admin_id={admin['id']}")
    return u


# -----------------------------
# Projects
# -----------------------------


class ProjectCreateRequest(_Body):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


@router.get("/api/projects")
def projects_list(
    cfg: Config = Depends(get_config),
    user: Dict[str, Any] = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    with connect(cfg.DB_DSN) as conn:
        return list_projects(conn, user["id"])


@router.post("/api/projects", status_code=201)
def projects_create(
    payload: ProjectCreateRequest,
    cfg: Config = Depends(get_config),
    user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        return create_project(conn, user_id=user["id"], name=payload.name, description=payload.description)


# -----------------------------
# Orders
# -----------------------------

PaymentStatus = Literal["unpaid", "partial", "paid"]
DeliveryStatus = Literal["pending", "shipping", "delivered"]


class OrderCreateRequest(_Body):
    project_id: int
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    product_url: Optional[str] = Field(None, max_length=1000)
    quantity: int = Field(1, ge=1)
    invoice_number: Optional[str] = Field(None, max_length=100)
    payment_status: PaymentStatus = "unpaid"
    delivery_status: DeliveryStatus = "pending"


class OrderUpdateRequest(_Body):
    # Optional echo of the path id; it can never be changed.
    id: Optional[int] = None
    project_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    product_url: Optional[str] = Field(None, max_length=1000)
    quantity: Optional[int] = Field(None, ge=1)
    invoice_number: Optional[str] = Field(None, max_length=100)
    payment_status: Optional[PaymentStatus] = None
    delivery_status: Optional[DeliveryStatus] = None


def _owned_order(conn: Any, order_id: int, user_id: int) -> Dict[str, Any]:
    order = get_order(conn, order_id)
    if order is None:
        raise NotFoundError("order_not_found", "Order not found")
    require_owned_project(conn, order["projectId"], user_id)
    return order


@router.get("/api/orders")
def orders_list(
    project_id: Optional[int] = Query(None, alias="projectId"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    payment_status: Optional[str] = Query(None, alias="paymentStatus"),
    delivery_status: Optional[str] = Query(None, alias="deliveryStatus"),
    search: Optional[str] = None,
    cfg: Config = Depends(get_config),
    user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    """List a project's orders, newest first, with conjunctive filters + offset paging."""
    if project_id is None:
        raise ValidationError("project_id_required", "Project ID is required")

    limit = int(limit or cfg.ORDERS_PAGE_SIZE_DEFAULT)
    if limit > cfg.ORDERS_PAGE_SIZE_MAX:
        raise ValidationError("limit_too_large", f"limit must be <= {cfg.ORDERS_PAGE_SIZE_MAX}")

    filters = OrderFilters(
        payment_status=payment_status or None,
        delivery_status=delivery_status or None,
        search=search or None,
    )

    with connect(cfg.DB_DSN) as conn:
        require_owned_project(conn, project_id, user["id"])
        result = list_orders(conn, project_id, filters, page=page, limit=limit)

    return {
        "orders": result.orders,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": result.total,
            "pages": math.ceil(result.total / limit),
        },
    }


@router.post("/api/orders", status_code=201)
def orders_create(
    payload: OrderCreateRequest,
    cfg: Config = Depends(get_config),
    user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        require_owned_project(conn, payload.project_id, user["id"])
        return create_order(conn, **payload.model_dump())


@router.get("/api/orders/{order_id}")
def orders_get(
    order_id: int,
    cfg: Config = Depends(get_config),
    user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        return _owned_order(conn, order_id, user["id"])


@router.patch("/api/orders/{order_id}")
def orders_update(
    order_id: int,
    payload: OrderUpdateRequest,
    cfg: Config = Depends(get_config),
    user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    body_id = changes.pop("id", None)
    if body_id is not None and int(body_id) != order_id:
        raise ValidationError("id_immutable", "Order id cannot be changed")

    with connect(cfg.DB_DSN) as conn:
        _owned_order(conn, order_id, user["id"])
        if changes.get("project_id") is not None:
            require_owned_project(conn, changes["project_id"], user["id"])
        return update_order(conn, order_id, changes)


@router.delete("/api/orders/{order_id}")
def orders_delete(
    order_id: int,
    cfg: Config = Depends(get_config),
    user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        _owned_order(conn, order_id, user["id"])
        delete_order(conn, order_id)
    return {"message": "Order deleted successfully"}


# -----------------------------
# Error mapping
# -----------------------------


def _app_error_response(request: Request, exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def _validation_error_response(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(e.get("loc", ())), "msg": str(e.get("msg", "")), "type": str(e.get("type", ""))}
        for e in exc.errors()
    ]
    err = ValidationError(errors=errors)
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def _unhandled_error_response(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = InternalError()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


# -----------------------------
# App
# -----------------------------


def create_app(cfg: Optional[Config] = None) -> FastAPI:
    cfg = load_config(cfg)

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Ensure schema exists.
        init_db(cfg.DB_DSN)

        # Bootstrap first admin if needed (only when users table is empty)
        boot = bootstrap_admin_if_needed(cfg)
        if boot:
            _debug(f"Bootstrapped initial admin user: email={boot.get('email')}")
        yield

    app = FastAPI(title="Order Tracker", version=__version__, lifespan=_lifespan)
    # Make config available to route + auth deps.
    app.state.cfg = cfg

    # CORS is only needed for local development (Vite dev server -> API).
    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(AppError, _app_error_response)
    app.add_exception_handler(RequestValidationError, _validation_error_response)
    app.add_exception_handler(Exception, _unhandled_error_response)

    app.include_router(router)
    return app


app = create_app()
