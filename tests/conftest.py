from __future__ import annotations

from typing import Any, Callable, Dict, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from order_tracker.api.server import create_app
from order_tracker.auth.crud import get_user_by_email, update_user_status
from order_tracker.config import Config
from order_tracker.db import connect, init_db


ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass"


@pytest.fixture
def cfg(tmp_path) -> Config:
    return Config(
        APP_ENV="development",
        DB_DSN=str(tmp_path / "orders.sqlite"),
        AUTH_JWT_SECRET="test-secret",
        AUTH_BCRYPT_ROUNDS=4,
        AUTH_BOOTSTRAP_ADMIN_EMAIL=ADMIN_EMAIL,
        AUTH_BOOTSTRAP_ADMIN_PASSWORD=ADMIN_PASSWORD,
        AUTH_COOKIE_SECURE=False,
        CORS_ALLOW_ORIGINS="",
    )


@pytest.fixture
def conn(cfg) -> Iterator[Any]:
    init_db(cfg.DB_DSN)
    with connect(cfg.DB_DSN) as c:
        yield c


@pytest.fixture
def app(cfg) -> FastAPI:
    return create_app(cfg)


@pytest.fixture
def make_client(app) -> Iterator[Callable[[], TestClient]]:
    """Factory for independent clients (separate cookie jars) on one app."""
    clients = []

    def _make() -> TestClient:
        c = TestClient(app)
        c.__enter__()
        clients.append(c)
        return c

    yield _make

    for c in clients:
        c.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


def register(client: TestClient, email: str, password: str = "secret1"):
    return client.post("/api/auth/register", json={"email": email, "password": password})


def login(client: TestClient, email: str, password: str = "secret1"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def set_status(cfg: Config, email: str, status: str) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as c:
        row = get_user_by_email(c, email)
        assert row is not None
        return update_user_status(c, int(row["user_id"]), status)


@pytest.fixture
def signed_in(client, cfg) -> Callable[..., Dict[str, Any]]:
    """Register, approve and log in a user on `client`; returns the login payload."""

    def _sign_in(email: str = "a@x.com", password: str = "secret1") -> Dict[str, Any]:
        assert register(client, email, password).status_code == 201
        set_status(cfg, email, "approved")
        r = login(client, email, password)
        assert r.status_code == 200, r.text
        return r.json()["user"]

    return _sign_in


@pytest.fixture
def admin_client(make_client) -> TestClient:
    c = make_client()
    r = login(c, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert r.status_code == 200, r.text
    return c
