import json
import re
import sys
from collections.abc import Callable
from contextlib import ExitStack
from pathlib import Path
from urllib.parse import unquote

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from command_center.config import Settings  # noqa: E402
from command_center.database import Base, build_session_factory  # noqa: E402
from command_center.main import create_app, get_email_relay  # noqa: E402
from command_center import models  # noqa: E402,F401
from command_center.relay import EmailRelay  # noqa: E402

ADMIN_PASSWORD = "BootstrapPass123"
TOKEN_SECRET = "test-admin-token-secret"
RESET_SECRET = "test-password-reset-secret"
RELAY_URL = "https://relay.example.test/send"
RELAY_SECRET = "test-relay-secret"
FRONTEND_ORIGIN = "https://app.example.test"
SUPPORT_EMAIL = "support@example.test"

RESET_TOKEN_RE = re.compile(r"#admin-reset\?token=([^\s]+)")


@pytest.fixture()
def defaults() -> dict[str, str]:
    """Values the test app is configured with, for assertions."""
    return {
        "admin_password": ADMIN_PASSWORD,
        "relay_url": RELAY_URL,
        "relay_secret": RELAY_SECRET,
        "frontend_origin": FRONTEND_ORIGIN,
        "support_email": SUPPORT_EMAIL,
    }


@pytest.fixture()
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    def _build(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "database_url": f"sqlite+pysqlite:///{tmp_path / 'test.db'}",
            "admin_password": ADMIN_PASSWORD,
            "admin_token_secret": TOKEN_SECRET,
            "admin_token_ttl": 3600,
            "password_reset_secret": RESET_SECRET,
            "password_reset_ttl_minutes": 15,
            "email_relay_url": RELAY_URL,
            "email_relay_secret": RELAY_SECRET,
            "frontend_origin": FRONTEND_ORIGIN,
            "support_email": SUPPORT_EMAIL,
            "log_level": "INFO",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _build


@pytest.fixture()
def relay_calls() -> list[httpx.Request]:
    return []


@pytest.fixture()
def relay_status() -> dict[str, int]:
    return {"code": 200}


@pytest.fixture()
def relay_transport(relay_calls: list[httpx.Request], relay_status: dict[str, int]) -> httpx.MockTransport:
    def _handler(request: httpx.Request) -> httpx.Response:
        relay_calls.append(request)
        code = relay_status["code"]
        return httpx.Response(code, json={"success": code < 400})

    return httpx.MockTransport(_handler)


@pytest.fixture()
def make_client(make_settings, relay_transport: httpx.MockTransport):
    with ExitStack() as stack:

        def _create(**overrides: object) -> TestClient:
            settings = make_settings(**overrides)
            app = create_app(settings)
            relay_client = httpx.AsyncClient(transport=relay_transport)
            app.dependency_overrides[get_email_relay] = lambda: EmailRelay(
                settings.email_relay_url,
                settings.email_relay_secret.get_secret_value(),
                relay_client,
            )
            return stack.enter_context(TestClient(app))

        yield _create


@pytest.fixture()
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture()
def login() -> Callable[..., str]:
    def _login(client: TestClient, password: str = ADMIN_PASSWORD) -> str:
        response = client.post("/api/admin/login", json={"password": password})
        assert response.status_code == 200, response.text
        return response.json()["token"]

    return _login


@pytest.fixture()
def reset_token_from() -> Callable[[httpx.Request], str]:
    def _extract(request: httpx.Request) -> str:
        body = json.loads(request.content)["body"]
        match = RESET_TOKEN_RE.search(body)
        assert match, body
        return unquote(match.group(1))

    return _extract


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
