import logging
from collections.abc import Iterator

from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

try:
    from .config import Settings
except ImportError:  # pragma: no cover
    from config import Settings  # type: ignore


logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def libsql_url(turso_url: str) -> str:
    host = turso_url.strip()
    for prefix in ("libsql://", "https://", "wss://"):
        if host.startswith(prefix):
            host = host[len(prefix):]
            break
    return f"sqlite+libsql://{host.rstrip('/')}/?secure=true"


def build_engine(settings: Settings) -> Engine:
    """Pick the storage backend once, from configuration."""
    if settings.uses_turso:
        logger.info("Using libSQL storage backend")
        return create_engine(
            libsql_url(settings.turso_database_url),
            future=True,
            connect_args={"auth_token": settings.turso_auth_token.get_secret_value().strip()},
        )

    connect_args = {}
    if settings.database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    logger.info("Using SQL storage backend (%s)", settings.database_url.split(":", 1)[0])
    return create_engine(settings.database_url, echo=False, future=True, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
