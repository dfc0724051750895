from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from ota_server.core.config import get_settings

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def _engine_options(dsn: str, app_env: str) -> dict:
    if not dsn.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options: dict = {"connect_args": {"check_same_thread": False}}
    if app_env.lower() == "test":
        # Per-test SQLite files are copied and deleted; pooled handles would pin them.
        options["poolclass"] = NullPool
    return options


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(settings.database_dsn, **_engine_options(settings.database_dsn, settings.app_env))
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
    return _session_factory


def open_session() -> Session:
    return get_session_factory()()


def dispose_engine() -> None:
    """Drop the cached engine and session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def use_session_factory(factory: sessionmaker) -> None:
    """Route every new session through ``factory`` (test isolation)."""
    global _engine, _session_factory
    dispose_engine()
    _session_factory = factory
    _engine = factory.kw.get("bind")


def get_db() -> Generator[Session]:
    db = open_session()
    try:
        yield db
    finally:
        db.close()
