import os
os.environ["APP_ENV"] = "test"

# THEN import anything else
import json
import shutil
import tempfile
import time
import uuid
from collections.abc import Callable, Generator
from datetime import UTC, datetime
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

import ota_server.db.session as db_session_module
from ota_server.core.config import Settings, get_settings
from ota_server.db.session import get_db
from ota_server.models.bundle import Bundle
from ota_server.services.update_engine.identifiers import generate_bundle_id

ADMIN_TOKEN = "test-admin-token"
FINGERPRINT_A = "a1b2c3d4e5f60718293a" + "0" * 20
FINGERPRINT_A_REBUILD = "a1b2c3d4e5f60718293a" + "f" * 20
FINGERPRINT_B = "ffeeddccbbaa99887766" + "0" * 20


def _run_alembic_upgrade(backend_dir: Path, database_url: str) -> None:
    cfg = Config(str(backend_dir / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(cfg, "head")


@pytest.fixture(scope="session", autouse=True)
def apply_migrations() -> Generator[Path, None, None]:
    backend_dir = Path(__file__).resolve().parents[1]
    temp_dir = Path(tempfile.mkdtemp(prefix="pytest-ota-db-"))
    template_db_path = temp_dir / f"template-{uuid.uuid4().hex}.sqlite3"
    database_url = f"sqlite:///{template_db_path.as_posix()}"
    os.environ["DATABASE_DSN"] = database_url

    get_settings.cache_clear()
    db_session_module.dispose_engine()
    _run_alembic_upgrade(backend_dir, database_url)
    verification_engine = create_engine(database_url, poolclass=NullPool)
    try:
        missing = [name for name in ("bundles", "device_events") if not inspect(verification_engine).has_table(name)]
    finally:
        verification_engine.dispose()
    if missing:
        raise RuntimeError(f"Alembic migration parity check failed; missing tables: {missing}")
    yield template_db_path
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture()
def db_session(apply_migrations: Path) -> Generator[Session, None, None]:
    test_db_path = apply_migrations.parent / f"{uuid.uuid4().hex}.sqlite3"
    shutil.copy2(apply_migrations, test_db_path)
    engine = create_engine(
        f"sqlite:///{test_db_path.as_posix()}",
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=NullPool,
    )
    test_session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    db_session_module.use_session_factory(test_session_factory)
    test_session = test_session_factory()
    yield test_session
    test_session.close()
    engine.dispose()
    db_session_module.dispose_engine()
    for _ in range(5):
        try:
            test_db_path.unlink(missing_ok=True)
            break
        except PermissionError:
            time.sleep(0.05)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    from ota_server.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def override_settings(client: TestClient) -> Callable[..., Settings]:
    from ota_server.main import app

    def _apply(**changes) -> Settings:
        settings = get_settings().model_copy(update=changes)
        app.dependency_overrides[get_settings] = lambda: settings
        return settings

    return _apply


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture()
def add_bundle(db_session: Session) -> Callable[..., Bundle]:
    def _add(**fields) -> Bundle:
        device_ids = fields.pop("target_device_ids", None)
        metadata = fields.pop("metadata", {})
        values = {
            "id": generate_bundle_id(),
            "platform": "ios",
            "channel": "production",
            "target_app_version": "1.0.0",
            "should_force_update": False,
            "enabled": True,
            "storage_uri": "local://bundles/release.zip",
            "file_hash": "sha256-abc",
            "created_at": datetime.now(UTC),
        }
        values.update(fields)
        if "storage_uri" not in fields:
            values["storage_uri"] = f"local://bundles/{values['id']}.zip"
        row = Bundle(
            **values,
            metadata_json=json.dumps(metadata),
            target_device_ids_json=json.dumps(device_ids) if device_ids is not None else None,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _add
