import importlib
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient


def _upgrade_to_head(database_url: str) -> None:
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


def _load_app():
    import app.invcount.core.config as config
    import app.invcount.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)
    return main.create_app(), session


@pytest.fixture()
def database_url(tmp_path: Path, monkeypatch) -> str:
    url = f"sqlite+pysqlite:///{tmp_path / 'invcount.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    return url


@pytest.fixture()
def client(database_url: str):
    from app.invcount.core.metrics import metrics

    _upgrade_to_head(database_url)
    app, session = _load_app()
    metrics.reset()

    with TestClient(app) as test_client:
        yield test_client

    session.engine.dispose()


@pytest.fixture()
def db_session(client):
    from app.invcount.db.session import SessionLocal

    with SessionLocal() as db:
        yield db
