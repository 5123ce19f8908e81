from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from taskboard.database import Database
from taskboard.errors import ConnectionUnavailable, ErrorKind
from taskboard.main import create_app
from taskboard.models import User
from taskboard.models.common import utcnow
from taskboard.store import TaskStore

PROJECT_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture()
def single_connection_database(tmp_path):
    db = Database(f"sqlite:///{tmp_path}/pool.db", pool_size=1, pool_timeout=0.2, echo=False)
    db.create_tables()
    yield db
    db.dispose()


def test_exhausted_pool_raises_connection_unavailable(single_connection_database):
    with single_connection_database.session():
        with pytest.raises(ConnectionUnavailable) as exc_info:
            TaskStore(single_connection_database).list()
    assert exc_info.value.kind is ErrorKind.CONNECTION_UNAVAILABLE

    # The held connection is back in the pool once its session closes
    assert TaskStore(single_connection_database).list() == []


def test_exhausted_pool_is_a_503(single_connection_database):
    with TestClient(create_app(single_connection_database)) as client:
        with single_connection_database.session():
            response = client.get("/api/tasks")

    assert response.status_code == 503
    assert response.json()["success"] is False
    assert response.json()["error"]["code"] == "connection_unavailable"


def test_failed_statement_leaves_no_pending_query_timer(database, alice):
    with database.engine.connect() as conn:
        with pytest.raises(IntegrityError):
            conn.execute(
                insert(User).values(
                    username="alice",
                    email="other@x.com",
                    full_name="Other",
                    created_at=utcnow(),
                    updated_at=utcnow(),
                )
            )
        assert "query_start" not in conn.info


def test_utcnow_is_timezone_aware():
    assert utcnow().utcoffset().total_seconds() == 0


def test_package_metadata_does_not_ship_design_notes():
    tomllib = pytest.importorskip("tomllib")
    with open(PROJECT_ROOT / "pyproject.toml", "rb") as f:
        project = tomllib.load(f)["project"]
    assert "readme" not in project
