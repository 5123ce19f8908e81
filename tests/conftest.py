"""Pytest configuration and shared fixtures.

Every test gets its own in-memory SQLite database, so tests never see each
other's rows.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete
from sqlmodel import Session

from taskboard.database import Database
from taskboard.main import create_app
from taskboard.store import TaskStore, UserStore


@pytest.fixture()
def database():
    db = Database("sqlite://", echo=False)
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture()
def file_database(tmp_path):
    """A file-backed database, for tests that need more than one real connection."""
    db = Database(f"sqlite:///{tmp_path}/taskboard.db", pool_size=2, pool_timeout=0.2, echo=False)
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture()
def task_store(database):
    return TaskStore(database)


@pytest.fixture()
def user_store(database):
    return UserStore(database)


@pytest.fixture()
def alice(user_store):
    return user_store.create({"username": "alice", "email": "alice@x.com", "full_name": "Alice A"})


@pytest.fixture()
def bob(user_store):
    return user_store.create({"username": "bob", "email": "bob@x.com", "full_name": "Bob B"})


@pytest.fixture()
def client(database):
    with TestClient(create_app(database)) as test_client:
        yield test_client


@pytest.fixture()
def delete_after_get(monkeypatch):
    """Make ``Session.get`` delete the row it just loaded, from another connection.

    Simulates a concurrent delete landing between a store's lookup and its write.
    """

    def install(database, table):
        original_get = Session.get

        def get_then_delete(self, entity, ident, *args, **kwargs):
            found = original_get(self, entity, ident, *args, **kwargs)
            if entity is table and found is not None:
                with database.engine.begin() as conn:
                    conn.execute(delete(table).where(table.id == ident))
            return found

        monkeypatch.setattr(Session, "get", get_then_delete)

    return install
