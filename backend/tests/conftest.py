import pytest
from fastapi.testclient import TestClient

from roster.database import build_engine, create_db_and_tables
from roster.main import create_app
from roster.repositories import SqlStudentStore


@pytest.fixture
def store(tmp_path):
    """A fresh SQLite-backed store per test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'roster.db'}")
    create_db_and_tables(engine)
    s = SqlStudentStore(engine)
    yield s
    s.close()


@pytest.fixture
def client(store):
    return TestClient(create_app(store=store))


@pytest.fixture
def add_students(client):
    """Post each student dict through the API and return the responses."""
    def _add(*students):
        return [client.post('/Student', json=s) for s in students]
    return _add
