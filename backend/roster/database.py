"""Database engine and store construction.

This module builds the store adapter selected by `Settings.STORE_BACKEND`.
The SQL backend uses a SQLModel/SQLAlchemy engine (a local SQLite file
`roster.db` next to the package by default); the Mongo backend connects
with pymongo to the configured database and collection.
"""

from pymongo import MongoClient
from sqlmodel import SQLModel, create_engine

from .config import Settings
from .repositories import MongoStudentStore, SqlStudentStore, StudentStore


def build_engine(url: str):
    """Create a SQLAlchemy engine for `url`.

    SQLite connections are shared across the request threadpool, so the
    same-thread check is disabled for them.
    """
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


def create_db_and_tables(engine):
    """Create database tables using SQLModel metadata.

    Idempotent; existing tables are left as they are.
    """
    SQLModel.metadata.create_all(engine)


def open_store(settings: Settings) -> StudentStore:
    """Return a ready-to-use store for the configured backend."""
    if settings.STORE_BACKEND == "mongo":
        client = MongoClient(settings.MONGO_URL)
        store = MongoStudentStore(client[settings.MONGO_DB][settings.MONGO_COLLECTION])
        store.ensure_indexes()
        return store
    engine = build_engine(settings.DATABASE_URL)
    create_db_and_tables(engine)
    return SqlStudentStore(engine)
