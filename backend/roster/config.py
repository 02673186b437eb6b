"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent
STORE_BACKENDS = ("sql", "mongo")


class Settings:
    ENV: str
    STORE_BACKEND: str
    DATABASE_URL: str
    MONGO_URL: str
    MONGO_DB: str
    MONGO_COLLECTION: str
    HOST: str
    PORT: int
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.STORE_BACKEND = os.getenv("STORE_BACKEND", "sql").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'roster.db'}")
        self.MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
        self.MONGO_DB = os.getenv("MONGO_DB", "test")
        self.MONGO_COLLECTION = os.getenv("MONGO_COLLECTION", "db")
        self.HOST = os.getenv("HOST", "127.0.0.1")
        self.PORT = int(os.getenv("PORT", "1234"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.STORE_BACKEND not in STORE_BACKENDS:
            raise RuntimeError(f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}, got {self.STORE_BACKEND!r}")
        if not 0 < self.PORT < 65536:
            raise RuntimeError(f"PORT out of range: {self.PORT}")


settings = Settings()
