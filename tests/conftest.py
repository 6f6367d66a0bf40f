"""Test environment. Settings are read at import time, so this runs before any app import."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("EMBEDDING_DIMENSION", "8")
os.environ.setdefault("PUBLIC_BASE_URL", "http://testserver")
