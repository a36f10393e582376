"""Root conftest — shared test configuration."""

import os

# Ensure tests never talk to real providers or a real database
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("OAUTH_STATE_SECRET", "test-oauth-state-secret")
os.environ.setdefault("REGISTRAR_MODE", "mock")
os.environ.setdefault("LOG_FORMAT", "text")
