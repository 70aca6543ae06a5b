"""Shared test fixtures and configuration.

Sets up environment variables before any src import so src.config loads
predictable settings, and provides a temp-file store plus channels that
never talk to a real provider.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("DEFAULT_TIMEZONE", "UTC")
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["RESEND_API_KEY"] = ""

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_lifeos.db")


@pytest.fixture
def store(tmp_db_path):
    """Return a DataStore with every table in one temp file."""
    from src.data.db import open_store
    return open_store(tmp_db_path)


@pytest.fixture
def channels(store):
    """Channel registry built without credentials (email/telegram log only)."""
    from src.adapters.channel_factory import create_channels
    from src.config import Settings
    return create_channels(store, Settings())
