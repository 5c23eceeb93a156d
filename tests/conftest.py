"""MirrorPool test configuration."""
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure mirrorpool package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def tmp_mirrorpool_dir(tmp_path):
    """Create a temporary MirrorPool home for testing."""
    home = tmp_path / ".mirrorpool"
    home.mkdir()
    os.environ["MIRRORPOOL_HOME"] = str(home)
    # Default: disable encryption in tests for deterministic output
    old_encrypt = os.environ.get("MIRRORPOOL_ENCRYPT")
    os.environ["MIRRORPOOL_ENCRYPT"] = "0"
    yield home
    os.environ.pop("MIRRORPOOL_HOME", None)
    if old_encrypt is not None:
        os.environ["MIRRORPOOL_ENCRYPT"] = old_encrypt
    else:
        os.environ.pop("MIRRORPOOL_ENCRYPT", None)
    from mirrorpool.crypto import reset_crypto_state
    reset_crypto_state()


@pytest.fixture
def tmp_mirrorpool_dir_encrypted(tmp_path):
    """Create a temporary MirrorPool home with export encryption enabled."""
    home = tmp_path / ".mirrorpool"
    home.mkdir()
    os.environ["MIRRORPOOL_HOME"] = str(home)
    os.environ["MIRRORPOOL_ENCRYPT"] = "1"
    from mirrorpool.crypto import reset_crypto_state
    reset_crypto_state()
    yield home
    os.environ.pop("MIRRORPOOL_HOME", None)
    os.environ.pop("MIRRORPOOL_ENCRYPT", None)
    reset_crypto_state()


@pytest.fixture
def _reset_bridge(tmp_mirrorpool_dir):
    """Reset the bridge singleton so each test gets a fresh engine."""
    from mirrorpool.bridge import reset_engine

    reset_engine()
    yield
    reset_engine()


@pytest.fixture
def store(tmp_mirrorpool_dir):
    """Create a fresh SQLiteStore for testing."""
    from mirrorpool.sqlite_store import SQLiteStore
    db_path = tmp_mirrorpool_dir / "test.db"
    s = SQLiteStore(db_path=db_path)
    yield s
    s.close()


@pytest.fixture
def engine(store):
    """ReflectionEngine over the test store with default thresholds."""
    from mirrorpool.config import EngineConfig
    from mirrorpool.engine import ReflectionEngine
    yield ReflectionEngine(store=store, config=EngineConfig())


@pytest.fixture
def clock():
    """Monotonic fake timestamps: clock(minutes) -> base + minutes."""
    base = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def at(minutes: float = 0.0) -> datetime:
        return base + timedelta(minutes=minutes)

    return at
