"""Shared test fixtures for HealthPulse tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("SCORE_HISTORY_LIMIT", "30")
    monkeypatch.setenv("TIMELINE_LIMIT", "50")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def health_db():
    """Create an in-memory HealthDatabase for testing."""
    from healthpulse.core.storage.database import HealthDatabase

    db = HealthDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from healthpulse.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def health_repository(health_db, field_encryptor):
    """Create a HealthRepository backed by in-memory SQLite."""
    from healthpulse.core.storage.repository import HealthRepository

    return HealthRepository(health_db, field_encryptor)


@pytest.fixture
def audit_logger(health_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from healthpulse.core.audit.logger import AuditLogger

    return AuditLogger(health_db)
