"""SQLite database management for the HealthPulse record store.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS vital_signs (
    id                TEXT PRIMARY KEY,
    patient_id        TEXT NOT NULL,
    systolic          REAL NOT NULL,
    diastolic         REAL NOT NULL,
    heart_rate        REAL NOT NULL,
    temperature       REAL NOT NULL,
    blood_glucose     REAL,
    oxygen_saturation REAL,
    respiratory_rate  REAL,
    recorded_at       TEXT NOT NULL,
    created_at        TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Free text (description, duration, notes) is stored encrypted
CREATE TABLE IF NOT EXISTS symptoms (
    id                  TEXT PRIMARY KEY,
    patient_id          TEXT NOT NULL,
    description_enc     TEXT NOT NULL,
    severity            TEXT NOT NULL,
    urgency_score       INTEGER NOT NULL,
    potential_diagnoses TEXT,
    duration_enc        TEXT,
    affected_areas      TEXT,
    notes_enc           TEXT,
    recorded_at         TEXT NOT NULL,
    created_at          TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS mood_checkins (
    id            TEXT PRIMARY KEY,
    patient_id    TEXT NOT NULL,
    mood_level    INTEGER NOT NULL,
    stress_level  REAL NOT NULL,
    sleep_quality REAL NOT NULL,
    sleep_hours   REAL NOT NULL,
    anxiety_level REAL NOT NULL,
    notes_enc     TEXT,
    recorded_at   TEXT NOT NULL,
    created_at    TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Append-only: a new score supersedes, never updates, the previous one
CREATE TABLE IF NOT EXISTS health_scores (
    id            TEXT PRIMARY KEY,
    patient_id    TEXT NOT NULL,
    overall_score INTEGER NOT NULL,
    vital_score   INTEGER NOT NULL,
    symptom_score INTEGER NOT NULL,
    mental_score  INTEGER NOT NULL,
    trend         TEXT NOT NULL,
    risk_level    TEXT NOT NULL,
    auto_alerts   TEXT,
    calculated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS health_correlations (
    id               TEXT PRIMARY KEY,
    patient_id       TEXT NOT NULL,
    correlation_type TEXT NOT NULL,
    description      TEXT NOT NULL,
    confidence       REAL NOT NULL,
    timelapse_hours  REAL,
    evidence         TEXT,
    discovered_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS anomaly_alerts (
    id               TEXT PRIMARY KEY,
    patient_id       TEXT NOT NULL,
    provider_id      TEXT NOT NULL,
    anomaly_type     TEXT NOT NULL,
    description      TEXT NOT NULL,
    severity         TEXT NOT NULL,
    suggested_action TEXT,
    acknowledged     INTEGER NOT NULL DEFAULT 0,
    acknowledged_by  TEXT,
    created_at       TEXT NOT NULL,
    acknowledged_at  TEXT
);

CREATE TABLE IF NOT EXISTS provider_patients (
    provider_id TEXT NOT NULL,
    patient_id  TEXT NOT NULL,
    assigned_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (provider_id, patient_id)
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Indexes for per-patient time-ordered queries
CREATE INDEX IF NOT EXISTS idx_vitals_patient_ts   ON vital_signs(patient_id, recorded_at);
CREATE INDEX IF NOT EXISTS idx_symptoms_patient_ts ON symptoms(patient_id, recorded_at);
CREATE INDEX IF NOT EXISTS idx_moods_patient_ts    ON mood_checkins(patient_id, recorded_at);
CREATE INDEX IF NOT EXISTS idx_scores_patient_ts   ON health_scores(patient_id, calculated_at);
CREATE INDEX IF NOT EXISTS idx_corr_patient_ts     ON health_correlations(patient_id, discovered_at);
CREATE INDEX IF NOT EXISTS idx_alerts_provider     ON anomaly_alerts(provider_id, acknowledged);
CREATE INDEX IF NOT EXISTS idx_alerts_patient      ON anomaly_alerts(patient_id);
"""

# ---------------------------------------------------------------------------
# V2: Audit log table (PHI-free tool access trail)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    tool_name       TEXT,
    tool_input_hash TEXT,
    record_id       TEXT,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_tool      ON audit_log(tool_name);
"""

# Applied in order; each entry brings the schema up to its version.
_MIGRATIONS: tuple[tuple[int, str], ...] = (
    (1, _SCHEMA_V1),
    (2, _SCHEMA_V2),
)


class DatabaseError(Exception):
    """Raised when database operations fail."""


def _read_version(conn: sqlite3.Connection) -> int:
    (version,) = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return version or 0


class HealthDatabase:
    """Owns the single SQLite connection behind the record store.

    ``":memory:"`` gives a throwaway store (tests, key-less dev runs); any
    other path is created on first use, parent directories included.

    Usage::

        with HealthDatabase("~/.healthpulse/health.db") as db:
            db.connection.execute("SELECT COUNT(*) FROM vital_signs")
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection.

        Raises:
            DatabaseError: If ``initialize()`` has not been called.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def _target(self) -> str:
        if self._db_path == ":memory:":
            return self._db_path
        db_file = Path(self._db_path).expanduser()
        db_file.parent.mkdir(parents=True, exist_ok=True)
        return str(db_file)

    def initialize(self) -> None:
        """Open the connection and migrate the schema. No-op if already open."""
        if self._conn is not None:
            return

        # Shared across threads; score writes are serialized per patient upstream
        conn = sqlite3.connect(self._target(), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        self._conn = conn

        self._migrate(conn)
        logger.info("Health database opened: %s", self._db_path)

    def _migrate(self, conn: sqlite3.Connection) -> None:
        # schema_version lives in V1, so V1 always runs (it is idempotent)
        conn.executescript(_SCHEMA_V1)
        found = _read_version(conn)

        for version, ddl in _MIGRATIONS:
            if version > found and version > 1:
                conn.executescript(ddl)
                logger.info("Applied schema migration V%d", version)

        if found < SCHEMA_VERSION:
            with conn:
                conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
                )
            logger.info("Schema version %d -> %d", found, SCHEMA_VERSION)

    def get_schema_version(self) -> int:
        return _read_version(self.connection)

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.info("Health database closed: %s", self._db_path)

    def __enter__(self) -> HealthDatabase:
        self.initialize()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
