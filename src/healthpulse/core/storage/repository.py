"""Health record repository: CRUD over the SQLite record store.

The repository maps the record dataclasses to rows, encrypting free-text
PHI with :class:`FieldEncryptor` on the way in and decrypting on the way out.
It implements the engine's ``RecordStore`` protocol (``fetch_latest``,
``fetch_history``, ``insert``) plus the provider-facing queries.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

from healthpulse.core.storage.database import HealthDatabase
from healthpulse.core.storage.encryption import FieldEncryptor
from healthpulse.core.storage.models import (
    RECORD_KINDS,
    AnomalyAlert,
    HealthCorrelation,
    HealthScore,
    MoodCheckIn,
    RecordKind,
    SymptomReport,
    TimelineEvent,
    VitalReading,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

# kind -> (table, timestamp column)
_TABLES: dict[str, tuple[str, str]] = {
    "vital": ("vital_signs", "recorded_at"),
    "symptom": ("symptoms", "recorded_at"),
    "mood": ("mood_checkins", "recorded_at"),
    "health_score": ("health_scores", "calculated_at"),
    "correlation": ("health_correlations", "discovered_at"),
}


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def _dump_list(values: list[str] | None) -> str:
    return json.dumps(values or [], separators=(",", ":"))


def _load_list(raw: str | None) -> list[str]:
    return json.loads(raw) if raw else []


class HealthRepository:
    """CRUD repository for patient health records.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        encryptor = FieldEncryptor(key="...")
        repo = HealthRepository(db, encryptor)

        repo.insert("vital", reading)
        latest = repo.fetch_latest("vital", "patient-1")
        history = repo.fetch_history("mood", "patient-1", ascending=True)
    """

    def __init__(self, database: HealthDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @property
    def database(self) -> HealthDatabase:
        return self._db

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    # ------------------------------------------------------------------
    # Record store protocol
    # ------------------------------------------------------------------

    def insert(self, kind: RecordKind, record: Any) -> str:
        """Persist a record of the given kind and return its id."""
        savers = {
            "vital": self.save_vital,
            "symptom": self.save_symptom,
            "mood": self.save_mood,
            "health_score": self.save_health_score,
            "correlation": self.save_correlation,
        }
        if kind not in savers:
            raise RepositoryError(f"Invalid record kind: {kind!r}. Valid: {RECORD_KINDS}")
        return savers[kind](record)

    def fetch_latest(self, kind: RecordKind, patient_id: str) -> Any | None:
        """Most recent record of ``kind`` for the patient, or None."""
        results = self.fetch_history(kind, patient_id, ascending=False, limit=1)
        return results[0] if results else None

    def fetch_history(
        self,
        kind: RecordKind,
        patient_id: str,
        *,
        ascending: bool = True,
        limit: int | None = None,
    ) -> list[Any]:
        """All records of ``kind`` for the patient, ordered by timestamp.

        Args:
            kind: One of 'vital', 'symptom', 'mood', 'health_score', 'correlation'.
            patient_id: Patient whose records to read.
            ascending: Oldest first when True, newest first otherwise.
            limit: Optional cap on returned rows (applied after ordering).
        """
        if kind not in _TABLES:
            raise RepositoryError(f"Invalid record kind: {kind!r}. Valid: {RECORD_KINDS}")
        table, ts_col = _TABLES[kind]
        direction = "ASC" if ascending else "DESC"

        # Table and column names are safe: looked up from _TABLES above
        query = (
            f"SELECT * FROM {table} WHERE patient_id = ? "
            f"ORDER BY {ts_col} {direction}, rowid {direction}"
        )
        params: list[Any] = [patient_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        converter = self._row_converters()[kind]
        return [converter(row) for row in rows]

    def _row_converters(self) -> dict[str, Any]:
        return {
            "vital": self._row_to_vital,
            "symptom": self._row_to_symptom,
            "mood": self._row_to_mood,
            "health_score": self._row_to_score,
            "correlation": self._row_to_correlation,
        }

    # ------------------------------------------------------------------
    # Vitals
    # ------------------------------------------------------------------

    def save_vital(self, reading: VitalReading) -> str:
        rid = reading.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO vital_signs (
                id, patient_id, systolic, diastolic, heart_rate, temperature,
                blood_glucose, oxygen_saturation, respiratory_rate, recorded_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                rid,
                reading.patient_id,
                reading.systolic,
                reading.diastolic,
                reading.heart_rate,
                reading.temperature,
                reading.blood_glucose,
                reading.oxygen_saturation,
                reading.respiratory_rate,
                reading.recorded_at or utc_now_iso(),
            ),
        )
        conn.commit()
        logger.info("Saved vital reading %s for patient %s", rid, reading.patient_id)
        return rid

    @staticmethod
    def _row_to_vital(row: sqlite3.Row) -> VitalReading:
        return VitalReading(
            id=row["id"],
            patient_id=row["patient_id"],
            systolic=row["systolic"],
            diastolic=row["diastolic"],
            heart_rate=row["heart_rate"],
            temperature=row["temperature"],
            blood_glucose=row["blood_glucose"],
            oxygen_saturation=row["oxygen_saturation"],
            respiratory_rate=row["respiratory_rate"],
            recorded_at=row["recorded_at"],
        )

    # ------------------------------------------------------------------
    # Symptoms
    # ------------------------------------------------------------------

    def save_symptom(self, report: SymptomReport) -> str:
        rid = report.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO symptoms (
                id, patient_id, description_enc, severity, urgency_score,
                potential_diagnoses, duration_enc, affected_areas, notes_enc, recorded_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                rid,
                report.patient_id,
                self._enc.encrypt_text(report.description),
                report.severity,
                report.urgency_score,
                _dump_list(report.potential_diagnoses),
                self._enc.encrypt_text(report.duration),
                _dump_list(report.affected_areas),
                self._enc.encrypt_text(report.notes),
                report.recorded_at or utc_now_iso(),
            ),
        )
        conn.commit()
        logger.info(
            "Saved symptom %s for patient %s (severity=%s)",
            rid,
            report.patient_id,
            report.severity,
        )
        return rid

    def _row_to_symptom(self, row: sqlite3.Row) -> SymptomReport:
        return SymptomReport(
            id=row["id"],
            patient_id=row["patient_id"],
            description=self._enc.decrypt_text(row["description_enc"]) or "",
            severity=row["severity"],
            urgency_score=row["urgency_score"],
            potential_diagnoses=_load_list(row["potential_diagnoses"]),
            duration=self._enc.decrypt_text(row["duration_enc"]),
            affected_areas=_load_list(row["affected_areas"]),
            notes=self._enc.decrypt_text(row["notes_enc"]),
            recorded_at=row["recorded_at"],
        )

    # ------------------------------------------------------------------
    # Mood check-ins
    # ------------------------------------------------------------------

    def save_mood(self, checkin: MoodCheckIn) -> str:
        rid = checkin.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO mood_checkins (
                id, patient_id, mood_level, stress_level, sleep_quality,
                sleep_hours, anxiety_level, notes_enc, recorded_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                rid,
                checkin.patient_id,
                checkin.mood_level,
                checkin.stress_level,
                checkin.sleep_quality,
                checkin.sleep_hours,
                checkin.anxiety_level,
                self._enc.encrypt_text(checkin.notes),
                checkin.recorded_at or utc_now_iso(),
            ),
        )
        conn.commit()
        logger.info("Saved mood check-in %s for patient %s", rid, checkin.patient_id)
        return rid

    def _row_to_mood(self, row: sqlite3.Row) -> MoodCheckIn:
        return MoodCheckIn(
            id=row["id"],
            patient_id=row["patient_id"],
            mood_level=row["mood_level"],
            stress_level=row["stress_level"],
            sleep_quality=row["sleep_quality"],
            sleep_hours=row["sleep_hours"],
            anxiety_level=row["anxiety_level"],
            notes=self._enc.decrypt_text(row["notes_enc"]),
            recorded_at=row["recorded_at"],
        )

    # ------------------------------------------------------------------
    # Health scores
    # ------------------------------------------------------------------

    def save_health_score(self, score: HealthScore) -> str:
        sid = score.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO health_scores (
                id, patient_id, overall_score, vital_score, symptom_score,
                mental_score, trend, risk_level, auto_alerts, calculated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                sid,
                score.patient_id,
                score.overall_score,
                score.vital_score,
                score.symptom_score,
                score.mental_score,
                score.trend,
                score.risk_level,
                _dump_list(score.auto_alerts),
                score.calculated_at or utc_now_iso(),
            ),
        )
        conn.commit()
        logger.info(
            "Saved health score %s for patient %s (overall=%d)",
            sid,
            score.patient_id,
            score.overall_score,
        )
        return sid

    @staticmethod
    def _row_to_score(row: sqlite3.Row) -> HealthScore:
        return HealthScore(
            id=row["id"],
            patient_id=row["patient_id"],
            overall_score=row["overall_score"],
            vital_score=row["vital_score"],
            symptom_score=row["symptom_score"],
            mental_score=row["mental_score"],
            trend=row["trend"],
            risk_level=row["risk_level"],
            auto_alerts=_load_list(row["auto_alerts"]),
            calculated_at=row["calculated_at"],
        )

    def get_score_series(self, patient_id: str, *, limit: int = 30) -> list[HealthScore]:
        """The newest ``limit`` scores, returned oldest first for charting."""
        newest_first = self.fetch_history("health_score", patient_id, ascending=False, limit=limit)
        return list(reversed(newest_first))

    # ------------------------------------------------------------------
    # Correlations
    # ------------------------------------------------------------------

    def _insert_correlation(self, conn: sqlite3.Connection, correlation: HealthCorrelation) -> str:
        cid = correlation.id or self._new_id()
        conn.execute(
            """INSERT INTO health_correlations (
                id, patient_id, correlation_type, description, confidence,
                timelapse_hours, evidence, discovered_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                cid,
                correlation.patient_id,
                correlation.correlation_type,
                correlation.description,
                correlation.confidence,
                correlation.timelapse_hours,
                _dump_list(correlation.evidence),
                correlation.discovered_at or utc_now_iso(),
            ),
        )
        return cid

    def save_correlation(self, correlation: HealthCorrelation) -> str:
        with self._db.connection as conn:
            return self._insert_correlation(conn, correlation)

    def replace_correlations(
        self, patient_id: str, correlations: list[HealthCorrelation]
    ) -> list[str]:
        """Swap a patient's stored correlations for a freshly detected set.

        The delete and the inserts commit together, so readers see either
        the old set or the new one.
        """
        with self._db.connection as conn:
            removed = conn.execute(
                "DELETE FROM health_correlations WHERE patient_id = ?", (patient_id,)
            ).rowcount
            ids = [self._insert_correlation(conn, c) for c in correlations]
        logger.debug(
            "Replaced %d correlations for patient %s with %d", removed, patient_id, len(ids)
        )
        return ids

    @staticmethod
    def _row_to_correlation(row: sqlite3.Row) -> HealthCorrelation:
        return HealthCorrelation(
            id=row["id"],
            patient_id=row["patient_id"],
            correlation_type=row["correlation_type"],
            description=row["description"],
            confidence=row["confidence"],
            timelapse_hours=row["timelapse_hours"],
            evidence=_load_list(row["evidence"]),
            discovered_at=row["discovered_at"],
        )

    # ------------------------------------------------------------------
    # Provider assignments
    # ------------------------------------------------------------------

    def assign_patient(self, provider_id: str, patient_id: str) -> bool:
        """Link a patient to a provider.

        Returns:
            True if a new assignment was created, False if it already existed.
        """
        conn = self._db.connection
        cursor = conn.execute(
            "INSERT OR IGNORE INTO provider_patients (provider_id, patient_id) VALUES (?, ?)",
            (provider_id, patient_id),
        )
        conn.commit()
        created = cursor.rowcount > 0
        if created:
            logger.info("Assigned patient %s to provider %s", patient_id, provider_id)
        return created

    def get_provider_ids(self, patient_id: str) -> list[str]:
        rows = self._db.connection.execute(
            "SELECT provider_id FROM provider_patients WHERE patient_id = ? ORDER BY provider_id",
            (patient_id,),
        ).fetchall()
        return [row[0] for row in rows]

    def get_patient_ids(self, provider_id: str) -> list[str]:
        rows = self._db.connection.execute(
            "SELECT patient_id FROM provider_patients WHERE provider_id = ? ORDER BY patient_id",
            (provider_id,),
        ).fetchall()
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Anomaly alerts
    # ------------------------------------------------------------------

    def save_alerts(self, alerts: list[AnomalyAlert]) -> list[str]:
        """Persist a batch of alerts in one transaction."""
        if not alerts:
            return []
        conn = self._db.connection
        ids: list[str] = []
        for alert in alerts:
            aid = alert.id or self._new_id()
            conn.execute(
                """INSERT INTO anomaly_alerts (
                    id, patient_id, provider_id, anomaly_type, description, severity,
                    suggested_action, acknowledged, acknowledged_by, created_at, acknowledged_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    aid,
                    alert.patient_id,
                    alert.provider_id,
                    alert.anomaly_type,
                    alert.description,
                    alert.severity,
                    alert.suggested_action,
                    1 if alert.acknowledged else 0,
                    alert.acknowledged_by,
                    alert.created_at or utc_now_iso(),
                    alert.acknowledged_at,
                ),
            )
            ids.append(aid)
        conn.commit()
        logger.info("Saved %d anomaly alerts for patient %s", len(ids), alerts[0].patient_id)
        return ids

    @staticmethod
    def _row_to_alert(row: sqlite3.Row) -> AnomalyAlert:
        return AnomalyAlert(
            id=row["id"],
            patient_id=row["patient_id"],
            provider_id=row["provider_id"],
            anomaly_type=row["anomaly_type"],
            description=row["description"],
            severity=row["severity"],
            suggested_action=row["suggested_action"] or "",
            acknowledged=bool(row["acknowledged"]),
            acknowledged_by=row["acknowledged_by"],
            created_at=row["created_at"],
            acknowledged_at=row["acknowledged_at"],
        )

    def get_alerts(
        self,
        provider_id: str,
        *,
        acknowledged: bool = False,
        limit: int = 100,
    ) -> list[AnomalyAlert]:
        """Alerts addressed to a provider, newest first."""
        rows = self._db.connection.execute(
            """SELECT * FROM anomaly_alerts
               WHERE provider_id = ? AND acknowledged = ?
               ORDER BY created_at DESC, rowid DESC LIMIT ?""",
            (provider_id, 1 if acknowledged else 0, limit),
        ).fetchall()
        return [self._row_to_alert(row) for row in rows]

    def acknowledge_alert(self, alert_id: str, provider_id: str) -> AnomalyAlert | None:
        """Mark an alert acknowledged by its provider.

        Returns:
            The updated alert, or None if no alert with that id belongs to
            the provider.
        """
        conn = self._db.connection
        row = conn.execute(
            "SELECT * FROM anomaly_alerts WHERE id = ? AND provider_id = ?",
            (alert_id, provider_id),
        ).fetchone()
        if row is None:
            return None

        now = utc_now_iso()
        conn.execute(
            """UPDATE anomaly_alerts
               SET acknowledged = 1, acknowledged_by = ?, acknowledged_at = ?
               WHERE id = ?""",
            (provider_id, now, alert_id),
        )
        conn.commit()
        logger.info("Alert %s acknowledged by provider %s", alert_id, provider_id)
        return replace(
            self._row_to_alert(row),
            acknowledged=True,
            acknowledged_by=provider_id,
            acknowledged_at=now,
        )

    # ------------------------------------------------------------------
    # Timeline
    # ------------------------------------------------------------------

    def get_timeline(self, patient_id: str, *, limit: int = 50) -> list[TimelineEvent]:
        """Merged vitals, symptoms, moods and alerts for a patient, newest first."""
        events: list[TimelineEvent] = []

        for reading in self.fetch_history("vital", patient_id, ascending=False, limit=limit):
            events.append(TimelineEvent(
                id=reading.id, timestamp=reading.recorded_at, type="VITAL",
                title="Vital Signs Log",
            ))
        for report in self.fetch_history("symptom", patient_id, ascending=False, limit=limit):
            events.append(TimelineEvent(
                id=report.id, timestamp=report.recorded_at, type="SYMPTOM",
                title=report.description,
            ))
        for checkin in self.fetch_history("mood", patient_id, ascending=False, limit=limit):
            events.append(TimelineEvent(
                id=checkin.id, timestamp=checkin.recorded_at, type="MOOD",
                title="Mood Check-in",
            ))

        rows = self._db.connection.execute(
            """SELECT id, created_at, description FROM anomaly_alerts
               WHERE patient_id = ? ORDER BY created_at DESC LIMIT ?""",
            (patient_id, limit),
        ).fetchall()
        for row in rows:
            events.append(TimelineEvent(
                id=row["id"], timestamp=row["created_at"], type="ALERT",
                title=row["description"],
            ))

        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

    # ------------------------------------------------------------------
    # Deletion / data retention
    # ------------------------------------------------------------------

    def delete_patient_data(self, patient_id: str) -> int:
        """Delete every record belonging to one patient.

        Returns:
            Total number of rows deleted across all tables.
        """
        conn = self._db.connection
        total = 0
        for table, _ in _TABLES.values():
            cursor = conn.execute(f"DELETE FROM {table} WHERE patient_id = ?", (patient_id,))
            total += cursor.rowcount
        total += conn.execute(
            "DELETE FROM anomaly_alerts WHERE patient_id = ?", (patient_id,)
        ).rowcount
        total += conn.execute(
            "DELETE FROM provider_patients WHERE patient_id = ?", (patient_id,)
        ).rowcount
        conn.commit()
        logger.warning("Deleted all data for patient %s: %d rows", patient_id, total)
        return total

    def purge_before(self, before_timestamp: str) -> int:
        """Delete records whose timestamp is older than ``before_timestamp``.

        Applies to vitals, symptoms, moods, scores, correlations and alerts.

        Returns:
            Number of rows deleted.
        """
        conn = self._db.connection
        total = 0
        for table, ts_col in _TABLES.values():
            cursor = conn.execute(
                f"DELETE FROM {table} WHERE {ts_col} < ?", (before_timestamp,)
            )
            total += cursor.rowcount
        total += conn.execute(
            "DELETE FROM anomaly_alerts WHERE created_at < ?", (before_timestamp,)
        ).rowcount
        conn.commit()
        logger.info("Purged %d records older than %s", total, before_timestamp)
        return total

    def purge_before_days(self, days: int) -> int:
        """Convenience wrapper around :meth:`purge_before`."""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        return self.purge_before(cutoff)

    def count_records(self, kind: RecordKind) -> int:
        if kind not in _TABLES:
            raise RepositoryError(f"Invalid record kind: {kind!r}. Valid: {RECORD_KINDS}")
        table, _ = _TABLES[kind]
        row = self._db.connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return row[0]
