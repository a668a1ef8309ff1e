"""MCP tools for logging patient health records.

Vitals, symptoms and mood check-ins are validated, persisted to the record
store, and checked against the provider alert rules. Symptoms are triaged
before they are stored so the stored record carries its severity, urgency
and diagnosis hints.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthpulse.core.audit.logger import AuditLogger
    from healthpulse.core.storage.repository import HealthRepository

from healthpulse.core.storage.models import (
    MoodCheckIn,
    SymptomReport,
    VitalReading,
    normalize_timestamp,
    utc_now_iso,
)
from healthpulse.domains.health.domain_logic.alert_rules import (
    AlertCandidate,
    build_alerts,
    evaluate_mood_alert,
    evaluate_symptom_alert,
    evaluate_vital_alert,
)
from healthpulse.domains.health.domain_logic.mood_analyzer import analyze_mood
from healthpulse.domains.health.domain_logic.symptom_triage import triage_symptom
from healthpulse.domains.health.domain_logic.vital_analyzer import analyze_vitals

logger = logging.getLogger(__name__)

_BAD_TIMESTAMP = "recorded_at must be an ISO 8601 timestamp, got {!r}"


def _error(message: str) -> str:
    return json.dumps({"status": "error", "message": message})


def _out_of_range(name: str, value: float | None, lo: float, hi: float | None = None) -> str | None:
    """Error message if ``value`` lies outside [lo, hi], else None."""
    if value is None:
        return None
    if value < lo or (hi is not None and value > hi):
        bound = f"between {lo} and {hi}" if hi is not None else f"at least {lo}"
        return f"{name} must be {bound}, got {value}"
    return None


def _resolve_recorded_at(recorded_at: str) -> str:
    """UTC form of a caller-supplied timestamp, or now when it is blank.

    Raises:
        ValueError: If ``recorded_at`` is not an ISO 8601 timestamp.
    """
    if not recorded_at or not recorded_at.strip():
        return utc_now_iso()
    return normalize_timestamp(recorded_at)


def raise_alerts(
    repository: HealthRepository,
    candidate: AlertCandidate | None,
    patient_id: str,
) -> int:
    """Persist one alert per assigned provider. Returns the number raised."""
    if candidate is None:
        return 0
    provider_ids = repository.get_provider_ids(patient_id)
    if not provider_ids:
        logger.info(
            "%s for patient %s not routed: no assigned providers",
            candidate.anomaly_type,
            patient_id,
        )
        return 0
    alerts = build_alerts(candidate, patient_id, provider_ids)
    repository.save_alerts(alerts)
    return len(alerts)


def register_record_entry_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register record entry tools on the MCP server."""

    def _audit(tool_name: str, tool_input: dict, record_id: str | None, start_time: float) -> None:
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name=tool_name,
                tool_input=tool_input,
                record_id=record_id,
                duration_ms=(time.monotonic() - start_time) * 1000,
            )

    @mcp.tool
    async def log_vitals(
        ctx: Context,
        patient_id: str,
        systolic: float,
        diastolic: float,
        heart_rate: float,
        temperature: float,
        blood_glucose: float | None = None,
        oxygen_saturation: float | None = None,
        respiratory_rate: float | None = None,
        recorded_at: str = "",
    ) -> str:
        """Record a vital-sign reading.

        Args:
            patient_id: Patient the reading belongs to.
            systolic: Systolic blood pressure in mmHg (top number).
            diastolic: Diastolic blood pressure in mmHg (bottom number).
            heart_rate: Heart rate in BPM.
            temperature: Body temperature in Celsius.
            blood_glucose: Blood glucose in mg/dL.
            oxygen_saturation: SpO2 percentage.
            respiratory_rate: Breaths per minute.
            recorded_at: ISO 8601 timestamp of the reading. Defaults to now.
        """
        start_time = time.monotonic()
        for name, value in (
            ("systolic", systolic),
            ("diastolic", diastolic),
            ("heart_rate", heart_rate),
            ("temperature", temperature),
            ("blood_glucose", blood_glucose),
            ("respiratory_rate", respiratory_rate),
        ):
            problem = _out_of_range(name, value, 0)
            if problem:
                return _error(problem)
        problem = _out_of_range("oxygen_saturation", oxygen_saturation, 0, 100)
        if problem:
            return _error(problem)
        try:
            timestamp = _resolve_recorded_at(recorded_at)
        except ValueError:
            return _error(_BAD_TIMESTAMP.format(recorded_at))

        reading = VitalReading(
            id="",
            patient_id=patient_id,
            systolic=systolic,
            diastolic=diastolic,
            heart_rate=heart_rate,
            temperature=temperature,
            blood_glucose=blood_glucose,
            oxygen_saturation=oxygen_saturation,
            respiratory_rate=respiratory_rate,
            recorded_at=timestamp,
        )
        rid = repository.insert("vital", reading)
        analysis = analyze_vitals(reading)
        alerts_raised = raise_alerts(repository, evaluate_vital_alert(reading), patient_id)

        _audit("log_vitals", {"patient_id": patient_id}, rid, start_time)
        return json.dumps({
            "status": "saved",
            "record_id": rid,
            "anomalies": analysis.anomalies,
            "risk_score": analysis.risk_score,
            "alerts_raised": alerts_raised,
        })

    @mcp.tool
    async def log_symptom(
        ctx: Context,
        patient_id: str,
        description: str,
        duration: str = "",
        affected_areas: list[str] | None = None,
        notes: str = "",
        recorded_at: str = "",
    ) -> str:
        """Triage and record a symptom report.

        Args:
            patient_id: Patient reporting the symptom.
            description: Free-text description, e.g. 'headache, nausea'.
            duration: How long it has lasted, e.g. '2 days'.
            affected_areas: Body areas affected.
            notes: Optional notes.
            recorded_at: ISO 8601 timestamp. Defaults to now.
        """
        start_time = time.monotonic()
        if not description or not description.strip():
            return _error("Symptom description required")
        try:
            timestamp = _resolve_recorded_at(recorded_at)
        except ValueError:
            return _error(_BAD_TIMESTAMP.format(recorded_at))

        triage = triage_symptom(description)
        report = SymptomReport(
            id="",
            patient_id=patient_id,
            description=description,
            severity=triage.severity,
            urgency_score=triage.urgency_score,
            potential_diagnoses=triage.potential_diagnoses,
            duration=duration or None,
            affected_areas=affected_areas or [],
            notes=notes or None,
            recorded_at=timestamp,
        )
        rid = repository.insert("symptom", report)
        alerts_raised = raise_alerts(repository, evaluate_symptom_alert(report), patient_id)

        _audit("log_symptom", {"patient_id": patient_id}, rid, start_time)
        return json.dumps({
            "status": "saved",
            "record_id": rid,
            "severity": triage.severity,
            "urgency_score": triage.urgency_score,
            "potential_diagnoses": triage.potential_diagnoses,
            "recommended_action": triage.recommended_action,
            "alerts_raised": alerts_raised,
        })

    @mcp.tool
    async def log_mood(
        ctx: Context,
        patient_id: str,
        mood_level: int,
        stress_level: float,
        sleep_quality: float,
        sleep_hours: float,
        anxiety_level: float,
        notes: str = "",
        recorded_at: str = "",
    ) -> str:
        """Record a mood check-in.

        Args:
            patient_id: Patient checking in.
            mood_level: 1 (very poor) to 5 (excellent).
            stress_level: 0-10.
            sleep_quality: 0-10.
            sleep_hours: Hours slept last night.
            anxiety_level: 0-10.
            notes: Optional notes.
            recorded_at: ISO 8601 timestamp. Defaults to now.
        """
        start_time = time.monotonic()
        for problem in (
            _out_of_range("mood_level", mood_level, 1, 5),
            _out_of_range("stress_level", stress_level, 0, 10),
            _out_of_range("sleep_quality", sleep_quality, 0, 10),
            _out_of_range("sleep_hours", sleep_hours, 0, 24),
            _out_of_range("anxiety_level", anxiety_level, 0, 10),
        ):
            if problem:
                return _error(problem)
        try:
            timestamp = _resolve_recorded_at(recorded_at)
        except ValueError:
            return _error(_BAD_TIMESTAMP.format(recorded_at))

        previous = repository.fetch_latest("mood", patient_id)
        checkin = MoodCheckIn(
            id="",
            patient_id=patient_id,
            mood_level=mood_level,
            stress_level=stress_level,
            sleep_quality=sleep_quality,
            sleep_hours=sleep_hours,
            anxiety_level=anxiety_level,
            notes=notes or None,
            recorded_at=timestamp,
        )
        rid = repository.insert("mood", checkin)
        analysis = analyze_mood(checkin, previous)
        alerts_raised = raise_alerts(repository, evaluate_mood_alert(checkin), patient_id)

        _audit("log_mood", {"patient_id": patient_id}, rid, start_time)
        return json.dumps({
            "status": "saved",
            "record_id": rid,
            "anomalies": analysis.anomalies,
            "risk_score": analysis.risk_score,
            "alerts_raised": alerts_raised,
        })

    @mcp.tool
    async def list_records(
        ctx: Context,
        patient_id: str,
        record_type: str = "all",
        limit: int = 10,
    ) -> str:
        """List a patient's recent records, newest first.

        Args:
            patient_id: Patient whose records to list.
            record_type: 'vitals', 'symptoms', 'moods', or 'all'.
            limit: Maximum records per type.
        """
        kinds = {"vitals": "vital", "symptoms": "symptom", "moods": "mood"}
        if record_type != "all" and record_type not in kinds:
            return _error(f"Unknown record_type {record_type!r}; use one of {sorted(kinds)} or 'all'")

        start_time = time.monotonic()
        selected = kinds if record_type == "all" else {record_type: kinds[record_type]}
        result: dict = {"status": "ok", "patient_id": patient_id}
        for label, kind in selected.items():
            records = repository.fetch_history(kind, patient_id, ascending=False, limit=limit)
            result[label] = [asdict(r) for r in records]

        _audit("list_records", {"patient_id": patient_id, "record_type": record_type}, None, start_time)
        return json.dumps(result, indent=2)
