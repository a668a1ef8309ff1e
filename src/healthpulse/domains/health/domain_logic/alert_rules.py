"""Provider alert rules evaluated when a new record is logged.

Each rule inspects one freshly logged record and returns an
:class:`AlertCandidate` or None. Fanning a candidate out to the patient's
providers is done by :func:`build_alerts`.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from healthpulse.core.storage.models import (
    AnomalyAlert,
    MoodCheckIn,
    SymptomReport,
    VitalReading,
    utc_now_iso,
)
from healthpulse.domains.health.domain_logic.scoring_models import (
    AnomalyType,
    Severity,
    format_reading,
)

SPIKE_SYSTOLIC = 180
SPIKE_DIASTOLIC = 120
SPIKE_HEART_RATE = 120
SPIKE_HIGH_HEART_RATE = 130


@dataclass
class AlertCandidate:
    anomaly_type: AnomalyType
    description: str
    severity: Severity


def evaluate_vital_alert(reading: VitalReading) -> AlertCandidate | None:
    if not (
        reading.systolic > SPIKE_SYSTOLIC
        or reading.diastolic > SPIKE_DIASTOLIC
        or reading.heart_rate > SPIKE_HEART_RATE
    ):
        return None
    return AlertCandidate(
        anomaly_type="VITAL_SPIKE",
        description=(
            "Critical vital signs - "
            f"BP: {format_reading(reading.systolic)}/{format_reading(reading.diastolic)}, "
            f"HR: {format_reading(reading.heart_rate)} bpm"
        ),
        severity="HIGH" if reading.heart_rate > SPIKE_HIGH_HEART_RATE else "MEDIUM",
    )


def evaluate_symptom_alert(report: SymptomReport) -> AlertCandidate | None:
    """Alert on symptoms that triaged HIGH or CRITICAL."""
    if report.severity not in ("HIGH", "CRITICAL"):
        return None
    return AlertCandidate(
        anomaly_type="UNUSUAL_SYMPTOM",
        description=report.description,
        severity=report.severity,  # type: ignore[arg-type]
    )


def evaluate_mood_alert(checkin: MoodCheckIn) -> AlertCandidate | None:
    if not (
        checkin.mood_level <= 2
        or checkin.anxiety_level >= 8
        or checkin.stress_level >= 8
    ):
        return None
    return AlertCandidate(
        anomaly_type="MOOD_SHIFT",
        description=(
            "Mental health concern: "
            f"Low mood: {format_reading(checkin.mood_level)}, "
            f"Anxiety: {format_reading(checkin.anxiety_level)}, "
            f"Stress: {format_reading(checkin.stress_level)}"
        ),
        severity="HIGH",
    )


def build_alerts(
    candidate: AlertCandidate,
    patient_id: str,
    provider_ids: list[str],
) -> list[AnomalyAlert]:
    """One unacknowledged alert per provider assigned to the patient."""
    created_at = utc_now_iso()
    return [
        AnomalyAlert(
            id=str(uuid.uuid4()),
            patient_id=patient_id,
            provider_id=provider_id,
            anomaly_type=candidate.anomaly_type,
            description=candidate.description,
            severity=candidate.severity,
            suggested_action=f"Review patient {patient_id}",
            created_at=created_at,
        )
        for provider_id in provider_ids
    ]
