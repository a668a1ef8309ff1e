"""Data models for the health record store.

Records are value-like: created once, persisted, and never mutated by the
scoring engine. Timestamps are ISO 8601 UTC strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

RecordKind = Literal["vital", "symptom", "mood", "health_score", "correlation"]

RECORD_KINDS: tuple[str, ...] = ("vital", "symptom", "mood", "health_score", "correlation")


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC.

    Raises:
        ValueError: If ``value`` is not an ISO 8601 timestamp.
    """
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_timestamp(value: str) -> str:
    """Rewrite an ISO 8601 timestamp in UTC.

    Stored timestamps are compared as strings, which only orders them in
    time when every one carries the same offset.
    """
    return parse_timestamp(value).astimezone(timezone.utc).isoformat()


@dataclass
class VitalReading:
    """A single vital-sign measurement."""

    id: str
    patient_id: str
    systolic: float        # mmHg
    diastolic: float       # mmHg
    heart_rate: float      # bpm
    temperature: float     # Celsius
    blood_glucose: float | None = None       # mg/dL
    oxygen_saturation: float | None = None   # SpO2 %
    respiratory_rate: float | None = None    # breaths/min, stored only
    recorded_at: str = ""


@dataclass
class SymptomReport:
    """A free-text symptom report plus its triage outputs."""

    id: str
    patient_id: str
    description: str
    severity: str = "LOW"
    urgency_score: int = 0
    potential_diagnoses: list[str] = field(default_factory=list)
    duration: str | None = None     # e.g. "2 days"
    affected_areas: list[str] = field(default_factory=list)
    notes: str | None = None
    recorded_at: str = ""


@dataclass
class MoodCheckIn:
    """A mood, stress, sleep and anxiety self-report."""

    id: str
    patient_id: str
    mood_level: int         # 1-5
    stress_level: float     # 0-10
    sleep_quality: float    # 0-10
    sleep_hours: float
    anxiety_level: float    # 0-10
    notes: str | None = None
    recorded_at: str = ""


@dataclass
class HealthScore:
    """Composite health score. Superseded, never updated, by later scores."""

    id: str
    patient_id: str
    overall_score: int
    vital_score: int
    symptom_score: int
    mental_score: int
    trend: str = "STABLE"
    risk_level: str = "LOW"
    auto_alerts: list[str] = field(default_factory=list)
    calculated_at: str = ""


@dataclass
class HealthCorrelation:
    """A heuristically detected cross-domain pattern."""

    id: str
    patient_id: str
    correlation_type: str
    description: str
    confidence: float
    evidence: list[str] = field(default_factory=list)
    timelapse_hours: float | None = None
    discovered_at: str = ""


@dataclass
class AnomalyAlert:
    """A provider-facing alert raised by a newly logged record."""

    id: str
    patient_id: str
    provider_id: str
    anomaly_type: str
    description: str
    severity: str
    suggested_action: str = ""
    acknowledged: bool = False
    acknowledged_by: str | None = None
    created_at: str = ""
    acknowledged_at: str | None = None


@dataclass
class TimelineEvent:
    """One entry of a provider-facing patient timeline."""

    id: str
    timestamp: str
    type: str   # 'VITAL' | 'SYMPTOM' | 'MOOD' | 'ALERT'
    title: str
