"""Cross-domain pattern detection over a patient's record history.

Three independent rules, each emitting at most one correlation:

* STRESS_TO_BP: high anxiety followed (or preceded) within 24h by elevated
  systolic pressure.
* SLEEP_TO_SYMPTOMS: poor-sleep nights alongside fatigue complaints.
* MOOD_TO_VITALS: sharp drops between consecutive mood check-ins.

Correlations are recomputed from scratch on every call; there is no
incremental state.
"""

from __future__ import annotations

import logging
import uuid

from healthpulse.core.storage.models import (
    HealthCorrelation,
    MoodCheckIn,
    SymptomReport,
    VitalReading,
    parse_timestamp,
    utc_now_iso,
)
from healthpulse.domains.health.domain_logic.record_store import RecordStore
from healthpulse.domains.health.domain_logic.scoring_models import format_reading

logger = logging.getLogger(__name__)

STRESS_ANXIETY_LEVEL = 7
STRESS_WINDOW_HOURS = 24
STRESS_SYSTOLIC = 130
STRESS_MAX_CONFIDENCE = 0.9
STRESS_TIMELAPSE_HOURS = 12

POOR_SLEEP_QUALITY = 3
POOR_SLEEP_HOURS = 5
FATIGUE_KEYWORDS = ("fatigue", "tired")
SLEEP_MAX_CONFIDENCE = 0.85
SLEEP_TIMELAPSE_HOURS = 24

MOOD_DROP = 2
MOOD_MAX_PAIRS = 5
MOOD_CONFIDENCE = 0.72
MOOD_TIMELAPSE_HOURS = 6


def _hours_between(a: str, b: str) -> float:
    return abs((parse_timestamp(a) - parse_timestamp(b)).total_seconds()) / 3600


def _correlation(patient_id: str, **fields) -> HealthCorrelation:
    return HealthCorrelation(
        id=str(uuid.uuid4()),
        patient_id=patient_id,
        discovered_at=utc_now_iso(),
        **fields,
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def detect_stress_to_bp(
    patient_id: str,
    moods: list[MoodCheckIn],
    vitals: list[VitalReading],
) -> HealthCorrelation | None:
    high_anxiety = [m for m in moods if m.anxiety_level >= STRESS_ANXIETY_LEVEL]
    if not high_anxiety:
        return None

    # Window is anchored on the first high-anxiety check-in only
    anchor = high_anxiety[0].recorded_at
    matched = [
        v for v in vitals
        if v.systolic > STRESS_SYSTOLIC
        and _hours_between(anchor, v.recorded_at) <= STRESS_WINDOW_HOURS
    ]
    if not matched:
        return None

    return _correlation(
        patient_id,
        correlation_type="STRESS_TO_BP",
        description="High anxiety correlates with elevated blood pressure within 24 hours",
        confidence=min(STRESS_MAX_CONFIDENCE, len(matched) / len(high_anxiety)),
        timelapse_hours=STRESS_TIMELAPSE_HOURS,
        evidence=[
            f"BP: {format_reading(v.systolic)}/{format_reading(v.diastolic)}" for v in matched
        ],
    )


def detect_sleep_to_symptoms(
    patient_id: str,
    moods: list[MoodCheckIn],
    symptoms: list[SymptomReport],
) -> HealthCorrelation | None:
    poor_sleep = [
        m for m in moods
        if m.sleep_quality <= POOR_SLEEP_QUALITY and m.sleep_hours < POOR_SLEEP_HOURS
    ]
    fatigue = [
        s for s in symptoms
        if any(kw in (s.description or "").lower() for kw in FATIGUE_KEYWORDS)
    ]
    if not poor_sleep or not fatigue:
        return None

    return _correlation(
        patient_id,
        correlation_type="SLEEP_TO_SYMPTOMS",
        description="Poor sleep quality frequently followed by fatigue symptoms",
        confidence=min(SLEEP_MAX_CONFIDENCE, len(fatigue) / len(poor_sleep)),
        timelapse_hours=SLEEP_TIMELAPSE_HOURS,
        evidence=[
            f"{len(poor_sleep)} poor sleep nights",
            f"{len(fatigue)} fatigue reports",
        ],
    )


def detect_mood_to_vitals(
    patient_id: str,
    moods: list[MoodCheckIn],
) -> HealthCorrelation | None:
    declines = [
        later for earlier, later in zip(moods, moods[1:])
        if earlier.mood_level - later.mood_level >= MOOD_DROP
    ][:MOOD_MAX_PAIRS]
    if not declines:
        return None

    return _correlation(
        patient_id,
        correlation_type="MOOD_TO_VITALS",
        description="Mood deterioration correlates with increased heart rate and blood pressure",
        confidence=MOOD_CONFIDENCE,
        timelapse_hours=MOOD_TIMELAPSE_HOURS,
        evidence=[f"Mood change recorded at {m.recorded_at}" for m in declines],
    )


def detect_correlations(
    patient_id: str,
    moods: list[MoodCheckIn],
    vitals: list[VitalReading],
    symptoms: list[SymptomReport],
) -> list[HealthCorrelation]:
    """Run every rule over ascending-chronological histories.

    Returns:
        Zero to three correlations, in rule order.
    """
    candidates = [
        detect_stress_to_bp(patient_id, moods, vitals),
        detect_sleep_to_symptoms(patient_id, moods, symptoms),
        detect_mood_to_vitals(patient_id, moods),
    ]
    return [c for c in candidates if c is not None]


class CorrelationDetector:
    """Fetches a patient's full history and runs :func:`detect_correlations`."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def detect(self, patient_id: str) -> list[HealthCorrelation]:
        moods = self._store.fetch_history("mood", patient_id, ascending=True)
        vitals = self._store.fetch_history("vital", patient_id, ascending=True)
        symptoms = self._store.fetch_history("symptom", patient_id, ascending=True)

        correlations = detect_correlations(patient_id, moods, vitals, symptoms)
        logger.debug(
            "Detected %d correlations for %s over %d moods, %d vitals, %d symptoms",
            len(correlations),
            patient_id,
            len(moods),
            len(vitals),
            len(symptoms),
        )
        return correlations


def detect_health_correlations(store: RecordStore, patient_id: str) -> list[HealthCorrelation]:
    """Functional shortcut for ``CorrelationDetector(store).detect(...)``."""
    return CorrelationDetector(store).detect(patient_id)
