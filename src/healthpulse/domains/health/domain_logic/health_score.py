"""Composite health score calculation.

Blends the latest vital, symptom and mood signals into three 0-100 sub-scores
and an overall score, classifies risk, derives the trend from previously
stored scores, and raises auto-alerts. The calculator reads through a
:class:`RecordStore` and never writes; persisting the returned score is the
caller's job (see ``scoring_service``).
"""

from __future__ import annotations

import logging
import statistics
import uuid

from healthpulse.core.storage.models import (
    HealthScore,
    MoodCheckIn,
    SymptomReport,
    VitalReading,
    utc_now_iso,
)
from healthpulse.domains.health.domain_logic.mood_analyzer import analyze_mood
from healthpulse.domains.health.domain_logic.record_store import RecordStore
from healthpulse.domains.health.domain_logic.scoring_models import (
    DEFAULT_MENTAL_SCORE,
    DEFAULT_SYMPTOM_SCORE,
    DEFAULT_VITAL_SCORE,
    MENTAL_ALERT_TEXT,
    MIN_SUBSCORE,
    RISK_BUCKETS,
    TREND_THRESHOLD,
    VITAL_ALERT_TEXT,
    Severity,
    Trend,
    clamp_score,
    round_half_up,
)
from healthpulse.domains.health.domain_logic.vital_analyzer import analyze_vitals

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sub-scores
# ---------------------------------------------------------------------------

def compute_vital_score(latest: VitalReading | None) -> int:
    if latest is None:
        return DEFAULT_VITAL_SCORE
    return max(MIN_SUBSCORE, 100 - analyze_vitals(latest).risk_score)


def compute_symptom_score(latest: SymptomReport | None) -> int:
    if latest is None:
        return DEFAULT_SYMPTOM_SCORE
    return max(MIN_SUBSCORE, 100 - latest.urgency_score)


def compute_mental_score(latest: MoodCheckIn | None) -> int:
    """Weighted blend of mood (30-70), stress (0-30) and sleep (5-20)."""
    if latest is None:
        return DEFAULT_MENTAL_SCORE
    mood_component = latest.mood_level / 5 * 40 + 30
    stress_component = max(0, 30 - latest.stress_level * 3)
    if latest.sleep_quality >= 7:
        sleep_component = 20
    else:
        sleep_component = max(5, latest.sleep_quality * 2)
    # Components can sum past 100 (mood 5, no stress, good sleep)
    return clamp_score(round_half_up(mood_component + stress_component + sleep_component))


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def classify_risk(overall_score: int) -> Severity:
    """Map an overall score to a risk level (80+ LOW ... <40 CRITICAL)."""
    for lower_bound, level in RISK_BUCKETS:
        if overall_score >= lower_bound:
            return level
    return "CRITICAL"


def classify_trend(history: list[int]) -> Trend:
    """Compare the older and newer halves of an ascending score history.

    The split point is ``len(history) // 2``; the newer half gets the extra
    element when the length is odd.
    """
    if len(history) < 2:
        return "STABLE"

    mid = len(history) // 2
    older_mean = statistics.mean(history[:mid])
    newer_mean = statistics.mean(history[mid:])

    if newer_mean > older_mean + TREND_THRESHOLD:
        return "IMPROVING"
    if newer_mean < older_mean - TREND_THRESHOLD:
        return "DECLINING"
    return "STABLE"


def collect_auto_alerts(
    latest_vital: VitalReading | None,
    latest_mood: MoodCheckIn | None,
) -> list[str]:
    """Alert flags re-derived from the latest readings.

    The mood is re-analyzed without its previous check-in, so delta-only
    anomalies (mood swings, anxiety spikes) never raise a flag here.
    """
    alerts: list[str] = []
    if latest_vital is not None and analyze_vitals(latest_vital).has_anomalies:
        alerts.append(VITAL_ALERT_TEXT)
    if latest_mood is not None and analyze_mood(latest_mood).has_anomalies:
        alerts.append(MENTAL_ALERT_TEXT)
    return alerts


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

class HealthScoreCalculator:
    """Computes a fresh :class:`HealthScore` for one patient.

    Usage::

        calculator = HealthScoreCalculator(repository)
        score = calculator.calculate("patient-123")
        repository.insert("health_score", score)
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def calculate(self, patient_id: str) -> HealthScore:
        latest_vital = self._store.fetch_latest("vital", patient_id)
        latest_symptom = self._store.fetch_latest("symptom", patient_id)
        latest_mood = self._store.fetch_latest("mood", patient_id)

        vital_score = compute_vital_score(latest_vital)
        symptom_score = compute_symptom_score(latest_symptom)
        mental_score = compute_mental_score(latest_mood)
        overall = round_half_up((vital_score + symptom_score + mental_score) / 3)

        prior_scores = self._store.fetch_history("health_score", patient_id, ascending=True)
        trend = classify_trend([s.overall_score for s in prior_scores])

        score = HealthScore(
            id=str(uuid.uuid4()),
            patient_id=patient_id,
            overall_score=overall,
            vital_score=vital_score,
            symptom_score=symptom_score,
            mental_score=mental_score,
            trend=trend,
            risk_level=classify_risk(overall),
            auto_alerts=collect_auto_alerts(latest_vital, latest_mood),
            calculated_at=utc_now_iso(),
        )
        logger.debug(
            "Health score for %s: overall=%d trend=%s risk=%s (%d prior scores)",
            patient_id,
            overall,
            trend,
            score.risk_level,
            len(prior_scores),
        )
        return score


def calculate_health_score(store: RecordStore, patient_id: str) -> HealthScore:
    """Functional shortcut for ``HealthScoreCalculator(store).calculate(...)``."""
    return HealthScoreCalculator(store).calculate(patient_id)
