"""Mood check-in risk scoring, with optional change-from-previous checks."""

from __future__ import annotations

from healthpulse.core.storage.models import MoodCheckIn
from healthpulse.domains.health.domain_logic.scoring_models import (
    ANXIETY_SPIKE_DELTA,
    HIGH_ANXIETY_LEVEL,
    HIGH_STRESS_LEVEL,
    LOW_MOOD_LEVEL,
    MOOD_SWING_DELTA,
    MOOD_WEIGHTS,
    POOR_SLEEP_QUALITY,
    SHORT_SLEEP_HOURS,
    AnalysisResult,
    clamp_score,
)


def analyze_mood(
    current: MoodCheckIn,
    previous: MoodCheckIn | None = None,
) -> AnalysisResult:
    """Flag mood anomalies in a check-in.

    Args:
        current: The check-in to score.
        previous: The patient's prior check-in. When omitted, the delta checks
            (mood swing, anxiety spike) are skipped.

    Returns:
        Anomaly strings and a risk score clamped to [0, 100].
    """
    anomalies: list[str] = []
    risk = 0

    if current.anxiety_level >= HIGH_ANXIETY_LEVEL:
        anomalies.append("Very high anxiety levels detected")
        risk += MOOD_WEIGHTS["high_anxiety"]

    if current.mood_level <= LOW_MOOD_LEVEL:
        anomalies.append("Significantly low mood")
        risk += MOOD_WEIGHTS["low_mood"]

    if current.sleep_quality <= POOR_SLEEP_QUALITY and current.sleep_hours < SHORT_SLEEP_HOURS:
        anomalies.append("Severe sleep deprivation")
        risk += MOOD_WEIGHTS["sleep_deprivation"]

    if current.stress_level >= HIGH_STRESS_LEVEL:
        anomalies.append("Very high stress levels")
        risk += MOOD_WEIGHTS["high_stress"]

    if previous is not None:
        mood_change = previous.mood_level - current.mood_level
        if abs(mood_change) >= MOOD_SWING_DELTA:
            direction = "decline" if mood_change > 0 else "improvement"
            anomalies.append(f"Significant mood change detected ({direction})")
            risk += MOOD_WEIGHTS["mood_swing"]

        if current.anxiety_level - previous.anxiety_level >= ANXIETY_SPIKE_DELTA:
            anomalies.append("Significant increase in anxiety")
            risk += MOOD_WEIGHTS["anxiety_spike"]

    return AnalysisResult(anomalies=anomalies, risk_score=clamp_score(risk))
