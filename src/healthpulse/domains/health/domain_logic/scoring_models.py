"""Reference tables, literal types and result types for the scoring engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

Severity = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
Trend = Literal["IMPROVING", "STABLE", "DECLINING"]
CorrelationType = Literal[
    "MOOD_TO_VITALS",
    "SLEEP_TO_SYMPTOMS",
    "STRESS_TO_BP",
    "FATIGUE_PATTERN",
]
AnomalyType = Literal["VITAL_SPIKE", "UNUSUAL_SYMPTOM", "MOOD_SHIFT", "SCORE_DROP"]


# ---------------------------------------------------------------------------
# Vital reference ranges (inclusive bounds, simplified adult fasting values)
# ---------------------------------------------------------------------------

VITAL_RANGES: dict[str, tuple[float, float]] = {
    "systolic": (90, 120),
    "diastolic": (60, 80),
    "heart_rate": (60, 100),
    "temperature": (36.5, 37.5),
    "blood_glucose": (70, 130),
    "oxygen_saturation": (95, 100),
}

# Points added to the vital risk score per out-of-range direction
VITAL_WEIGHTS: dict[str, dict[str, int]] = {
    "systolic": {"low": 15, "high": 20},
    "diastolic": {"high": 15},
    "heart_rate": {"low": 10, "high": 15},
    "temperature": {"low": 20, "high": 15},
    "blood_glucose": {"low": 25, "high": 15},
    "oxygen_saturation": {"low": 25},
}


# ---------------------------------------------------------------------------
# Mood thresholds
# ---------------------------------------------------------------------------

HIGH_ANXIETY_LEVEL = 8
LOW_MOOD_LEVEL = 2
POOR_SLEEP_QUALITY = 2
SHORT_SLEEP_HOURS = 5
HIGH_STRESS_LEVEL = 8
MOOD_SWING_DELTA = 3
ANXIETY_SPIKE_DELTA = 4

MOOD_WEIGHTS: dict[str, int] = {
    "high_anxiety": 20,
    "low_mood": 25,
    "sleep_deprivation": 20,
    "high_stress": 15,
    "mood_swing": 10,
    "anxiety_spike": 15,
}


# ---------------------------------------------------------------------------
# Composite score defaults for missing data
# ---------------------------------------------------------------------------

DEFAULT_VITAL_SCORE = 60      # No vital reading on record
DEFAULT_SYMPTOM_SCORE = 90    # No symptom reported
DEFAULT_MENTAL_SCORE = 70     # No mood check-in
MIN_SUBSCORE = 20
TREND_THRESHOLD = 5

# (lower bound, level), checked top-down
RISK_BUCKETS: list[tuple[int, Severity]] = [
    (80, "LOW"),
    (60, "MEDIUM"),
    (40, "HIGH"),
]

VITAL_ALERT_TEXT = "Vital signs anomaly detected"
MENTAL_ALERT_TEXT = "Mental health concern flagged"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class SymptomTriageResult:
    """Urgency classification for a free-text symptom description."""

    urgency_score: int                 # 0-100
    severity: Severity
    potential_diagnoses: list[str] = field(default_factory=list)
    recommended_action: str = ""


@dataclass
class AnalysisResult:
    """Anomalies and aggregate risk for one domain (vitals or mood)."""

    anomalies: list[str] = field(default_factory=list)
    risk_score: int = 0                # 0-100

    @property
    def has_anomalies(self) -> bool:
        return bool(self.anomalies)


def clamp_score(value: float, lo: int = 0, hi: int = 100) -> int:
    """Clamp a score to [lo, hi] and return it as an int."""
    return int(max(lo, min(hi, value)))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (not banker's rounding)."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def format_reading(value: float) -> str:
    """Render whole-number readings without a trailing ``.0``."""
    return str(int(value)) if float(value).is_integer() else str(value)
