"""Per-reading vital sign anomaly detection.

Each field is compared against its reference range in ``VITAL_RANGES``. Every
out-of-range field contributes an anomaly string and a fixed weight; checks are
independent and contributions sum, clamped to [0, 100].
"""

from __future__ import annotations

from healthpulse.core.storage.models import VitalReading
from healthpulse.domains.health.domain_logic.scoring_models import (
    VITAL_RANGES,
    VITAL_WEIGHTS,
    AnalysisResult,
    clamp_score,
)

# field -> (anomaly text when low, anomaly text when high); None = not checked
_ANOMALY_TEXT: dict[str, tuple[str | None, str | None]] = {
    "systolic": ("Low blood pressure (systolic)", "Elevated blood pressure (systolic)"),
    "diastolic": (None, "Elevated blood pressure (diastolic)"),
    "heart_rate": ("Low heart rate (bradycardia)", "Elevated heart rate (tachycardia)"),
    "temperature": ("Low body temperature (hypothermia)", "Elevated temperature (fever)"),
    "blood_glucose": ("Low blood glucose (hypoglycemia)", "High blood glucose (hyperglycemia)"),
    "oxygen_saturation": ("Low oxygen saturation", None),
}


def analyze_vitals(reading: VitalReading) -> AnalysisResult:
    """Score a vital reading against the reference ranges.

    Optional fields (glucose, SpO2) are only checked when present.
    """
    anomalies: list[str] = []
    risk = 0

    for name, (low_text, high_text) in _ANOMALY_TEXT.items():
        value = getattr(reading, name)
        if value is None:
            continue
        lo, hi = VITAL_RANGES[name]
        weights = VITAL_WEIGHTS[name]
        if low_text is not None and value < lo:
            anomalies.append(low_text)
            risk += weights["low"]
        elif high_text is not None and value > hi:
            anomalies.append(high_text)
            risk += weights["high"]

    return AnalysisResult(anomalies=anomalies, risk_score=clamp_score(risk))
