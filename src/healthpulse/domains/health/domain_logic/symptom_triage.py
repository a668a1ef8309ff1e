"""Keyword-based symptom triage.

Classifies a free-text symptom description into an urgency tier. The first
matching tier (critical, high, medium) wins; anything else falls through to
low. Deterministic and total: every string, including the empty one, triages.
"""

from __future__ import annotations

import logging

from healthpulse.domains.health.domain_logic.scoring_models import (
    Severity,
    SymptomTriageResult,
)

logger = logging.getLogger(__name__)

# (severity, base urgency, primary diagnosis hint, keywords), highest priority first
TRIAGE_TIERS: list[tuple[Severity, int, str, tuple[str, ...]]] = [
    (
        "CRITICAL",
        95,
        "EMERGENCY - Seek immediate medical attention",
        (
            "chest pain",
            "difficulty breathing",
            "shortness of breath",
            "stroke",
            "severe bleeding",
            "loss of consciousness",
            "allergic reaction",
            "severe allergy",
        ),
    ),
    (
        "HIGH",
        75,
        "Urgent consultation recommended",
        (
            "severe headache",
            "high fever",
            "persistent vomiting",
            "abdominal pain",
            "vision changes",
            "numbness",
            "paralysis",
            "confusion",
        ),
    ),
    (
        "MEDIUM",
        55,
        "Schedule appointment soon",
        (
            "mild fever",
            "headache",
            "nausea",
            "body ache",
            "fatigue",
            "dizziness",
            "mild cough",
        ),
    ),
]

LOW_TIER: tuple[Severity, int, str] = (
    "LOW",
    35,
    "Monitor and follow up if symptoms persist",
)

MULTI_SYMPTOM_SEGMENTS = 3
MULTI_SYMPTOM_BONUS = 15

EMERGENCY_ACTION = "Call 911 immediately"
DEFAULT_ACTION = "See a healthcare provider"


def _match_tier(text: str) -> tuple[Severity, int, str]:
    for severity, base, hint, keywords in TRIAGE_TIERS:
        if any(kw in text for kw in keywords):
            return severity, base, hint
    return LOW_TIER


def _supplementary_hints(text: str) -> list[str]:
    """Diagnosis hints that stack on top of the tier hint."""
    hints: list[str] = []
    if "fever" in text:
        hints.append("Possible infection/flu")
    if "cough" in text:
        hints.append("Possible respiratory issue")
    if "headache" in text and "fever" in text:
        hints.append("Possible meningitis")
    if "chest pain" in text:
        hints.append("Cardiac evaluation needed")
    return hints


def triage_symptom(description: str) -> SymptomTriageResult:
    """Triage a symptom description.

    Args:
        description: Free text, e.g. ``"headache, nausea, dizziness"``.

    Returns:
        Urgency score (0-100), severity, diagnosis hints (tier hint first),
        and a recommended action.
    """
    text = (description or "").lower()
    severity, urgency, primary_hint = _match_tier(text)

    # Many comma-separated complaints at once raise urgency
    if len((description or "").split(",")) > MULTI_SYMPTOM_SEGMENTS:
        urgency = min(urgency + MULTI_SYMPTOM_BONUS, 100)

    diagnoses = [primary_hint, *_supplementary_hints(text)]
    logger.debug("Triaged symptom as %s (urgency=%d)", severity, urgency)

    return SymptomTriageResult(
        urgency_score=urgency,
        severity=severity,
        potential_diagnoses=diagnoses,
        recommended_action=EMERGENCY_ACTION if severity == "CRITICAL" else DEFAULT_ACTION,
    )
