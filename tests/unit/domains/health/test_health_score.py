"""Tests for the composite health score calculator."""

from __future__ import annotations

from collections import defaultdict

import pytest

from healthpulse.core.storage.models import (
    HealthScore,
    MoodCheckIn,
    SymptomReport,
    VitalReading,
)
from healthpulse.domains.health.domain_logic.health_score import (
    HealthScoreCalculator,
    calculate_health_score,
    classify_risk,
    classify_trend,
    collect_auto_alerts,
    compute_mental_score,
    compute_symptom_score,
    compute_vital_score,
)
from healthpulse.domains.health.domain_logic.record_store import RecordStore
from healthpulse.domains.health.domain_logic.scoring_models import (
    MENTAL_ALERT_TEXT,
    VITAL_ALERT_TEXT,
)


class _MemoryStore:
    """List-backed RecordStore; records are kept in insertion order."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], list] = defaultdict(list)

    def fetch_latest(self, kind, patient_id):
        records = self._records[(kind, patient_id)]
        return records[-1] if records else None

    def fetch_history(self, kind, patient_id, *, ascending=True):
        records = list(self._records[(kind, patient_id)])
        return records if ascending else records[::-1]

    def insert(self, kind, record):
        self._records[(kind, record.patient_id)].append(record)
        return record.id


def _vital(**overrides) -> VitalReading:
    defaults = dict(
        id="v", patient_id="p-1", systolic=115, diastolic=75, heart_rate=70,
        temperature=37.0, recorded_at="2026-02-01T08:00:00+00:00",
    )
    defaults.update(overrides)
    return VitalReading(**defaults)


def _mood(**overrides) -> MoodCheckIn:
    defaults = dict(
        id="m", patient_id="p-1", mood_level=4, stress_level=3, sleep_quality=7,
        sleep_hours=7.5, anxiety_level=2, recorded_at="2026-02-01T20:00:00+00:00",
    )
    defaults.update(overrides)
    return MoodCheckIn(**defaults)


def _score(overall: int, calculated_at: str) -> HealthScore:
    return HealthScore(
        id=f"s-{calculated_at}", patient_id="p-1", overall_score=overall,
        vital_score=overall, symptom_score=overall, mental_score=overall,
        calculated_at=calculated_at,
    )


class TestSubScores:
    def test_defaults_when_missing(self):
        assert compute_vital_score(None) == 60
        assert compute_symptom_score(None) == 90
        assert compute_mental_score(None) == 70

    def test_vital_score_from_risk(self):
        assert compute_vital_score(_vital()) == 100
        assert compute_vital_score(_vital(systolic=190, diastolic=125, heart_rate=135)) == 50

    def test_vital_score_floor(self):
        worst = _vital(
            systolic=200, diastolic=130, heart_rate=140, temperature=35,
            blood_glucose=40, oxygen_saturation=80,
        )
        assert compute_vital_score(worst) == 20

    def test_symptom_score(self):
        report = SymptomReport(id="s", patient_id="p-1", description="nausea", urgency_score=55)
        assert compute_symptom_score(report) == 45

    def test_symptom_score_floor(self):
        report = SymptomReport(id="s", patient_id="p-1", description="chest pain", urgency_score=95)
        assert compute_symptom_score(report) == 20

    def test_mental_score_blend(self):
        # 1/5*40+30 = 38, 30-27 = 3, max(5, 2) = 5
        assert compute_mental_score(_mood(mood_level=1, stress_level=9, sleep_quality=1)) == 46

    def test_mental_score_rounds_half_up(self):
        # 70 + 1.5 + 5 = 76.5
        assert compute_mental_score(_mood(mood_level=5, stress_level=9.5, sleep_quality=0)) == 77

    def test_mental_score_capped_at_100(self):
        assert compute_mental_score(_mood(mood_level=5, stress_level=0, sleep_quality=9)) == 100


class TestClassifyRisk:
    @pytest.mark.parametrize("score, level", [
        (100, "LOW"),
        (80, "LOW"),
        (79, "MEDIUM"),
        (60, "MEDIUM"),
        (59, "HIGH"),
        (40, "HIGH"),
        (39, "CRITICAL"),
        (0, "CRITICAL"),
    ])
    def test_bucket_boundaries(self, score, level):
        assert classify_risk(score) == level


class TestClassifyTrend:
    def test_empty_and_single_are_stable(self):
        assert classify_trend([]) == "STABLE"
        assert classify_trend([70]) == "STABLE"

    def test_improving(self):
        assert classify_trend([50, 55, 60, 90, 95, 92]) == "IMPROVING"

    def test_declining(self):
        assert classify_trend([90, 90, 60, 60]) == "DECLINING"

    def test_within_threshold_is_stable(self):
        assert classify_trend([70, 74]) == "STABLE"
        assert classify_trend([70, 75]) == "STABLE"
        assert classify_trend([70, 76]) == "IMPROVING"

    def test_odd_length_newer_half_gets_extra(self):
        # older [80], newer [70, 60] -> 65
        assert classify_trend([80, 70, 60]) == "DECLINING"


class TestAutoAlerts:
    def test_none_when_no_data(self):
        assert collect_auto_alerts(None, None) == []

    def test_vital_and_mental_flags_in_order(self):
        alerts = collect_auto_alerts(_vital(heart_rate=110), _mood(anxiety_level=9))
        assert alerts == [VITAL_ALERT_TEXT, MENTAL_ALERT_TEXT]

    def test_normal_readings_raise_nothing(self):
        assert collect_auto_alerts(_vital(), _mood()) == []


class TestCalculator:
    def test_memory_store_satisfies_protocol(self):
        assert isinstance(_MemoryStore(), RecordStore)

    def test_no_history_uses_defaults(self):
        score = HealthScoreCalculator(_MemoryStore()).calculate("p-1")
        assert score.vital_score == 60
        assert score.symptom_score == 90
        assert score.mental_score == 70
        assert score.overall_score == 73
        assert score.trend == "STABLE"
        assert score.risk_level == "MEDIUM"
        assert score.auto_alerts == []
        assert score.patient_id == "p-1"
        assert score.id
        assert score.calculated_at

    def test_latest_records_drive_subscores(self):
        store = _MemoryStore()
        store.insert("vital", _vital(id="old", heart_rate=110))
        store.insert("vital", _vital(id="new", systolic=190, diastolic=125, heart_rate=135))
        store.insert("symptom", SymptomReport(
            id="s", patient_id="p-1", description="chest pain",
            severity="CRITICAL", urgency_score=95,
        ))

        score = calculate_health_score(store, "p-1")
        assert score.vital_score == 50
        assert score.symptom_score == 20
        assert score.mental_score == 70
        # (50 + 20 + 70) / 3 = 46.67
        assert score.overall_score == 47
        assert score.risk_level == "HIGH"
        assert score.auto_alerts == [VITAL_ALERT_TEXT]

    def test_trend_from_stored_scores(self):
        store = _MemoryStore()
        for i, overall in enumerate([50, 55, 60, 90, 95, 92]):
            store.insert("health_score", _score(overall, f"2026-01-0{i + 1}T00:00:00+00:00"))
        assert calculate_health_score(store, "p-1").trend == "IMPROVING"

    def test_mood_delta_does_not_raise_auto_alert(self):
        store = _MemoryStore()
        store.insert("mood", _mood(id="prev", mood_level=1, anxiety_level=1))
        store.insert("mood", _mood(id="curr", mood_level=4, anxiety_level=5))
        assert calculate_health_score(store, "p-1").auto_alerts == []

    def test_calculator_does_not_persist(self):
        store = _MemoryStore()
        HealthScoreCalculator(store).calculate("p-1")
        assert store.fetch_history("health_score", "p-1") == []

    def test_other_patients_ignored(self):
        store = _MemoryStore()
        store.insert("vital", _vital(patient_id="p-2", systolic=190))
        assert calculate_health_score(store, "p-1").vital_score == 60
