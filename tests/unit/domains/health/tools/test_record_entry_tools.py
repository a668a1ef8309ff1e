"""Tests for the record entry MCP tools (log_vitals, log_symptom, log_mood, list_records)."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from healthpulse.core.server.app import create_app


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def mcp(health_repository):
    return create_app(repository_override=health_repository)


def _call(mcp, tool: str, args: dict) -> dict:
    async def _go():
        async with Client(mcp) as client:
            result = await client.call_tool(tool, args)
            return json.loads(result.content[0].text)
    return _run(_go())


_NORMAL_VITALS = {
    "patient_id": "p-1",
    "systolic": 118,
    "diastolic": 76,
    "heart_rate": 68,
    "temperature": 36.8,
}


class TestLogVitals:
    def test_normal_reading_saved(self, mcp, health_repository):
        data = _call(mcp, "log_vitals", _NORMAL_VITALS)
        assert data["status"] == "saved"
        assert data["anomalies"] == []
        assert data["risk_score"] == 0
        assert data["alerts_raised"] == 0
        assert health_repository.fetch_latest("vital", "p-1").id == data["record_id"]

    def test_crisis_reading_reports_anomalies(self, mcp):
        data = _call(mcp, "log_vitals", {
            **_NORMAL_VITALS, "systolic": 190, "diastolic": 125, "heart_rate": 135,
            "temperature": 37,
        })
        assert data["risk_score"] == 50
        assert "Elevated heart rate (tachycardia)" in data["anomalies"]

    def test_crisis_reading_alerts_assigned_providers(self, mcp, health_repository):
        health_repository.assign_patient("dr-a", "p-1")
        health_repository.assign_patient("dr-b", "p-1")
        data = _call(mcp, "log_vitals", {**_NORMAL_VITALS, "systolic": 190, "heart_rate": 135})
        assert data["alerts_raised"] == 2
        (alert,) = health_repository.get_alerts("dr-a")
        assert alert.anomaly_type == "VITAL_SPIKE"
        assert alert.severity == "HIGH"

    def test_negative_value_rejected(self, mcp, health_repository):
        data = _call(mcp, "log_vitals", {**_NORMAL_VITALS, "heart_rate": -5})
        assert data["status"] == "error"
        assert "heart_rate" in data["message"]
        assert health_repository.count_records("vital") == 0

    def test_oxygen_above_100_rejected(self, mcp):
        data = _call(mcp, "log_vitals", {**_NORMAL_VITALS, "oxygen_saturation": 101})
        assert data["status"] == "error"

    def test_explicit_timestamp_kept(self, mcp, health_repository):
        _call(mcp, "log_vitals", {**_NORMAL_VITALS, "recorded_at": "2026-02-01T08:00:00+00:00"})
        assert health_repository.fetch_latest("vital", "p-1").recorded_at == "2026-02-01T08:00:00+00:00"


class TestLogSymptom:
    def test_symptom_triaged_and_saved(self, mcp, health_repository):
        data = _call(mcp, "log_symptom", {
            "patient_id": "p-1", "description": "headache, nausea", "duration": "2 days",
        })
        assert data["status"] == "saved"
        assert data["severity"] == "MEDIUM"
        assert data["urgency_score"] == 55
        stored = health_repository.fetch_latest("symptom", "p-1")
        assert stored.description == "headache, nausea"
        assert stored.duration == "2 days"
        assert stored.severity == "MEDIUM"

    def test_critical_symptom(self, mcp, health_repository):
        health_repository.assign_patient("dr-a", "p-1")
        data = _call(mcp, "log_symptom", {"patient_id": "p-1", "description": "chest pain"})
        assert data["severity"] == "CRITICAL"
        assert data["recommended_action"] == "Call 911 immediately"
        assert data["alerts_raised"] == 1
        assert health_repository.get_alerts("dr-a")[0].description == "chest pain"

    def test_empty_description_rejected(self, mcp, health_repository):
        data = _call(mcp, "log_symptom", {"patient_id": "p-1", "description": "   "})
        assert data == {"status": "error", "message": "Symptom description required"}
        assert health_repository.count_records("symptom") == 0


class TestLogMood:
    _CALM = {
        "patient_id": "p-1", "mood_level": 4, "stress_level": 3,
        "sleep_quality": 7, "sleep_hours": 7.5, "anxiety_level": 2,
    }

    def test_calm_checkin(self, mcp):
        data = _call(mcp, "log_mood", self._CALM)
        assert data["status"] == "saved"
        assert data["anomalies"] == []

    def test_previous_checkin_enables_delta_checks(self, mcp):
        _call(mcp, "log_mood", {**self._CALM, "mood_level": 5, "recorded_at": "2026-02-01T08:00:00+00:00"})
        data = _call(mcp, "log_mood", {
            **self._CALM, "mood_level": 2, "recorded_at": "2026-02-02T08:00:00+00:00",
        })
        assert "Significant mood change detected (decline)" in data["anomalies"]
        assert data["risk_score"] == 35

    def test_distress_alerts_provider(self, mcp, health_repository):
        health_repository.assign_patient("dr-a", "p-1")
        data = _call(mcp, "log_mood", {**self._CALM, "anxiety_level": 9})
        assert data["alerts_raised"] == 1
        alert = health_repository.get_alerts("dr-a")[0]
        assert alert.description == "Mental health concern: Low mood: 4, Anxiety: 9, Stress: 3"

    def test_mood_out_of_range(self, mcp):
        data = _call(mcp, "log_mood", {**self._CALM, "mood_level": 6})
        assert data["status"] == "error"
        assert "mood_level" in data["message"]


class TestListRecords:
    def test_all_types(self, mcp):
        _call(mcp, "log_vitals", _NORMAL_VITALS)
        _call(mcp, "log_symptom", {"patient_id": "p-1", "description": "fatigue"})
        data = _call(mcp, "list_records", {"patient_id": "p-1"})
        assert len(data["vitals"]) == 1
        assert len(data["symptoms"]) == 1
        assert data["moods"] == []

    def test_single_type_and_limit(self, mcp):
        for day in (1, 2, 3):
            _call(mcp, "log_vitals", {**_NORMAL_VITALS, "recorded_at": f"2026-02-0{day}T08:00:00+00:00"})
        data = _call(mcp, "list_records", {"patient_id": "p-1", "record_type": "vitals", "limit": 2})
        assert set(data) == {"status", "patient_id", "vitals"}
        assert [v["recorded_at"][:10] for v in data["vitals"]] == ["2026-02-03", "2026-02-02"]

    def test_unknown_type(self, mcp):
        data = _call(mcp, "list_records", {"patient_id": "p-1", "record_type": "labs"})
        assert data["status"] == "error"


class TestRecordedAt:
    @pytest.mark.parametrize("tool, args", [
        ("log_vitals", _NORMAL_VITALS),
        ("log_symptom", {"patient_id": "p-1", "description": "headache"}),
        ("log_mood", {
            "patient_id": "p-1", "mood_level": 3, "stress_level": 8, "sleep_quality": 5,
            "sleep_hours": 6, "anxiety_level": 8,
        }),
    ])
    def test_unparseable_timestamp_rejected(self, mcp, health_repository, tool, args):
        data = _call(mcp, tool, {**args, "recorded_at": "yesterday evening"})
        assert data["status"] == "error"
        assert "recorded_at" in data["message"]
        for kind in ("vital", "symptom", "mood"):
            assert health_repository.count_records(kind) == 0

    def test_rejected_timestamp_leaves_scoring_usable(self, mcp):
        _call(mcp, "log_mood", {
            "patient_id": "p-1", "mood_level": 3, "stress_level": 8, "sleep_quality": 5,
            "sleep_hours": 6, "anxiety_level": 8, "recorded_at": "yesterday evening",
        })
        _call(mcp, "log_vitals", {**_NORMAL_VITALS, "systolic": 140})
        assert _call(mcp, "health_correlations", {"patient_id": "p-1"})["status"] == "ok"
        assert _call(mcp, "health_score", {"patient_id": "p-1"})["status"] == "ok"

    @pytest.mark.parametrize("given, stored", [
        ("2026-03-01T13:00:00+05:00", "2026-03-01T08:00:00+00:00"),
        ("2026-03-01T08:00:00Z", "2026-03-01T08:00:00+00:00"),
        ("2026-03-01T08:00:00", "2026-03-01T08:00:00+00:00"),
    ])
    def test_timestamp_stored_in_utc(self, mcp, health_repository, given, stored):
        _call(mcp, "log_symptom", {"patient_id": "p-1", "description": "cough", "recorded_at": given})
        assert health_repository.fetch_latest("symptom", "p-1").recorded_at == stored

    def test_latest_follows_time_not_offset_text(self, mcp):
        _call(mcp, "log_symptom", {
            "patient_id": "p-1", "description": "chest pain",
            "recorded_at": "2026-03-01T12:00:00+00:00",
        })
        # 08:00 UTC, earlier than the chest pain despite the later wall-clock text
        _call(mcp, "log_symptom", {
            "patient_id": "p-1", "description": "runny nose",
            "recorded_at": "2026-03-01T13:00:00+05:00",
        })
        data = _call(mcp, "health_score", {"patient_id": "p-1"})
        assert data["score"]["symptom_score"] == 20
