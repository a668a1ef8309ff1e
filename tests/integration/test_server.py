"""Integration tests for the HealthPulse MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from healthpulse.core.config.settings import Settings
from healthpulse.core.server.app import create_app
from healthpulse.core.server.main import _is_loopback_host, check_bind


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


ALL_EXPECTED_TOOLS = [
    "health_check",
    "log_vitals",
    "log_symptom",
    "log_mood",
    "list_records",
    "triage_symptom",
    "health_score",
    "health_correlations",
    "assign_patient",
    "list_patients",
    "list_alerts",
    "acknowledge_alert",
    "patient_timeline",
    "patient_health_score",
    "delete_patient_data",
    "purge_old_records",
    "audit_summary",
]


@pytest.fixture
def client():
    """Client for a server built from settings (no key: ephemeral store)."""
    return Client(create_app())


def _call(client, tool: str, args: dict) -> dict:
    async def _go():
        async with client:
            result = await client.call_tool(tool, args)
            return json.loads(result.content[0].text)
    return _run(_go())


def test_server_starts_and_lists_tools(client):
    async def _check():
        async with client:
            tools = await client.list_tools()
            tool_names = [t.name for t in tools]
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in tool_names, f"Missing tool: {expected}"
    _run(_check())


def test_health_check_returns_ok(client):
    data = _call(client, "health_check", {})
    assert data["status"] == "ok"
    assert data["server"] == "HealthPulse"
    assert data["vitals_stored"] == 0


def test_file_store_with_key(tmp_path, monkeypatch):
    from healthpulse.core.storage.encryption import FieldEncryptor

    db_path = tmp_path / "health.db"
    monkeypatch.setenv("ENCRYPTION_KEY", FieldEncryptor.generate_key())
    monkeypatch.setenv("DB_PATH", str(db_path))

    data = _call(Client(create_app()), "log_symptom", {"patient_id": "p-1", "description": "fatigue"})
    assert data["status"] == "saved"
    assert db_path.exists()


def test_end_to_end_patient_journey(client):
    """Provider assignment, crisis readings, scoring, alert handling."""
    async def _journey():
        async with client:
            async def call(tool, args):
                result = await client.call_tool(tool, args)
                return json.loads(result.content[0].text)

            await call("assign_patient", {"provider_id": "dr-a", "patient_id": "p-1"})
            await call("log_mood", {
                "patient_id": "p-1", "mood_level": 1, "stress_level": 9, "sleep_quality": 1,
                "sleep_hours": 3, "anxiety_level": 9, "recorded_at": "2026-02-01T20:00:00+00:00",
            })
            vitals = await call("log_vitals", {
                "patient_id": "p-1", "systolic": 190, "diastolic": 125, "heart_rate": 135,
                "temperature": 37, "recorded_at": "2026-02-02T08:00:00+00:00",
            })
            await call("log_symptom", {
                "patient_id": "p-1", "description": "feeling tired",
                "recorded_at": "2026-02-02T09:00:00+00:00",
            })
            scored = await call("health_score", {"patient_id": "p-1"})
            alerts = await call("list_alerts", {"provider_id": "dr-a"})
            timeline = await call("patient_timeline", {"patient_id": "p-1"})
            return vitals, scored, alerts, timeline

    vitals, scored, alerts, timeline = _run(_journey())

    assert vitals["risk_score"] == 50
    assert vitals["alerts_raised"] == 1

    score = scored["score"]
    # vital 50, symptom 100-35=65, mental 38+3+5=46 -> 53.67
    assert score["vital_score"] == 50
    assert score["symptom_score"] == 65
    assert score["mental_score"] == 46
    assert score["overall_score"] == 54
    assert score["risk_level"] == "HIGH"
    assert score["auto_alerts"] == [
        "Vital signs anomaly detected",
        "Mental health concern flagged",
    ]
    assert [c["correlation_type"] for c in scored["correlations"]] == [
        "STRESS_TO_BP",
        "SLEEP_TO_SYMPTOMS",
    ]

    assert {a["anomaly_type"] for a in alerts["alerts"]} == {"MOOD_SHIFT", "VITAL_SPIKE"}
    assert len(timeline["events"]) == 5


@pytest.mark.parametrize("host, expected", [
    ("127.0.0.1", True),
    ("localhost", True),
    ("::1", True),
    ("0.0.0.0", False),
    ("example.com", False),
])
def test_loopback_guard(host, expected):
    assert _is_loopback_host(host) is expected


class TestCheckBind:
    def test_public_host_refused(self):
        settings = Settings(hp_host="0.0.0.0")
        with pytest.raises(RuntimeError, match="HP_ALLOW_INSECURE_BIND"):
            check_bind(settings)

    def test_public_host_allowed_with_override(self):
        check_bind(Settings(hp_host="0.0.0.0", hp_allow_insecure_bind=True))

    def test_stdio_ignores_host(self):
        check_bind(Settings(hp_host="0.0.0.0", hp_transport="stdio"))
