"""MCP tools for providers: patient assignment, alerts, timelines.

These views read what the record-entry and scoring tools have stored; none
of them recompute scores.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthpulse.core.audit.logger import AuditLogger
    from healthpulse.core.storage.repository import HealthRepository

logger = logging.getLogger(__name__)


def register_provider_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    audit_logger: AuditLogger | None = None,
    *,
    timeline_limit: int = 50,
) -> None:
    """Register provider-facing tools on the MCP server."""

    def _audit(tool_name: str, patient_id: str, start_time: float) -> None:
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name=tool_name,
                tool_input={"patient_id": patient_id},
                duration_ms=(time.monotonic() - start_time) * 1000,
            )

    @mcp.tool
    async def assign_patient(
        ctx: Context,
        provider_id: str,
        patient_id: str,
    ) -> str:
        """Assign a patient to a provider so the provider receives their alerts.

        Args:
            provider_id: The provider.
            patient_id: The patient to monitor.
        """
        created = repository.assign_patient(provider_id, patient_id)
        return json.dumps({
            "status": "assigned" if created else "already_assigned",
            "provider_id": provider_id,
            "patient_id": patient_id,
        })

    @mcp.tool
    async def list_patients(
        ctx: Context,
        provider_id: str,
    ) -> str:
        """List the patients assigned to a provider, with their latest stored score.

        Args:
            provider_id: The provider.
        """
        patients = []
        for patient_id in repository.get_patient_ids(provider_id):
            latest = repository.fetch_latest("health_score", patient_id)
            patients.append({
                "patient_id": patient_id,
                "overall_score": latest.overall_score if latest else None,
                "risk_level": latest.risk_level if latest else None,
            })
        return json.dumps({"status": "ok", "count": len(patients), "patients": patients}, indent=2)

    @mcp.tool
    async def list_alerts(
        ctx: Context,
        provider_id: str,
        acknowledged: bool = False,
        limit: int = 50,
    ) -> str:
        """List a provider's anomaly alerts, newest first.

        Args:
            provider_id: The provider.
            acknowledged: List acknowledged alerts instead of open ones.
            limit: Maximum alerts to return.
        """
        alerts = repository.get_alerts(provider_id, acknowledged=acknowledged, limit=limit)
        return json.dumps({
            "status": "ok",
            "count": len(alerts),
            "alerts": [asdict(a) for a in alerts],
        }, indent=2)

    @mcp.tool
    async def acknowledge_alert(
        ctx: Context,
        provider_id: str,
        alert_id: str,
    ) -> str:
        """Acknowledge one of the provider's alerts.

        Args:
            provider_id: The provider acknowledging the alert.
            alert_id: The alert to acknowledge.
        """
        alert = repository.acknowledge_alert(alert_id, provider_id)
        if alert is None:
            return json.dumps({
                "status": "not_found",
                "alert_id": alert_id,
                "message": "Alert not found",
            })
        return json.dumps({"status": "acknowledged", "alert": asdict(alert)})

    @mcp.tool
    async def patient_timeline(
        ctx: Context,
        patient_id: str,
    ) -> str:
        """Show a patient's recent vitals, symptoms, moods and alerts, newest first.

        Args:
            patient_id: The patient.
        """
        start_time = time.monotonic()
        events = repository.get_timeline(patient_id, limit=timeline_limit)
        _audit("patient_timeline", patient_id, start_time)
        return json.dumps({
            "status": "ok",
            "patient_id": patient_id,
            "events": [asdict(e) for e in events],
        }, indent=2)

    @mcp.tool
    async def patient_health_score(
        ctx: Context,
        patient_id: str,
    ) -> str:
        """Return a patient's most recently stored score and correlations.

        Args:
            patient_id: The patient.
        """
        start_time = time.monotonic()
        score = repository.fetch_latest("health_score", patient_id)
        _audit("patient_health_score", patient_id, start_time)
        if score is None:
            return json.dumps({"status": "ok", "score": None, "correlations": []})

        correlations = repository.fetch_history(
            "correlation", patient_id, ascending=False, limit=10
        )
        return json.dumps({
            "status": "ok",
            "score": asdict(score),
            "correlations": [asdict(c) for c in correlations],
        }, indent=2)
