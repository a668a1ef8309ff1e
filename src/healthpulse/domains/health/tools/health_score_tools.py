"""MCP tools for health scoring, correlation detection and symptom triage."""

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
    from healthpulse.domains.health.domain_logic.scoring_service import ScoringService

from healthpulse.domains.health.domain_logic.correlation_detector import CorrelationDetector
from healthpulse.domains.health.domain_logic.symptom_triage import triage_symptom as run_triage

logger = logging.getLogger(__name__)


def register_health_score_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    scoring_service: ScoringService,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register scoring and correlation tools on the MCP server."""

    detector = CorrelationDetector(repository)

    @mcp.tool
    async def triage_symptom(
        ctx: Context,
        description: str,
    ) -> str:
        """Estimate how urgently a described symptom needs attention.

        Does not store anything. Use log_symptom to record the symptom.

        Args:
            description: Free-text description, e.g. 'chest pain, dizziness'.
        """
        return json.dumps({"status": "ok", **asdict(run_triage(description))})

    @mcp.tool
    async def health_score(
        ctx: Context,
        patient_id: str,
    ) -> str:
        """Calculate, store and return a patient's current health score.

        The score blends the latest vitals, symptom and mood check-in into a
        0-100 value with a trend (from previously stored scores) and a risk
        level. Cross-domain correlations are detected and stored alongside.

        Args:
            patient_id: Patient to score.
        """
        start_time = time.monotonic()
        outcome = scoring_service.score_patient(patient_id)

        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name="health_score",
                tool_input={"patient_id": patient_id},
                record_id=outcome.score.id,
                duration_ms=(time.monotonic() - start_time) * 1000,
                metadata={"correlations": len(outcome.correlations)},
            )

        return json.dumps({
            "status": "ok",
            "score": asdict(outcome.score),
            "correlations": [asdict(c) for c in outcome.correlations],
            "trend": {
                "dates": outcome.series_dates,
                "scores": outcome.series_scores,
            },
        }, indent=2)

    @mcp.tool
    async def health_correlations(
        ctx: Context,
        patient_id: str,
    ) -> str:
        """Detect patterns across a patient's mood, vital and symptom history.

        Read-only: nothing is stored. Patterns include anxiety followed by
        high blood pressure, poor sleep with fatigue, and sharp mood drops.

        Args:
            patient_id: Patient whose history to scan.
        """
        start_time = time.monotonic()
        correlations = detector.detect(patient_id)

        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name="health_correlations",
                tool_input={"patient_id": patient_id},
                duration_ms=(time.monotonic() - start_time) * 1000,
                metadata={"correlations": len(correlations)},
            )

        return json.dumps({
            "status": "ok",
            "patient_id": patient_id,
            "count": len(correlations),
            "correlations": [asdict(c) for c in correlations],
        }, indent=2)
