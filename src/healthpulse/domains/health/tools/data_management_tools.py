"""MCP tools for removing patient records: per-patient erasure and age-based purge.

Both tools report how many rows they removed and write a ``data_delete``
audit event whenever rows were actually removed.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthpulse.core.audit.logger import AuditLogger
    from healthpulse.core.storage.repository import HealthRepository

logger = logging.getLogger(__name__)


def register_data_management_tools(
    mcp: FastMCP,
    repository: HealthRepository,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register the deletion tools on the MCP server."""

    def _run_deletion(
        tool_name: str, delete: Callable[[], int], details: dict[str, Any]
    ) -> tuple[int, float]:
        started = time.monotonic()
        removed = delete()
        took_ms = round((time.monotonic() - started) * 1000, 1)

        if removed and audit_logger is not None:
            audit_logger.log_data_delete(tool_name=tool_name, count=removed, metadata=details)
        logger.info("%s removed %d rows in %.1f ms", tool_name, removed, took_ms)
        return removed, took_ms

    @mcp.tool
    async def delete_patient_data(
        ctx: Context,
        patient_id: str,
        confirm: str = "",
    ) -> str:
        """Permanently delete every record of one patient.

        Removes vitals, symptoms, mood check-ins, scores, correlations,
        alerts and provider assignments. It cannot be undone.

        Args:
            patient_id: The patient whose data to delete.
            confirm: Must repeat the patient_id exactly, otherwise nothing is deleted.
        """
        if not patient_id or confirm != patient_id:
            return json.dumps({
                "status": "cancelled",
                "message": (
                    "Nothing was deleted. Repeat the patient_id in confirm to "
                    "erase this patient's records permanently."
                ),
            })

        removed, took_ms = _run_deletion(
            "delete_patient_data",
            lambda: repository.delete_patient_data(patient_id),
            {"confirmed": True},
        )
        return json.dumps({
            "status": "deleted",
            "records_deleted": removed,
            "duration_ms": took_ms,
        })

    @mcp.tool
    async def purge_old_records(
        ctx: Context,
        older_than_days: int = 365,
    ) -> str:
        """Delete every patient's records that are older than a cutoff.

        Args:
            older_than_days: Age cutoff in days, at least 1 (default: 365).
        """
        if older_than_days < 1:
            return json.dumps({
                "status": "error",
                "message": "older_than_days must be at least 1.",
            })

        removed, took_ms = _run_deletion(
            "purge_old_records",
            lambda: repository.purge_before_days(older_than_days),
            {"older_than_days": older_than_days},
        )
        return json.dumps({
            "status": "purged",
            "records_deleted": removed,
            "older_than_days": older_than_days,
            "duration_ms": took_ms,
        })
