"""MCP tool for reviewing the audit trail (tool names, timings, hashed inputs)."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from healthpulse.core.audit.logger import AuditLogger

_RECENT_EVENT_LIMIT = 20
_SUMMARY_FIELDS = ("timestamp", "action", "tool_name", "status", "duration_ms")


def register_audit_tools(mcp: FastMCP, audit_logger: AuditLogger) -> None:
    @mcp.tool
    async def audit_summary(
        ctx: Context,
        days: int = 30,
    ) -> str:
        """Summarize record access and deletions over the last few days.

        Args:
            days: Look-back window in days (default: 30).
        """
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        recent = audit_logger.get_events(since=since, limit=_RECENT_EVENT_LIMIT)

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": audit_logger.count_events(since=since),
            "deletion_events": audit_logger.count_events(action="data_delete", since=since),
            "recent_events": [
                {name: event.get(name) for name in _SUMMARY_FIELDS} for event in recent
            ],
        }, indent=2)
