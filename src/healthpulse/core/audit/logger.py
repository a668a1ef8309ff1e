"""Audit logger: PHI-free access trail for tool calls and deletions.

Every tool invocation and every deletion is recorded in the ``audit_log``
table. Tool inputs are never stored raw:

* ``tool_input_hash``: SHA-256 of the canonical JSON input.
* ``record_id``: id of the record written or read, when there is one.
* ``metadata``: counts and flags only, never readings or free text.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from healthpulse.core.storage.database import DatabaseError, HealthDatabase

logger = logging.getLogger(__name__)

_AUDIT_COLUMNS = (
    "id", "timestamp", "action", "tool_name", "tool_input_hash", "record_id",
    "duration_ms", "status", "error_type", "metadata_json",
)
_INSERT_AUDIT = "INSERT INTO audit_log ({}) VALUES ({})".format(
    ", ".join(_AUDIT_COLUMNS), ", ".join("?" * len(_AUDIT_COLUMNS))
)


def _hash_input(data: Any) -> str:
    """SHA-256 hash of canonical JSON, or empty string if not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        return ""
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                 # 'tool_invocation' | 'data_delete'
    tool_name: str = ""
    tool_input_hash: str = ""
    record_id: str | None = None
    duration_ms: float | None = None
    status: str = "success"     # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_row(self, event_id: str, timestamp: str) -> tuple:
        """Column values in ``_AUDIT_COLUMNS`` order."""
        return (
            event_id,
            timestamp,
            self.action,
            self.tool_name or None,
            self.tool_input_hash or None,
            self.record_id,
            self.duration_ms,
            self.status,
            self.error_type,
            json.dumps(self.metadata, separators=(",", ":")) if self.metadata else None,
        )


def _where(**filters: str | None) -> tuple[str, list[Any]]:
    """Build a WHERE clause from the non-empty filters.

    ``since`` compares against the timestamp; every other key is an
    equality match on the column of the same name.
    """
    clauses: list[str] = []
    params: list[Any] = []
    for column, value in filters.items():
        if not value:
            continue
        clauses.append("timestamp >= ?" if column == "since" else f"{column} = ?")
        params.append(value)
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    Writes are committed immediately. A failed write is logged and dropped;
    auditing never breaks the tool call it describes.

    Usage::

        audit = AuditLogger(health_db)
        audit.log_tool_call(
            tool_name="health_score",
            tool_input={"patient_id": "p-1"},
            record_id=score.id,
        )
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its id ("" if the write failed)."""
        event_id = str(uuid.uuid4())
        row = event.to_row(event_id, datetime.now(timezone.utc).isoformat())
        try:
            with self._db.connection as conn:
                conn.execute(_INSERT_AUDIT, row)
        except (sqlite3.Error, DatabaseError):
            logger.exception("Audit write for %r dropped", event.tool_name or event.action)
            return ""
        return event_id

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        record_id: str | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        event = AuditEvent(
            action="tool_invocation",
            tool_name=tool_name,
            record_id=record_id,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        )
        if tool_input:
            event.tool_input_hash = _hash_input(tool_input)
        return self.log_event(event)

    def log_data_delete(
        self,
        *,
        tool_name: str = "",
        count: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a deletion with the number of rows removed."""
        details = dict(metadata or {})
        details["records_deleted"] = count
        return self.log_event(
            AuditEvent(action="data_delete", tool_name=tool_name, metadata=details)
        )

    # ---------------------------------------------------------------
    # Queries
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: str | None = None,
        tool_name: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Audit rows matching every given filter, newest first."""
        where, params = _where(action=action, tool_name=tool_name, since=since)
        cursor = self._db.connection.execute(
            f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?",
            [*params, limit],
        )
        return [dict(row) for row in cursor]

    def count_events(self, *, action: str | None = None, since: str | None = None) -> int:
        where, params = _where(action=action, since=since)
        (total,) = self._db.connection.execute(
            f"SELECT COUNT(*) FROM audit_log{where}", params
        ).fetchone()
        return total
