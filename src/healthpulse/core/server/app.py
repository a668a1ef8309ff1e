"""HealthPulse MCP server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from healthpulse.core.audit.logger import AuditLogger
from healthpulse.core.config.settings import get_settings
from healthpulse.core.storage.database import HealthDatabase
from healthpulse.core.storage.encryption import FieldEncryptor
from healthpulse.core.storage.repository import HealthRepository
from healthpulse.domains.health.domain_logic.scoring_service import ScoringService
from healthpulse.domains.health.tools.audit_tools import register_audit_tools
from healthpulse.domains.health.tools.data_management_tools import (
    register_data_management_tools,
)
from healthpulse.domains.health.tools.health_score_tools import register_health_score_tools
from healthpulse.domains.health.tools.provider_tools import register_provider_tools
from healthpulse.domains.health.tools.record_entry_tools import register_record_entry_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "HealthPulse"
SERVER_VERSION = "0.1.0"


def _build_repository(db_path: str, encryption_key: str) -> HealthRepository:
    """Open the record store. Without a key, use an ephemeral in-memory store."""
    if encryption_key:
        encryptor = FieldEncryptor(encryption_key)
        health_db = HealthDatabase(db_path)
    else:
        logger.warning(
            "No ENCRYPTION_KEY configured; using an in-memory record store with an "
            "ephemeral key. Records will be lost on restart."
        )
        encryptor = FieldEncryptor(FieldEncryptor.generate_key())
        health_db = HealthDatabase(":memory:")

    health_db.initialize()
    logger.info(
        "Record store initialized: %s (schema v%d)",
        db_path if encryption_key else ":memory:",
        health_db.get_schema_version(),
    )
    return HealthRepository(health_db, encryptor)


def create_app(
    *,
    repository_override: HealthRepository | None = None,
) -> FastMCP:
    """Create and configure the HealthPulse MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Opens the encrypted record store (or uses the override)
    3. Creates the audit logger and scoring service
    4. Registers all tools
    """
    settings = get_settings()

    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "HealthPulse health scoring server. Log vitals, symptoms and mood "
            "check-ins, then compute a 0-100 health score with trend and risk "
            "level, detect cross-domain correlations, and route anomaly alerts "
            "to assigned providers. Outputs are informational, not a diagnosis."
        ),
    )

    # --- Storage ---
    if repository_override is not None:
        repository = repository_override
    else:
        repository = _build_repository(settings.db_path, settings.encryption_key)

    audit_logger = AuditLogger(repository.database)
    scoring_service = ScoringService(repository, series_limit=settings.score_history_limit)

    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "schema_version": repository.database.get_schema_version(),
            "vitals_stored": repository.count_records("vital"),
            "symptoms_stored": repository.count_records("symptom"),
            "moods_stored": repository.count_records("mood"),
            "scores_stored": repository.count_records("health_score"),
        }

    register_record_entry_tools(server, repository, audit_logger)
    logger.info("Record entry tools registered")

    register_health_score_tools(server, repository, scoring_service, audit_logger)
    logger.info("Health score tools registered")

    register_provider_tools(
        server, repository, audit_logger, timeline_limit=settings.timeline_limit
    )
    logger.info("Provider tools registered")

    register_data_management_tools(server, repository, audit_logger)
    register_audit_tools(server, audit_logger)
    logger.info("Data management and audit tools registered")

    return server


# Module-level instance for FastMCP discovery ("server": "...app.py:mcp").
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
