"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HealthPulse server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: there is no auth layer in front of the tools.
    hp_host: str = "127.0.0.1"
    hp_port: int = 8001
    hp_log_level: str = "info"
    hp_allow_insecure_bind: bool = False
    # stdio for desktop MCP clients; streamable-http for network access
    hp_transport: Literal["stdio", "streamable-http"] = "streamable-http"

    # Storage (record store)
    db_path: str = "~/.healthpulse/health.db"

    # Encryption of free-text PHI; empty = ephemeral in-memory store
    encryption_key: str = ""

    # Views
    score_history_limit: int = 30
    timeline_limit: int = 50


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
