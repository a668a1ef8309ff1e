"""HealthPulse server entry point: ``python -m healthpulse.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from healthpulse.core.config.settings import Settings, get_settings
from healthpulse.core.server.app import create_app

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def check_bind(settings: Settings) -> None:
    """Refuse a network bind beyond loopback unless explicitly allowed.

    Raises:
        RuntimeError: If the HTTP transport would listen on a non-loopback
            host and ``HP_ALLOW_INSECURE_BIND`` is not set.
    """
    if settings.hp_transport == "stdio":
        return
    if not settings.hp_allow_insecure_bind and not _is_loopback_host(settings.hp_host):
        raise RuntimeError(
            f"Refusing to bind HealthPulse to {settings.hp_host!r}: the tools serve "
            "patient records and there is no auth layer. "
            "Set HP_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )


def run() -> None:
    """Start the HealthPulse MCP server on the configured transport."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.hp_log_level.upper(), logging.INFO))
    check_bind(settings)

    mcp = create_app()
    if settings.hp_transport == "stdio":
        logger.info("Starting HealthPulse server on stdio")
        mcp.run(transport="stdio")
        return

    logger.info("Starting HealthPulse server on %s:%d", settings.hp_host, settings.hp_port)
    mcp.run(
        transport="streamable-http",
        host=settings.hp_host,
        port=settings.hp_port,
    )


if __name__ == "__main__":
    run()
