"""
Wiring helpers that build a ready-to-use client from configuration.
"""

import logging
import os
from typing import Optional, Dict

from authshared.interfaces import INavigator, ITransport
from authshared.logging_config import setup_logging, LogLevel, LogFormat
from authclient.api_client import SessionAPIClient
from authclient.auth.token_storage import SessionTokenStore
from authclient.config import ClientConfiguration

logger = logging.getLogger(__name__)


def setup_client_logging(config: ClientConfiguration, enable_console: bool = True) -> Dict[str, logging.Logger]:
    """Set up logging from the [logging] section of the configuration."""
    try:
        log_level = LogLevel(config.get_log_level())
    except ValueError:
        logger.warning(f"Unknown log level {config.get_log_level()!r}, using INFO")
        log_level = LogLevel.INFO

    try:
        log_format = LogFormat(config.get_log_format())
    except ValueError:
        log_format = LogFormat.STANDARD

    log_file = config.get_log_file()
    audit_file = None
    if log_file:
        audit_file = os.path.join(os.path.dirname(log_file), "client-audit.log")

    return setup_logging(
        log_level=log_level,
        log_format=log_format,
        log_file=log_file,
        enable_console=enable_console,
        enable_audit=True,
        audit_file=audit_file
    )


def build_session_client(
    config: Optional[ClientConfiguration] = None,
    navigator: Optional[INavigator] = None,
    token_store: Optional[SessionTokenStore] = None,
    transport: Optional[ITransport] = None
) -> SessionAPIClient:
    """
    Create a SessionAPIClient with its pipeline configured.

    Args:
        config: Client configuration (environment and defaults if omitted)
        navigator: Navigation capability supplied by the host application
        token_store: Shared token store (a fresh one if omitted)
        transport: Transport override, mainly for tests

    Returns:
        Configured client
    """
    config = config or ClientConfiguration()

    return SessionAPIClient(
        server_url=config.get_server_url(),
        token_store=token_store,
        navigator=navigator,
        transport=transport,
        settings=config.get_pipeline_settings(),
        timeout=config.get_server_timeout()
    )
