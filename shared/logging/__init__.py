"""
Logging Module
==============

Structured logging using structlog with JSON output for production
and colored console output for development.

Usage:
    from shared.logging import get_logger, setup_logging

    # Setup at application start
    setup_logging()

    # Get logger for a module
    logger = get_logger(__name__)

    # Log with context
    logger.info("claim_submitted", claim_id="abc", user_id="123")
    logger.error("refund_failed", error=str(e), claim_id=claim_id)
"""

from shared.logging.logger import (
    bind_context,
    clear_context,
    get_logger,
    redact,
    setup_logging,
)


__all__ = [
    "get_logger",
    "setup_logging",
    "bind_context",
    "clear_context",
    "redact",
]
