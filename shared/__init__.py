"""
Canvango Shared Library
=======================

Common utilities and configuration shared by the Canvango storefront services.

Modules:
    - config: Configuration management with Pydantic Settings
    - logging: Structured logging with structlog
    - auth: Bearer token validation and role checks
    - database: PostgreSQL, Redis and Kafka clients
    - models: Shared Pydantic models

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "Canvango Team"

from shared.config import settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
