"""
Process-start initialization.

Call initialize() once before any record is loaded. It is idempotent.
"""

from typing import Optional

import structlog

from .config import Settings, get_settings
from .logging_config import configure_logging
from .persistence import register_type_aliases

logger = structlog.get_logger()


def initialize(settings: Optional[Settings] = None) -> None:
    """Configure logging and register the persisted type aliases."""
    settings = settings or get_settings()
    configure_logging(settings)
    register_type_aliases()
    logger.debug("initialized", app=settings.app_name, state_root=settings.state_root)
