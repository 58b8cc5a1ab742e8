from functools import lru_cache
from typing import Optional

import structlog

from shared.config.settings import get_settings

from .client import DriveClient

logger = structlog.get_logger(__name__)


@lru_cache
def get_drive_client() -> Optional[DriveClient]:
    """The shared Drive client, or None when partner credentials are missing or unusable.

    Orders are still accepted and stored while dispatch is disabled.
    """
    config = get_settings().drive
    if config is None:
        logger.warning("drive_client_disabled", reason="DOORDASH_* credentials not set")
        return None
    try:
        return DriveClient(config)
    except ValueError as e:
        logger.error("drive_client_disabled", reason="invalid signing secret", error=str(e))
        return None
