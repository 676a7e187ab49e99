"""Console logging setup shared by workers and scripts."""

import logging
from typing import Optional

from wifimap.core.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
HANDLER_NAME = "wifimap-console"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach a console handler to the root logger.

    Calling this more than once does not stack handlers.

    Args:
        level: Level name, defaults to settings.LOG_LEVEL

    Returns:
        The root logger
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))

    if not any(h.get_name() == HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.set_name(HANDLER_NAME)
        root.addHandler(handler)

    return root
