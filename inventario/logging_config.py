from __future__ import annotations

import logging
import os
from typing import Optional

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configura el logger raíz una sola vez a partir de LOG_LEVEL."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).strip().upper() or "INFO"
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=_LOG_FORMAT)
    root.setLevel(getattr(logging, level_name, logging.INFO))
