import logging
import sys
from typing import Optional

from app.config.settings import get_settings

settings = get_settings()

# Installed once per process; app reloads and test imports reuse it
_console_handler: Optional[logging.Handler] = None


def setup_logging() -> logging.Logger:
    """Send AutoPlanner and library logs to stdout, DEBUG when settings.debug is on."""
    global _console_handler
    log_level = logging.DEBUG if settings.debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stdout)
        _console_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        root_logger.addHandler(_console_handler)
    _console_handler.setLevel(log_level)

    # Per-request access lines stay out of the app log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root_logger
