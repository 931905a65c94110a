"""Package logger for relstore.

Modules derive their logger with ``logger.getChild(__name__)``.
"""

import logging
from typing import Optional

logger = logging.getLogger("relstore")

_FORMAT = "%(levelname)s %(name)s: %(message)s"


def setup(level: int = logging.INFO, stream: Optional[object] = None) -> None:
    """Attach a stream handler to the package logger.

    Calling it again replaces the previous handler instead of stacking
    another one.

    Args:
        level: Logging level for the package logger.
        stream: Target stream (defaults to stderr).
    """
    for handler in list(logger.handlers):
        if getattr(handler, "_relstore", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._relstore = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
