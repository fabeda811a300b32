"""
Logging helpers for the agent panel.

Thin wrapper around the standard logging module so every component logs
request/poll activity in the same line-by-line shape.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class StructuredLogger:
    """
    Convenience wrapper enabling structured line-by-line logging.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info_lines("Fetched plan", ["items=3", "filter=all"])
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    def debug(self, message: str) -> None:
        self._logger.debug(message)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)

    def info_lines(
        self,
        header: Union[str, None],
        lines: Iterable[str],
        *,
        prefix: str = "  ",
    ) -> None:
        """
        Emit a header (optional) followed by each line as an INFO log.
        """
        if header:
            self.info(header)
        for line in lines:
            self.info(f"{prefix}{line}")


def configure_logging(verbose: bool = False, *, fmt: Optional[str] = None) -> None:
    """Install a root handler; DEBUG when verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=fmt or DEFAULT_LOG_FORMAT,
    )


__all__ = ["StructuredLogger", "configure_logging"]
