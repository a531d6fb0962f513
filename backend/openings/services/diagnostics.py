"""
Append-only diagnostic log for opening runs.

Users of the opening command inspect a plain-text log after a run to see
which panels were skipped and why.  Each line has the form
``HH:MM:SS - message``.  The sink is an ordinary ``logging.Logger`` with a
``FileHandler`` attached, wrapped in ``DiagnosticLog`` so that writing a
diagnostic can never raise into the geometry pipeline.

The pipeline receives a ``DiagnosticLog`` explicitly; nothing in the core
writes to a hard-coded path.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DIAGNOSTIC_LOGGER_NAME = "openings.diagnostics"
DIAGNOSTIC_FORMAT = "%(asctime)s - %(message)s"
DIAGNOSTIC_DATEFMT = "%H:%M:%S"


class DiagnosticLog:
    """Best-effort message sink used throughout a pipeline run."""

    def __init__(self, sink: Optional[logging.Logger] = None) -> None:
        self._sink = sink if sink is not None else logging.getLogger(DIAGNOSTIC_LOGGER_NAME)

    @property
    def logger(self) -> logging.Logger:
        return self._sink

    def write(self, message: str, *args: object) -> None:
        """Record ``message`` (``%``-formatted with ``args``); never raises."""
        try:
            self._sink.info(message, *args)
        except Exception:  # noqa: BLE001 - diagnostics must not break a run
            pass


def configure_file_sink(
    path: str | Path,
    name: str = DIAGNOSTIC_LOGGER_NAME,
) -> DiagnosticLog:
    """Attach a timestamped append-mode file handler and return the sink.

    Calling this repeatedly with the same path does not duplicate
    handlers.  When the file cannot be opened a warning is logged and
    the returned sink still works, writing only to the logger's other
    handlers.
    """
    sink = logging.getLogger(name)
    sink.setLevel(logging.INFO)
    target = str(Path(path).resolve())
    for handler in sink.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return DiagnosticLog(sink)
    try:
        handler = logging.FileHandler(target, mode="a", encoding="utf-8", delay=True)
    except OSError as exc:
        logger.warning("Could not open diagnostic log %s: %r", target, exc)
        return DiagnosticLog(sink)
    handler.setFormatter(logging.Formatter(DIAGNOSTIC_FORMAT, datefmt=DIAGNOSTIC_DATEFMT))
    sink.addHandler(handler)
    return DiagnosticLog(sink)
