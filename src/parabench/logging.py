"""Logging for parabench.

Two destinations:

- the console, at a level chosen by ``-v``/``-q`` (``setup_logging``);
- a per-run ``sweep.log`` inside the run directory, always at DEBUG and
  stamped with the run id (``run_log``), so a sweep that took hours can be
  inspected next to its samples afterwards.

Modules log through ``get_logger`` children of the ``parabench`` logger.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

LOGGER_NAME = "parabench"
RUN_LOG_FILE = "sweep.log"

_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_RUN_FORMAT = "%(asctime)s [%(run_id)s] %(levelname)-8s %(name)s: %(message)s"


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure console output (and optionally an extra DEBUG log file).

    ``verbose`` wins over ``quiet``.  Calling this again replaces the
    previous handlers, which the CLI tests rely on.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger


class _RunIdFilter(logging.Filter):
    """Stamp every record with the id of the run being measured."""

    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.run_id
        return True


@contextmanager
def run_log(run_dir: Path, run_id: str) -> Iterator[Path]:
    """Record everything logged during a run into ``run_dir/sweep.log``.

    The file is appended to, so re-running into the same directory keeps
    the earlier history.  Yields the log path.
    """
    logger = logging.getLogger(LOGGER_NAME)
    run_dir.mkdir(parents=True, exist_ok=True)
    path = run_dir / RUN_LOG_FILE

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.addFilter(_RunIdFilter(run_id))
    handler.setFormatter(logging.Formatter(_RUN_FORMAT))

    previous_level = logger.level
    if logger.getEffectiveLevel() > logging.DEBUG:
        logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    try:
        yield path
    finally:
        logger.removeHandler(handler)
        handler.close()
        logger.setLevel(previous_level)


def get_logger(name: str) -> logging.Logger:
    """Child logger ``parabench.<name>``."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
