from __future__ import annotations

import logging
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from typing import Iterator

from .config import AppConfig


def setup_logging(config: AppConfig, verbose: bool = False) -> None:
    """Configure rotating file logging with a quiet console handler.

    The selector takes over the terminal, so the full trace goes to
    ``config.log_file``; the console only shows warnings unless verbose. If the
    file cannot be opened, logging continues on stderr alone.
    """

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    log_file = config.log_file
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(str(log_file), maxBytes=2_000_000, backupCount=3)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logging.getLogger(__name__).debug("File logging enabled at %s", log_file)
    except OSError as exc:
        logging.getLogger(__name__).warning("File logging unavailable (%s); using console only", exc)


@contextmanager
def quiet_console_logging(level: int = logging.ERROR) -> Iterator[None]:
    """Raise terminal log handlers to ``level`` while a full-screen UI is up.

    File handlers keep their level so the debug trace stays complete.
    """
    root_logger = logging.getLogger()
    saved = []
    for handler in root_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            saved.append((handler, handler.level))
            handler.setLevel(max(handler.level, level))
    try:
        yield
    finally:
        for handler, previous in saved:
            handler.setLevel(previous)
