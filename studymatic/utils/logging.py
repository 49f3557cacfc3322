"""
Package-level logging configuration.

* Rich console output (colourised, nicely formatted).
* Rotating log file under ``$STUDYMATIC_LOG_DIR`` or ``<output_dir>/.logs``.
* Optional plain-text mirror controlled via ``--save-logfile`` on the CLI.

The public helper :func:`setup_logging` wires everything and should be the
sole entry-point used by the CLI.
"""

from __future__ import annotations

import atexit
import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

import structlog
from rich.logging import RichHandler
from structlog.dev import ConsoleRenderer as StructlogConsoleRenderer
from structlog.stdlib import LoggerFactory

__all__ = ["setup_logging"]

LOG_FILENAME = "studymatic.log"


# --------------------------------------------------------------------------- #
# Internal helpers – file-based handlers                                      #
# --------------------------------------------------------------------------- #
def _rotating_file_handler(log_dir: Path | None, level: int) -> logging.Handler | None:
    """Return a rotating file handler, or *None* when no directory is known.

    ``$STUDYMATIC_LOG_DIR`` takes precedence over *log_dir*.
    """
    env_dir = os.environ.get("STUDYMATIC_LOG_DIR")
    if env_dir:
        logdir = Path(env_dir).expanduser()
    elif log_dir is not None:
        logdir = log_dir
    else:
        return None
    logdir.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=logdir / LOG_FILENAME,
        maxBytes=5_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def _plain_text_file_handler(path: Optional[Path], level: int) -> logging.Handler | None:
    """Return a plain-text file handler or *None* when *path* is *None*."""
    if path is None:
        return None

    path = path.expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8", mode="a")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    atexit.register(handler.close)
    return handler


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #
def setup_logging(
    *,
    verbose: bool = False,
    debug: bool = False,
    log_dir: Path | None = None,
    extra_text_log: Optional[Path] = None,
) -> None:
    """Configure rich console logging and optional file mirrors.

    Args:
        verbose: Use the human-readable structlog renderer.
        debug: Emit DEBUG-level messages with rich tracebacks.
        log_dir: Directory for the rotating log file.
        extra_text_log: Optional path for a plain-text mirror of console output.
    """
    console_lvl = logging.DEBUG if debug else logging.INFO
    file_lvl = logging.DEBUG if debug else logging.INFO

    handlers: list[logging.Handler] = [
        RichHandler(
            level=console_lvl,
            rich_tracebacks=debug,
            tracebacks_show_locals=False,
            markup=False,
            show_path=debug,
        )
    ]

    file_handler = _rotating_file_handler(log_dir, file_lvl)
    if file_handler:
        handlers.append(file_handler)

    txt_handler = _plain_text_file_handler(extra_text_log, console_lvl)
    if txt_handler:
        handlers.append(txt_handler)

    logging.basicConfig(
        level=logging.DEBUG,  # root logger stays at DEBUG
        handlers=handlers,
        format="%(message)s",  # Rich/structlog handle formatting
        force=True,
    )

    # urllib3 is chatty at DEBUG (one line per connection).
    logging.getLogger("urllib3").setLevel(logging.DEBUG if debug else logging.WARNING)

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            (
                StructlogConsoleRenderer(colors=False)
                if verbose or debug
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(console_lvl),
        logger_factory=LoggerFactory(),
    )
