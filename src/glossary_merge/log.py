"""Centralized structured logging configuration."""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog

# Third-party loggers that drown merge logs at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def resolve_level(verbosity: int = 0, level_name: Optional[str] = None) -> int:
    """Map CLI verbosity (or an explicit level name) to a stdlib level.

    An explicit ``level_name`` such as ``"DEBUG"`` wins over verbosity,
    unknown names fall back to INFO.
    """
    if level_name:
        level = logging.getLevelName(level_name.upper())
        return level if isinstance(level, int) else logging.INFO
    level_map = {-1: logging.WARNING, 0: logging.INFO, 1: logging.DEBUG}
    return level_map.get(verbosity, logging.INFO)


def configure_logging(
    verbosity: int = 0,
    log_file: Optional[Path] = None,
    level_name: Optional[str] = None,
) -> None:
    """Configure structlog + stdlib logging.

    Args:
        verbosity: -1=quiet (WARNING), 0=normal (INFO), 1=verbose (DEBUG)
        log_file: Optional path to write JSON log lines
        level_name: Optional level name overriding verbosity (e.g. from LOG_LEVEL)
    """
    level = resolve_level(verbosity, level_name)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stderr only: stdout carries the merged glossary when --output is omitted
    console_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
    )
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(console_formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console_handler)
    root.setLevel(level)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        json_formatter = structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(json_formatter)
        file_handler.setLevel(logging.DEBUG)
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def merge_log_context(session_id: str) -> Iterator[None]:
    """Bind ``merge_session`` to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(merge_session=session_id):
        yield
