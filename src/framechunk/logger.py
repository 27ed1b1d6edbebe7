"""
structlog setup for framechunk.

Chunking runs bind the file being parsed and its framework into
``structlog.contextvars`` (see :func:`bind_file_context`), so warnings raised
deep inside the extractors and splitters carry them without threading the
values through every call. The console gets a readable renderer; log files
get one JSON object per line so a run can be filtered by file afterwards.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import structlog
from structlog.stdlib import BoundLogger, ProcessorFormatter
from structlog.typing import Processor

_PRE_CHAIN: tuple[Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.TimeStamper(fmt="iso"),
)


def _configure_structlog(min_level: int) -> None:
    structlog.configure(
        processors=_PRE_CHAIN + (ProcessorFormatter.wrap_for_formatter,),
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(level: int = logging.INFO, enable_console: bool = True) -> None:
    """
    Configure global logging.

    With ``enable_console`` off nothing reaches stderr; the CLI pairs that
    with :func:`redirect_logging_to_file` when ``--log`` is given.
    """
    _configure_structlog(level)
    logging.captureWarnings(True)

    handler: logging.Handler
    if enable_console:
        handler = logging.StreamHandler()
        handler.setFormatter(
            ProcessorFormatter(processor=structlog.dev.ConsoleRenderer(colors=False), foreign_pre_chain=_PRE_CHAIN)
        )
    else:
        handler = logging.NullHandler()
    logging.basicConfig(level=level, handlers=[handler], force=True)


def get_logger(name: Optional[str] = None) -> BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def bind_file_context(**context: Any) -> Iterator[None]:
    """Attach ``context`` (file, framework, ...) to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(**context):
        yield


def redirect_logging_to_file(path: Path, level: int = logging.INFO) -> None:
    """Write JSON lines to ``path`` instead of the console."""
    _configure_structlog(level)
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setFormatter(
        ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(sort_keys=True),
            foreign_pre_chain=_PRE_CHAIN,
        )
    )
    root.addHandler(handler)
    root.setLevel(level)
