"""Logging configuration for kubernix.

Modules log either through ``logging.getLogger(__name__)`` or through
structlog's ``get_logger``. Both end up in one handler whose formatter is a
structlog ProcessorFormatter, so every record is rendered the same way:
colored console lines on a terminal, JSON lines with ``--json-logs``.

Daemon output is not routed through here. Each daemon writes its own file
under the configured log directory.
"""

import logging
import sys
from pathlib import Path

import structlog

# Processors applied to structlog events and stdlib records alike
_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def _build_handler(log_file: str | Path | None) -> logging.Handler:
    if log_file is None:
        return logging.StreamHandler(sys.stderr)
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(str(log_file))


def _renderers(json_output: bool, colors: bool) -> list[structlog.types.Processor]:
    if json_output:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=colors)]


def configure_logging(
    level: str = "info",
    log_file: str | Path | None = None,
    json_output: bool = False,
) -> None:
    """Configure logging for the CLI.

    Args:
        level: debug, info, warning or error; unknown names mean info
        log_file: Write records here instead of stderr
        json_output: Render JSON lines instead of console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = _build_handler(log_file)
    colors = log_file is None and sys.stderr.isatty()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_SHARED_PROCESSORS,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_renderers(json_output, colors),
            ],
        )
    )
    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger (typically ``get_logger(__name__)``)."""
    return structlog.get_logger(name)
