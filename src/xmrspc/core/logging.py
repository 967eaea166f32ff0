"""Structured logging for the xmrspc engine.

Engine modules log through ``structlog.get_logger(__name__)``. This module
binds those loggers to the stdlib ``xmrspc`` logger and gives it a single
stderr handler, leaving the host application's root logger untouched.

Two output formats, controlled by XMRSPC_LOG_FORMAT:
  - "console" (default): colored, human-readable output
  - "json": one JSON object per line
"""

import logging
import sys

import structlog

LOGGER_NAME = "xmrspc"


class _EngineHandler(logging.StreamHandler):
    """Stderr handler owned by configure_logging()."""


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(log_format: str = "console", log_level: str = "INFO") -> logging.Logger:
    """Configure structlog and the ``xmrspc`` stdlib logger.

    Calling it again replaces the handler installed by the previous call.
    Handlers on other loggers are never touched.

    Args:
        log_format: "console" or "json"
        log_level: Minimum level for engine records (unknown names mean INFO)

    Returns:
        The configured ``xmrspc`` logger
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = _EngineHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
        )
    )

    engine_logger = logging.getLogger(LOGGER_NAME)
    for existing in [h for h in engine_logger.handlers if isinstance(h, _EngineHandler)]:
        engine_logger.removeHandler(existing)
    engine_logger.addHandler(handler)
    engine_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    engine_logger.propagate = False
    return engine_logger


def configure_from_settings() -> logging.Logger:
    """Configure logging from the XMRSPC_LOG_* settings."""
    from xmrspc.core.config import get_settings

    settings = get_settings()
    return configure_logging(log_format=settings.log_format, log_level=settings.log_level)
