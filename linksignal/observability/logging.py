"""
structlog setup shared by the CLI, the feed poller and the ingestor.

Production emits one JSON object per line; development renders colored
console output. Records from plain ``logging.getLogger`` loggers (the
repositories and the resolver) go through the same processor chain, so
both kinds of logger carry the bound source and batch fields.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from linksignal.config.settings import get_settings

# Libraries that log every HTTP hop at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "asyncpg")


def setup_logging() -> None:
    """
    Configure structlog and the root stdlib handler.

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Mention ingested", link_id=link_id, source_id=7)
    """
    settings = get_settings()

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.is_production:
        renderer: Processor = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=pre_chain + [
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.log_level))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Attach fields to every log line emitted from the current task."""
    structlog.contextvars.bind_contextvars(**kwargs)
