import logging
import sys

import structlog

from .config import Settings


def configure_logging(settings: Settings):
    """
    Configures logging for the application.

    This function sets up structlog to provide structured logging, with
    processors that add context and render logs in either a human-readable
    console format or a machine-readable JSON format.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.LOG_FORMAT == "json":
        renderers = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:  # console
        renderers = [structlog.dev.ConsoleRenderer(colors=True)]

    formatter = structlog.stdlib.ProcessorFormatter(
        # These run on records that did not originate from structlog
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta]
        + renderers,
    )

    # Configure the root logger
    root_logger = logging.getLogger()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.LOG_LEVEL)

    # Suppress noisy logs from third-party libraries
    for logger_name in ("urllib3", "httpx", "openai", "openai._base_client", "PIL"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    structlog.configure(
        # This must be the last processor in the chain
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
