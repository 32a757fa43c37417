"""Logging for the proxy: structlog events rendered through stdlib handlers.

Refresh, seed and route code log snake_case events with key/value context
(`bulk_refresh_completed refreshed=8`). uvicorn and httpx write through
the same root handler, so one process emits one format. Per-request
httpx lines are turned down to WARNING; upstream failures are logged by
the client itself.
"""

import logging

import structlog

_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

_RENDERERS = {
    "json": structlog.processors.JSONRenderer,
    "console": structlog.dev.ConsoleRenderer,
}


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Install the root handler and configure structlog.

    Args:
        log_level: Root level name (LOG_LEVEL). Unknown names fall back to INFO.
        log_format: "json" for log shippers, anything else renders for a terminal.
    """
    renderer_cls = _RENDERERS.get(log_format.strip().lower(), structlog.dev.ConsoleRenderer)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer_cls(),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
