import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Per-statement and per-request chatter; raised to WARNING unless debugging.
NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "asyncio")


def service_context(service_name: str, app_env: str | None = None) -> Processor:
    def _add_service_fields(
        logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict.setdefault("service", service_name)
        if app_env is not None:
            event_dict.setdefault("env", app_env)
        return event_dict

    return _add_service_fields


def configure_logging(
    log_level: str = "INFO",
    *,
    service_name: str = "matchmaking",
    app_env: str | None = None,
) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            service_context(service_name, app_env),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            timestamper,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
