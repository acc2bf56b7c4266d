import logging
import sys
import structlog
from .settings import settings

def setup_logging(json_logs: bool = True) -> None:
    """
    Configure structlog over stdlib logging. The API logs JSON; the CLI can
    ask for the console renderer instead.
    """
    timestamper = structlog.processors.TimeStamper(fmt="iso")
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    processors = [
        structlog.contextvars.merge_contextvars,
        timestamper,
        structlog.processors.add_log_level,
    ]
    if json_logs:
        processors += [
            structlog.processors.EventRenamer("message"),
            structlog.processors.dict_tracebacks,
        ]
    processors.append(renderer)

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr if not json_logs else sys.stdout,
    )
