# ledgersync/core/logging_config.py
import logging
import os

# Libraries that log every request, query or job run at INFO
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "sqlalchemy",
    "sqlalchemy.engine",
    "asyncpg",
    "aiosqlite",
    "apscheduler",
)


def configure_logging(log_level: str = None):
    """Root handler at LOG_LEVEL; chatty third-party loggers held at WARNING."""
    log_level = (log_level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("ledgersync").setLevel(level)

    logging.getLogger(__name__).info(f"Logging configured at level: {log_level}")
