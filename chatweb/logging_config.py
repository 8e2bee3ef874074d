import logging
from datetime import datetime, timezone

from pythonjsonlogger.json import JsonFormatter
from rich.logging import RichHandler


def get_loggers():
    """Returns the standard loggers for the application."""
    return (
        logging.getLogger("chatweb_app"),
        logging.getLogger("http_access"),
        logging.getLogger("chat_history"),
    )


# Define standard keys to separate them from user-provided 'extra' fields
_STANDARD_LOG_RECORD_KEYS = set(
    logging.LogRecord(
        "dummy", logging.INFO, "dummy.py", 0, "dummy", (), None
    ).__dict__.keys()
)


class SingleLineExtrasFilter(logging.Filter):
    """
    A logging filter to format extra parameters into a single line.

    This filter iterates over the 'extra' parameters in a LogRecord,
    formats them as key=value pairs, and appends them to the log message.
    It then removes these keys from the record to prevent RichHandler
    from printing them on separate lines.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        extra = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _STANDARD_LOG_RECORD_KEYS
        }

        if extra:
            record.msg = f"{record.getMessage()} | " + " ".join(
                f"{k}={v}" for k, v in extra.items()
            )
            record.args = None
            for key in extra:
                del record.__dict__[key]

        return True


class CustomJsonFormatter(JsonFormatter):
    """JSON log lines with timestamp, severity and logger name fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).strftime(
                "%Y-%m-%dT%H:%M:%S.%fZ"
            )
        if log_record.get("levelname"):
            log_record["severity"] = log_record.pop("levelname").upper()
        else:
            log_record["severity"] = record.levelname
        if not log_record.get("logger"):
            log_record["logger"] = record.name


def _build_handler(log_format: str) -> logging.Handler:
    if log_format == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(
            CustomJsonFormatter("%(timestamp)s %(levelname)s %(logger)s %(message)s")
        )
        return handler

    rich_handler = RichHandler(
        rich_tracebacks=True,
        show_path=True,
        show_time=True,
        markup=False,
        show_level=True,
    )
    rich_handler.addFilter(SingleLineExtrasFilter())
    return rich_handler


def configure_logging(log_level: str = "INFO", log_format: str = "rich"):
    """Configure all loggers with the specified log level and consistent formatting."""
    log_level_upper = log_level.upper()

    # 1. Determine log levels for app and dependencies
    if log_level_upper == "TRACE":
        app_log_level = logging.DEBUG
        deps_log_level = logging.DEBUG
    elif log_level_upper == "DEBUG":
        app_log_level = logging.DEBUG
        deps_log_level = logging.INFO
    elif log_level_upper == "INFO":
        app_log_level = logging.INFO
        deps_log_level = logging.WARNING
    else:
        app_log_level = getattr(logging, log_level_upper, logging.INFO)
        deps_log_level = logging.WARNING

    # 2. Clear root handlers and reset propagation of our loggers
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    app_logger, access_logger, history_logger = get_loggers()
    for logger_instance in (app_logger, access_logger, history_logger):
        logger_instance.handlers.clear()
        logger_instance.propagate = True
        logger_instance.setLevel(app_log_level)

    # 3. The root logger carries the single handler and the most verbose level
    root_logger.setLevel(min(app_log_level, deps_log_level))
    root_logger.addHandler(_build_handler(log_format))

    # 4. Noisy third-party libraries
    noisy_deps = ["urllib3", "httpcore", "httpx", "aiohttp", "openai", "asyncio"]
    for dep_name in noisy_deps:
        logging.getLogger(dep_name).setLevel(deps_log_level)

    app_logger.info(
        f"Logging configured. App level: {logging.getLevelName(app_log_level)}, "
        f"Dependency level: {logging.getLevelName(deps_log_level)}"
    )
    if log_level_upper == "TRACE":
        app_logger.info("TRACE mode: All dependencies are at DEBUG level.")

    return app_logger, access_logger, history_logger
