import json
import logging

import pytest
from rich.logging import RichHandler

from chatweb.logging_config import (
    CustomJsonFormatter,
    SingleLineExtrasFilter,
    configure_logging,
    get_loggers,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(msg, args=(), **extra):
    record = logging.LogRecord("chatweb_app", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_extras_are_folded_into_one_line():
    record = make_record("Sending request to API", model="deepseek-chat", messages_count=2)

    assert SingleLineExtrasFilter().filter(record) is True
    assert record.getMessage() == (
        "Sending request to API | model=deepseek-chat messages_count=2"
    )
    assert not hasattr(record, "model")


def test_record_without_extras_is_untouched():
    record = make_record("Loaded %d session(s)", (3,))

    SingleLineExtrasFilter().filter(record)

    assert record.getMessage() == "Loaded 3 session(s)"


def test_json_formatter_emits_severity_and_logger():
    formatter = CustomJsonFormatter("%(timestamp)s %(levelname)s %(logger)s %(message)s")
    line = json.loads(formatter.format(make_record("hello")))

    assert line["message"] == "hello"
    assert line["severity"] == "INFO"
    assert line["logger"] == "chatweb_app"
    assert line["timestamp"]


def test_configure_logging_levels():
    app_logger, access_logger, history_logger = configure_logging("DEBUG")

    assert (app_logger, access_logger, history_logger) == get_loggers()
    assert app_logger.level == logging.DEBUG
    assert logging.getLogger("openai").level == logging.INFO
    assert any(isinstance(h, RichHandler) for h in logging.getLogger().handlers)


def test_configure_logging_trace_and_json():
    configure_logging("TRACE", "json")

    assert logging.getLogger("httpx").level == logging.DEBUG
    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0].formatter, CustomJsonFormatter)

    configure_logging("INFO")
    assert logging.getLogger("httpx").level == logging.WARNING
