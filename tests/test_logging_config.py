import json
import logging

from greenlight.config import default_config
from greenlight.server import JsonFormatter


def test_logging_level_config():
    level = getattr(logging, default_config.log_level.upper(), logging.INFO)
    assert level in (
        logging.DEBUG,
        logging.INFO,
        logging.WARNING,
        logging.ERROR,
        logging.CRITICAL,
    )


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("greenlight.background", logging.ERROR, __file__, 1, "task=%s failed", ("mail",), None)
    record.task = "mail"
    record.error = "boom"
    payload = json.loads(JsonFormatter().format(record))
    assert payload == {
        "level": "ERROR",
        "message": "task=mail failed",
        "name": "greenlight.background",
        "task": "mail",
        "error": "boom",
    }
