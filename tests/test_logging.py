import io
import json
import logging
from pathlib import Path

from convert_service.logging import JsonLogFormatter, configure_logging


def test_formatter_emits_json_with_extras():
    record = logging.LogRecord("convert_service.test", logging.INFO, __file__, 1, "task %s done", ("t-1",), None)
    record.output = Path("/tmp/out.html")
    record.argv = ["--from", "markdown"]

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "convert_service.test"
    assert payload["message"] == "task t-1 done"
    assert payload["extra"]["output"] == "/tmp/out.html"
    assert payload["extra"]["argv"] == ["--from", "markdown"]


def test_configure_logging_is_idempotent():
    stream = io.StringIO()
    logger = configure_logging("debug", stream=stream)
    try:
        configure_logging("warning", stream=stream)

        managed = [h for h in logger.handlers if getattr(h, "_convert_service_handler", False)]
        assert len(managed) == 1
        assert logger.level == logging.WARNING

        logging.getLogger("convert_service.conversion.service").warning("task %s failed", "t-9")
        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["message"] == "task t-9 failed"
    finally:
        for handler in list(logger.handlers):
            if getattr(handler, "_convert_service_handler", False):
                logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
