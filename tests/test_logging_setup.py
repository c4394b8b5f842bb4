import json
import logging

import pytest

from src.common.logging_setup import JSONFormatter, setup_logging


def test_json_formatter_emits_one_object():
    record = logging.LogRecord("src.parser.parser", logging.WARNING, __file__, 1, "skipped %s", ("a.pdf",), None)
    out = json.loads(JSONFormatter().format(record))
    assert out["level"] == "WARNING"
    assert out["logger"] == "src.parser.parser"
    assert out["message"] == "skipped a.pdf"


def test_unknown_level_is_rejected():
    with pytest.raises(ValueError):
        setup_logging("LOUD")
