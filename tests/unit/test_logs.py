# tests/unit/test_logs.py
import inspect
import logging

import pytest

from sdk.logs import configure_logging, parse_level


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    before, level = set(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_parse_level_is_case_insensitive():
    assert parse_level("DEBUG") == logging.DEBUG
    assert parse_level(" warning ") == logging.WARNING


def test_unknown_level_raises_value_error():
    with pytest.raises(ValueError, match="unknown log level"):
        parse_level("verbose")


def test_configure_logging_takes_only_level_and_file():
    assert list(inspect.signature(configure_logging).parameters) == ["level_name", "log_file"]


def test_log_file_receives_records_and_reconfigure_replaces_handlers(tmp_path):
    log_file = tmp_path / "logs" / "recorder.log"
    configure_logging("info", log_file)
    configure_logging("info", log_file)
    root = logging.getLogger()
    assert len(root.handlers) == 2

    logging.getLogger("bag_recorder").info("Storage Path: /data/Bag_x")
    for handler in root.handlers:
        handler.flush()
    assert "Storage Path: /data/Bag_x" in log_file.read_text(encoding="utf-8")
