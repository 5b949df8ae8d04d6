import logging

from promptaudit.infrastructure.monitoring.logger_setup import setup_logging


def test_setup_logging_accepts_level_names():
    setup_logging("debug")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1


def test_unknown_level_name_uses_default():
    setup_logging("chatty")

    assert logging.getLogger().level == logging.INFO


def test_setup_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "promptaudit.log"

    setup_logging(logging.INFO, log_file=str(log_file))
    logging.getLogger("promptaudit.test").info("hello from the test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "hello from the test" in log_file.read_text(encoding="utf-8")
