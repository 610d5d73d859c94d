# File: tests/test_logger.py
import logging
from logging.handlers import RotatingFileHandler

from linkcheck.logger import LOGGER_NAME, configure, init_logging


def test_configure_replaces_handlers_and_writes_file(tmp_path):
    log_file = tmp_path / "linkcheck.log"
    try:
        configure(level="DEBUG", log_file=log_file)
        lg = configure(level="DEBUG", log_file=log_file)

        assert lg is logging.getLogger(LOGGER_NAME)
        assert len(lg.handlers) == 2
        assert any(isinstance(h, RotatingFileHandler) for h in lg.handlers)
        assert not lg.propagate

        lg.debug("Done checking 1: http://example.com/")
        for handler in lg.handlers:
            handler.flush()
        assert "Done checking 1" in log_file.read_text(encoding="utf-8")
    finally:
        init_logging()


def test_init_logging_defaults_to_warning_on_stderr():
    lg = init_logging()
    assert lg.level == logging.WARNING
    assert [type(h) for h in lg.handlers] == [logging.StreamHandler]
