import logging
from collections.abc import Generator
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
from pytest import MonkeyPatch

import acmectl.logutil as logmod


@pytest.fixture(autouse=True)
def reset_logger_handlers() -> Generator[None, None, None]:
    # Remove all handlers before each test
    logger = logmod.logger
    for h in logger.handlers[:]:
        logger.removeHandler(h)
    yield
    for h in logger.handlers[:]:
        logger.removeHandler(h)
        h.close()


class DummyConfig:
    def __init__(self, **values: object) -> None:
        self.values = values

    def get(self, key: str, default: object = None) -> object:
        return self.values.get(key, default)


def make_record(level: int) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="",
        lineno=0,
        msg=f"Test {logging.getLevelName(level)}",
        args=(),
        exc_info=None,
    )


def console_handlers() -> list[logging.Handler]:
    return [h for h in logmod.logger.handlers if type(h) is logging.StreamHandler]


def test_default_level_is_info() -> None:
    logmod.init_logging()
    assert logmod.logger.level == logging.INFO


def test_logger_respects_config_log_level() -> None:
    logmod.init_logging(DummyConfig(**{"system.log_level": "ERROR"}))  # type: ignore[arg-type]
    assert logmod.logger.level == logging.ERROR


def test_debug_flag() -> None:
    logmod.init_logging(debug=True)
    assert logmod.logger.level == logging.DEBUG


def test_logger_respects_env_var(monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setenv("ACMECTL_LOG_LEVEL", "WARNING")
    logmod.init_logging(DummyConfig(**{"system.log_level": "DEBUG"}), debug=True)  # type: ignore[arg-type]
    assert logmod.logger.level == logging.WARNING


def test_error_filtered_out_but_warning_allowed_in_streamhandler() -> None:
    """Errors reach the operator through the console manager instead."""
    logmod.init_logging()

    handlers = console_handlers()
    assert len(handlers) == 1
    stream_handler = handlers[0]

    assert stream_handler.filter(make_record(logging.DEBUG))
    assert stream_handler.filter(make_record(logging.INFO))
    assert stream_handler.filter(make_record(logging.WARNING))
    assert not stream_handler.filter(make_record(logging.ERROR))
    assert not stream_handler.filter(make_record(logging.CRITICAL))


def test_handler_not_duplicated() -> None:
    """Test that init_logging() doesn't create duplicate handlers."""
    logmod.init_logging()
    initial_handler_count = len(logmod.logger.handlers)

    logmod.init_logging()

    assert len(logmod.logger.handlers) == initial_handler_count
    assert len(console_handlers()) == 1


def test_file_handler_keeps_errors(tmp_path: Path) -> None:
    logmod.init_logging(log_dir=tmp_path / "logs")

    file_handlers = [
        h for h in logmod.logger.handlers if isinstance(h, RotatingFileHandler)
    ]
    assert len(file_handlers) == 1
    assert file_handlers[0].maxBytes == logmod.LOG_FILE_MAX_BYTES

    logging.getLogger("acmectl.orchestrator").error("Validation failed")
    file_handlers[0].flush()

    content = (tmp_path / "logs" / logmod.LOG_FILE_NAME).read_text()
    assert "|ERROR|acmectl.orchestrator|Validation failed" in content


def test_log_dir_from_config(tmp_path: Path) -> None:
    logmod.init_logging(DummyConfig(**{"system.log_dir": str(tmp_path)}))  # type: ignore[arg-type]
    assert (tmp_path / logmod.LOG_FILE_NAME).exists()
