"""Unit tests for logging set-up."""

import logging
import logging.handlers
from pathlib import Path
from typing import Iterator

import pytest

from modscan.tools.log_setup import (
    INSTALLED_MARK,
    LOG_FILENAME,
    LOG_LEVEL_ENV,
    configure_logging,
    resolve_level,
)


def _installed() -> list[logging.Handler]:
    return [h for h in logging.getLogger().handlers if getattr(h, INSTALLED_MARK, False)]


@pytest.fixture(autouse=True)
def restore_root_logging() -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    yield
    for handler in _installed():
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)


class TestResolveLevel:
    def test_verbose_is_debug(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(LOG_LEVEL_ENV, "ERROR")
        assert resolve_level(verbose=True) == logging.DEBUG

    def test_env_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(LOG_LEVEL_ENV, "warning")
        assert resolve_level() == logging.WARNING

    def test_unknown_env_level_falls_back_to_info(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(LOG_LEVEL_ENV, "chatty")
        assert resolve_level() == logging.INFO

    def test_default_info(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
        assert resolve_level() == logging.INFO


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_creates_log_file(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "nested" / "logs"
        log_path = configure_logging(log_dir, logging.INFO, retention_days=5)
        assert log_path == log_dir / LOG_FILENAME

        logging.getLogger("modscan.test").info("hello file")
        for handler in _installed():
            handler.flush()
        assert "hello file" in log_path.read_text(encoding="utf-8")

        rotating = [h for h in _installed() if isinstance(h, logging.handlers.TimedRotatingFileHandler)]
        assert len(rotating) == 1
        assert rotating[0].backupCount == 5

    def test_console_warning_only_unless_verbose(self) -> None:
        configure_logging(None, logging.DEBUG)
        (console,) = _installed()
        assert console.level == logging.WARNING

        configure_logging(None, logging.DEBUG, verbose=True)
        (console,) = _installed()
        assert console.level == logging.DEBUG

    def test_repeated_calls_do_not_stack_handlers(self, tmp_path: Path) -> None:
        configure_logging(tmp_path, logging.INFO)
        configure_logging(tmp_path, logging.INFO)
        assert len(_installed()) == 2

    def test_unusable_directory_disables_file_logging(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("not a directory", encoding="utf-8")
        assert configure_logging(blocker / "logs", logging.INFO) is None
        assert len(_installed()) == 1
