"""Tests for bugsync.log."""

import logging

import pytest
from rich.logging import RichHandler

from bugsync import log


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _rich_handlers() -> list[logging.Handler]:
    return [h for h in logging.getLogger().handlers if isinstance(h, RichHandler)]


class TestConfigure:
    def test_explicit_level(self) -> None:
        log.configure("debug")
        assert logging.getLogger().level == logging.DEBUG
        assert len(_rich_handlers()) == 1

    def test_env_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUGSYNC_LOG_LEVEL", "warning")
        log.configure()
        assert logging.getLogger().level == logging.WARNING

    def test_default_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("BUGSYNC_LOG_LEVEL", raising=False)
        log.configure()
        assert logging.getLogger().level == logging.INFO

    def test_unknown_level_falls_back(self) -> None:
        log.configure("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_idempotent(self) -> None:
        log.configure()
        log.configure()
        assert len(_rich_handlers()) == 1
