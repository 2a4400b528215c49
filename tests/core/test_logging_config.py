"""setup_logging 测试"""

import logging

import pytest
import structlog
from tasktree.core.logging_config import setup_logging


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch: pytest.MonkeyPatch):
    """测试结束后恢复 root logger 与 structlog 默认配置"""
    monkeypatch.delenv("TASKTREE_LOG_FORMAT", raising=False)
    monkeypatch.delenv("TASKTREE_LOG_LEVEL", raising=False)
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:
    def test_dev_mode_uses_console_renderer(self):
        setup_logging()

        (handler,) = logging.getLogger().handlers
        assert isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)
        assert isinstance(handler.formatter.processors[-1], structlog.dev.ConsoleRenderer)
        assert logging.getLogger().level == logging.INFO

    def test_json_mode_and_level(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TASKTREE_LOG_FORMAT", "json")
        monkeypatch.setenv("TASKTREE_LOG_LEVEL", "debug")

        setup_logging()

        (handler,) = logging.getLogger().handlers
        assert isinstance(handler.formatter.processors[-1], structlog.processors.JSONRenderer)
        assert logging.getLogger().level == logging.DEBUG

    def test_noisy_libraries_quieted(self):
        setup_logging()

        assert logging.getLogger("aiosqlite").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
