"""Unit tests for utils/logging.py."""

import logging
import pytest
from logging.handlers import RotatingFileHandler

from ota_agent.utils.logging import setup_logger


@pytest.mark.unit
class TestSetupLogger:
    """Test setup_logger function."""

    @pytest.fixture(autouse=True)
    def cleanup_loggers(self):
        """每个测试后清理创建的 logger，避免 handler 泄漏。"""
        created = []
        yield created
        for name in created:
            lg = logging.getLogger(name)
            for h in list(lg.handlers):
                h.close()
                lg.removeHandler(h)

    def _unique_name(self, suffix: str) -> str:
        return f"test_ota_agent_logger_{suffix}"

    def test_creates_log_directory(self, tmp_path, cleanup_loggers):
        """不存在的日志目录应被自动创建。"""
        log_dir = tmp_path / "new_logs" / "subdir"
        name = self._unique_name("dir")
        cleanup_loggers.append(name)

        setup_logger(name, str(log_dir / "test.log"))

        assert log_dir.exists()

    def test_logger_level_info_by_default(self, tmp_path, cleanup_loggers):
        name = self._unique_name("level_default")
        cleanup_loggers.append(name)

        logger = setup_logger(name, str(tmp_path / "test.log"))

        assert logger.name == name
        assert logger.level == logging.INFO

    def test_logger_level_from_name(self, tmp_path, cleanup_loggers):
        """level 可以用字符串名称传入（来自配置文件）。"""
        name = self._unique_name("level_name")
        cleanup_loggers.append(name)

        logger = setup_logger(name, str(tmp_path / "test.log"), level="debug")

        assert logger.level == logging.DEBUG

    def test_unknown_level_name(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logger(self._unique_name("bad_level"), str(tmp_path / "test.log"), level="LOUD")

    def test_adds_file_and_console_handlers(self, tmp_path, cleanup_loggers):
        name = self._unique_name("handlers")
        cleanup_loggers.append(name)

        logger = setup_logger(name, str(tmp_path / "test.log"), max_bytes=5 * 1024 * 1024, backup_count=5)

        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        stream_handlers = [
            h for h in logger.handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert len(stream_handlers) == 1
        assert file_handlers[0].maxBytes == 5 * 1024 * 1024
        assert file_handlers[0].backupCount == 5

    def test_console_disabled(self, tmp_path, cleanup_loggers):
        name = self._unique_name("no_console")
        cleanup_loggers.append(name)

        logger = setup_logger(name, str(tmp_path / "test.log"), console=False)

        assert all(isinstance(h, RotatingFileHandler) for h in logger.handlers)

    def test_console_only(self, cleanup_loggers):
        name = self._unique_name("console_only")
        cleanup_loggers.append(name)

        logger = setup_logger(name, None)

        assert not any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
        assert len(logger.handlers) == 1

    def test_no_duplicate_handlers_on_second_call(self, tmp_path, cleanup_loggers):
        """重复调用不应添加重复 handler。"""
        name = self._unique_name("no_dup")
        cleanup_loggers.append(name)

        logger1 = setup_logger(name, str(tmp_path / "test.log"))
        handler_count = len(logger1.handlers)
        logger2 = setup_logger(name, str(tmp_path / "test.log"))

        assert logger1 is logger2
        assert len(logger2.handlers) == handler_count

    def test_child_logger_writes_to_file(self, tmp_path, cleanup_loggers):
        """组件子 logger 的消息应写入同一个文件。"""
        name = self._unique_name("write")
        cleanup_loggers.append(name)

        logger = setup_logger(name, str(tmp_path / "test.log"))
        logging.getLogger(f"{name}.staging").info("staged package")

        for h in logger.handlers:
            h.flush()

        content = (tmp_path / "test.log").read_text()
        assert "staged package" in content
        assert f"{name}.staging" in content
