"""
Tests for the shared logger.
"""
import pytest

from antroute.antroute_logging import AntRouteLogger, get_logger


class TestAntRouteLogger:
    def test_singleton(self):
        assert get_logger() is get_logger()

    def test_single_handler(self):
        AntRouteLogger()
        AntRouteLogger()
        assert len(get_logger().logger.handlers) == 1

    def test_operation_reports_counters(self, caplog):
        logger = get_logger()
        with caplog.at_level("INFO", logger="antroute"):
            with logger.operation("Counting") as counters:
                counters["rows"] = 5
        assert "Starting Counting" in caplog.text
        assert "rows=5" in caplog.text

    def test_operation_reraises(self, caplog):
        logger = get_logger()
        with caplog.at_level("INFO", logger="antroute"):
            with pytest.raises(RuntimeError):
                with logger.operation("Failing"):
                    raise RuntimeError("boom")
        assert "Failing failed: RuntimeError: boom" in caplog.text
        assert "Completed Failing" not in caplog.text

    def test_set_level(self):
        logger = get_logger()
        logger.set_level("DEBUG")
        assert logger.logger.level == 10
        logger.set_level("INFO")
