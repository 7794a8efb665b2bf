# tests/test_logging_config.py
import logging

import pytest

from datasight.utils.logging_config import (
    PipelineLogger,
    get_logger,
    log_execution_time,
    setup_logging,
)


class TestLoggingConfig:

    def test_setup_logging_writes_file(self, tmp_path):
        logger = setup_logging(log_level="DEBUG", log_dir=str(tmp_path), log_to_console=False)

        logger.info("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()

        log_files = list(tmp_path.glob("datasight_*.log"))
        assert len(log_files) == 1
        assert "hello from the test" in log_files[0].read_text(encoding="utf-8")
        assert logging.getLogger("httpx").level == logging.WARNING

        logging.getLogger().handlers.clear()

    def test_get_logger_namespaces_names(self):
        assert get_logger("pipeline").name == "datasight.pipeline"
        assert get_logger("datasight.agents").name == "datasight.agents"

    def test_log_execution_time_reraises(self, caplog):
        @log_execution_time
        def explode():
            raise ValueError("bad input")

        with caplog.at_level(logging.ERROR):
            with pytest.raises(ValueError):
                explode()

        assert "Failed explode" in caplog.text

    def test_pipeline_logger_reports_metrics(self, caplog):
        with caplog.at_level(logging.INFO):
            with PipelineLogger("profiling") as step:
                step.log_metric("rows", 20)

        assert "[profiling] Metric - rows: 20" in caplog.text
        assert "=== Completed profiling" in caplog.text
