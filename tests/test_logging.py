import json

from ops_archiver.config.config import LoggingConfig
from ops_archiver.monitoring.metrics import metrics
from ops_archiver.utils.logging import setup_logging
from ops_archiver.utils.tracing import start_trace


def test_setup_logging_writes_text_and_json_logs(tmp_path, fresh_logger):
    logger = setup_logging(LoggingConfig(logs_dir=str(tmp_path)))
    start_trace("trace-123")

    logger.info("archived partition", extra={"partition": "bork-loc-a-2024-01"})
    for handler in logger.handlers:
        handler.handler.flush()

    assert "trace-123" in (tmp_path / "audit.log").read_text()
    entry = json.loads((tmp_path / "analytics.log").read_text().splitlines()[-1])
    assert entry["message"] == "archived partition"
    assert entry["request_id"] == "trace-123"
    assert entry["partition"] == "bork-loc-a-2024-01"


def test_setup_logging_is_idempotent(tmp_path, fresh_logger):
    first = setup_logging(LoggingConfig(logs_dir=str(tmp_path)))
    count = len(first.handlers)
    second = setup_logging(LoggingConfig(logs_dir=str(tmp_path)))
    assert second is first
    assert len(second.handlers) == count


def test_logging_overhead_metric(tmp_path, fresh_logger):
    logger = setup_logging(LoggingConfig(logs_dir=str(tmp_path)))
    before = metrics.get("logging_overhead_ms")
    logger.info("metric")
    assert metrics.get("logging_overhead_ms") > before
