"""
Unit tests for structured logging helpers.
"""

import logging

from mdb_docs.observability.logging import (
    correlation_scope,
    get_correlation_id,
    get_logger,
    log_operation,
)


class TestCorrelationScope:
    def test_generated_when_missing(self):
        with correlation_scope() as correlation_id:
            assert get_correlation_id() == correlation_id
            assert len(correlation_id) == 32
        assert get_correlation_id() is None

    def test_nested_scopes_restore(self):
        with correlation_scope("outer"):
            with correlation_scope("inner"):
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"


class TestDocsLogger:
    def test_bound_fields_and_correlation_id(self, caplog):
        logger = get_logger("mdb_docs.test", collection="logs")
        with caplog.at_level(logging.INFO, logger="mdb_docs.test"):
            with correlation_scope("req-1"):
                logger.info("hello", extra={"doc_id": "abc"})
            logger.info("bye")

        first, second = caplog.records[-2:]
        assert first.collection == "logs"
        assert first.doc_id == "abc"
        assert first.correlation_id == "req-1"
        assert second.collection == "logs"
        assert not hasattr(second, "correlation_id")

    def test_bind_extends_fields(self, caplog):
        logger = get_logger("mdb_docs.test", collection="logs").bind(db_name="wxmp")
        with caplog.at_level(logging.INFO, logger="mdb_docs.test"):
            logger.info("hello")

        record = caplog.records[-1]
        assert (record.collection, record.db_name) == ("logs", "wxmp")

    def test_log_operation(self, caplog):
        logger = get_logger("mdb_docs.test.ops", collection="logs")
        with caplog.at_level(logging.DEBUG, logger="mdb_docs.test.ops"):
            log_operation(logger, "doc.save", success=False, duration_ms=1.5, doc_id="x")

        record = caplog.records[-1]
        assert record.getMessage() == "doc.save failed in 1.50ms"
        assert record.operation == "doc.save"
        assert record.success is False
        assert record.duration_ms == 1.5
        assert record.collection == "logs"
        assert record.doc_id == "x"
