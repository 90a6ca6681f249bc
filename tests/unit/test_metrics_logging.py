from __future__ import annotations

import logging

import pytest

from dynamorepo import (
    CloudWatchMetricsPublisher,
    LoggingRepositoryLogger,
    MetricNameUpdatedItemsCount,
    NullMetricsPublisher,
    NullRepositoryLogger,
)
from dynamorepo.testkit import FakeCloudWatchClient


def test_logging_logger_renders_table_and_passes_extra_fields(caplog: pytest.LogCaptureFixture) -> None:
    logger = LoggingRepositoryLogger(logging.getLogger("dynamorepo.test"))

    with caplog.at_level(logging.INFO, logger="dynamorepo.test"):
        logger.info("Users", "saved", trace_context={"request_id": "r1"})
        logger.warning("Users", "slow")
        logger.error("Users", "boom")

    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [
        (logging.INFO, "[Users] saved"),
        (logging.WARNING, "[Users] slow"),
        (logging.ERROR, "[Users] boom"),
    ]
    assert caplog.records[0].table_name == "Users"
    assert caplog.records[0].trace_context == {"request_id": "r1"}
    assert not hasattr(caplog.records[1], "trace_context")


def test_logging_logger_respects_the_level(caplog: pytest.LogCaptureFixture) -> None:
    logger = LoggingRepositoryLogger(logging.getLogger("dynamorepo.quiet"))

    with caplog.at_level(logging.ERROR, logger="dynamorepo.quiet"):
        logger.info("Users", "ignored")
        logger.error("Users", "kept")

    assert [r.getMessage() for r in caplog.records] == ["[Users] kept"]


def test_package_logger_has_a_null_handler() -> None:
    handlers = logging.getLogger("dynamorepo").handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)


def test_null_logger_and_metrics_do_nothing() -> None:
    NullRepositoryLogger().info("Users", "x")
    NullRepositoryLogger().warning("Users", "x")
    NullRepositoryLogger().error("Users", "x", trace_context={})
    NullMetricsPublisher().publish("Users", MetricNameUpdatedItemsCount, 1)


def test_cloudwatch_publisher_sends_one_datum_with_table_dimension() -> None:
    client = FakeCloudWatchClient()
    publisher = CloudWatchMetricsPublisher(namespace="App", client=client, trace_dimensions=("tenant", "missing"))

    publisher.publish("Users", MetricNameUpdatedItemsCount, 2, trace_context={"tenant": "acme", "n": 1})

    assert client.calls == [
        (
            "put_metric_data",
            {
                "Namespace": "App",
                "MetricData": [
                    {
                        "MetricName": "ItemsUpdatedCount",
                        "Dimensions": [
                            {"Name": "TableName", "Value": "Users"},
                            {"Name": "tenant", "Value": "acme"},
                        ],
                        "Value": 2.0,
                        "Unit": "Count",
                    }
                ],
            },
        )
    ]


def test_cloudwatch_publisher_propagates_client_errors() -> None:
    publisher = CloudWatchMetricsPublisher(client=FakeCloudWatchClient(error=RuntimeError("denied")))
    with pytest.raises(RuntimeError, match="denied"):
        publisher.publish("Users", MetricNameUpdatedItemsCount, 1)


def test_cloudwatch_publisher_requires_a_namespace() -> None:
    with pytest.raises(ValueError, match="namespace is required"):
        CloudWatchMetricsPublisher(namespace="", client=FakeCloudWatchClient())
