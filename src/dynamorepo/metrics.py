from __future__ import annotations

from typing import Any, Protocol

from .log import TraceContext

MetricNameSavedItemsCount = "ItemsSavedCount"
MetricNameUpdatedItemsCount = "ItemsUpdatedCount"
MetricNameDeleteItemsCount = "ItemsDeleteCount"


class MetricsPublisher(Protocol):
    def publish(
        self,
        table: str,
        metric_name: str,
        value: float,
        *,
        trace_context: TraceContext | None = None,
    ) -> None: ...


class NullMetricsPublisher:
    def publish(
        self,
        table: str,
        metric_name: str,
        value: float,
        *,
        trace_context: TraceContext | None = None,
    ) -> None:
        return None


class CloudWatchMetricsPublisher:
    def __init__(
        self,
        *,
        namespace: str = "DynamoRepo",
        client: Any | None = None,
        trace_dimensions: tuple[str, ...] = (),
    ) -> None:
        if not namespace:
            raise ValueError("namespace is required")
        if client is None:
            import boto3

            client = boto3.client("cloudwatch")
        self._namespace = namespace
        self._client: Any = client
        self._trace_dimensions = trace_dimensions

    def publish(
        self,
        table: str,
        metric_name: str,
        value: float,
        *,
        trace_context: TraceContext | None = None,
    ) -> None:
        dimensions: list[dict[str, str]] = [{"Name": "TableName", "Value": table}]
        for name in self._trace_dimensions:
            dim_value = (trace_context or {}).get(name)
            if isinstance(dim_value, str) and dim_value:
                dimensions.append({"Name": name, "Value": dim_value})

        self._client.put_metric_data(
            Namespace=self._namespace,
            MetricData=[
                {
                    "MetricName": metric_name,
                    "Dimensions": dimensions,
                    "Value": float(value),
                    "Unit": "Count",
                }
            ],
        )
