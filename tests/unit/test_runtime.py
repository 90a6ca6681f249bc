from __future__ import annotations

from typing import Any

import pytest

from dynamorepo import ValidationError
from dynamorepo.mocks import FakeDynamoDBClient
from dynamorepo.runtime import (
    RuntimeSettings,
    _reset_lambda_clients_for_tests,
    create_boto3_config,
    create_dynamodb_client,
    get_lambda_dynamodb_client,
    instrument_boto3_client,
    is_lambda_environment,
)


class FakeSession:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def client(self, service_name: str, **kwargs: Any) -> object:
        self.calls.append((service_name, kwargs))
        return object()


def test_is_lambda_environment() -> None:
    assert is_lambda_environment({}) is False
    assert is_lambda_environment({"AWS_LAMBDA_FUNCTION_NAME": "fn"}) is True
    assert is_lambda_environment({"AWS_EXECUTION_ENV": "AWS_Lambda_python3.12"}) is True


def test_runtime_settings_from_env() -> None:
    settings = RuntimeSettings.from_env(
        {
            "AWS_REGION": "us-west-2",
            "DYNAMOREPO_ENDPOINT_URL": "http://localhost:8000",
            "DYNAMOREPO_CONNECT_TIMEOUT": "2.5",
            "DYNAMOREPO_READ_TIMEOUT": "5",
            "DYNAMOREPO_MAX_ATTEMPTS": "7",
            "DYNAMOREPO_RETRY_MODE": "standard",
        }
    )

    assert settings == RuntimeSettings(
        region="us-west-2",
        endpoint_url="http://localhost:8000",
        connect_timeout=2.5,
        read_timeout=5.0,
        max_attempts=7,
        retry_mode="standard",
    )


def test_runtime_settings_defaults_and_region_override() -> None:
    assert RuntimeSettings.from_env({}) == RuntimeSettings()
    settings = RuntimeSettings.from_env({"AWS_REGION": "us-west-2", "DYNAMOREPO_REGION": "eu-west-1"})
    assert settings.region == "eu-west-1"


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("DYNAMOREPO_CONNECT_TIMEOUT", "soon", "must be a number"),
        ("DYNAMOREPO_READ_TIMEOUT", "0", "must be > 0"),
        ("DYNAMOREPO_MAX_ATTEMPTS", "1.5", "must be an integer"),
        ("DYNAMOREPO_MAX_ATTEMPTS", "0", "must be >= 1"),
    ],
)
def test_runtime_settings_rejects_bad_values(name: str, value: str, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        RuntimeSettings.from_env({name: value})


def test_create_boto3_config() -> None:
    cfg = create_boto3_config(RuntimeSettings(connect_timeout=2.0, read_timeout=4.0, max_attempts=3))
    assert cfg.connect_timeout == 2.0
    assert cfg.read_timeout == 4.0
    assert cfg.retries["max_attempts"] == 3
    assert cfg.retries["mode"] == "adaptive"


def test_create_dynamodb_client_passes_region_endpoint_and_config() -> None:
    sess = FakeSession()
    create_dynamodb_client(RuntimeSettings(region="us-east-1", endpoint_url="http://localhost:8000"), session=sess)

    ((service, kwargs),) = sess.calls
    assert service == "dynamodb"
    assert kwargs["region_name"] == "us-east-1"
    assert kwargs["endpoint_url"] == "http://localhost:8000"
    assert kwargs["config"].read_timeout == 3.0


def test_create_dynamodb_client_can_instrument_calls() -> None:
    class FakeClientSession:
        def client(self, service_name: str, **kwargs: Any) -> FakeDynamoDBClient:
            _ = service_name, kwargs
            client = FakeDynamoDBClient()
            client.expect("get_item", response={})
            return client

    metrics: list[Any] = []
    client = create_dynamodb_client(
        RuntimeSettings(region="us-east-1"),
        session=FakeClientSession(),
        metrics=metrics.append,
    )
    client.get_item(TableName="t", Key={})

    assert len(metrics) == 1
    assert metrics[0].service == "dynamodb"
    assert metrics[0].operation == "get_item"
    assert metrics[0].ok is True


def test_instrument_boto3_client_records_failures() -> None:
    metrics: list[Any] = []

    client = FakeDynamoDBClient()
    client.expect("get_item", error=RuntimeError("boom"))
    wrapped = instrument_boto3_client(client, service="dynamodb", on_call=metrics.append)

    with pytest.raises(RuntimeError, match="boom"):
        wrapped.get_item(TableName="t", Key={})
    assert metrics[0].ok is False
    assert wrapped.calls == client.calls


def test_get_lambda_dynamodb_client_caches_per_region_and_endpoint() -> None:
    _reset_lambda_clients_for_tests()
    sess = FakeSession()

    c1 = get_lambda_dynamodb_client(RuntimeSettings(region="us-east-1"), session=sess)
    c2 = get_lambda_dynamodb_client(RuntimeSettings(region="us-east-1"), session=sess)
    c3 = get_lambda_dynamodb_client(RuntimeSettings(region="eu-west-1"), session=sess)

    assert c1 is c2
    assert c1 is not c3
    assert len(sess.calls) == 2
    _reset_lambda_clients_for_tests()
