from __future__ import annotations

import logging
from dataclasses import dataclass

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from dynamorepo import (
    DataclassCodec,
    InvalidHashKeyValueError,
    InvalidSliceTypeError,
    Key,
    MetricNameDeleteItemsCount,
    MetricNameSavedItemsCount,
    MetricNameUpdatedItemsCount,
    Model,
    Repository,
    Set,
    repo_field,
)
from dynamorepo.testkit import (
    ANY,
    FakeDynamoDBClient,
    RecordingLogger,
    RecordingMetrics,
    client_error,
    item_response,
    no_sleep,
)


@dataclass(kw_only=True)
class User(Model):
    uuid: str = repo_field(name="UUID")
    name: str = repo_field(name="Name", default="")


KEY = Key().with_table_name("Users").with_hash_key_name("UUID").with_hash_key("u1")


def _repo(
    client: FakeDynamoDBClient,
    *,
    logger: RecordingLogger | None = None,
    metrics: RecordingMetrics | None = None,
) -> Repository[User]:
    return Repository(
        DataclassCodec(User),
        client=client,
        logger=logger or RecordingLogger(),
        metrics=metrics or RecordingMetrics(),
        sleep=no_sleep,
    )


def test_get_item_decodes_the_stored_item() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "get_item",
        {"TableName": "Users", "Key": {"UUID": {"S": "u1"}}},
        response=item_response({"UUID": {"S": "u1"}, "Name": {"S": "Alice"}, "Version": {"N": "2"}}),
    )

    user = _repo(client).get_item(KEY)

    client.assert_no_pending()
    assert user == User(uuid="u1", name="Alice", version=2)


def test_get_item_missing_returns_none_and_logs_info() -> None:
    client = FakeDynamoDBClient()
    client.expect("get_item", response={})
    logger = RecordingLogger()

    assert _repo(client, logger=logger).get_item(KEY, trace_context={"request_id": "r1"}) is None
    assert [(r.level, r.table, r.message) for r in logger.records] == [("info", "Users", "no item found")]
    assert logger.records[0].trace_context == {"request_id": "r1"}


def test_get_item_reraises_store_faults_unchanged() -> None:
    err = client_error("ProvisionedThroughputExceededException", "slow down", "GetItem")
    client = FakeDynamoDBClient()
    client.expect("get_item", error=err)
    logger = RecordingLogger()

    with pytest.raises(ClientError) as excinfo:
        _repo(client, logger=logger).get_item(KEY)

    assert excinfo.value is err
    assert logger.at("error")[0].table == "Users"


def test_get_item_reraises_transport_errors_unchanged() -> None:
    err = EndpointConnectionError(endpoint_url="http://localhost:8000")
    client = FakeDynamoDBClient()
    client.expect("get_item", error=err)

    with pytest.raises(EndpointConnectionError) as excinfo:
        _repo(client).get_item(KEY)
    assert excinfo.value is err


def test_invalid_key_fails_before_any_store_call() -> None:
    client = FakeDynamoDBClient()
    logger = RecordingLogger()
    repo = _repo(client, logger=logger)

    with pytest.raises(InvalidHashKeyValueError):
        repo.get_item(Key("Users", "UUID"))
    with pytest.raises(InvalidHashKeyValueError):
        repo.save_item(Key("Users", "UUID"), User(uuid="u1"))
    with pytest.raises(InvalidHashKeyValueError):
        repo.delete_item(Key("Users", "UUID"))

    assert client.calls == []
    assert [r.level for r in logger.records] == ["error", "error", "error"]
    assert {r.table for r in logger.records} == {"Users"}


def test_get_item_with_index_name_queries_the_index() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "query",
        {
            "TableName": "Users",
            "IndexName": "ByEmail",
            "KeyConditionExpression": "#n0 = :v0",
            "ExpressionAttributeNames": {"#n0": "Email"},
            "ExpressionAttributeValues": {":v0": {"S": "a@example.com"}},
            "Limit": 1,
        },
        response={"Items": [{"UUID": {"S": "u1"}}]},
    )

    key = Key("Users", "Email", "a@example.com").with_index_name("ByEmail")
    user = _repo(client).get_item(key)

    assert user is not None and user.uuid == "u1"


def test_save_item_puts_the_encoded_item_and_counts_it() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "put_item",
        {"TableName": "Users", "Item": {"UUID": {"S": "u1"}, "Name": {"S": "Alice"}, "Version": {"N": "0"}}},
    )
    metrics = RecordingMetrics()

    _repo(client, metrics=metrics).save_item(KEY, User(uuid="u1", name="Alice"), trace_context={"k": "v"})

    client.assert_no_pending()
    assert [(m.table, m.metric_name, m.value) for m in metrics.published] == [
        ("Users", MetricNameSavedItemsCount, 1)
    ]
    assert metrics.published[0].trace_context == {"k": "v"}


def test_update_with_kind_and_values() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "update_item",
        {
            "TableName": "Users",
            "Key": {"UUID": {"S": "u1"}},
            "UpdateExpression": "SET #n0 = :v0",
            "ExpressionAttributeNames": {"#n0": "Name"},
            "ExpressionAttributeValues": {":v0": {"S": "Bob"}},
        },
    )
    metrics = RecordingMetrics()

    _repo(client, metrics=metrics).update("Set", KEY, {"Name": "Bob"})

    client.assert_no_pending()
    assert [m.metric_name for m in metrics.published] == [MetricNameUpdatedItemsCount]


def test_set_expr_with_non_sequence_arguments_makes_no_store_call() -> None:
    client = FakeDynamoDBClient()
    logger = RecordingLogger()
    metrics = RecordingMetrics()
    repo = _repo(client, logger=logger, metrics=metrics)

    with pytest.raises(InvalidSliceTypeError):
        repo.update("SetExpr", KEY, {"'Count' = ?": 5})
    with pytest.raises(InvalidSliceTypeError):
        repo.update_with_expressions(KEY, {"SetExpr": {"'Count' = ?": 5}})

    assert client.calls == []
    assert metrics.published == []
    assert [r.level for r in logger.records] == ["error", "error"]


def test_update_checks_the_key_before_the_values() -> None:
    client = FakeDynamoDBClient()
    repo = _repo(client)

    with pytest.raises(InvalidHashKeyValueError):
        repo.update("SetExpr", Key("Users", "UUID"), {"'Count' = ?": 5})
    with pytest.raises(InvalidHashKeyValueError):
        repo.update_with_expressions(Key("Users", "UUID"), {"SetExpr": {"'Count' = ?": 5}})

    assert client.calls == []


def test_update_with_expressions_and_return_value_decodes_all_new() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "update_item",
        {"ReturnValues": "ALL_NEW", "UpdateExpression": "SET #n0 = :v0 ADD #n1 :v1"},
        response={"Attributes": {"UUID": {"S": "u1"}, "Name": {"S": "Bob"}, "Version": {"N": "4"}}},
    )

    user = _repo(client).update_with_expressions_and_return_value(
        KEY,
        {"Set": {"Name": "Bob"}, "Add": {"Version": 1}},
    )

    assert user == User(uuid="u1", name="Bob", version=4)


def test_update_fault_is_logged_and_reraised() -> None:
    err = client_error("ResourceNotFoundException", "no table", "UpdateItem")
    client = FakeDynamoDBClient()
    client.expect("update_item", error=err)
    logger = RecordingLogger()
    metrics = RecordingMetrics()

    with pytest.raises(ClientError) as excinfo:
        _repo(client, logger=logger, metrics=metrics).update_with_expressions(KEY, [Set("Name", "Bob")])

    assert excinfo.value is err
    assert logger.at("error")
    assert metrics.published == []


def test_delete_item_deletes_by_key_and_counts_it() -> None:
    client = FakeDynamoDBClient()
    client.expect("delete_item", {"TableName": "Users", "Key": {"UUID": {"S": "u1"}}})
    metrics = RecordingMetrics()

    _repo(client, metrics=metrics).delete_item(KEY)

    client.assert_no_pending()
    assert [(m.metric_name, m.value) for m in metrics.published] == [(MetricNameDeleteItemsCount, 1)]


def test_metrics_failure_is_logged_not_raised() -> None:
    client = FakeDynamoDBClient()
    client.expect("put_item", {"Item": ANY})
    logger = RecordingLogger()
    metrics = RecordingMetrics(error=RuntimeError("metrics down"))

    _repo(client, logger=logger, metrics=metrics).save_item(KEY, User(uuid="u1"))

    assert len(metrics.published) == 1
    errors = logger.at("error")
    assert len(errors) == 1
    assert "ItemsSavedCount" in errors[0].message
    assert "metrics down" in errors[0].message


def test_default_logger_writes_to_the_package_logger(caplog: pytest.LogCaptureFixture) -> None:
    client = FakeDynamoDBClient()
    client.expect("get_item", response={})
    repo: Repository[User] = Repository(DataclassCodec(User), client=client)

    with caplog.at_level(logging.INFO, logger="dynamorepo"):
        assert repo.get_item(KEY) is None

    assert [r.getMessage() for r in caplog.records] == ["[Users] no item found"]
    assert caplog.records[0].table_name == "Users"
