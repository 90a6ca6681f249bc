from __future__ import annotations

import json
import logging
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .codec import AttributeConverter, CodecDefinitionError, DataclassCodec, ItemCodec, repo_field
from .errors import (
    BatchRetryExceededError,
    ConflictingUpdateError,
    CrossTableBatchError,
    DynamoRepoError,
    InvalidHashKeyNameError,
    InvalidHashKeyValueError,
    InvalidSliceTypeError,
    InvalidTableNameError,
    IteratorFailedError,
    ModelRequiredError,
    ValidationError,
)
from .key import Key, Operator, Query
from .log import LoggingRepositoryLogger, NullRepositoryLogger, RepositoryLogger
from .metrics import (
    MetricNameDeleteItemsCount,
    MetricNameSavedItemsCount,
    MetricNameUpdatedItemsCount,
    MetricsPublisher,
    NullMetricsPublisher,
)
from .model import Model, UnixNanoConverter
from .update_expression import Add, Set, SetExpr, SetIfNotExists, SetSet, UpdateKind
from .validation import validate_key

if TYPE_CHECKING:
    from .index import GlobalIndex
    from .iterator import ScanIterator
    from .metrics import CloudWatchMetricsPublisher
    from .repository import Repository
    from .runtime import (
        AwsCallMetric,
        RuntimeSettings,
        create_dynamodb_client,
        get_lambda_dynamodb_client,
        instrument_boto3_client,
        is_lambda_environment,
    )

logging.getLogger(__name__).addHandler(logging.NullHandler())


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "Repository":
        from .repository import Repository

        return Repository
    if name == "GlobalIndex":
        from .index import GlobalIndex

        return GlobalIndex
    if name == "ScanIterator":
        from .iterator import ScanIterator

        return ScanIterator
    if name == "CloudWatchMetricsPublisher":
        from .metrics import CloudWatchMetricsPublisher

        return CloudWatchMetricsPublisher
    if name in {
        "AwsCallMetric",
        "RuntimeSettings",
        "create_dynamodb_client",
        "get_lambda_dynamodb_client",
        "instrument_boto3_client",
        "is_lambda_environment",
    }:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "Add",
    "AttributeConverter",
    "AwsCallMetric",
    "BatchRetryExceededError",
    "CloudWatchMetricsPublisher",
    "CodecDefinitionError",
    "ConflictingUpdateError",
    "CrossTableBatchError",
    "DataclassCodec",
    "DynamoRepoError",
    "GlobalIndex",
    "InvalidHashKeyNameError",
    "InvalidHashKeyValueError",
    "InvalidSliceTypeError",
    "InvalidTableNameError",
    "ItemCodec",
    "IteratorFailedError",
    "Key",
    "LoggingRepositoryLogger",
    "MetricNameDeleteItemsCount",
    "MetricNameSavedItemsCount",
    "MetricNameUpdatedItemsCount",
    "MetricsPublisher",
    "Model",
    "ModelRequiredError",
    "NullMetricsPublisher",
    "NullRepositoryLogger",
    "Operator",
    "Query",
    "Repository",
    "RepositoryLogger",
    "RuntimeSettings",
    "ScanIterator",
    "Set",
    "SetExpr",
    "SetIfNotExists",
    "SetSet",
    "UnixNanoConverter",
    "UpdateKind",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "create_dynamodb_client",
    "get_lambda_dynamodb_client",
    "instrument_boto3_client",
    "is_lambda_environment",
    "repo_field",
    "validate_key",
]
