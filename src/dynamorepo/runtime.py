from __future__ import annotations

import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

from .errors import ValidationError


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


@dataclass(frozen=True)
class RuntimeSettings:
    region: str | None = None
    endpoint_url: str | None = None
    connect_timeout: float = 1.0
    read_timeout: float = 3.0
    max_attempts: int = 3
    retry_mode: str = "adaptive"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> RuntimeSettings:
        return cls(
            region=environ.get("DYNAMOREPO_REGION") or environ.get("AWS_REGION") or None,
            endpoint_url=environ.get("DYNAMOREPO_ENDPOINT_URL") or None,
            connect_timeout=_float_env(environ, "DYNAMOREPO_CONNECT_TIMEOUT", 1.0),
            read_timeout=_float_env(environ, "DYNAMOREPO_READ_TIMEOUT", 3.0),
            max_attempts=_int_env(environ, "DYNAMOREPO_MAX_ATTEMPTS", 3),
            retry_mode=environ.get("DYNAMOREPO_RETRY_MODE") or "adaptive",
        )


def _float_env(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be a number") from err
    if value <= 0:
        raise ValidationError(f"{name} must be > 0")
    return value


def _int_env(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be an integer") from err
    if value < 1:
        raise ValidationError(f"{name} must be >= 1")
    return value


def is_lambda_environment(environ: Mapping[str, str] = os.environ) -> bool:
    return bool(
        environ.get("AWS_LAMBDA_FUNCTION_NAME") or "AWS_Lambda" in (environ.get("AWS_EXECUTION_ENV") or "")
    )


def create_boto3_config(settings: RuntimeSettings | None = None) -> Config:
    settings = settings or RuntimeSettings()
    return Config(
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        retries={"max_attempts": settings.max_attempts, "mode": settings.retry_mode},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            try:
                out = attr(*args, **kwargs)
            except Exception:
                self._on_call(
                    AwsCallMetric(
                        service=self._service,
                        operation=name,
                        seconds=time.monotonic() - start,
                        ok=False,
                    )
                )
                raise

            self._on_call(
                AwsCallMetric(
                    service=self._service,
                    operation=name,
                    seconds=time.monotonic() - start,
                    ok=True,
                )
            )
            return out

        return wrapped


def instrument_boto3_client(
    client: Any,
    *,
    service: str,
    on_call: Callable[[AwsCallMetric], None],
) -> Any:
    return _InstrumentedClient(client, service, on_call)


def create_dynamodb_client(
    settings: RuntimeSettings | None = None,
    *,
    session: Any | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
) -> Any:
    settings = settings or RuntimeSettings.from_env()
    sess = session or boto3.session.Session(region_name=settings.region)
    kwargs: dict[str, Any] = {"region_name": settings.region, "config": create_boto3_config(settings)}
    if settings.endpoint_url:
        kwargs["endpoint_url"] = settings.endpoint_url
    client = cast(Any, sess).client("dynamodb", **kwargs)
    if metrics is not None:
        client = instrument_boto3_client(client, service="dynamodb", on_call=metrics)
    return client


_lambda_clients: dict[tuple[str | None, str | None], Any] = {}


def get_lambda_dynamodb_client(
    settings: RuntimeSettings | None = None,
    *,
    session: Any | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
) -> Any:
    settings = settings or RuntimeSettings.from_env()
    key = (settings.region, settings.endpoint_url)
    existing = _lambda_clients.get(key)
    if existing is not None:
        return existing

    client = create_dynamodb_client(settings, session=session, metrics=metrics)
    _lambda_clients[key] = client
    return client


def _reset_lambda_clients_for_tests() -> None:
    _lambda_clients.clear()
