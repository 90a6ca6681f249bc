from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from .codec import repo_field

VERSION_ATTRIBUTE = "Version"
CREATED_AT_ATTRIBUTE = "CreatedAt"
UPDATED_AT_ATTRIBUTE = "UpdatedAt"

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class UnixNanoConverter:
    def to_dynamodb(self, value: Any) -> Any:
        if not isinstance(value, datetime):
            raise TypeError(f"expected datetime, got {type(value).__name__}")
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        micros = (value - _EPOCH) // timedelta(microseconds=1)
        return max(micros, 0) * 1000

    def from_dynamodb(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value
        nanos = int(Decimal(value))
        if nanos <= 0:
            return None
        return _EPOCH + timedelta(microseconds=nanos // 1000)


@dataclass(kw_only=True)
class Model:
    version: int = repo_field(name=VERSION_ATTRIBUTE, default=0)
    created_at: datetime | None = repo_field(
        name=CREATED_AT_ATTRIBUTE, omitempty=True, converter=UnixNanoConverter(), default=None
    )
    updated_at: datetime | None = repo_field(
        name=UPDATED_AT_ATTRIBUTE, omitempty=True, converter=UnixNanoConverter(), default=None
    )

    def get_version(self) -> int:
        return self.version

    def increase_version(self) -> None:
        self.version += 1

    def init_created_at(self, now: Callable[[], datetime] = utc_now) -> None:
        if self.created_at is None:
            self.created_at = now()

    def init_updated_at(self, now: Callable[[], datetime] = utc_now) -> None:
        self.updated_at = now()
