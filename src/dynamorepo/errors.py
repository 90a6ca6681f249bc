from __future__ import annotations


class DynamoRepoError(Exception):
    pass


class ValidationError(DynamoRepoError):
    pass


class InvalidTableNameError(ValidationError):
    def __init__(self) -> None:
        super().__init__("invalid table name")


class InvalidHashKeyNameError(ValidationError):
    def __init__(self) -> None:
        super().__init__("invalid hash key name")


class InvalidHashKeyValueError(ValidationError):
    def __init__(self) -> None:
        super().__init__("invalid hash key value")


class InvalidSliceTypeError(ValidationError):
    def __init__(self, message: str = "invalid type expected sequence") -> None:
        super().__init__(message)


class CrossTableBatchError(ValidationError):
    def __init__(self, *, operation: str, tables: tuple[str, ...]) -> None:
        super().__init__(f"{operation}: all keys must belong to the same table (got {', '.join(tables)})")
        self.operation = operation
        self.tables = tables


class ConflictingUpdateError(ValidationError):
    def __init__(self, *, path: str, kinds: tuple[str, ...]) -> None:
        super().__init__(f"field {path!r} appears in more than one update: {', '.join(kinds)}")
        self.path = path
        self.kinds = kinds


class ModelRequiredError(ValidationError):
    def __init__(self, type_name: str) -> None:
        super().__init__(f"optimistic lock requires a Model item (got {type_name})")
        self.type_name = type_name


class BatchRetryExceededError(DynamoRepoError):
    def __init__(self, *, operation: str, unprocessed_count: int, processed_count: int = 0) -> None:
        super().__init__(f"{operation}: retry limit exceeded (unprocessed={unprocessed_count})")
        self.operation = operation
        self.unprocessed_count = unprocessed_count
        self.processed_count = processed_count


class IteratorFailedError(DynamoRepoError):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"iterator stopped after an earlier error: {cause}")
        self.cause = cause
