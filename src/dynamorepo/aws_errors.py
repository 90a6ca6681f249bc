from __future__ import annotations

from botocore.exceptions import ClientError

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


def error_code(err: BaseException) -> str:
    if not isinstance(err, ClientError):
        return ""
    return str(err.response.get("Error", {}).get("Code", ""))


def error_message(err: BaseException) -> str:
    if not isinstance(err, ClientError):
        return str(err)
    message = str(err.response.get("Error", {}).get("Message", ""))
    return message or str(err)


def is_conditional_check_failed(err: BaseException) -> bool:
    return error_code(err) == CONDITIONAL_CHECK_FAILED
