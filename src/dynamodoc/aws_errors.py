from __future__ import annotations

from botocore.exceptions import ClientError

NOT_FOUND_CODE = "ResourceNotFoundException"
CONDITION_FAILED_CODE = "ConditionalCheckFailedException"


def error_code(err: BaseException) -> str:
    if not isinstance(err, ClientError):
        return ""
    return str(err.response.get("Error", {}).get("Code", ""))


def is_not_found(err: BaseException) -> bool:
    return error_code(err) == NOT_FOUND_CODE


def is_condition_failed(err: BaseException) -> bool:
    return error_code(err) == CONDITION_FAILED_CODE
