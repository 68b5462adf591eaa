from __future__ import annotations


class DynamodocError(Exception):
    pass


class ValidationError(DynamodocError):
    pass


class TranslationError(ValidationError):
    pass


class UnknownFieldError(TranslationError):
    def __init__(self, field_name: str) -> None:
        super().__init__(f"unknown field: {field_name}")
        self.field_name = field_name


class NoMoreDataError(DynamodocError):
    pass


class NotSupportedError(DynamodocError):
    pass


class ReadinessTimeoutError(DynamodocError):
    def __init__(self, *, table_name: str, timeout_seconds: float) -> None:
        super().__init__(f"timed out after {timeout_seconds}s waiting for table to become usable: {table_name}")
        self.table_name = table_name
        self.timeout_seconds = timeout_seconds
