from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final

from fastapi import status


class ErrorCode(str, Enum):
    invalid_digit = "invalid_digit"
    invalid_pattern_length = "invalid_pattern_length"
    unknown_pattern = "unknown_pattern"
    invalid_architecture = "invalid_architecture"
    invalid_options = "invalid_options"
    invalid_model = "invalid_model"
    service_not_ready = "service_not_ready"
    internal_error = "internal_error"


_DEFAULT_MESSAGE: Final[dict[ErrorCode, str]] = {
    ErrorCode.invalid_digit: "Digit must be an integer between 0 and 9.",
    ErrorCode.invalid_pattern_length: "Segment pattern must have exactly 7 values.",
    ErrorCode.unknown_pattern: "Segment pattern does not match any digit.",
    ErrorCode.invalid_architecture: "Hidden layer sizes must be positive integers.",
    ErrorCode.invalid_options: "Invalid training options.",
    ErrorCode.invalid_model: "Invalid model artifact.",
    ErrorCode.service_not_ready: "Model not loaded. Train a model first.",
    ErrorCode.internal_error: "Internal server error.",
}


@dataclass(frozen=True)
class ErrorResponse:
    code: ErrorCode
    message: str
    request_id: str

    def to_dict(self) -> dict[str, str]:
        return {
            "code": self.code.value,
            "message": self.message,
            "request_id": self.request_id,
        }


class AppError(Exception):
    def __init__(self, code: ErrorCode, http_status: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.http_status = http_status
        self.message = message


class _CodedError(AppError):
    """AppError with a fixed code; status derives from the code."""

    code_for_class: ErrorCode = ErrorCode.internal_error

    def __init__(self, message: str | None = None) -> None:
        code = type(self).code_for_class
        msg = message if message is not None else _DEFAULT_MESSAGE.get(code, "")
        super().__init__(code, status_for(code), msg)


class InvalidDigit(_CodedError):
    code_for_class = ErrorCode.invalid_digit


class InvalidPatternLength(_CodedError):
    code_for_class = ErrorCode.invalid_pattern_length


class UnknownPattern(_CodedError):
    code_for_class = ErrorCode.unknown_pattern


class InvalidArchitecture(_CodedError):
    code_for_class = ErrorCode.invalid_architecture


class InvalidOptions(_CodedError):
    code_for_class = ErrorCode.invalid_options


def new_error(code: ErrorCode, request_id: str, message: str | None = None) -> ErrorResponse:
    msg = message if message is not None else _DEFAULT_MESSAGE.get(code, "")
    return ErrorResponse(code=code, message=msg, request_id=request_id)


def status_for(code: ErrorCode) -> int:
    if code is ErrorCode.invalid_digit:
        return status.HTTP_400_BAD_REQUEST
    if code is ErrorCode.invalid_pattern_length:
        return status.HTTP_400_BAD_REQUEST
    if code is ErrorCode.unknown_pattern:
        # Well-formed request, but no digit displays this pattern
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if code is ErrorCode.invalid_architecture:
        return status.HTTP_400_BAD_REQUEST
    if code is ErrorCode.invalid_options:
        return status.HTTP_400_BAD_REQUEST
    if code is ErrorCode.invalid_model:
        return status.HTTP_400_BAD_REQUEST
    if code is ErrorCode.service_not_ready:
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR
