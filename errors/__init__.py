"""Custom exception hierarchy for the MatrixFlow catalog client."""

from errors.exceptions import (
    APIError,
    HTTPError,
    MatrixFlowError,
    RequestValidationError,
    StreamTimeoutError,
    UnexpectedContentTypeError,
)

__all__ = [
    "APIError",
    "HTTPError",
    "MatrixFlowError",
    "RequestValidationError",
    "StreamTimeoutError",
    "UnexpectedContentTypeError",
]
