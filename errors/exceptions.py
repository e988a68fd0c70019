"""Domain-specific exceptions for the MatrixFlow catalog client.

These exceptions let callers distinguish between local validation
failures, HTTP-level failures, envelope-level (business) failures and
stream-level failures such as an inactivity timeout.
"""

from __future__ import annotations


class MatrixFlowError(Exception):
    """Base class for all client errors."""


class RequestValidationError(MatrixFlowError, ValueError):
    """A request payload failed local validation; no I/O was performed."""


class HTTPError(MatrixFlowError):
    """A non-2xx response that occurred before the envelope could be parsed."""

    def __init__(self, status_code: int, body: bytes = b"") -> None:
        self.status_code = status_code
        self.body = body or b""
        if self.body:
            text = self.body.decode("utf-8", errors="replace")
            message = f"http error: status={status_code} body={text}"
        else:
            message = f"http error: status={status_code}"
        super().__init__(message)


class APIError(MatrixFlowError):
    """An application-level error returned inside the service envelope.

    Carries the server's error ``code`` (e.g. ``"ErrInternal"``), the
    human-readable ``message`` and the ``request_id`` for tracking.
    """

    def __init__(
        self,
        code: str,
        message: str,
        request_id: str = "",
        http_status: int = 200,
    ) -> None:
        self.code = code
        self.message = message
        self.request_id = request_id
        self.http_status = http_status
        super().__init__(
            f"catalog service error: code={code} msg={message} "
            f"request_id={request_id} status={http_status}"
        )


class UnexpectedContentTypeError(MatrixFlowError):
    """A 2xx stream response whose content type is not an event stream."""

    def __init__(self, content_type: str, body: bytes = b"") -> None:
        self.content_type = content_type
        self.body = body or b""
        text = self.body.decode("utf-8", errors="replace")
        super().__init__(f"unexpected content type: {content_type}, body: {text}")


class StreamTimeoutError(MatrixFlowError, TimeoutError):
    """No data arrived on a stream within the inactivity window.

    Whether this means the analysis failed or is still running remotely
    is left to the caller.
    """

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"read timeout: no data received within {timeout}s")
