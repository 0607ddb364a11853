"""Error taxonomy shared by the HTTP boundary, the services and the engine.

Every error carries the HTTP status code the boundary answers with, so the
server maps exceptions to responses and the client maps responses back.
"""


class SidekickError(Exception):
    """Generic failure (HTTP 500)."""

    status_code = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details and self.details != self.message:
            return f"{self.message}: {self.details}"
        return self.message


class InputValidationError(SidekickError, ValueError):
    """Malformed request payload. The operation is not attempted."""

    status_code = 400


class UpstreamAuthError(SidekickError):
    status_code = 401


class UpstreamRateLimitError(SidekickError):
    status_code = 429


class SchemaDecodeError(SidekickError, ValueError):
    """Model output did not parse into the artifact schema."""

    status_code = 422


class TransientNetworkError(SidekickError):
    """Timeout or connection failure. Never retried automatically."""

    status_code = 500


_BY_STATUS = {
    400: InputValidationError,
    401: UpstreamAuthError,
    422: SchemaDecodeError,
    429: UpstreamRateLimitError,
}


def error_for_status(status_code: int, message: str, details: str | None = None) -> SidekickError:
    """Build the taxonomy error matching an HTTP status code."""
    cls = _BY_STATUS.get(status_code, SidekickError)
    return cls(message, details)
