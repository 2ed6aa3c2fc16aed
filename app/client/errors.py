from pydantic import ValidationError


class TrackerError(Exception):
    """Base class for errors raised by the client core."""


class RecordValidationError(TrackerError, ValueError):
    """A record or goal payload failed validation. Never retried."""

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "RecordValidationError":
        errors = exc.errors(include_url=False)
        parts = []
        for error in errors:
            location = ".".join(str(part) for part in error.get("loc", ()))
            parts.append(f"{location}: {error['msg']}" if location else error["msg"])
        return cls("; ".join(parts) or "invalid record", errors)


class StorageError(TrackerError):
    """Local storage failed (quota exceeded, serialisation failure, I/O)."""

    def __init__(self, message: str, record=None):
        super().__init__(message)
        self.record = record


class GatewayError(TrackerError):
    """A remote call failed. ``kind`` classifies the failure."""

    kind = "network"
    retryable = True


class RequestTimeout(GatewayError):
    kind = "timeout"


class NetworkError(GatewayError):
    kind = "network"


class HTTPStatusError(GatewayError):
    kind = "http-error"

    def __init__(self, status_code: int, message: str = "", payload=None):
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code
        self.payload = payload

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500 or self.status_code in (408, 429)


class DuplicateEntryError(HTTPStatusError):
    """409 from the server: an identical entry already exists for that day."""

    retryable = False

    def __init__(self, message: str = "", payload=None):
        super().__init__(409, message or "Duplicate entry", payload)
        self.suggestion = (payload or {}).get("suggestion") if isinstance(payload, dict) else None


class ParseError(GatewayError):
    kind = "parse-error"
    retryable = False
