"""Error taxonomy for the Kai journal service.

Every error raised below the HTTP layer carries an ``ErrorKind``; the API
maps the kind (never the message) to a status code.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Error kind with its HTTP status."""

    UNAUTHENTICATED = "unauthenticated"
    INVALID_REQUEST = "invalid_request"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UPSTREAM = "upstream"
    PERSISTENCE = "persistence"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPSTREAM: 500,
    ErrorKind.PERSISTENCE: 500,
}


class KaiError(Exception):
    """Base error carrying an explicit kind."""

    kind: ErrorKind = ErrorKind.UPSTREAM

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    @property
    def status_code(self) -> int:
        return self.kind.status_code


class AuthenticationError(KaiError):
    """Missing, invalid or expired bearer token."""

    kind = ErrorKind.UNAUTHENTICATED


class InvalidRequestError(KaiError):
    """A required field is missing or malformed."""

    kind = ErrorKind.INVALID_REQUEST


class OwnershipError(KaiError):
    """The resource exists but belongs to another user."""

    kind = ErrorKind.FORBIDDEN


class EntryNotFoundError(KaiError):
    kind = ErrorKind.NOT_FOUND


class GenerationError(KaiError):
    """The generation API failed or returned an unusable response."""

    kind = ErrorKind.UPSTREAM


class GenerationRateLimitError(GenerationError):
    """The generation API kept answering 429 after retries."""

    kind = ErrorKind.RATE_LIMITED


class PersistenceError(KaiError):
    kind = ErrorKind.PERSISTENCE
