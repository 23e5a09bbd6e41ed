"""Error kinds raised by the bracket services and stores."""


class BracketError(Exception):
    """Base class for every error surfaced to callers of the bracket core."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'error': self.message, 'kind': type(self).__name__}


class ValidationError(BracketError, ValueError):
    """Bad slot count, too few teams or missing key fields."""

    status_code = 400


class NotFoundError(BracketError, LookupError):
    status_code = 404


class ConflictError(BracketError):
    """Requested change contradicts the stored match (e.g. winner not playing)."""

    status_code = 409


class PersistenceError(BracketError):
    """Backing store unavailable, uninitialised or failed mid-write."""

    status_code = 503
