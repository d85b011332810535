class DebateError(Exception):
    """Base class for failures the API reports to the caller.

    ``extra`` is merged into the JSON error body, e.g. the moderator's reason
    for a rejected entry.
    """

    code = "error"
    status_code = 500

    def __init__(self, message: str, extra: dict = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, **self.extra}


class ValidationError(DebateError):
    code = "validation_error"
    status_code = 400


class NotFound(DebateError):
    code = "not_found"
    status_code = 404


class InvalidState(DebateError):
    code = "invalid_state"
    status_code = 400


class Conflict(DebateError):
    code = "conflict"
    status_code = 409


class LimitExceeded(DebateError):
    code = "limit_exceeded"
    status_code = 400


class DependencyFailure(DebateError):
    """A best-effort collaborator (AI, archive) failed or timed out."""

    code = "dependency_failure"
    status_code = 502
