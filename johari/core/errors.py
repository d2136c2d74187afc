# johari/core/errors.py
from typing import Iterable


class JohariError(Exception):
    """Base class for every failure surfaced to callers."""
    code = "johari_error"
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidSelection(JohariError):
    code = "invalid_selection"
    status_code = 422

    def __init__(self, unknown: Iterable[str]):
        self.unknown = sorted(set(unknown))
        super().__init__(f"Not in vocabulary: {', '.join(self.unknown)}")


class SelectionLimitExceeded(JohariError):
    code = "selection_limit_exceeded"
    status_code = 422

    def __init__(self, attempted: int, limit: int):
        self.attempted = attempted
        self.limit = limit
        super().__init__(f"Selected {attempted} descriptors, at most {limit} are allowed")


class StoreUnavailable(JohariError):
    code = "store_unavailable"
    status_code = 503


class SessionNotFound(JohariError):
    code = "session_not_found"
    status_code = 404

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found")


class NotSessionCreator(JohariError):
    code = "not_session_creator"
    status_code = 403

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Only the creator of session '{session_id}' may change it")


class InvalidSessionData(JohariError):
    code = "invalid_session_data"
    status_code = 422

    @classmethod
    def from_validation_error(cls, error) -> "InvalidSessionData":
        problems = "; ".join(
            f"{'.'.join(str(part) for part in problem['loc'])}: {problem['msg']}"
            for problem in error.errors()
        )
        return cls(problems)


class WindowRefreshFailed(JohariError):
    code = "window_refresh_failed"
    status_code = 500

    def __init__(self, session_id: str, cause: Exception):
        self.session_id = session_id
        self.cause = cause
        super().__init__(f"Window for session '{session_id}' could not be refreshed: {cause}")
