"""
ModBoard Exceptions

Every failure a board operation can report. Each class carries the HTTP
status the web layer answers with and a short machine-readable code.
"""

from typing import Optional


class BoardError(Exception):
    """Base class for board operation failures."""
    status = 500
    code = "error"

    def __init__(self, message: str = "", code: Optional[str] = None):
        super().__init__(message or self.__class__.__name__)
        if code:
            self.code = code


class BadRequest(BoardError):
    """Missing or invalid input."""
    status = 400
    code = "bad_request"


class InvalidAction(BadRequest):
    """Review action other than approve or reject."""
    code = "bad_action"


class Unauthorized(BoardError):
    """Missing or invalid admin token, or wrong password."""
    status = 401
    code = "unauthorized"


class Forbidden(BoardError):
    """Caller is identified but not allowed."""
    status = 403
    code = "forbidden"


class NotVerified(Forbidden):
    """Attachment request from an unverified identity."""
    code = "not_verified"


class NotFound(BoardError):
    """Unknown id, or a hidden thread accessed publicly."""
    status = 404
    code = "not_found"


class Conflict(BoardError):
    """Operation conflicts with the current state."""
    status = 409
    code = "conflict"


class AlreadyReviewed(Conflict):
    """Review of a request that is no longer pending."""
    code = "already_reviewed"


class RateLimited(BoardError):
    """Posting cooldown not yet elapsed."""
    status = 429
    code = "too_fast"

    def __init__(self, retry_after: float = 0.0, message: str = ""):
        super().__init__(message or f"Retry in {retry_after:.1f}s")
        self.retry_after = retry_after


class PersistenceError(BoardError):
    """The document could not be written."""
    status = 500
    code = "persistence"
