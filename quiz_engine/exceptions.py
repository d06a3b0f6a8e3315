"""
Domain errors raised by the attempt engine

Each error carries the HTTP status and machine-readable code the API layer
renders; services raise them and never build HTTP responses themselves.
"""
from typing import Any, Dict, Optional


class QuizAttemptError(Exception):
    """Base class for attempt engine errors"""

    status_code = 400
    error_code = "quiz_attempt_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error_code, "message": self.message}


class NotFoundError(QuizAttemptError):
    """No such attempt or quiz"""

    status_code = 404
    error_code = "not_found"


class ForbiddenError(QuizAttemptError):
    """Requester does not own the attempt and lacks an elevated role"""

    status_code = 403
    error_code = "forbidden"


class AuthenticationError(QuizAttemptError):
    """Upstream auth layer did not supply an identity"""

    status_code = 401
    error_code = "not_authenticated"


class AlreadyCompletedError(QuizAttemptError):
    """Mutation on a finalized attempt, or a second start after completion"""

    status_code = 409
    error_code = "already_completed"

    def __init__(self, attempt_id: Optional[int], message: Optional[str] = None):
        super().__init__(
            message or "You have already completed this quiz. You cannot attempt it again."
        )
        self.attempt_id = attempt_id

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["attempt_id"] = self.attempt_id
        return payload


class ConcurrentUpdateError(QuizAttemptError):
    """Attempt kept changing underneath a save; the client should retry"""

    status_code = 409
    error_code = "concurrent_update"
