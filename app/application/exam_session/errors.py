from typing import Optional


class ExamSessionError(Exception):
    """Base class for every outcome the session engine reports to its caller."""

    code = "exam_session_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class ExamUnavailable(ExamSessionError):
    code = "exam_unavailable"
    status_code = 400


class ExamNotStarted(ExamSessionError):
    code = "exam_not_started"
    status_code = 400


class ExamEnded(ExamSessionError):
    code = "exam_ended"
    status_code = 400


class AttemptNotFound(ExamSessionError):
    code = "attempt_not_found"
    status_code = 404


class AlreadySubmitted(ExamSessionError):
    code = "already_submitted"
    status_code = 409

    def __init__(self, message: str, attempt=None):
        super().__init__(message)
        # The stored attempt, untouched by the rejected call
        self.attempt = attempt


class SubmissionLocked(ExamSessionError):
    code = "submission_locked"
    status_code = 409


class NotYetSubmitted(ExamSessionError):
    code = "not_yet_submitted"
    status_code = 400


class ValidationError(ExamSessionError):
    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_detail(self) -> dict:
        detail = super().to_detail()
        if self.field:
            detail["field"] = self.field
        return detail


class AttemptLimitReached(ExamSessionError):
    code = "attempt_limit_reached"
    status_code = 409


class AuthenticationRequired(ExamSessionError):
    code = "authentication_required"
    status_code = 401


class StorageError(Exception):
    """Infrastructure failure underneath the storage gateway.

    Not part of the domain taxonomy: callers treat it as opaque and fatal.
    """
