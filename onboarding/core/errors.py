from __future__ import annotations

from fastapi import HTTPException, status


class WorkflowError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Request failed."

    def __init__(self, message: str | None = None, *, errors: list[str] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(status_code=self.status_code, detail=self.message)


class NotFound(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class ValidationFailed(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request."


class PreconditionFailed(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The application is not ready for this step."


class AlreadyResponded(WorkflowError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "A response has already been recorded."

    def __init__(self, message: str | None = None, *, decision: str | None = None, responded_at=None) -> None:
        self.decision = decision
        self.responded_at = responded_at
        super().__init__(message)


class TransportUnavailable(WorkflowError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Email service is not configured."


class InternalFailure(WorkflowError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal error."
