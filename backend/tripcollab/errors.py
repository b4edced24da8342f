"""Domain errors raised by the collaboration services.

Every error carries the HTTP status the API layer answers with, so routers
can let them propagate and the app-level handler renders them.
"""


class CollaborationError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CollaborationError):
    status_code = 422


class ConflictError(CollaborationError):
    status_code = 409


class NotFoundError(CollaborationError):
    status_code = 404


class PermissionDeniedError(CollaborationError):
    status_code = 403


class PlanPhaseError(CollaborationError):
    """Raised when an action is attempted in the wrong plan status."""

    status_code = 409
