"""Workflow errors raised by the collection services.

Each error carries the HTTP status and machine-readable code the API renders,
so routers never translate them by hand.
"""


class WorkflowError(Exception):
    status_code = 400
    code = "workflow_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidTransition(WorkflowError):
    status_code = 409
    code = "invalid_transition"


class Unauthorized(WorkflowError):
    status_code = 403
    code = "unauthorized"


class AlreadyClaimed(WorkflowError):
    """Lost a claim race. Recoverable: pick another collection."""
    status_code = 409
    code = "already_claimed"


class NotFound(WorkflowError):
    status_code = 404
    code = "not_found"


class InvalidState(WorkflowError):
    status_code = 409
    code = "invalid_state"


class MissingRequiredField(WorkflowError):
    status_code = 422
    code = "missing_required_field"

    def __init__(self, field: str, detail: str | None = None):
        super().__init__(detail or f"'{field}' is required")
        self.field = field
