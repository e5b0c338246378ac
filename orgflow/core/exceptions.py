"""
Workflow error taxonomy

Every error carries a stable ``kind`` that callers can switch on, an HTTP
status the API layer maps it to, and a human-readable message.
"""
from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Base class for business errors raised by the workflow engine"""

    kind = "WORKFLOW_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotAuthorized(WorkflowError):
    """Wrong actor for the action (e.g. not the current approver)"""

    kind = "NOT_AUTHORIZED"
    status_code = 403


class Forbidden(WorkflowError):
    """Authorization rule violated at creation time"""

    kind = "FORBIDDEN"
    status_code = 403


class NotFound(WorkflowError):
    kind = "NOT_FOUND"
    status_code = 404


class AlreadyProcessed(WorkflowError):
    """A terminal request or ticket was acted upon again"""

    kind = "ALREADY_PROCESSED"
    status_code = 409


class InvalidAction(WorkflowError):
    kind = "INVALID_ACTION"
    status_code = 400


class ValidationError(WorkflowError):
    """Missing or malformed required input (e.g. contest note, date range)"""

    kind = "VALIDATION_ERROR"
    status_code = 400
