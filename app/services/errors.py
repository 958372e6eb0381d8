"""
Validation Service Errors
Each error carries a human-readable message and the HTTP status routes map it to
"""
from typing import Optional


class ValidationServiceError(Exception):
    """Base exception for validation service errors"""
    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


NOT_CONFIGURED_MESSAGE = "Validation service is not configured. Please contact an administrator."


class ValidatorConfigurationError(ValidationServiceError):
    """Validator endpoint missing or still set to the placeholder. Never retried."""
    def __init__(self, message: str = NOT_CONFIGURED_MESSAGE):
        super().__init__(message, status_code=503)


class DispatchError(ValidationServiceError):
    """Non-2xx response or transport failure talking to the validator"""
    def __init__(self, message: str, status_code: int = 502, body: Optional[str] = None):
        super().__init__(message, status_code=status_code)
        self.body = body


class ValidationRecordNotFoundError(ValidationServiceError):
    """No validation record with the given id"""
    def __init__(self, validation_id: str):
        super().__init__(f"Validation record not found: {validation_id}", status_code=404)
        self.validation_id = validation_id


class InvalidStatusTransitionError(ValidationServiceError):
    """Requested status change is not allowed from the record's current status"""
    def __init__(self, validation_id: str, current_status: str, target_status: str):
        super().__init__(
            f"Cannot move validation {validation_id} from '{current_status}' to '{target_status}'",
            status_code=409,
        )
        self.validation_id = validation_id
        self.current_status = current_status
        self.target_status = target_status


class SubmissionError(ValidationServiceError):
    """Submission is missing its jurisdiction or its content"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)
