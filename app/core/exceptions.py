from typing import Optional, Any

class VoiceDeskError(Exception):
    """
    Base exception for the dashboard API.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

class UnauthorizedError(VoiceDeskError):
    """
    Raised when the request carries no valid dashboard session.
    """
    def __init__(self, message: str = "Unauthorized", details: Optional[Any] = None):
        super().__init__(message, code="UNAUTHORIZED", status_code=401, details=details)

class BadRequestError(VoiceDeskError):
    """
    Raised when a request is missing required fields or asks for something invalid.
    """
    def __init__(self, message: str = "Bad request", details: Optional[Any] = None):
        super().__init__(message, code="BAD_REQUEST", status_code=400, details=details)

class ForbiddenError(VoiceDeskError):
    """
    Raised when the signed-in user asks for a resource owned by someone else.
    """
    def __init__(self, message: str = "Forbidden", details: Optional[Any] = None):
        super().__init__(message, code="FORBIDDEN", status_code=403, details=details)

class ResourceNotFoundError(VoiceDeskError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)

class ValidationError(VoiceDeskError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)

class ExternalServiceError(VoiceDeskError):
    """
    Raised when an external service (e.g., Vapi, Stripe) fails.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None, status_code: int = 502):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=status_code, details=details)

class WebhookSignatureError(VoiceDeskError):
    """
    Raised when a payment webhook cannot be verified.
    """
    def __init__(self, message: str = "Invalid webhook signature", details: Optional[Any] = None):
        super().__init__(message, code="INVALID_SIGNATURE", status_code=400, details=details)
