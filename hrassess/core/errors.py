"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these instead of ``HTTPException`` so they stay usable outside
a request; ``hrassess.main`` maps each class to its status code.
"""
from typing import Any, Dict, Optional


class HRAssessError(Exception):
    """Base exception for all application errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(HRAssessError):
    """Malformed request or external payload; correctable by the caller."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_FAILED", details=details)


class AuthenticationError(HRAssessError):
    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(HRAssessError):
    status_code = 403

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message, code="NOT_AUTHORIZED")


class NotFoundError(HRAssessError):
    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class ConflictError(HRAssessError):
    """A unique key already exists."""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="ALREADY_EXISTS", details=details)


class ExternalSourceError(HRAssessError):
    """The external HR system could not be reached or answered with an error."""

    status_code = 502

    def __init__(self, message: str = "External HR source unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="EXTERNAL_SOURCE_UNAVAILABLE", details=details)


class InfrastructureError(HRAssessError):
    """Storage or network failure on our side. Callers only see a generic message."""

    status_code = 500

    def __init__(self, message: str = "Internal storage failure", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INFRASTRUCTURE_ERROR", details=details)


class PartialDeliveryFailure(HRAssessError):
    """A single subscriber write failed. Handled inside the broadcaster only."""

    def __init__(self, client_id: str, reason: str):
        super().__init__(
            f"Delivery to subscriber {client_id} failed: {reason}",
            code="PARTIAL_DELIVERY_FAILURE",
            details={"client_id": client_id},
        )
        self.client_id = client_id
