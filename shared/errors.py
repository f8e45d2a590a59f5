"""
Shared error handling for the Workflow Gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    success: bool = False
    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class GatewayException(Exception):
    """Base exception for Workflow Gateway services."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(GatewayException):
    """Workflow configuration is missing or unusable (e.g. empty credential)."""

    status_code = 422

    def __init__(self, message: str = "Workflow configuration error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class WorkflowNotFoundError(ConfigurationError):
    """No workflow configuration exists for the requested identifier."""

    status_code = 404

    def __init__(self, workflow_id: str):
        super().__init__("Workflow configuration not found", {"workflow_id": workflow_id})
        self.code = "WORKFLOW_NOT_FOUND"
        self.workflow_id = workflow_id


class UpstreamError(GatewayException):
    """Non-2xx status or network failure from the workflow-execution API."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(
            "UPSTREAM_ERROR",
            message,
            {"upstream_status": status_code} if status_code is not None else {}
        )
        self.upstream_status = status_code
        self.body = body
        self.status_code = status_code or 500


class UpstreamTimeoutError(UpstreamError):
    """The upstream call exceeded its request timeout."""

    def __init__(self, message: str = "Upstream request timed out"):
        super().__init__(message)
        self.code = "UPSTREAM_TIMEOUT"


class TransformError(GatewayException):
    """Upstream payload could not be mapped onto the response envelope."""

    def __init__(self, message: str = "transform failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSFORM_ERROR", message, details)


class StorageError(GatewayException):
    """Persistence failures in the storage layer."""

    def __init__(self, message: str = "Storage error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORAGE_ERROR", message, details)


class ValidationError(GatewayException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class AuthenticationError(GatewayException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None,
                 status_code: int = 401):
        super().__init__("AUTHENTICATION_ERROR", message, details)
        self.status_code = status_code
