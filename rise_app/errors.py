"""
Error taxonomy for the Rise.ai integration.
Each error knows its HTTP status and the JSON envelope {error, message, details}.
"""
from typing import Any


class RiseAppError(Exception):
    status_code = 500
    error = "internal_server_error"
    message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, *, details: Any = None, status_code: int | None = None):
        super().__init__(message or self.message)
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self, include_details: bool = True) -> dict:
        body = {"error": self.error, "message": self.message}
        if include_details and self.details is not None:
            body["details"] = self.details
        return body


class MissingParameters(RiseAppError):
    status_code = 400
    error = "missing_parameters"
    message = "Authorization code and instance ID are required"


class MissingInstallToken(MissingParameters):
    error = "missing_token"
    message = "Installation token is required"


class InstallationNotFound(RiseAppError):
    status_code = 404
    error = "installation_not_found"
    message = "No installation found for this instance ID"

    def __init__(self, instance_id: str):
        super().__init__()
        self.instance_id = instance_id


class InvalidSignature(RiseAppError):
    """Signed payload failed verification. Always fail closed."""
    status_code = 400
    error = "webhook_verification_failed"
    message = "Invalid webhook signature"


class UpstreamAuthError(RiseAppError):
    """Token endpoint failure; details hold the upstream body for server-side logging."""
    status_code = 502
    error = "upstream_auth_error"
    message = "Token exchange with Rise.ai failed"

    def __init__(self, message: str | None = None, *, upstream_status: int | None = None, details: Any = None):
        super().__init__(message, details=details)
        self.upstream_status = upstream_status


class UpstreamTimeout(RiseAppError):
    status_code = 504
    error = "upstream_timeout"
    message = "Rise.ai did not respond in time"


class UpstreamApiError(RiseAppError):
    """Passthrough API failure; status_code mirrors the upstream status when there is one."""
    status_code = 502
    error = "api_call_failed"
    message = "Rise.ai API call failed"
