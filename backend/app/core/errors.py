"""Error taxonomy shared by the upload and transcoding pipeline.

Every error carries a stable ``kind`` string and the HTTP status the API layer
renders it with.
"""

from typing import Optional


class ServiceError(Exception):
    """Base exception for pipeline errors."""

    kind = "service_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class ValidationError(ServiceError):
    """Raised when required input is missing or malformed."""

    kind = "validation_error"
    status_code = 422


class NotFoundError(ServiceError):
    """Raised when a referenced video does not exist."""

    kind = "not_found"
    status_code = 404


class AuthenticationError(ServiceError):
    """Raised when no verifier accepts the presented token."""

    kind = "authentication_error"
    status_code = 401


class AuthorizationError(ServiceError):
    """Raised when a video exists but belongs to another owner."""

    kind = "authorization_error"
    status_code = 403


class InvalidQualityError(ServiceError):
    """Raised for an unknown quality preset name."""

    kind = "invalid_quality"
    status_code = 400


class EncodeFailure(ServiceError):
    """Raised when the encoder exits non-zero or its input stream fails.

    ``diagnostics`` holds the tail of the encoder's error output.
    """

    kind = "encode_failure"
    status_code = 502

    def __init__(self, message: str, diagnostics: Optional[str] = None):
        super().__init__(message)
        self.diagnostics = diagnostics or ""


class EncodeTimeoutError(EncodeFailure):
    """Raised when the encoder exceeds its deadline and is killed."""

    kind = "encode_timeout"
    status_code = 504


class StorageError(ServiceError):
    """Raised when the blob, metadata or history store fails."""

    kind = "storage_error"
    status_code = 503
