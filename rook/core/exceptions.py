"""
Custom exception hierarchy for structured error handling.

WHY: Every failure the ticket and device cores can raise maps to exactly one
HTTP status here, so route handlers never build error responses by hand:
1. NotFound / Forbidden propagate straight to the API boundary as 404 / 403
2. Validation failures surface as 400 with field context
3. Storage failures surface as a generic 500 without driver text
4. Context kwargs help debugging but sensitive keys never reach the client

IMPORTANT: Raise these, not bare Exception. Bulk per-target failures are a
result shape, not an exception (see BulkActionResult).
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing the status code and serialization in one base class
    keeps error responses uniform across every router.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Debugging context (ids, ticket type); filtered in to_dict
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "key", "api_key", "file_path"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authentication & Authorization
# ============================================================================


class AuthenticationError(AppException):
    """
    Raised when the bearer token cannot be resolved to an active user.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    default_message = "Authentication failed"


class TokenExpiredError(AuthenticationError):
    """Raised when the JWT has expired."""

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationError):
    """Raised when the JWT is malformed or has an invalid signature."""

    default_message = "Token is invalid"


class AuthorizationError(AppException):
    """
    Raised when the actor lacks access to a resource or operation.

    WHY: The access policy decides intra-organization visibility only;
    this is the Forbidden outcome of that decision.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "You do not have permission to perform this action"


# Alias used by callers that read better as "forbidden"
ForbiddenError = AuthorizationError


class InsufficientRoleError(AuthorizationError):
    """
    Raised when the actor's role is below the role an operation requires.

    WHY: Destructive operations (device lock/wipe/isolate, change approval)
    layer a role gate over the ownership check. Distinguishing the two
    helps clients explain the refusal.

    HTTP Status: 403 Forbidden
    """

    default_message = "Insufficient role for this operation"


# ============================================================================
# Validation & Input
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


class InvalidTicketTypeError(ValidationError):
    """
    Raised when a route segment is not one of the four ticket collections.

    WHY: Sub-resource routes are shared across ticket types; an unknown
    segment must never reach storage.
    """

    default_message = "Invalid ticket type"


class AttachmentTooLargeError(ValidationError):
    """Raised when a decoded attachment exceeds MAX_ATTACHMENT_SIZE."""

    default_message = "File too large"


class UnsupportedMediaTypeError(ValidationError):
    """Raised when an upload uses a content type the endpoint cannot parse."""

    default_message = "Unsupported content type"


class NotImplementedFeatureError(AppException):
    """
    Raised for request shapes the service recognizes but does not support.

    WHY: Multipart uploads are a known client shape; answering 501 tells the
    caller to fall back to the JSON/base64 form instead of retrying.

    HTTP Status: 501 Not Implemented
    """

    status_code = 501
    default_message = "Not implemented"


# ============================================================================
# Resources
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist in the caller's organization.

    WHY: Cross-organization lookups also end here, so a tenant can never
    confirm that another tenant's row exists.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class TicketNotFoundError(ResourceNotFoundError):
    """Raised when a ticket of the given type is not found."""

    default_message = "Ticket not found"


class DeviceNotFoundError(ResourceNotFoundError):
    """Raised when a device is not found."""

    default_message = "Device not found"


class AttachmentNotFoundError(ResourceNotFoundError):
    """Raised when an attachment is not found."""

    default_message = "Attachment not found"


class CatalogItemNotFoundError(ResourceNotFoundError):
    """Raised when a service catalog item is not found."""

    default_message = "Catalog item not found"


# ============================================================================
# Storage
# ============================================================================


class StorageError(AppException):
    """
    Raised when persistence fails outside of any handled fallback path.

    WHY: Wraps driver/database errors so the generic message is what reaches
    the client; the original exception stays chained for the logs.

    HTTP Status: 500 Internal Server Error
    """

    status_code = 500
    default_message = "Storage error"


class BlobStorageError(StorageError):
    """Raised when attachment bytes cannot be written or read."""

    default_message = "File storage error"


# ============================================================================
# Device actions
# ============================================================================


class DeviceActionError(AppException):
    """
    Raised by the device action executor when an action cannot be carried out.

    WHY: Device actions run in the background worker, not in a request. The
    worker records the message on the activity row (status failed) so the
    failure is visible through the activity endpoint.
    """

    status_code = 500
    default_message = "Device action failed"
