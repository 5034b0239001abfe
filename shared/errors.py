"""
Shared error handling for the Posts service.

Every failure reaches the client as ``{"error": "<message>"}`` with the
status code carried by the exception. Internal detail stays in the logs.
"""

from typing import Dict, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str


class PostsServiceException(Exception):
    """Base exception for the Posts service."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(error=self.message)


def basic_challenge(realm: str) -> Dict[str, str]:
    """Challenge header sent with 401 responses."""
    return {"WWW-Authenticate": f'Basic realm="{realm}"'}


class AuthRequiredError(PostsServiceException):
    """No credentials were presented."""

    status_code = 401

    def __init__(self, realm: str, message: str = "Authentication required."):
        super().__init__("AUTH_REQUIRED", message, headers=basic_challenge(realm))


class AuthMalformedError(PostsServiceException):
    """Credentials were presented but could not be decoded."""

    status_code = 400

    def __init__(self, message: str = "Malformed authentication token."):
        super().__init__("AUTH_MALFORMED", message)


class AuthInvalidError(PostsServiceException):
    """Credentials decoded but did not match."""

    status_code = 401

    def __init__(self, realm: str, message: str = "Invalid username or password."):
        super().__init__("AUTH_INVALID", message, headers=basic_challenge(realm))


class RateLimitError(PostsServiceException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, retry_after: int, message: str = "Too many requests, please try again later."):
        self.retry_after = retry_after
        super().__init__("RATE_LIMITED", message, headers={"Retry-After": str(retry_after)})


class ValidationError(PostsServiceException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed"):
        super().__init__("VALIDATION_ERROR", message)


class PayloadTooLargeError(PostsServiceException):
    """Request body exceeds the configured cap."""

    status_code = 413

    def __init__(self, message: str = "Request body too large."):
        super().__init__("PAYLOAD_TOO_LARGE", message)


class NotFoundError(PostsServiceException):
    """Requested resource does not exist."""

    status_code = 404

    def __init__(self, message: str = "Post not found."):
        super().__init__("NOT_FOUND", message)


class MalformedSearchExpressionError(PostsServiceException):
    """The backend rejected the full-text query syntax."""

    status_code = 400

    def __init__(self, message: str = "Malformed search expression."):
        super().__init__("MALFORMED_SEARCH_EXPRESSION", message)


class BackendError(PostsServiceException):
    """Persistence errors."""

    status_code = 500

    def __init__(self, operation: str, message: str = "Backend error."):
        self.operation = operation
        super().__init__("BACKEND_ERROR", message)
