"""
Error taxonomy shared by the webhook pipeline and the CRUD routers.

Every error raised on purpose inside a request handler derives from
ServiceError. The app-level exception handler turns it into a JSON body
with the matching status code; anything else becomes a generic 500.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message}

    def headers(self) -> dict[str, str]:
        return {}


class AuthenticationError(ServiceError):
    """Bad or missing webhook signature / bearer key. Never retried."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class PayloadValidationError(ServiceError):
    """Payload failed format rules. Carries the field-level error list."""

    status_code = 400

    def __init__(self, errors: list[str], message: str = "Validation failed") -> None:
        super().__init__(message)
        self.errors = list(errors)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.errors:
            body["details"] = self.errors
        return body


class ResolutionFailure(ServiceError):
    """Bot or patient could not be identified and the flow cannot degrade."""

    status_code = 400


class PersistenceError(ServiceError):
    """A data-store call failed. Surfaced as a 500, not retried."""

    status_code = 500


class RateLimitExceeded(ServiceError):
    """Too many requests from one caller within the current window."""

    status_code = 429

    def __init__(self, decision) -> None:
        super().__init__("Rate limit exceeded")
        self.decision = decision

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, "retryAfter": self.decision.retry_after}

    def headers(self) -> dict[str, str]:
        return {
            "Retry-After": str(self.decision.retry_after),
            "X-RateLimit-Limit": str(self.decision.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": self.decision.reset_at.isoformat(),
        }
