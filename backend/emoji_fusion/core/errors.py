"""Error taxonomy for the fusion workflow."""
from typing import Any, Optional

from pydantic import BaseModel


class FieldError(BaseModel):
    """One invalid input field and the reason it was rejected."""

    field: str
    reason: str


class FusionError(Exception):
    """Base class for every error the fusion workflow surfaces to callers."""

    code = "fusion_error"
    retryable = False

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to the error body returned by the API."""
        body: dict[str, Any] = {
            "error": self.code,
            "message": str(self),
            "retryable": self.retryable,
        }
        if self.details:
            body["details"] = self.details
        return body


class InputValidationError(FusionError):
    """One or both input items are malformed. Raised before any remote call."""

    code = "validation_error"

    def __init__(self, errors: list[FieldError]) -> None:
        fields = ", ".join(e.field for e in errors)
        super().__init__(f"Invalid input: {fields}")
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["fields"] = [e.model_dump() for e in self.errors]
        return body


class UsageLimitReached(FusionError):
    """The daily usage gate vetoed the request."""

    code = "limit_reached"

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"Daily fusion limit of {limit} reached. Try again tomorrow.",
            details={"limit": limit},
        )
        self.limit = limit


class FusionInProgress(FusionError):
    """A fusion for the same client is already pending."""

    code = "in_progress"


class FusionFailed(FusionError):
    """The remote generation call did not produce an image."""

    code = "fusion_failed"


class NetworkError(FusionFailed):
    """Transport-level failure talking to the model API."""

    code = "network_error"
    retryable = True


class UpstreamError(FusionFailed):
    """The model API answered with a non-2xx status."""

    code = "upstream_error"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code
        self.retryable = status_code is not None and (status_code == 429 or status_code >= 500)


class SafetyBlocked(FusionFailed):
    """The model refused the prompt or withheld the image for safety reasons."""

    code = "safety_blocked"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Generation blocked by safety filters: {reason}", details={"reason": reason})
        self.reason = reason


class MalformedResponse(FusionFailed):
    """The model answered but the response carried no image."""

    code = "malformed_response"


class UsageStoreUnavailable(FusionError):
    """The usage store could not be read or written."""

    code = "usage_unavailable"
    retryable = True
