"""
Failure taxonomy for the capture pipeline.

Every failure the core can produce is a ``CaptureFailure``. Validation
failures map to client errors (nothing was allocated yet); everything
else maps to a server error.
"""

from typing import Any, Dict, Optional


class CaptureFailure(Exception):
    """Base class for all capture pipeline failures."""

    status_code = 500
    code = "CAPTURE_FAILED"
    error = "Failed to generate screenshot"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message or self.error)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error, "code": self.code}
        if self.message:
            body["message"] = self.message
        if self.field:
            body["field"] = self.field
        return body


class ValidationFailure(CaptureFailure):
    """Caller input error. The message is the user-facing error."""

    status_code = 400
    code = "INVALID_PARAMETER"

    def __init__(self, message: str, field: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message, field=field)
        self.hint = hint

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.hint:
            body["message"] = self.hint
        if self.field:
            body["field"] = self.field
        return body


class MissingParameter(ValidationFailure):
    code = "MISSING_PARAMETER"


class InvalidUrl(ValidationFailure):
    code = "INVALID_URL"


class InvalidDimensions(ValidationFailure):
    code = "INVALID_DIMENSIONS"


class InvalidQuality(ValidationFailure):
    code = "INVALID_QUALITY"


class InvalidBody(ValidationFailure):
    code = "INVALID_BODY"


class BrowserLaunchError(CaptureFailure):
    code = "BROWSER_LAUNCH_FAILED"


class NavigationError(CaptureFailure):
    code = "NAVIGATION_FAILED"


class NavigationTimeout(NavigationError):
    code = "NAVIGATION_TIMEOUT"


class CaptureError(CaptureFailure):
    code = "CAPTURE_FAILED"


class EncodingError(CaptureFailure):
    code = "ENCODING_FAILED"


class OverallTimeout(CaptureFailure):
    code = "CAPTURE_TIMEOUT"
    error = "Screenshot generation timed out"
