from typing import List, Optional, Sequence


class ClosetError(Exception):
    """Base class for errors raised by closet services and workflows."""


class AIError(ClosetError):
    status_code = 500
    message = "AI request failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class AIConfigError(AIError):
    message = "AI service not configured"


class AIRateLimited(AIError):
    status_code = 429
    message = "Rate limit exceeded. Please try again in a moment."


class AICreditsExhausted(AIError):
    status_code = 402
    message = "AI credits exhausted. Please add credits to continue."


class AIUpstreamError(AIError):
    def __init__(self, message: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class AIResponseParseError(AIError):
    message = "Failed to parse AI response"


class PreconditionFailed(ClosetError):
    """Rejected before any remote call was made."""

    status_code = 400


class InvalidFile(PreconditionFailed):
    def __init__(self, content_type: Optional[str] = None):
        super().__init__("Please select an image file.")
        self.content_type = content_type


class MissingCategories(PreconditionFailed):
    def __init__(self, missing: Sequence[str]):
        self.missing: List[str] = list(missing)
        super().__init__(f"Missing required items: {', '.join(self.missing)}")


class MissingRequiredSlots(PreconditionFailed):
    def __init__(self, missing: Sequence[str]):
        self.missing: List[str] = list(missing)
        super().__init__(f"Missing required slots: {', '.join(self.missing)}")


class NotFound(ClosetError):
    status_code = 404


class SagaFailed(ClosetError):
    def __init__(self, step: str, cause: BaseException, compensation_errors: Optional[List[tuple]] = None):
        self.step = step
        self.cause = cause
        self.compensation_errors = compensation_errors or []
        super().__init__(f"step {step} failed: {cause}")


class PartialDeleteError(ClosetError):
    """Rows were deleted but some storage objects could not be removed."""

    def __init__(self, failed: Sequence[str], rows: Optional[dict] = None):
        self.failed: List[str] = list(failed)
        self.rows = rows or {}
        super().__init__(f"failed to remove {len(self.failed)} storage object(s)")
