"""Synchronous intake failures. These never enter the job queue."""

from enum import Enum


class CaptureRejection(str, Enum):
    """Structured reasons returned to the submitter."""

    TOO_SHORT = "TooShort"
    TOO_LONG = "TooLong"
    INVALID_PROFILE = "InvalidProfile"


class CaptureValidationError(Exception):
    """Raised when a capture is rejected at intake.

    Attributes:
        reason: Machine-readable rejection reason
        detail: Human-readable explanation
    """

    def __init__(self, reason: CaptureRejection, detail: str) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}")
