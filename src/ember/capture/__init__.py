"""Capture intake, extraction pipeline and job scheduling."""

from ember.capture.exceptions import CaptureRejection, CaptureValidationError
from ember.capture.fingerprint import fingerprint, normalize_text
from ember.capture.intake import (
    CaptureRequest,
    detect_platform,
    from_api,
    from_direct_text,
    from_forwarded_message,
    from_image_text,
    strip_forwarding,
)

__all__ = [
    "CaptureRejection",
    "CaptureRequest",
    "CaptureValidationError",
    "detect_platform",
    "fingerprint",
    "from_api",
    "from_direct_text",
    "from_forwarded_message",
    "from_image_text",
    "normalize_text",
    "strip_forwarding",
]
