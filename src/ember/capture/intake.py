"""Inbound capture adapters.

Each channel (typed text, text read from a screenshot, a forwarded message,
an API client) converts its input into one CaptureRequest. Everything after
that goes through CaptureIntake.submit().
"""

import re

from pydantic import BaseModel, Field, model_validator

from ember.enums import CaptureMethod, Platform

# Order matters: the first platform whose pattern matches wins
_PLATFORM_PATTERNS: tuple[tuple[Platform, re.Pattern[str]], ...] = (
    (Platform.CHATGPT, re.compile(r"\bchatgpt\b|gpt-4|gpt-3\.5|you said:", re.IGNORECASE)),
    (Platform.CLAUDE, re.compile(r"\bclaude\b|anthropic|\bsonnet\b|\bhaiku\b|\bopus\b", re.IGNORECASE)),
    (Platform.GEMINI, re.compile(r"\bgemini\b|google ai|\bbard\b", re.IGNORECASE)),
)

_MAIL_HEADER = re.compile(
    r"^(from|to|cc|bcc|date|sent|subject|reply-to)\s*:.*$", re.IGNORECASE
)
_FORWARD_MARKER = re.compile(
    r"^-{2,}\s*(forwarded message|original message)\s*-{2,}$|^begin forwarded message:?$",
    re.IGNORECASE,
)
_QUOTE_MARKER = re.compile(r"^(\s*>)+\s?")


def detect_platform(text: str) -> Platform:
    """Guess which AI platform a transcript came from."""
    for platform, pattern in _PLATFORM_PATTERNS:
        if pattern.search(text):
            return platform
    return Platform.OTHER


class CaptureRequest(BaseModel):
    """Normalized request shape produced by every intake adapter."""

    profile_id: str = Field(..., min_length=1)
    raw_text: str
    method: CaptureMethod
    platform: Platform | None = Field(None, description="Hint; detected when omitted")
    speaker_confidence: float | None = Field(
        None, ge=0.0, le=1.0, description="Speaker attribution confidence (image-derived only)"
    )

    @model_validator(mode="after")
    def confidence_only_for_images(self) -> "CaptureRequest":
        if self.method != CaptureMethod.IMAGE_DERIVED:
            self.speaker_confidence = None
        return self

    def resolved_platform(self) -> Platform:
        return self.platform or detect_platform(self.raw_text)


def from_direct_text(
    profile_id: str, text: str, platform: Platform | None = None
) -> CaptureRequest:
    """Text pasted or typed by the user."""
    return CaptureRequest(
        profile_id=profile_id,
        raw_text=text,
        method=CaptureMethod.DIRECT_TEXT,
        platform=platform,
    )


def from_image_text(
    profile_id: str,
    text: str,
    speaker_confidence: float,
    platform: Platform | None = None,
) -> CaptureRequest:
    """Text recognized from screenshots by an upstream collaborator.

    Args:
        speaker_confidence: How sure the recognizer is about who said what
    """
    return CaptureRequest(
        profile_id=profile_id,
        raw_text=text,
        method=CaptureMethod.IMAGE_DERIVED,
        platform=platform,
        speaker_confidence=speaker_confidence,
    )


def strip_forwarding(message: str) -> str:
    """Remove forward banners, quote markers and mail header blocks.

    A header block is the run of header lines at the top of the message or
    right after a forward banner. It ends at the first other line, so a
    body line such as "Date: Friday works" is kept.
    """
    lines: list[str] = []
    in_headers = True
    seen_header = False
    for line in message.splitlines():
        unquoted = _QUOTE_MARKER.sub("", line)
        stripped = unquoted.strip()
        if _FORWARD_MARKER.match(stripped):
            in_headers, seen_header = True, False
            continue
        if in_headers:
            if _MAIL_HEADER.match(stripped):
                seen_header = True
                continue
            if not stripped and not seen_header:
                continue
            in_headers = False
        lines.append(unquoted.rstrip())
    return "\n".join(lines).strip()


def from_forwarded_message(
    profile_id: str, message: str, platform: Platform | None = None
) -> CaptureRequest:
    """A conversation forwarded by email or chat."""
    return CaptureRequest(
        profile_id=profile_id,
        raw_text=strip_forwarding(message),
        method=CaptureMethod.FORWARDED_MESSAGE,
        platform=platform,
    )


def from_api(profile_id: str, text: str, platform: Platform | None = None) -> CaptureRequest:
    """Submission through the public API."""
    return CaptureRequest(
        profile_id=profile_id,
        raw_text=text,
        method=CaptureMethod.PROGRAMMATIC,
        platform=platform,
    )
