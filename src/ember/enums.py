"""Closed vocabularies shared across the pipeline.

Every value is persisted as its plain string form so new members can be
added without migrating existing rows.
"""

from enum import Enum


class MemoryCategory(str, Enum):
    """Fixed grouping of memories."""

    EMOTIONAL = "emotional"
    WORK = "work"
    HOBBIES = "hobbies"
    RELATIONSHIPS = "relationships"
    PREFERENCES = "preferences"


# Section order of a wake prompt
CATEGORY_ORDER: tuple[MemoryCategory, ...] = (
    MemoryCategory.EMOTIONAL,
    MemoryCategory.WORK,
    MemoryCategory.HOBBIES,
    MemoryCategory.RELATIONSHIPS,
    MemoryCategory.PREFERENCES,
)


class CaptureStatus(str, Enum):
    """Capture processing state machine."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# States an explicit retry may start from
RETRYABLE_STATUSES: frozenset[CaptureStatus] = frozenset(
    {CaptureStatus.FAILED, CaptureStatus.COMPLETED}
)


class CaptureMethod(str, Enum):
    """How a capture entered the system."""

    DIRECT_TEXT = "direct_text"
    IMAGE_DERIVED = "image_derived"
    FORWARDED_MESSAGE = "forwarded_message"
    PROGRAMMATIC = "programmatic"


class Platform(str, Enum):
    """AI platform a transcript came from."""

    CHATGPT = "chatgpt"
    CLAUDE = "claude"
    GEMINI = "gemini"
    OTHER = "other"


class AccountTier(str, Enum):
    """Subscription tier (billing itself is external)."""

    FREE = "free"
    PRO = "pro"
    FOUNDERS = "founders"


# Tiers allowed to use the compression capability
COMPRESSION_TIERS: frozenset[AccountTier] = frozenset({AccountTier.PRO, AccountTier.FOUNDERS})
