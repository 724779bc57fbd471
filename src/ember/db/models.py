"""Database models for accounts, profiles, captures and memories.

SQLAlchemy models use async-compatible patterns with Mapped[] annotations.
Enumerated columns hold plain strings (see ember.enums). Pydantic read models
at the bottom of the module are the shapes handed to the rest of the system.
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ember.enums import AccountTier, CaptureStatus, MemoryCategory


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""

    pass


class Account(Base):
    """An owner of profiles. Identity and billing live in external systems.

    Attributes:
        id: Unique identifier
        external_id: Identifier issued by the identity provider
        tier: Subscription tier (gates compression)
        token_budget: Default wake prompt budget
        extraction_route: 'server', 'byok' or 'proxied'
        byok_api_key: Account-supplied model credential (BYOK route only)
    """

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    external_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    tier: Mapped[str] = mapped_column(String(20), nullable=False, default=AccountTier.FREE.value)
    token_budget: Mapped[int] = mapped_column(Integer, nullable=False, default=8000)
    extraction_route: Mapped[str] = mapped_column(String(20), nullable=False, default="server")
    byok_api_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    profiles: Mapped[list["Profile"]] = relationship(back_populates="account")

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, tier={self.tier})>"


class Profile(Base):
    """One companion context an account keeps memories for.

    At most one profile per account carries is_default; the partial unique
    index backs the write-time check in ProfileRepository.
    """

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    account_id: Mapped[str] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    platform: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    account: Mapped["Account"] = relationship(back_populates="profiles")

    __table_args__ = (
        Index(
            "uq_profiles_one_default",
            "account_id",
            unique=True,
            sqlite_where=text("is_default = 1"),
            postgresql_where=text("is_default"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, name='{self.name}', default={self.is_default})>"


class Capture(Base):
    """One ingested transcript and its extraction state.

    Status changes only through CaptureRepository's conditional transitions.
    memory_count is a cache of the number of memories referencing the capture,
    written in the same transaction as those memories. A set deleted_at hides
    the capture until it is restored or purged; fingerprints are unique among
    captures that are not deleted.
    """

    __tablename__ = "captures"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    profile_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    method: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CaptureStatus.QUEUED.value
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    platform: Mapped[str | None] = mapped_column(String(20), nullable=True)
    speaker_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    memory_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_captures_profile_hash",
            "profile_id",
            "content_hash",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
        Index("ix_captures_deleted", "deleted_at"),
        Index("ix_captures_profile_created", "profile_id", "created_at"),
        Index("ix_captures_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Capture(id={self.id}, status={self.status}, memories={self.memory_count})>"


class Memory(Base):
    """One discrete extracted unit.

    Deleting the source capture leaves the memory in place; capture_id is
    nulled once the capture row is purged. A set deleted_at hides the memory
    from every read until it is restored or purged.
    """

    __tablename__ = "memories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    profile_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    capture_id: Mapped[str | None] = mapped_column(
        ForeignKey("captures.id", ondelete="SET NULL"), nullable=True
    )
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    factual_content: Mapped[str] = mapped_column(Text, nullable=False)
    emotional_significance: Mapped[str | None] = mapped_column(Text, nullable=True)
    importance: Mapped[int] = mapped_column(Integer, nullable=False)
    verbatim_text: Mapped[str] = mapped_column(Text, nullable=False)
    summary_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    prefer_verbatim: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verbatim_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    summary_tokens: Mapped[int | None] = mapped_column(Integer, nullable=True)
    speaker_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("importance >= 1 AND importance <= 5", name="ck_memories_importance"),
        Index("ix_memories_profile_category", "profile_id", "category"),
        Index("ix_memories_profile_created", "profile_id", "created_at"),
        Index("ix_memories_capture", "capture_id"),
        Index("ix_memories_deleted", "deleted_at"),
    )

    def __repr__(self) -> str:
        preview = (
            self.factual_content[:50] + "..."
            if len(self.factual_content) > 50
            else self.factual_content
        )
        return f"<Memory(id={self.id}, category={self.category}, content='{preview}')>"


# ============================================================================
# Pydantic Models (read shapes)
# ============================================================================


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive values; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class ProfileRecord(BaseModel):
    """Profile as returned to callers."""

    id: str
    account_id: str
    name: str
    platform: str | None = None
    is_default: bool
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class CaptureRecord(BaseModel):
    """Capture status view, safe to poll."""

    id: str
    profile_id: str
    method: str
    status: CaptureStatus
    platform: str | None = None
    memory_count: int = 0
    error_message: str | None = None
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class MemoryRecord(BaseModel):
    """Immutable snapshot of a memory, used by packing and assembly."""

    id: str
    profile_id: str
    capture_id: str | None = None
    category: MemoryCategory
    factual_content: str = Field(..., min_length=1)
    emotional_significance: str | None = None
    importance: int = Field(..., ge=1, le=5)
    verbatim_text: str = Field(..., min_length=1)
    summary_text: str | None = None
    prefer_verbatim: bool = False
    verbatim_tokens: int = Field(..., ge=0)
    summary_tokens: int | None = Field(None, ge=0)
    speaker_confidence: float | None = Field(None, ge=0.0, le=1.0)
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def uses_verbatim(self) -> bool:
        """True when the wake prompt renders the verbatim excerpt."""
        return self.prefer_verbatim or self.summary_text is None

    @property
    def token_cost(self) -> int:
        """Cached cost of the form the wake prompt will render."""
        if self.uses_verbatim or self.summary_tokens is None:
            return self.verbatim_tokens
        return self.summary_tokens

    @property
    def rendered_text(self) -> str:
        """Text the wake prompt shows for this memory."""
        if self.uses_verbatim:
            return self.verbatim_text
        return self.summary_text or self.verbatim_text
