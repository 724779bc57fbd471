"""Memory Store: models, repositories and session management."""

from ember.db.exceptions import (
    AccountNotFoundError,
    CaptureNotFoundError,
    DuplicateCaptureError,
    InvalidCursorError,
    InvalidTransitionError,
    MemoryNotFoundError,
    NotFoundError,
    ProfileNotFoundError,
    StoreError,
)
from ember.db.models import (
    Account,
    Base,
    Capture,
    CaptureRecord,
    Memory,
    MemoryRecord,
    Profile,
    ProfileRecord,
)
from ember.db.repository import (
    AccountRepository,
    CaptureRepository,
    MemoryRepository,
    ProfileRepository,
)
from ember.db.session import close_db, create_session_factory, init_db

__all__ = [
    "Account",
    "AccountNotFoundError",
    "AccountRepository",
    "Base",
    "Capture",
    "CaptureNotFoundError",
    "CaptureRecord",
    "CaptureRepository",
    "DuplicateCaptureError",
    "InvalidCursorError",
    "InvalidTransitionError",
    "Memory",
    "MemoryNotFoundError",
    "MemoryRecord",
    "MemoryRepository",
    "NotFoundError",
    "Profile",
    "ProfileNotFoundError",
    "ProfileRecord",
    "ProfileRepository",
    "StoreError",
    "close_db",
    "create_session_factory",
    "init_db",
]
