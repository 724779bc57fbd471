"""Exceptions raised by the Memory Store.

Ownership failures surface as the not-found variants so callers can never
distinguish "belongs to someone else" from "does not exist".
"""


class StoreError(Exception):
    """Base exception for all Memory Store errors."""

    pass


class NotFoundError(StoreError):
    """Raised when a resource does not exist within the caller's scope.

    Attributes:
        resource: Kind of resource ('profile', 'capture', 'memory', 'account')
        resource_id: Identifier that failed to resolve
    """

    resource = "resource"

    def __init__(self, resource_id: str) -> None:
        self.resource_id = resource_id
        super().__init__(f"{self.resource.capitalize()} {resource_id} not found")


class AccountNotFoundError(NotFoundError):
    resource = "account"


class ProfileNotFoundError(NotFoundError):
    resource = "profile"


class CaptureNotFoundError(NotFoundError):
    resource = "capture"


class MemoryNotFoundError(NotFoundError):
    resource = "memory"


class InvalidTransitionError(StoreError):
    """Raised when a capture is not in a state that allows the requested change.

    Attributes:
        capture_id: Capture the transition was attempted on
        current: Status observed at the time of the attempt
        requested: Target status
    """

    def __init__(self, capture_id: str, current: str, requested: str) -> None:
        self.capture_id = capture_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Capture {capture_id} cannot move from '{current}' to '{requested}'"
        )


class InvalidCursorError(StoreError):
    """Raised when a pagination cursor cannot be decoded."""

    def __init__(self, cursor: str) -> None:
        self.cursor = cursor
        super().__init__("Invalid pagination cursor")


class DuplicateCaptureError(StoreError):
    """Raised when restoring a capture whose fingerprint is held by an active capture.

    Attributes:
        capture_id: Capture being restored
        existing_id: Active capture with the same fingerprint
    """

    def __init__(self, capture_id: str, existing_id: str) -> None:
        self.capture_id = capture_id
        self.existing_id = existing_id
        super().__init__(
            f"Capture {capture_id} cannot be restored: capture {existing_id} has the same content"
        )
