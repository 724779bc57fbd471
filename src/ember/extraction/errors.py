"""Extraction failures.

Both concrete errors are non-transient: the same response would fail the
same way on retry. Transport failures surface as ember.llm.errors instead.
"""


class ExtractionError(Exception):
    """Base class for extraction failures.

    Attributes:
        public_message: Short, user-safe description stored on failed captures
    """

    public_message = "Memory extraction failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)


class MalformedExtractionError(ExtractionError):
    """The response envelope was not valid JSON or not the expected shape."""

    public_message = "The extraction response was not in the expected format"


class EmptyExtractionError(ExtractionError):
    """The envelope held no entry that passed field-level validation."""

    public_message = "No valid memories were found in the extraction response"
