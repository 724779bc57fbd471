"""Content fingerprints for capture deduplication."""

import hashlib
import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Canonical form used for fingerprints and length checks.

    NFC normalization, runs of whitespace collapsed to one space, trimmed.
    Case is preserved: two transcripts differing only in case are distinct.
    """
    return _WHITESPACE.sub(" ", unicodedata.normalize("NFC", text)).strip()


def fingerprint(text: str) -> str:
    """SHA-256 hex digest of the normalized text.

    Raises:
        ValueError: If the text is empty after normalization
    """
    normalized = normalize_text(text)
    if not normalized:
        raise ValueError("Cannot fingerprint empty text")
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
