"""Structural validation of extraction responses.

The envelope must be a JSON object with a "memories" list of 1..N entries.
Envelope failures reject the whole batch; entries failing field-level
validation are dropped individually.
"""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from ember.capture.fingerprint import normalize_text
from ember.extraction.errors import EmptyExtractionError, MalformedExtractionError
from ember.extraction.models import CandidateMemory, ExtractionBatch

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_payload(text: str) -> Any:
    """Decode a model response, tolerating a surrounding markdown code fence.

    Raises:
        MalformedExtractionError: If the text is not valid JSON
    """
    stripped = text.strip()
    match = _CODE_FENCE.match(stripped)
    if match:
        stripped = match.group(1)
    try:
        return json.loads(stripped)
    except json.JSONDecodeError as e:
        logger.debug(f"Unparseable extraction response: {text[:200]!r}")
        raise MalformedExtractionError(f"Response is not valid JSON: {e.msg}") from e


def _is_excerpt(verbatim: str, haystack: str) -> bool:
    return normalize_text(verbatim).casefold() in haystack


def validate_envelope(
    payload: Any, raw_text: str, max_candidates: int = 50
) -> ExtractionBatch:
    """Validate a decoded response against the candidate memory contract.

    Args:
        payload: Decoded JSON (or the raw response string)
        raw_text: Capture text the response was produced from
        max_candidates: Upper bound on entries in one envelope

    Returns:
        ExtractionBatch holding every entry that passed validation

    Raises:
        MalformedExtractionError: Envelope is not an object with a list of
            1..max_candidates entries
        EmptyExtractionError: No entry passed field-level validation
    """
    if isinstance(payload, str):
        payload = parse_payload(payload)

    if not isinstance(payload, dict) or "memories" not in payload:
        raise MalformedExtractionError("Response is not an object with a 'memories' field")
    entries = payload["memories"]
    if not isinstance(entries, list):
        raise MalformedExtractionError("'memories' is not a list")
    if not entries:
        raise EmptyExtractionError("Response contained no memories")
    if len(entries) > max_candidates:
        raise MalformedExtractionError(
            f"Response contained {len(entries)} memories (limit {max_candidates})"
        )

    haystack = normalize_text(raw_text).casefold()
    candidates: list[CandidateMemory] = []
    low_confidence: list[int] = []
    dropped = 0

    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            dropped += 1
            continue
        try:
            candidate = CandidateMemory.model_validate(entry)
        except ValidationError as e:
            dropped += 1
            logger.warning(
                f"Dropped extraction entry {position}: {e.error_count()} field error(s)",
                extra={"fields": [".".join(map(str, err["loc"])) for err in e.errors()]},
            )
            continue

        if not _is_excerpt(candidate.verbatim_text, haystack):
            low_confidence.append(len(candidates))
            logger.warning(
                f"Extraction entry {position} verbatim text not found in capture (low confidence)"
            )
        candidates.append(candidate)

    if not candidates:
        raise EmptyExtractionError(f"All {dropped} extracted entries failed validation")

    return ExtractionBatch(candidates=candidates, dropped=dropped, low_confidence=low_confidence)
