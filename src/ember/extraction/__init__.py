"""Extraction capability: raw capture text in, validated candidate memories out."""

from ember.extraction.errors import (
    EmptyExtractionError,
    ExtractionError,
    MalformedExtractionError,
)
from ember.extraction.extractor import ExtractionCapability, LLMExtractor
from ember.extraction.factory import build_extractor
from ember.extraction.models import CandidateMemory, ExtractionBatch, ProfileContext
from ember.extraction.static import StaticExtractor
from ember.extraction.validation import parse_payload, validate_envelope

__all__ = [
    "CandidateMemory",
    "EmptyExtractionError",
    "ExtractionBatch",
    "ExtractionCapability",
    "ExtractionError",
    "LLMExtractor",
    "MalformedExtractionError",
    "ProfileContext",
    "StaticExtractor",
    "build_extractor",
    "parse_payload",
    "validate_envelope",
]
