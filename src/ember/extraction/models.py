"""Pydantic models for the extraction capability.

CandidateMemory is the validated shape of one entry of a model response.
Field aliases accept the camelCase names the model is prompted to produce;
snake_case is accepted as well.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ember.enums import MemoryCategory


class ProfileContext(BaseModel):
    """What the extraction capability knows about the capture's owner."""

    profile_id: str
    profile_name: str
    platform: str | None = None
    method: str | None = None


class CandidateMemory(BaseModel):
    """One extracted memory before it is persisted."""

    factual_content: str = Field(
        ..., min_length=1, alias="factualContent", description="Concrete information"
    )
    emotional_significance: str | None = Field(
        None,
        alias="emotionalSignificance",
        description="Emotional weight, null when there is none",
    )
    category: MemoryCategory = Field(..., description="One of the five fixed categories")
    importance: int = Field(..., ge=1, le=5, description="1 (trivial) to 5 (life-defining)")
    verbatim_text: str = Field(
        ..., min_length=1, alias="verbatimText", description="Exact supporting excerpt"
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True, str_strip_whitespace=True)

    @field_validator("importance", mode="before")
    @classmethod
    def reject_non_integer_importance(cls, v):
        """Refuse floats like 3.5 and booleans instead of coercing them."""
        if isinstance(v, bool) or (isinstance(v, float) and not v.is_integer()):
            raise ValueError("importance must be an integer between 1 and 5")
        return v


class ExtractionBatch(BaseModel):
    """Validated result of one extraction call.

    Attributes:
        candidates: Entries that passed field-level validation, in response order
        dropped: Number of entries rejected by field-level validation
        low_confidence: Indices (into candidates) whose verbatim text could not
            be located in the input
    """

    candidates: list[CandidateMemory] = Field(..., min_length=1)
    dropped: int = Field(0, ge=0)
    low_confidence: list[int] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.candidates)
