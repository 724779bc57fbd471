"""Request and result models for single-shot completions."""

from pydantic import BaseModel, Field

# Stop reasons meaning the model ran out of completion tokens
TRUNCATION_REASONS = frozenset({"max_tokens", "length"})


class CompletionRequest(BaseModel):
    """One instruction/input pair sent to a model."""

    prompt: str = Field(..., min_length=1, description="User turn content")
    system: str | None = Field(None, description="Instructions sent ahead of the prompt")
    max_tokens: int = Field(1024, gt=0)
    temperature: float = Field(0.0, ge=0.0, le=1.0)
    json_output: bool = Field(True, description="Ask the provider for a JSON document")


class Completion(BaseModel):
    """Text produced by a model and its usage figures."""

    text: str = Field(..., min_length=1)
    model: str
    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    stop_reason: str | None = None

    @property
    def truncated(self) -> bool:
        return self.stop_reason in TRUNCATION_REASONS
