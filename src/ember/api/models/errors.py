"""Pydantic models for error responses."""

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """Detailed error information."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Error type identifier")
    code: str | None = Field(None, description="Machine-readable reason")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "Capture must be at least 40 characters",
                "type": "validation_error",
                "code": "TooShort",
            }
        }
    )


class ErrorResponse(BaseModel):
    """Error response wrapper."""

    error: ErrorDetail = Field(..., description="Error details")

    @classmethod
    def from_exception(
        cls, exc: Exception, error_type: str, code: str | None = None
    ) -> "ErrorResponse":
        """Create error response from exception."""
        return cls(error=ErrorDetail(message=str(exc), type=error_type, code=code))

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "message": "Capture 3f0e... not found",
                    "type": "not_found",
                    "code": None,
                }
            }
        }
    )
