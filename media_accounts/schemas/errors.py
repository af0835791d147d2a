"""Error body schema (documentation only; bodies are built by ``error_response``)."""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str = Field(description="Stable machine-readable error code")
    message: str = Field(description="Human-readable explanation")
