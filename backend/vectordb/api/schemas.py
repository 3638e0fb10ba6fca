"""
Common API response schemas for OpenAPI documentation.
"""
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str = Field(examples=["Resource not found"])

