"""Base schemas and common types for the Approval Desk API."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class DeskBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    message: str
    details: dict[str, Any] = {}
