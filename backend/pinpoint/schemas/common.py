"""
Pinpoint Backend — Shared Schema Pieces
========================================

What:  The camelCase base model every API schema derives from, plus the
       error and service-info response bodies.

JSON field names are camelCase (`imageId`, `createdAt`, `cyToken`); Python
attributes stay snake_case. Inputs accept either spelling.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "duplicate_key",
            "message": "username 'a@x.com' is already taken",
            "details": {"field": "username"},
            "request_id": "1a2b3c4d"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class ApiInfoResponse(CamelModel):
    """Returned by GET /api."""
    name: str
    description: str
    version: str
    database: str = Field(description="Database dialect name")
    database_version: Optional[str] = Field(default=None, description="Database server version")
