"""
Venue Gallery Backend — Shared Response Schemas
================================================

What:  The JSON envelope every endpoint answers with, pagination metadata,
       error entries and the health payload.
How:   Pydantic generics: ApiResponse[T] wraps a payload, PaginatedResponse[T]
       adds pagination. JSON keys are camelCase (alias generator); Python
       code keeps snake_case attribute names.

Envelope:
    {
        "success": true,
        "message": "Images retrieved successfully",
        "data": [...],
        "pagination": {"page": 2, "limit": 10, "total": 25,
                       "totalPages": 3, "hasNext": true, "hasPrev": true}
    }
"""

import math
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for API models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    page: int = Field(description="Current page (1-based)")
    limit: int = Field(description="Items per page")
    total: int = Field(description="Total number of matching records")
    total_pages: int = Field(description="Number of pages at this limit")
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class ApiResponse(CamelModel, Generic[T]):
    """Success envelope around a single payload."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class PaginatedResponse(ApiResponse[List[T]], Generic[T]):
    """Success envelope around one page of records."""

    pagination: Pagination


class FieldError(BaseModel):
    field: str = Field(description="Dotted path of the offending input")
    message: str = Field(description="What is wrong with it")


class ErrorResponse(BaseModel):
    """
    Error envelope returned by every exception handler.

    Example:
        {
            "success": false,
            "message": "Validation failed",
            "errors": [{"field": "limit", "message": "Input should be less than or equal to 100"}]
        }
    """

    success: bool = False
    message: str
    errors: Optional[List[FieldError]] = None


class HealthStatus(CamelModel):
    status: str = Field(description="Always 'ok' while the process is serving requests")
    version: str
    environment: str
    database: str = Field(description="Informational probe: connected, disconnected")
    uptime_seconds: float
    timestamp: datetime
