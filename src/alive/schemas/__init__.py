"""Pydantic schemas for API requests/responses."""

from alive.schemas.common import (
    ErrorResponse,
    PaginatedResponse,
    SuccessResponse,
)

__all__ = [
    "ErrorResponse",
    "PaginatedResponse",
    "SuccessResponse",
]
