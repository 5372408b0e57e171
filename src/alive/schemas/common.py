"""Common schemas used across the API."""

from pydantic import BaseModel


class PaginatedResponse[T](BaseModel):
    """Paginated response wrapper."""

    items: list[T]
    total: int
    offset: int
    limit: int


class ErrorResponse(BaseModel):
    """Error body for credential failures; ``code`` is stable for clients."""

    detail: str
    code: str | None = None


class SuccessResponse(BaseModel):
    """Standard success response."""

    message: str
