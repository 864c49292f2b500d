"""Shared Pydantic schemas."""

from shared.schemas.api_responses import ErrorResponse, PaginatedResponse

__all__ = [
    "ErrorResponse",
    "PaginatedResponse",
]
