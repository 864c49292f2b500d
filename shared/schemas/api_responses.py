"""Standard API response envelopes."""

from typing import Any, Generic, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str
    error_code: str
    details: Optional[dict[str, Any]] = None
    correlation_id: Optional[str] = None


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated response wrapper."""

    success: bool = True
    data: list[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20
    has_next: bool = False
    has_previous: bool = False

    @classmethod
    def build(
        cls,
        items: Sequence[T],
        total: int,
        page: int,
        page_size: int,
    ) -> "PaginatedResponse[T]":
        """Build a page envelope, deriving the navigation flags."""
        return cls(
            data=list(items),
            total=total,
            page=page,
            page_size=page_size,
            has_next=page * page_size < total,
            has_previous=page > 1,
        )
