"""
Shared pydantic schemas
Project: Order Ledger
"""

from typing import Any

from pydantic import BaseModel, Field, computed_field


class PaginatedList(BaseModel):
    """
    Base for paginated responses. Subclasses narrow `items`.
    """

    items: list[Any] = Field(default_factory=list)
    total: int = Field(..., ge=0, description="Total number of matching rows")
    page: int = Field(..., ge=1, description="Current page")
    limit: int = Field(..., ge=1, description="Rows per page")

    @computed_field
    @property
    def total_pages(self) -> int:
        """ceil(total / limit)."""
        return (self.total + self.limit - 1) // self.limit

    @computed_field
    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @computed_field
    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


class MessageResponse(BaseModel):
    message: str
