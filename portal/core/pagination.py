"""Pagination and sorting for list endpoints."""


import math

from fastapi import Query
from pydantic import BaseModel
from pydantic.alias_generators import to_snake

from portal.core.exceptions import ValidationError

# Columns a submission listing may be ordered by (API names are camelCase)
SORTABLE_FIELDS = frozenset(
    {
        "created_at",
        "updated_at",
        "submitted_at",
        "period_year",
        "period_month",
        "submission_code",
        "status",
    }
)


class PaginationParams:
    """FastAPI dependency for `?page=1&limit=20&sort=createdAt&order=desc`."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Page number (1-based)"),
        limit: int = Query(default=20, ge=1, le=200, description="Items per page"),
        sort: str = Query(default="createdAt", description="Sort field"),
        order: str = Query(default="desc", pattern="^(asc|desc)$", description="Sort order"),
    ):
        column = to_snake(sort)
        if column not in SORTABLE_FIELDS:
            raise ValidationError(
                f"Cannot sort by '{sort}'; use one of {sorted(SORTABLE_FIELDS)}"
            )
        self.page = page
        self.limit = limit
        self.sort = column
        self.order = order

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

    model_config = {"populate_by_name": True}

    @classmethod
    def build(cls, total: int, pagination: PaginationParams) -> "PageMeta":
        return cls(
            total=total,
            page=pagination.page,
            limit=pagination.limit,
            pages=math.ceil(total / pagination.limit) if pagination.limit else 1,
        )
