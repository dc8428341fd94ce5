"""Response envelopes shared by every v1 route.

Success bodies are `{ data }` or `{ data, meta }`; error bodies come from the
exception handlers as `{ error: { code, message, details? } }`.
"""


from typing import Generic, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from portal.core.pagination import PageMeta, PaginationParams

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    data: T

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
    }


class ListResponse(BaseModel, Generic[T]):
    data: list[T]
    meta: PageMeta

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
    }


def paginated(items: list, total: int, pagination: PaginationParams) -> dict:
    """Build the body for a ListResponse from one page of *items*."""
    return {"data": items, "meta": PageMeta.build(total, pagination)}
