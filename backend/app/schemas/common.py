"""
Response envelope shared by every endpoint, and pagination helpers.

Success: {"status": "success", "data": ..., "message": ...}
Paginated: same, plus "meta" with the page counters.
"""

import math
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    status: str = "success"
    data: Optional[T] = None
    message: Optional[str] = None


class PaginationMeta(BaseModel):
    total_count: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class PaginatedResponse(BaseModel, Generic[T]):
    status: str = "success"
    data: List[T] = []
    meta: PaginationMeta


def build_meta(total_count: int, page: int, limit: int) -> PaginationMeta:
    total_pages = math.ceil(total_count / limit) if limit else 0
    return PaginationMeta(
        total_count=total_count,
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


def paginate(items: list, total_count: int, page: int, limit: int) -> PaginatedResponse:
    return PaginatedResponse(data=items, meta=build_meta(total_count, page, limit))


def ok(data=None, message: Optional[str] = None) -> ApiResponse:
    return ApiResponse(data=data, message=message)
