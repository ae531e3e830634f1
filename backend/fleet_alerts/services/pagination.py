"""
Pagination envelope for list endpoints.
"""
import math
from dataclasses import dataclass


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class Pagination:
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


def paginate(total: int, request: PageRequest) -> Pagination:
    """Build the envelope for a page. ``total == 0`` gives zero pages and no neighbours."""
    total_pages = math.ceil(total / request.limit) if total else 0
    return Pagination(
        total=total,
        page=request.page,
        limit=request.limit,
        total_pages=total_pages,
        has_next=request.page < total_pages,
        has_prev=request.page > 1 and total_pages > 0,
    )
