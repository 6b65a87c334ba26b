"""Paginator - slices the final merged list and computes page metadata."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_more: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
            "hasMore": self.has_more,
        }


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    pagination: Pagination


def paginate(items: Sequence[T], page: int, limit: int) -> Page[T]:
    """
    Slice ``items`` for one page.

    A page past the end yields an empty list with ``has_more=False``,
    never an error.
    """
    if page < 1 or limit < 1:
        raise ValueError(f"page and limit must be >= 1 (got page={page}, limit={limit})")
    total = len(items)
    total_pages = math.ceil(total / limit)
    offset = (page - 1) * limit
    return Page(
        items=list(items[offset : offset + limit]),
        pagination=Pagination(
            page=page,
            limit=limit,
            total_count=total,
            total_pages=total_pages,
            has_more=page < total_pages,
        ),
    )
