from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, Tuple, TypeVar

from ..core.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

T = TypeVar("T")


def normalize_paging(page: Optional[Any], limit: Optional[Any]) -> Tuple[int, int]:
    """Clamp page/limit query values to sane bounds."""
    try:
        p = int(page) if page not in (None, "") else DEFAULT_PAGE
    except (TypeError, ValueError):
        p = DEFAULT_PAGE
    try:
        n = int(limit) if limit not in (None, "") else DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        n = DEFAULT_PAGE_SIZE
    return max(p, 1), min(max(n, 1), MAX_PAGE_SIZE)


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_PAGE_SIZE
    total: int = 0

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pagination(self) -> dict:
        return {"page": self.page, "limit": self.limit, "total": self.total, "pages": self.pages}


def paginate(items: List[T], page: int, limit: int) -> Page[T]:
    """Slice an in-memory list into a page (used where filtering happens in Python)."""
    start = (page - 1) * limit
    return Page(items=list(items[start : start + limit]), page=page, limit=limit, total=len(items))
