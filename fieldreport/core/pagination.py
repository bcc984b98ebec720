"""Fixed-size page arithmetic for lists (1-based pages)."""

from __future__ import annotations

import math
from dataclasses import dataclass


def total_pages(total_count: int, page_size: int) -> int:
    if total_count <= 0:
        return 1
    return math.ceil(total_count / page_size)


def page_after_delete(page: int, page_size: int, total_count: int) -> int:
    """Page to show after one row was deleted from a list of ``total_count`` rows.

    Moves back to the new last page when the current one no longer exists,
    and to page 1 when the list became empty.
    """
    new_total = max(total_count - 1, 0)
    if new_total == 0:
        return 1
    new_pages = math.ceil(new_total / page_size)
    if page > new_pages:
        return new_pages
    return max(page, 1)


@dataclass(frozen=True, slots=True)
class Pagination:
    page: int
    page_size: int
    total_count: int

    def __post_init__(self):
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")

    @classmethod
    def clamp(cls, page: int | None, page_size: int, total_count: int) -> "Pagination":
        p = max(int(page or 1), 1)
        return cls(page=min(p, total_pages(total_count, page_size)), page_size=page_size, total_count=total_count)

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_count, self.page_size)

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.page_size

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def prev_page(self) -> int:
        return self.page - 1 if self.has_prev else self.page

    def next_page(self) -> int:
        return self.page + 1 if self.has_next else self.page

    def after_delete(self) -> "Pagination":
        return Pagination(
            page=page_after_delete(self.page, self.page_size, self.total_count),
            page_size=self.page_size,
            total_count=max(self.total_count - 1, 0),
        )

    def as_dict(self) -> dict:
        return {
            "page": self.page,
            "page_size": self.page_size,
            "total_count": self.total_count,
            "total_pages": self.total_pages,
            "has_prev": self.has_prev,
            "has_next": self.has_next,
        }
