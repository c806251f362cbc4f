"""
Page arithmetic for RecordModel.get_page().

A page size of 0 turns pagination off: every matching row is returned and
the result reports a single page.
"""

from dataclasses import dataclass, field
from typing import Any


def page_window(total: int, page_size: int, page: int) -> tuple[int, int, int]:
    """
    Clamp a page number and compute its offset.

    Args:
        total: Number of matching rows.
        page_size: Rows per page (0 = no pagination).
        page: Requested page (1-indexed).

    Returns:
        (page, offset, total_pages) with page clamped to [1, total_pages].
    """
    if page_size <= 0:
        return 1, 0, 1

    total_pages = max(1, -(-total // page_size))
    page = min(max(1, page), total_pages)
    return page, (page - 1) * page_size, total_pages


@dataclass
class Page:
    """
    One page of rows with its metadata.

    Attributes:
        rows: Rows of this page
        page: Current page (1-indexed, clamped)
        page_size: Rows per page (0 = all rows)
        total: Rows matching the filter across all pages
        total_pages: Number of pages (at least 1)
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    page: int = 1
    page_size: int = 0
    total: int = 0
    total_pages: int = 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self) -> dict[str, Any]:
        """Pagination metadata (without rows)."""
        return {
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "pages": self.total_pages,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }
