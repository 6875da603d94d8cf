"""
Pagination of the ledger list shown during entry creation.

The list is a snapshot taken when the entry flow starts; every page
is cut from that same snapshot.
"""

import math
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

from ledger_bot.schemas.ledger import LedgerSummary

T = TypeVar("T")

PAGE_TOKEN = "ledger_page"
SELECT_TOKEN = "select_ledger"


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    page_index: int
    total_pages: int

    @property
    def has_prev(self) -> bool:
        return self.page_index > 0

    @property
    def has_next(self) -> bool:
        return self.page_index < self.total_pages - 1


def paginate(items: Sequence[T], page_size: int, page_index: int) -> Page[T]:
    """
    Cut one page out of `items`.

    An out-of-range page_index is clamped into [0, total_pages - 1].
    An empty list yields a single empty page.
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    total_pages = max(1, math.ceil(len(items) / page_size))
    page_index = min(max(page_index, 0), total_pages - 1)
    start = page_index * page_size
    return Page(
        items=list(items[start:start + page_size]),
        page_index=page_index,
        total_pages=total_pages,
    )


def ledger_keyboard(page: Page[LedgerSummary]) -> list[list[tuple[str, str]]]:
    """
    Button rows for a page of ledgers: one row per ledger, then a
    navigation row holding only the directions that exist.

    Buttons are (label, callback data) pairs.
    """
    rows = [[(ledger.title, f"{SELECT_TOKEN}:{ledger.id}")] for ledger in page.items]
    nav = []
    if page.has_prev:
        nav.append(("⬅️ Previous", f"{PAGE_TOKEN}:{page.page_index - 1}"))
    if page.has_next:
        nav.append(("Next ➡️", f"{PAGE_TOKEN}:{page.page_index + 1}"))
    if nav:
        rows.append(nav)
    return rows
