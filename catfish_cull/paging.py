import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Any

from catfish_cull import config


@dataclass
class Page:
    items: List[Any]
    page_count: int
    index: int


def page_count(total: int, page_size: int) -> int:
    page_size = max(1, page_size)
    return max(1, math.ceil(max(0, total) / page_size))


def clamp_index(index: int, pages: int) -> int:
    return min(max(0, index), max(1, pages) - 1)


def paginate(items: Sequence, page_size: int, page_index: int) -> Page:
    """Slice one page out of ``items``.

    The index is clamped into range so a list that shrank between polls yields
    its new last page rather than an empty slice.
    """
    page_size = max(1, page_size)
    pages = page_count(len(items), page_size)
    index = clamp_index(page_index, pages)
    start = index * page_size
    return Page(items=list(items[start:start + page_size]), page_count=pages, index=index)


def step_page(index: int, delta: int, pages: int) -> int:
    """Circular prev/next."""
    pages = max(1, pages)
    return (clamp_index(index, pages) + delta) % pages


class ViewportSizer:
    """Derives how many team cards fit on the kiosk screen.

    All buckets share the page size of the current viewport.
    """

    def __init__(
        self,
        item_height: int = config.CARD_HEIGHT_PX,
        overhead: int = config.CHROME_OVERHEAD_PX,
        breakpoints: List[Tuple[int, int]] = None,
        width: int = config.DEFAULT_VIEWPORT_WIDTH,
        height: int = config.DEFAULT_VIEWPORT_HEIGHT,
    ):
        self.item_height = max(1, item_height)
        self.overhead = max(0, overhead)
        self.breakpoints = sorted(breakpoints or config.COLUMN_BREAKPOINTS, reverse=True)
        self.width = width
        self.height = height

    def columns_for(self, width: int) -> int:
        for min_width, columns in self.breakpoints:
            if width >= min_width:
                return max(1, columns)
        return 1

    def rows_for(self, height: int) -> int:
        return max(1, (height - self.overhead) // self.item_height)

    def compute(self, width: int, height: int) -> int:
        return self.rows_for(height) * self.columns_for(width)

    @property
    def page_size(self) -> int:
        return self.compute(self.width, self.height)

    def resize(self, width: int, height: int) -> int:
        self.width = width
        self.height = height
        return self.page_size
