import math

from pydantic import BaseModel, Field


class Paginator(BaseModel):
    """1-based page cursor over a result of `total_count` rows.

    `current_page` always stays within `[1, total_pages]`; with no rows the
    only page is 1.
    """

    page_size: int = Field(default=10, ge=1)
    total_count: int = Field(default=0, ge=0)
    current_page: int = Field(default=1, ge=1)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @property
    def last_page(self) -> int:
        return max(self.total_pages, 1)

    @property
    def offset(self) -> int:
        return (self.current_page - 1) * self.page_size

    @property
    def prev_disabled(self) -> bool:
        return self.current_page == 1

    @property
    def next_disabled(self) -> bool:
        return self.current_page >= self.total_pages

    @property
    def range_start(self) -> int:
        if self.total_count == 0:
            return 0
        return self.offset + 1

    @property
    def range_end(self) -> int:
        return min(self.current_page * self.page_size, self.total_count)

    def clamp(self, page: int) -> int:
        return min(max(page, 1), self.last_page)

    def go_to(self, page: int) -> int:
        self.current_page = self.clamp(page)
        return self.current_page

    def next(self) -> int:
        return self.go_to(self.current_page + 1)

    def prev(self) -> int:
        return self.go_to(self.current_page - 1)

    def reset(self) -> None:
        self.current_page = 1

    def set_total(self, total_count: int) -> None:
        """Record a fresh row count and pull the cursor back into range."""
        self.total_count = max(total_count, 0)
        self.current_page = self.clamp(self.current_page)
