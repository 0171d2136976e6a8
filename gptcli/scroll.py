"""Virtual scrolling over the message list."""

import math
from dataclasses import dataclass

from gptcli.models import Message

# Role header plus the blank lines around each message
MESSAGE_OVERHEAD_ROWS = 3
# Header, input line and toolbar
RESERVED_CHROME_ROWS = 8
MIN_VISIBLE_MESSAGES = 3


@dataclass(frozen=True)
class Window:
    start: int
    end: int
    has_more_above: bool
    has_more_below: bool

    @property
    def size(self) -> int:
        return self.end - self.start


def estimate_rows(message: Message, viewport_cols: int) -> int:
    """Approximate number of terminal rows a message will occupy."""
    usable_cols = max(1, viewport_cols - 2)
    rows = MESSAGE_OVERHEAD_ROWS
    for line in message.content.split("\n"):
        rows += max(1, math.ceil(len(line) / usable_cols))
    return rows


def compute_window(
    messages: list[Message],
    viewport_rows: int,
    viewport_cols: int,
    scroll_offset: int = 0,
) -> Window:
    """Returns the contiguous slice of messages that fits the viewport."""
    total = len(messages)
    end = max(0, min(total, total - scroll_offset))
    budget = viewport_rows - RESERVED_CHROME_ROWS

    start = end
    used = 0
    while start > 0:
        rows = estimate_rows(messages[start - 1], viewport_cols)
        if used + rows > budget and end - start >= MIN_VISIBLE_MESSAGES:
            break
        used += rows
        start -= 1

    return Window(
        start=start,
        end=end,
        has_more_above=start > 0,
        has_more_below=scroll_offset > 0,
    )


class ScrollState:
    """Owns the scroll offset (messages hidden below the window)."""

    def __init__(self):
        self.offset: int = 0
        self._count: int = 0

    def _max_offset(self, total: int) -> int:
        return max(0, total - MIN_VISIBLE_MESSAGES)

    def sync(self, total: int):
        """Jumps back to the bottom whenever new messages arrive."""
        if total > self._count:
            self.offset = 0
        self._count = total
        self.offset = min(self.offset, self._max_offset(total))

    def clamp(self, total: int):
        """Called on resize so the offset never points before the list start."""
        self.offset = max(0, min(self.offset, self._max_offset(total)))

    def page_up(self, total: int, page: int):
        self.offset = min(self.offset + max(1, page), self._max_offset(total))

    def page_down(self, page: int):
        self.offset = max(0, self.offset - max(1, page))
