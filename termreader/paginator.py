"""Windowing over reflowed chapters.

The scroll state is a Position, not a line number: line numbers are only
meaningful for one width, the Position is valid for all of them. Every
page() call maps the anchor onto the current layout, so a width change
needs nothing more than a new ReflowEngine width.
"""

import logging
from dataclasses import dataclass

from .position import Position, resolve
from .reflow import DisplayLine
from .search import highlight_cells

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Page:
    lines: tuple
    highlights: tuple
    top: Position
    chapter: int
    line_index: int

    def __len__(self):
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    @property
    def text(self):
        return [line.text for line in self.lines]

    def highlighted_rows(self):
        return [n for n, span in enumerate(self.highlights) if span is not None]


class Paginator:

    def __init__(self, document, engine, height=24):
        self.document = document
        self.engine = engine
        self._height = max(1, int(height))
        self._anchor = document.first_position()

    @property
    def height(self):
        return self._height

    @property
    def anchor(self):
        return self._anchor

    def set_height(self, height):
        self._height = max(1, int(height))

    # cursors are (chapter, line index) in the current layout; tuple order
    # is document order because empty chapters contribute no lines

    def _next_chapter(self, chapter):
        for index in range(chapter + 1, self.document.chapter_count):
            if self.document.chapter(index).blocks:
                return index
        return None

    def _previous_chapter(self, chapter):
        for index in range(chapter - 1, -1, -1):
            if self.document.chapter(index).blocks:
                return index
        return None

    def _cursor(self):
        if self._anchor is None:
            return None
        layout = self.engine.layout(self._anchor.chapter)
        return self._anchor.chapter, layout.line_for(self._anchor)

    def _set_cursor(self, cursor):
        chapter, index = cursor
        self._anchor = self.engine.layout(chapter)[index].position

    def _forward(self, cursor, n):
        chapter, index = cursor
        while n > 0:
            count = len(self.engine.layout(chapter))
            room = count - 1 - index
            if n <= room:
                return chapter, index + n
            following = self._next_chapter(chapter)
            if following is None:
                return chapter, count - 1
            n -= room + 1
            chapter, index = following, 0
        return chapter, index

    def _back(self, cursor, n):
        chapter, index = cursor
        while n > 0:
            if n <= index:
                return chapter, index - n
            preceding = self._previous_chapter(chapter)
            if preceding is None:
                return chapter, 0
            n -= index + 1
            chapter = preceding
            index = len(self.engine.layout(chapter)) - 1
        return chapter, index

    def _final_top(self):
        last = self.document.last_position()
        last_cursor = (last.chapter, len(self.engine.layout(last.chapter)) - 1)
        return self._back(last_cursor, self._height - 1)

    def scroll_lines(self, n):
        """Move the top by n lines; returns True if it moved."""
        cursor = self._cursor()
        if cursor is None or n == 0:
            return False
        if n > 0:
            limit = self._final_top()
            if cursor >= limit:
                return False
            target = min(self._forward(cursor, n), limit)
        else:
            target = self._back(cursor, -n)
        if target == cursor:
            return False
        self._set_cursor(target)
        return True

    def scroll_pages(self, n):
        return self.scroll_lines(n * self._height)

    def jump(self, position):
        """Make position the top of the page.

        Raises StalePosition if position does not address this document.
        """
        resolve(self.document, position)
        self._anchor = Position(*position)
        self.engine.layout(self._anchor.chapter)
        logger.debug("jump to %s", self._anchor)
        return self._anchor

    def chapter_start(self, chapter_index):
        start = self.document.chapter_start(chapter_index)
        if start is None:
            return False
        self._anchor = start
        return True

    def chapter_end(self, chapter_index):
        """Show the last page of a chapter."""
        if not self.document.chapter(chapter_index).blocks:
            return False
        last = len(self.engine.layout(chapter_index)) - 1
        chapter, index = self._back((chapter_index, last), self._height - 1)
        if chapter != chapter_index:
            index = 0
        self._set_cursor((chapter_index, index))
        return True

    def top_position(self):
        """Position of the first character shown on the top line."""
        cursor = self._cursor()
        if cursor is None:
            return None
        chapter, index = cursor
        return self.engine.layout(chapter)[index].position

    def location(self):
        """(chapter, top line index, line count of that chapter)."""
        cursor = self._cursor()
        if cursor is None:
            return None
        chapter, index = cursor
        return chapter, index, len(self.engine.layout(chapter))

    def page(self, match=None):
        cursor = self._cursor()
        lines = []
        chapter = index = None
        if cursor is not None:
            chapter, index = cursor
            current, start = cursor
            while current is not None and len(lines) < self._height:
                layout = self.engine.layout(current)
                lines.extend(layout.lines[start:start + self._height - len(lines)])
                current, start = self._next_chapter(current), 0
        top = lines[0].position if lines else None
        lines.extend(DisplayLine.pad() for _ in range(self._height - len(lines)))
        highlights = tuple(highlight_cells(line, match) for line in lines)
        return Page(tuple(lines), highlights, top, chapter, index)
