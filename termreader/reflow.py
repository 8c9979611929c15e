"""Reflow: Document + column width -> DisplayLines.

Every DisplayLine carries the Position of its first character, and line
positions strictly increase through a chapter, so a Position can always be
mapped back to the line that shows it (ChapterLayout.line_for). That is
what keeps the reader's place across width changes: the place is stored as
a Position and re-resolved against whatever layout is current.

Layouts are built lazily per chapter and cached per (chapter, width). Only
the current and the previous width are kept; the previous one lets a
renderer keep drawing while a resize settles.
"""

import logging
import re
import unicodedata
from bisect import bisect_right
from collections import namedtuple
from dataclasses import dataclass

from .content import CODE_BLOCK, HEADING, LIST_ITEM, QUOTE, PLAIN
from .highlight import token_names
from .position import Position

logger = logging.getLogger(__name__)

TAB_SIZE = 4
MIN_WIDTH = 1

# line kinds
TEXT = "text"
HEADING_LINE = "heading"
CODE = "code"
QUOTE_LINE = "quote"
LIST = "list"
BLANK = "blank"
PAD = "pad"

BULLET = " - "
INDENT = "   "

RUNS = re.compile(r"\s+|\S+")


def char_width(ch):
    """Terminal columns taken by one code point."""
    category = unicodedata.category(ch)
    if category in ("Mn", "Me", "Cf", "Cc") or unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in ("W", "F"):
        return 2
    return 1


def text_width(text):
    return sum(char_width(ch) for ch in text)


def clamp_width(width):
    try:
        width = int(width)
    except (TypeError, ValueError):
        return MIN_WIDTH
    return max(MIN_WIDTH, width)


class Cell(namedtuple("Cell", "char width offset style token")):
    """One styled character; offset is None for decoration (indent, bullet, padding)."""

    __slots__ = ()

    @property
    def glyph(self):
        if self.char == "\t":
            return " " * self.width
        if self.char < " ":
            return ""
        return self.char


def _decoration(text):
    return [Cell(ch, char_width(ch), None, PLAIN, None) for ch in text]


@dataclass(frozen=True)
class DisplayLine:
    position: Position
    cells: tuple = ()
    kind: str = TEXT
    level: int = 0
    continues: bool = False
    source: str = None

    @property
    def text(self):
        return "".join(cell.glyph for cell in self.cells)

    @property
    def content(self):
        """Characters that come from the document, without decoration."""
        return "".join(cell.char for cell in self.cells if cell.offset is not None)

    @property
    def width(self):
        return sum(cell.width for cell in self.cells)

    @property
    def heading(self):
        return self.kind == HEADING_LINE

    @property
    def blank(self):
        return self.kind in (BLANK, PAD)

    @classmethod
    def pad(cls):
        return cls(None, kind=PAD)


class ChapterLayout:
    """The DisplayLines of one chapter at one width."""

    def __init__(self, chapter_index, width, lines):
        self.chapter_index = chapter_index
        self.width = width
        self.lines = tuple(lines)
        self._starts = [line.position for line in self.lines]

    def __len__(self):
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    def __getitem__(self, index):
        return self.lines[index]

    def line_for(self, position):
        """Index of the line showing position (the last line starting at or before it)."""
        if not self.lines:
            return None
        return max(0, bisect_right(self._starts, position) - 1)


class ReflowEngine:

    def __init__(self, document, width=80):
        self.document = document
        self._width = clamp_width(width)
        self._previous_width = None
        self._cache = {}
        self._tokens = {}

    @property
    def width(self):
        return self._width

    @property
    def previous_width(self):
        return self._previous_width

    def set_width(self, width):
        """Switch to a new width; returns True if layouts were invalidated."""
        width = clamp_width(width)
        if width == self._width:
            return False
        self._previous_width, self._width = self._width, width
        live = (self._width, self._previous_width)
        for key in [key for key in self._cache if key[1] not in live]:
            del self._cache[key]
        logger.debug("reflow width %d -> %d, %d cached layouts kept",
                     self._previous_width, self._width, len(self._cache))
        return True

    def cached(self):
        return sorted(self._cache)

    def layout(self, chapter_index, width=None):
        width = self._width if width is None else clamp_width(width)
        key = (chapter_index, width)
        layout = self._cache.get(key)
        if layout is None:
            layout = ChapterLayout(chapter_index, width, self.reflow_chapter(chapter_index, width))
            if width in (self._width, self._previous_width):
                self._cache[key] = layout
            logger.debug("reflowed chapter %d at width %d: %d lines", chapter_index, width, len(layout))
        return layout

    def reflow_chapter(self, chapter_index, width):
        width = clamp_width(width)
        chapter = self.document.chapter(chapter_index)
        lines = []
        for n, block in enumerate(chapter.blocks):
            lines.extend(self.reflow_block(block, width))
            if n + 1 < len(chapter.blocks):
                end = Position(chapter_index, block.block_id, len(block.text))
                # a block ending in a line at its end position already separates
                if lines[-1].position != end:
                    lines.append(DisplayLine(end, kind=BLANK))
        return lines

    def reflow_block(self, block, width):
        width = clamp_width(width)
        if block.kind == CODE_BLOCK:
            return self._code_lines(block, width)
        if block.kind == HEADING:
            return self._wrap(block, width, "", "", HEADING_LINE, center=True)
        if block.kind == LIST_ITEM:
            indent = INDENT * (block.depth - 1)
            return self._wrap(block, width, indent + BULLET, indent + INDENT, LIST)
        if block.kind == QUOTE:
            return self._wrap(block, width, INDENT, INDENT, QUOTE_LINE)
        return self._wrap(block, width, "", "", TEXT)

    def _wrap(self, block, width, first_prefix, rest_prefix, kind, center=False):
        chapter, block_id, text = block.chapter_index, block.block_id, block.text
        if not text:
            return [DisplayLine(Position(chapter, block_id, 0), kind=BLANK)]

        prefix_width = max(text_width(first_prefix), text_width(rest_prefix))
        if prefix_width >= width:
            first_prefix = rest_prefix = ""
            prefix_width = 0
        avail = width - prefix_width

        styles = []
        for span in block.spans:
            styles.extend([span.style] * len(span.text))

        rows = []
        current, used = [], 0
        for run in RUNS.finditer(text):
            start, chars = run.start(), run.group()
            if chars[0].isspace():
                # trailing whitespace stays with its line while it fits
                for k in range(len(chars)):
                    if used + 1 <= avail:
                        current.append(Cell(" ", 1, start + k, styles[start + k], None))
                        used += 1
                continue
            cells = [Cell(ch, char_width(ch), start + k, styles[start + k], None)
                     for k, ch in enumerate(chars)]
            run_width = sum(cell.width for cell in cells)
            if used + run_width <= avail:
                current.extend(cells)
                used += run_width
                continue
            if current:
                rows.append(current)
                current, used = [], 0
            if run_width <= avail:
                current.extend(cells)
                used += run_width
                continue
            for cell in cells:
                if current and used + cell.width > avail:
                    rows.append(current)
                    current, used = [], 0
                current.append(cell)
                used += cell.width
        if current:
            rows.append(current)

        lines = []
        for n, row in enumerate(rows):
            prefix = _decoration(first_prefix if n == 0 else rest_prefix)
            if center:
                row_width = sum(cell.width for cell in row)
                prefix = _decoration(" " * max(0, (width - row_width) // 2))
            lines.append(DisplayLine(
                Position(chapter, block_id, row[0].offset),
                cells=tuple(prefix + row),
                kind=kind,
                level=block.level,
            ))
        return lines

    def _code_lines(self, block, width):
        if not block.lines:
            return [DisplayLine(Position(block.chapter_index, block.block_id, 0), kind=BLANK)]
        tokens = self._tokens.get(block.key)
        if tokens is None:
            tokens = self._tokens[block.key] = token_names(block.text, block.language)

        lines = []
        for line, start in zip(block.lines, block.line_starts()):
            cells, column = [], 0
            for k, ch in enumerate(line):
                if ch == "\t":
                    cw = TAB_SIZE - column % TAB_SIZE
                else:
                    cw = char_width(ch)
                cells.append(Cell(ch, cw, start + k, block.style_at(start + k), tokens[start + k]))
                column += cw
            continues = column > width
            if continues:
                kept, used = [], 0
                for cell in cells:
                    if used + cell.width > width - 1:
                        break
                    kept.append(cell)
                    used += cell.width
                cells = kept
            lines.append(DisplayLine(
                Position(block.chapter_index, block.block_id, start),
                cells=tuple(cells),
                kind=CODE,
                continues=continues,
                source=line,
            ))
        return lines
