"""Table of contents built from chapters and their section headings."""

from bisect import bisect_right
from collections import namedtuple

from .content import HEADING
from .position import Position

SECTION_LEVELS = (2, 3)

TocEntry = namedtuple("TocEntry", "title position level chapter")


def chapter_title(chapter):
    if chapter.title.strip():
        return chapter.title.strip()
    for block in chapter.blocks:
        if block.kind == HEADING and block.text.strip():
            return block.text.strip()
    return "Chapter {}".format(chapter.index + 1)


def build_toc(document):
    """Chapters (level 0) each followed by their level 2-3 headings.

    Chapters without blocks have nowhere to jump to and are left out.
    """
    entries = []
    for chapter in document:
        if not chapter.blocks:
            continue
        first = chapter.blocks[0]
        entries.append(TocEntry(chapter_title(chapter), Position(chapter.index, first.block_id, 0), 0, chapter.index))
        for block in chapter.blocks:
            if block.kind == HEADING and block.level in SECTION_LEVELS and block.text.strip():
                entries.append(TocEntry(
                    " ".join(block.text.split()),
                    Position(chapter.index, block.block_id, 0),
                    block.level,
                    chapter.index,
                ))
    return entries


def entry_for_position(entries, position):
    """Index of the entry position falls under, or None before the first."""
    starts = [entry.position for entry in entries]
    index = bisect_right(starts, tuple(position)) - 1
    return index if index >= 0 else None
