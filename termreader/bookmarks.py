"""Labelled Positions, kept in document order."""

import datetime
import logging
from dataclasses import dataclass, field

from .errors import DuplicateBookmark
from .position import Position

logger = logging.getLogger(__name__)

MAX_BOOKMARKS = 1000
MAX_LABEL_LENGTH = 100
SUGGESTION_LENGTH = 50


@dataclass(frozen=True)
class Bookmark:
    position: Position
    label: str
    seq: int
    created: str = field(default=None, compare=False)

    @property
    def sort_key(self):
        return (self.position, self.seq)


def truncate_label(text, limit=SUGGESTION_LENGTH):
    text = " ".join(text.replace("\r", " ").replace("\n", " ").split())
    if len(text) <= limit:
        return text
    return text[:max(0, limit - 3)] + "..."


def suggest_label(line_text, chapter_title=None):
    """A default label: the text at the bookmark, else the chapter title."""
    if line_text and line_text.strip():
        return truncate_label(line_text)
    if chapter_title and chapter_title.strip():
        return truncate_label(chapter_title)
    return None


class BookmarkList:
    """Bookmarks sorted by (position, seq)."""

    def __init__(self, bookmarks=()):
        self._items = sorted(bookmarks, key=lambda b: b.sort_key)
        self._next_seq = max((b.seq for b in self._items), default=-1) + 1

    def __len__(self):
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def __getitem__(self, index):
        return self._items[index]

    def __contains__(self, bookmark):
        return bookmark in self._items

    def at(self, position):
        return [b for b in self._items if b.position == position]

    def add(self, position, label, allow_duplicate=False):
        """Insert a bookmark and return it.

        Raises DuplicateBookmark if one already sits at position (unless
        allow_duplicate), ValueError for an empty or overlong label or a
        full list. Nothing changes when it raises.
        """
        label = (label or "").strip()
        if not label:
            raise ValueError("bookmark label cannot be empty")
        if len(label) > MAX_LABEL_LENGTH:
            raise ValueError("bookmark label longer than {} characters".format(MAX_LABEL_LENGTH))
        if len(self._items) >= MAX_BOOKMARKS:
            raise ValueError("cannot keep more than {} bookmarks".format(MAX_BOOKMARKS))
        position = Position(*position)
        existing = self.at(position)
        if existing and not allow_duplicate:
            raise DuplicateBookmark(position, existing[0])

        bookmark = Bookmark(position, label, self._next_seq, datetime.datetime.now().isoformat())
        self._next_seq += 1
        self._items.append(bookmark)
        self._items.sort(key=lambda b: b.sort_key)
        logger.info("bookmark %r added at %s", label, position)
        return bookmark

    def remove(self, bookmark):
        self._items.remove(bookmark)
        logger.info("bookmark %r removed", bookmark.label)
