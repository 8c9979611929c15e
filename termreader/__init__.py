"""termreader: read structured e-books in the terminal.

The package turns an already-parsed book into re-flowable terminal pages:

    content    immutable Document / Chapter / Block / Span model
    position   stable (chapter, block, offset) addresses
    reflow     width-dependent DisplayLines, cached per width
    paginator  viewport-sized pages anchored on a Position
    search     literal full-text search, match navigation, background worker
    bookmarks  sorted bookmark list
    state      versioned, atomically written reading state
    session    one open book: owns all of the above
"""

import logging

__version__ = "1.2.0"
__build_time__ = "2026-10-19 09:00:00"
__license__ = "MIT"
__author__ = "Lee Hanken"
__email__ = ""
__url__ = "https://github.com/macsplit/termreader"

logging.getLogger(__name__).addHandler(logging.NullHandler())

from .errors import (  # noqa: E402
    ReaderError,
    MalformedContent,
    StalePosition,
    UnsupportedStateVersion,
    DuplicateBookmark,
)
from .content import Document, Chapter, Block, Span, load_book, book_identity  # noqa: E402
from .position import Position, compare, resolve, position_of  # noqa: E402
from .reflow import ReflowEngine, DisplayLine, Cell  # noqa: E402
from .paginator import Paginator, Page  # noqa: E402
from .search import SearchEngine, SearchMatch, SearchResults, SearchWorker  # noqa: E402
from .bookmarks import Bookmark, BookmarkList  # noqa: E402
from .state import ReadingState, StateStore  # noqa: E402
from .session import ReadingSession  # noqa: E402

__all__ = [
    "ReaderError",
    "MalformedContent",
    "StalePosition",
    "UnsupportedStateVersion",
    "DuplicateBookmark",
    "Document",
    "Chapter",
    "Block",
    "Span",
    "load_book",
    "book_identity",
    "Position",
    "compare",
    "resolve",
    "position_of",
    "ReflowEngine",
    "DisplayLine",
    "Cell",
    "Paginator",
    "Page",
    "SearchEngine",
    "SearchMatch",
    "SearchResults",
    "SearchWorker",
    "Bookmark",
    "BookmarkList",
    "ReadingState",
    "StateStore",
    "ReadingSession",
]
