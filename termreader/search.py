"""Full-text search over the content model.

Matching is a literal substring match over each block's text, so results
do not depend on the current width and never span two blocks. Results are
Positions; the paginator turns them into highlighted cells of whatever
layout is current.
"""

import logging
import queue
import threading
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field

from .position import Position

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class SearchMatch:
    start: Position
    end: Position
    text: str = field(default="", compare=False)


def fold_with_map(text):
    """Case-fold text, returning the folded string and, for each folded
    character, the index of the source character it came from."""
    folded, index = [], []
    for i, ch in enumerate(text):
        f = ch.casefold()
        folded.append(f)
        index.extend([i] * len(f))
    return "".join(folded), index


def find_all(text, needle, case_sensitive=False):
    """Yield non-overlapping (start, end) source ranges of needle in text.

    needle must already be case-folded when case_sensitive is False.
    """
    if case_sensitive:
        haystack, index = text, None
    else:
        haystack, index = fold_with_map(text)
    i = haystack.find(needle)
    while i != -1:
        j = i + len(needle)
        if index is None:
            yield i, j
        elif _on_boundary(index, i) and _on_boundary(index, j):
            yield index[i], index[j - 1] + 1
        else:
            # starts or ends inside the fold of one source character
            i = haystack.find(needle, i + 1)
            continue
        i = haystack.find(needle, j)


def _on_boundary(index, k):
    """True if folded offset k is where a source character's fold begins."""
    return k == 0 or k == len(index) or index[k] != index[k - 1]


class SearchEngine:

    def __init__(self, document):
        self.document = document
        self._last = None

    def search(self, query, case_sensitive=False, cancel=None):
        """Lazily yield SearchMatches in document order.

        An empty query yields nothing. When cancel (a threading.Event) is
        set the scan stops at the next block boundary.
        """
        if not query:
            return
        needle = query if case_sensitive else query.casefold()
        for chapter in self.document:
            for block in chapter.blocks:
                if cancel is not None and cancel.is_set():
                    logger.debug("search for %r cancelled in chapter %d", query, chapter.index)
                    return
                for start, end in find_all(block.text, needle, case_sensitive):
                    yield SearchMatch(
                        Position(chapter.index, block.block_id, start),
                        Position(chapter.index, block.block_id, end),
                        block.text[start:end],
                    )

    def results(self, query, case_sensitive=False, cancel=None):
        """All matches for query as SearchResults, cached for the last query.

        Returns None if the scan was cancelled.
        """
        key = (query, case_sensitive)
        if self._last is not None and self._last[0] == key:
            return self._last[1]
        matches = list(self.search(query, case_sensitive, cancel=cancel))
        if cancel is not None and cancel.is_set():
            return None
        results = SearchResults(query, case_sensitive, matches)
        self._last = (key, results)
        logger.info("search %r: %d matches", query, len(results))
        return results


class SearchResults:
    """Materialized matches with wrap-around navigation."""

    def __init__(self, query, case_sensitive, matches):
        self.query = query
        self.case_sensitive = case_sensitive
        self.matches = sorted(matches)
        self._starts = [match.start for match in self.matches]

    def __len__(self):
        return len(self.matches)

    def __iter__(self):
        return iter(self.matches)

    def __getitem__(self, index):
        return self.matches[index]

    def index(self, match):
        return self.matches.index(match)

    def next_match_after(self, position, inclusive=False):
        """(match, wrapped) for the first match starting after position.

        Past the last match this wraps to the first one and wrapped is
        True. Returns None when there are no matches.
        """
        if not self.matches:
            return None
        if inclusive:
            i = bisect_left(self._starts, position)
        else:
            i = bisect_right(self._starts, position)
        if i < len(self.matches):
            return self.matches[i], False
        return self.matches[0], True

    def previous_match_before(self, position):
        """(match, wrapped) for the last match starting before position."""
        if not self.matches:
            return None
        i = bisect_left(self._starts, position) - 1
        if i >= 0:
            return self.matches[i], False
        return self.matches[-1], True


def highlight_cells(line, match):
    """Cell index range [start, end) of line covered by match, or None.

    A match that reflow wrapped over several lines gives each of those
    lines its own slice.
    """
    if match is None or line.position is None:
        return None
    if (line.position.chapter, line.position.block) != (match.start.chapter, match.start.block):
        return None
    covered = [
        n for n, cell in enumerate(line.cells)
        if cell.offset is not None and match.start.offset <= cell.offset < match.end.offset
    ]
    if not covered:
        return None
    return covered[0], covered[-1] + 1


class SearchWorker:
    """Runs scans on a background thread and hands back only the newest result.

    Each submit() cancels the scan in flight. Results travel through one
    queue; poll() drops anything that belongs to a superseded request.
    """

    def __init__(self, engine):
        self.engine = engine
        self._results = queue.Queue()
        self._serial = 0
        self._cancel = None
        self._thread = None
        self.query = None

    @property
    def pending(self):
        return self._cancel is not None

    def submit(self, query, case_sensitive=False):
        self.cancel()
        self._serial += 1
        cancel = threading.Event()
        self._cancel = cancel
        self.query = (query, case_sensitive)
        self._thread = threading.Thread(
            target=self._run,
            args=(self._serial, query, case_sensitive, cancel),
            name="termreader-search",
            daemon=True,
        )
        self._thread.start()
        logger.debug("search request %d: %r", self._serial, query)
        return self._serial

    def _run(self, serial, query, case_sensitive, cancel):
        matches = list(self.engine.search(query, case_sensitive, cancel=cancel))
        if cancel.is_set():
            return
        self._results.put((serial, SearchResults(query, case_sensitive, matches)))

    def cancel(self):
        """Abort the scan in flight; its result, if any, will be discarded."""
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None
            self._serial += 1
            logger.debug("search request cancelled")

    def poll(self):
        """The result of the latest request if it has arrived, else None."""
        latest = None
        while True:
            try:
                serial, results = self._results.get_nowait()
            except queue.Empty:
                break
            if serial == self._serial and self._cancel is not None:
                latest = results
            else:
                logger.debug("discarding stale search result %d", serial)
        if latest is not None:
            self._cancel = None
        return latest

    def wait(self, timeout=None):
        if self._thread is not None:
            self._thread.join(timeout)
