"""One open book: the object the front end talks to.

A ReadingSession owns everything that is per-book (the Document, its
reflow cache, the paginator, search state and bookmarks) so nothing lives
in module globals. All methods are meant to be called from one thread; the
only other thread is the SearchWorker's, which never touches session state.
"""

import logging
import time

from .bookmarks import BookmarkList, suggest_label
from .content import load_book
from .errors import StalePosition, UnsupportedStateVersion
from .paginator import Paginator
from .position import resolve
from .reflow import ReflowEngine
from .search import SearchEngine, SearchWorker
from .state import ReadingState, StateStore
from .toc import build_toc, chapter_title, entry_for_position

logger = logging.getLogger(__name__)

CHECKPOINT_INTERVAL = 30


class ReadingSession:

    def __init__(self, document, store=None, path=None, width=80, height=24):
        self.document = document
        self.store = store if store is not None else StateStore(None)
        self.path = path
        self.engine = ReflowEngine(document, width)
        self.paginator = Paginator(document, self.engine, height)
        self.search_engine = SearchEngine(document)
        self.worker = SearchWorker(self.search_engine)
        self.state = ReadingState(document.identity or "")
        self.results = None
        self.active_match = None
        self._toc = None
        self._notices = []
        self._last_checkpoint = None

    @classmethod
    def open(cls, path, store=None, width=80, height=24):
        """Load the book at path and restore its saved place and bookmarks."""
        session = cls(load_book(path), store=store, path=path, width=width, height=height)
        session.restore()
        return session

    # notices

    def notify(self, message):
        logger.info("notice: %s", message)
        self._notices.append(message)

    def take_notices(self):
        notices, self._notices = self._notices, []
        return notices

    # state

    def restore(self):
        identity = self.document.identity
        self.state = ReadingState(identity or "")
        if not identity:
            return
        try:
            stored = self.store.load(identity)
        except UnsupportedStateVersion as e:
            self.notify("Saved state could not be read ({}), starting fresh".format(e))
            return
        except StalePosition as e:
            self.notify("Saved state belongs to another book ({}), starting at the beginning".format(e.reason))
            return
        if stored is None:
            return

        kept = []
        for bookmark in stored.bookmarks:
            try:
                resolve(self.document, bookmark.position)
            except StalePosition:
                logger.warning("dropping bookmark %r at %s", bookmark.label, bookmark.position)
                continue
            kept.append(bookmark)
        if len(kept) < len(stored.bookmarks):
            self.notify("{} bookmark(s) no longer match this book and were dropped".format(
                len(stored.bookmarks) - len(kept)))
        self.state = ReadingState(identity, stored.position, BookmarkList(kept))

        if stored.position is not None:
            try:
                self.paginator.jump(stored.position)
            except StalePosition as e:
                logger.warning("cannot restore position: %s", e)
                self.state.position = None
                self.notify("Saved position no longer exists, starting at the beginning")

    def checkpoint(self, now=None):
        """Save the current place (and bookmarks)."""
        self.state.position = self.paginator.anchor
        self._last_checkpoint = time.monotonic() if now is None else now
        if not self.state.identity:
            return False
        try:
            self.store.save(self.state, self.path)
        except OSError as e:
            logger.error("cannot save state: %s", e)
            self.notify("Could not save reading state: {}".format(e))
            return False
        return True

    def maybe_checkpoint(self, now=None):
        now = time.monotonic() if now is None else now
        if self._last_checkpoint is not None and now - self._last_checkpoint < CHECKPOINT_INTERVAL:
            return False
        return self.checkpoint(now)

    def close(self):
        self.worker.cancel()
        self.checkpoint()

    # layout and navigation

    @property
    def width(self):
        return self.engine.width

    @property
    def height(self):
        return self.paginator.height

    def resize(self, width, height):
        """Apply new viewport geometry; the next page() reflows."""
        changed = self.engine.set_width(width)
        self.paginator.set_height(height)
        if changed and self.worker.pending:
            query = self.worker.query
            self.worker.cancel()
            self.worker.submit(*query)
        return changed

    def page(self):
        return self.paginator.page(self.active_match)

    def scroll_lines(self, n):
        return self.paginator.scroll_lines(n)

    def scroll_pages(self, n):
        return self.paginator.scroll_pages(n)

    def jump(self, position):
        return self.paginator.jump(position)

    @property
    def current_chapter(self):
        anchor = self.paginator.anchor
        return anchor.chapter if anchor is not None else 0

    @property
    def chapter_title(self):
        if not self.document.chapter_count:
            return ""
        return chapter_title(self.document.chapter(self.current_chapter))

    def _goto_chapter(self, step):
        index = self.current_chapter + step
        while 0 <= index < self.document.chapter_count:
            if self.document.chapter(index).blocks:
                if self.worker.pending:
                    self.worker.cancel()
                return self.paginator.chapter_start(index)
            index += step
        return False

    def next_chapter(self):
        return self._goto_chapter(1)

    def previous_chapter(self):
        return self._goto_chapter(-1)

    def chapter_start(self):
        return self.paginator.chapter_start(self.current_chapter)

    def chapter_end(self):
        return self.paginator.chapter_end(self.current_chapter)

    def progress(self):
        """Fraction of the document read, by chapter and line."""
        location = self.paginator.location()
        if location is None or not self.document.chapter_count:
            return 0.0
        chapter, line, count = location
        within = min(1.0, (line + self.height) / count) if count else 1.0
        return (chapter + within) / self.document.chapter_count

    @property
    def toc(self):
        if self._toc is None:
            self._toc = build_toc(self.document)
        return self._toc

    def toc_index(self):
        anchor = self.paginator.anchor
        if anchor is None:
            return None
        return entry_for_position(self.toc, anchor)

    # search

    def search(self, query, case_sensitive=False, background=False):
        """Find query and jump to the first match at or after the top line.

        With background=True the scan runs on the SearchWorker and
        poll_search() picks the result up.
        """
        self.worker.cancel()
        if background:
            self.worker.submit(query, case_sensitive)
            return None
        results = self.search_engine.results(query, case_sensitive)
        self._apply_results(results)
        return results

    def poll_search(self):
        results = self.worker.poll()
        if results is not None:
            self._apply_results(results)
        return results

    def _apply_results(self, results):
        self.results = results
        self.active_match = None
        if not results:
            self.notify("No match for {!r}".format(results.query))
            return
        start = self.paginator.top_position() or self.document.first_position()
        match, wrapped = results.next_match_after(start, inclusive=True)
        self._show_match(match, wrapped, "Search reached the end, continued from the beginning")

    def _show_match(self, match, wrapped, message):
        self.active_match = match
        self.paginator.jump(match.start)
        if wrapped:
            self.notify(message)

    def next_match(self):
        if not self.results:
            return None
        ref = self.active_match.start if self.active_match else self.paginator.top_position()
        match, wrapped = self.results.next_match_after(ref)
        self._show_match(match, wrapped, "Search reached the end, continued from the beginning")
        return match

    def previous_match(self):
        if not self.results:
            return None
        ref = self.active_match.start if self.active_match else self.paginator.top_position()
        match, wrapped = self.results.previous_match_before(ref)
        self._show_match(match, wrapped, "Search reached the beginning, continued from the end")
        return match

    def clear_search(self):
        self.worker.cancel()
        self.results = None
        self.active_match = None

    # bookmarks

    @property
    def bookmarks(self):
        return self.state.bookmarks

    def add_bookmark(self, label=None, allow_duplicate=False):
        """Bookmark the top line.

        Raises DuplicateBookmark or ValueError without changing anything.
        """
        position = self.paginator.top_position()
        if position is None:
            raise ValueError("nothing to bookmark in an empty book")
        if label is None:
            top = self.page().lines[0]
            label = suggest_label(top.content, self.chapter_title)
            if label is None:
                label = "Bookmark {}".format(len(self.state.bookmarks) + 1)
        bookmark = self.state.bookmarks.add(position, label, allow_duplicate=allow_duplicate)
        self.checkpoint()
        return bookmark

    def remove_bookmark(self, bookmark):
        self.state.bookmarks.remove(bookmark)
        self.checkpoint()

    def jump_to_bookmark(self, bookmark):
        return self.paginator.jump(bookmark.position)
