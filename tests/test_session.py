"""Test a reading session end to end, below the curses front end."""

import pytest

from termreader import Bookmark, BookmarkList, DuplicateBookmark, Position, ReadingSession, ReadingState, StateStore
from termreader.state import encode_state
from test_state import write_blob


def open_session(path, store, width=40, height=10):
    return ReadingSession.open(path, store=store, width=width, height=height)


class TestRestore:
    """Test picking up where the reader left off."""

    def test_position_survives_reopening(self, sample_book, store):
        session = open_session(sample_book, store)
        session.scroll_lines(25)
        anchor = session.paginator.anchor
        session.close()

        reopened = open_session(sample_book, store)
        assert reopened.paginator.anchor == anchor
        assert reopened.take_notices() == []

    def test_fresh_book_starts_at_the_beginning(self, sample_book, store):
        session = open_session(sample_book, store)
        assert session.paginator.anchor == Position(0, 0, 0)
        assert len(session.bookmarks) == 0

    def test_future_version_starts_fresh(self, sample_book, store):
        identity = open_session(sample_book, store).document.identity
        write_blob(store, identity, {"version": 2, "identity": identity, "position": [0, 9, 0]})
        session = open_session(sample_book, store)
        notices = session.take_notices()
        assert len(notices) == 1 and "could not be read" in notices[0]
        assert session.paginator.anchor == Position(0, 0, 0)
        assert session.state.position is None

    def test_stale_bookmarks_are_dropped(self, sample_book, store):
        identity = open_session(sample_book, store).document.identity
        marks = BookmarkList([Bookmark(Position(0, 1, 0), "kept", 0), Bookmark(Position(9, 0, 0), "gone", 1)])
        write_blob(store, identity, encode_state(ReadingState(identity, Position(0, 6, 0), marks)))
        session = open_session(sample_book, store)
        assert [b.label for b in session.bookmarks] == ["kept"]
        assert session.paginator.anchor == Position(0, 6, 0)
        assert "1 bookmark(s)" in session.take_notices()[0]

    def test_stale_position(self, sample_book, store):
        identity = open_session(sample_book, store).document.identity
        write_blob(store, identity, encode_state(ReadingState(identity, Position(0, 999, 0))))
        session = open_session(sample_book, store)
        assert session.paginator.anchor == Position(0, 0, 0)
        assert "no longer exists" in session.take_notices()[0]

    def test_checkpoint_interval(self, sample_book, store):
        session = open_session(sample_book, store)
        assert session.maybe_checkpoint(now=100)
        assert not session.maybe_checkpoint(now=110)
        assert not session.maybe_checkpoint(now=129)
        assert session.maybe_checkpoint(now=131)
        assert store.load(session.document.identity) is not None

    def test_failed_save_becomes_a_notice(self, sample_book, tmp_path):
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("")
        session = open_session(sample_book, StateStore(str(blocker)))
        assert not session.checkpoint()
        assert "Could not save" in session.take_notices()[0]


class TestNavigation:
    """Test moving around the book."""

    def test_chapters_skip_empty_ones(self, sample_document):
        session = ReadingSession(sample_document, width=40, height=10)
        assert session.next_chapter()
        assert session.current_chapter == 2
        assert not session.next_chapter()
        assert session.previous_chapter()
        assert session.current_chapter == 0
        assert not session.previous_chapter()

    def test_chapter_title_falls_back_to_heading(self, sample_document):
        session = ReadingSession(sample_document)
        assert session.chapter_title == "Getting Started"
        session.next_chapter()
        assert session.chapter_title == "Code Samples"

    def test_resize_keeps_the_top_line(self, sample_document):
        session = ReadingSession(sample_document, width=40, height=10)
        session.jump(Position(0, 20, 0))
        assert session.resize(70, 5)
        assert session.page().top == Position(0, 20, 0)
        assert len(session.page()) == 5
        assert not session.resize(70, 8)

    def test_progress(self, sample_document):
        session = ReadingSession(sample_document, width=40, height=10)
        start = session.progress()
        assert 0 < start < 1
        session.scroll_pages(3)
        assert session.progress() > start
        session.paginator.chapter_end(2)
        assert session.progress() == pytest.approx(1.0)

    def test_toc_index_follows_the_reader(self, sample_document):
        session = ReadingSession(sample_document, width=40, height=10)
        assert [entry.title for entry in session.toc] == ["Getting Started", "Installing", "Code Samples", "Unicode"]
        assert session.toc_index() == 0
        session.jump(Position(0, 10, 0))
        assert session.toc_index() == 1


class TestSessionSearch:
    """Test search as the front end drives it."""

    def test_search_jumps_and_highlights(self, sample_document):
        session = ReadingSession(sample_document, width=40, height=10)
        results = session.search("unicode")
        assert len(results) == 1
        assert session.active_match.start == Position(2, 3, 0)
        page = session.page()
        assert page.top == Position(2, 3, 0)
        assert page.highlighted_rows() == [0]

    def test_no_match(self, sample_document):
        session = ReadingSession(sample_document)
        session.search("zebra")
        assert session.active_match is None
        assert session.take_notices() == ["No match for 'zebra'"]
        assert session.next_match() is None

    def test_wrap_is_announced(self, sample_document):
        session = ReadingSession(sample_document, width=40, height=10)
        session.search("Installing")
        assert session.take_notices() == []
        match = session.next_match()
        assert match.start == Position(0, 5, 0)
        assert session.take_notices() == ["Search reached the end, continued from the beginning"]
        session.previous_match()
        assert session.take_notices() == ["Search reached the beginning, continued from the end"]

    def test_next_and_previous(self, sample_document):
        session = ReadingSession(sample_document, width=40, height=10)
        session.search("paragraph")
        first = session.active_match
        second = session.next_match()
        assert second.start > first.start
        assert session.previous_match() == first

    def test_background_search(self, sample_document):
        session = ReadingSession(sample_document, width=40, height=10)
        assert session.search("terminal", background=True) is None
        session.worker.wait(5)
        results = session.poll_search()
        assert results.query == "terminal"
        assert session.active_match is not None

    def test_clear_search(self, sample_document):
        session = ReadingSession(sample_document)
        session.search("paragraph")
        session.clear_search()
        assert session.active_match is None
        assert session.page().highlighted_rows() == []


class TestSessionBookmarks:
    """Test bookmarking the top line."""

    def test_default_label_is_the_top_line(self, sample_book, store):
        session = open_session(sample_book, store)
        session.jump(Position(0, 6, 0))
        bookmark = session.add_bookmark()
        assert bookmark.position == Position(0, 6, 0)
        assert bookmark.label.startswith("Paragraph 1 of")
        stored = store.load(session.document.identity)
        assert [b.label for b in stored.bookmarks] == [bookmark.label]

    def test_heading_label(self, sample_document):
        session = ReadingSession(sample_document)
        assert session.add_bookmark().label == "Getting Started"

    def test_duplicate(self, sample_document):
        session = ReadingSession(sample_document)
        session.add_bookmark("first")
        with pytest.raises(DuplicateBookmark):
            session.add_bookmark("second")
        assert len(session.bookmarks) == 1
        session.add_bookmark("second", allow_duplicate=True)
        assert len(session.bookmarks) == 2

    def test_jump_and_remove(self, sample_document):
        session = ReadingSession(sample_document, width=40, height=10)
        session.jump(Position(0, 12, 0))
        bookmark = session.add_bookmark("middle")
        session.jump(Position(0, 0, 0))
        session.jump_to_bookmark(bookmark)
        assert session.paginator.anchor == Position(0, 12, 0)
        session.remove_bookmark(bookmark)
        assert len(session.bookmarks) == 0
