"""Persisted reading state: one JSON blob per book identity.

    <config dir>/books/<identity>.json

    {"version": 1,
     "identity": "<sha256>",
     "position": [chapter, block, offset] | null,
     "bookmarks": [[chapter, block, offset, label, seq, created?], ...],
     "recents": [[path, identity, last_opened], ...]}

Every blob carries the reading history as it stood when it was written;
StateStore.recents() merges them, so no file is shared between books.
"""

import datetime
import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field

from .bookmarks import Bookmark, BookmarkList
from .errors import StalePosition, UnsupportedStateVersion
from .position import Position

logger = logging.getLogger(__name__)

STATE_VERSION = 1
RECENTS_LIMIT = 20


@dataclass(frozen=True)
class RecentBook:
    path: str
    identity: str
    opened: str


@dataclass
class ReadingState:
    identity: str
    position: Position = None
    bookmarks: BookmarkList = field(default_factory=BookmarkList)


def encode_state(state, recents=()):
    bookmarks = []
    for bookmark in state.bookmarks:
        raw = bookmark.position.to_list() + [bookmark.label, bookmark.seq]
        if bookmark.created:
            raw.append(bookmark.created)
        bookmarks.append(raw)
    return {
        "version": STATE_VERSION,
        "identity": state.identity,
        "position": state.position.to_list() if state.position is not None else None,
        "bookmarks": bookmarks,
        "recents": [[r.path, r.identity, r.opened] for r in recents],
    }


def decode_state(blob):
    """Return (ReadingState, recents) from a decoded JSON blob.

    Raises UnsupportedStateVersion for a version this build does not know
    and for blobs whose fields cannot be read.
    """
    if not isinstance(blob, dict):
        raise UnsupportedStateVersion(None, STATE_VERSION)
    version = blob.get("version")
    if not isinstance(version, int) or isinstance(version, bool) or not 1 <= version <= STATE_VERSION:
        raise UnsupportedStateVersion(version, STATE_VERSION)
    try:
        identity = str(blob["identity"])
        raw_position = blob.get("position")
        position = Position.from_list(raw_position) if raw_position is not None else None
        bookmarks = []
        for raw in blob.get("bookmarks") or []:
            created = raw[5] if len(raw) > 5 else None
            bookmarks.append(Bookmark(Position.from_list(raw[:3]), str(raw[3]), int(raw[4]), created))
        recents = [RecentBook(str(path), str(ident), str(opened))
                   for path, ident, opened in blob.get("recents") or []]
    except (KeyError, IndexError, TypeError, ValueError) as e:
        logger.warning("unreadable state blob: %s", e)
        raise UnsupportedStateVersion(version, STATE_VERSION) from e
    return ReadingState(identity, position, BookmarkList(bookmarks)), recents


def merge_recents(*lists, limit=RECENTS_LIMIT):
    """Newest entry per path wins; newest first."""
    newest = {}
    for entries in lists:
        for entry in entries:
            known = newest.get(entry.path)
            if known is None or entry.opened > known.opened:
                newest[entry.path] = entry
    return sorted(newest.values(), key=lambda r: r.opened, reverse=True)[:limit]


def write_atomic(path, data):
    """Replace path with data (JSON) so readers never see a partial file."""
    directory = os.path.dirname(path)
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except Exception:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class StateStore:
    """Reads and writes state blobs under a config directory.

    With directory=None nothing is persisted.
    """

    def __init__(self, directory):
        self.directory = directory

    @property
    def enabled(self):
        return self.directory is not None

    @property
    def books_dir(self):
        return os.path.join(self.directory, "books")

    def path_for(self, identity):
        return os.path.join(self.books_dir, identity + ".json")

    def _read(self, path):
        with open(path, "r", encoding="utf-8") as f:
            try:
                blob = json.load(f)
            except ValueError as e:
                logger.warning("cannot decode %s: %s", path, e)
                raise UnsupportedStateVersion(None, STATE_VERSION) from e
        return decode_state(blob)

    def load(self, identity):
        """The stored ReadingState for identity, or None if there is none.

        Raises UnsupportedStateVersion or StalePosition (blob written for a
        different book).
        """
        if not self.enabled:
            return None
        path = self.path_for(identity)
        if not os.path.exists(path):
            return None
        state, _ = self._read(path)
        if state.identity != identity:
            raise StalePosition(state.position, "state belongs to book {}".format(state.identity))
        logger.debug("loaded state for %s from %s", identity, path)
        return state

    def save(self, state, book_path=None):
        if not self.enabled:
            return None
        recents = self.recents()
        if book_path is not None:
            opened = RecentBook(os.path.abspath(book_path), state.identity,
                                datetime.datetime.now().isoformat())
            recents = merge_recents(recents, [opened])
        path = self.path_for(state.identity)
        write_atomic(path, encode_state(state, recents))
        logger.debug("saved state for %s", state.identity)
        return path

    def recents(self, existing_only=False):
        """The merged reading history, newest first."""
        if not self.enabled or not os.path.isdir(self.books_dir):
            return []
        lists = []
        for name in sorted(os.listdir(self.books_dir)):
            if not name.endswith(".json"):
                continue
            try:
                _, entries = self._read(os.path.join(self.books_dir, name))
            except (OSError, UnsupportedStateVersion) as e:
                logger.warning("skipping %s in history: %s", name, e)
                continue
            lists.append(entries)
        recents = merge_recents(*lists)
        if existing_only:
            recents = [r for r in recents if os.path.exists(r.path)]
        return recents

    def last_read(self):
        for entry in self.recents(existing_only=True):
            return entry
        return None

    def clean(self):
        """Delete every stored blob; returns the number removed."""
        if not self.enabled or not os.path.isdir(self.books_dir):
            return 0
        count = len([n for n in os.listdir(self.books_dir) if n.endswith(".json")])
        shutil.rmtree(self.books_dir)
        logger.info("removed %d state files from %s", count, self.books_dir)
        return count
