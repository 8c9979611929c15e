"""Exceptions raised by termreader."""


class ReaderError(Exception):
    """Base class for every termreader error."""


class MalformedContent(ReaderError):
    """The parsed book violates a content model invariant.

    Fatal for that book: nothing is loaded.
    """

    def __init__(self, message, chapter=None, block=None):
        self.chapter = chapter
        self.block = block
        where = []
        if chapter is not None:
            where.append("chapter {}".format(chapter))
        if block is not None:
            where.append("block {}".format(block))
        if where:
            message = "{} ({})".format(message, ", ".join(where))
        super().__init__(message)


class StalePosition(ReaderError):
    """A stored Position no longer resolves against the open Document."""

    def __init__(self, position, reason="no such chapter or block"):
        self.position = position
        self.reason = reason
        super().__init__("stale position {}: {}".format(position, reason))


class UnsupportedStateVersion(ReaderError):
    """A persisted state blob has a version this build cannot read."""

    def __init__(self, version, supported):
        self.version = version
        self.supported = supported
        super().__init__(
            "unsupported state version {!r} (this build reads up to {})".format(version, supported)
        )


class DuplicateBookmark(ReaderError):
    """A bookmark already exists at exactly this Position."""

    def __init__(self, position, existing):
        self.position = position
        self.existing = existing
        super().__init__("a bookmark already exists here: {!r}".format(existing.label))
