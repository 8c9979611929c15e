"""Stable, layout-independent addresses into a Document.

A Position names a character by content, never by screen coordinates:
(chapter index, block id, character offset inside the block text). The
tuple ordering is the document order, so Positions sort, bisect and compare
with the plain tuple operators.
"""

from collections import namedtuple

from .errors import StalePosition


class Position(namedtuple("Position", "chapter block offset")):
    __slots__ = ()

    def __str__(self):
        return "{}:{}:{}".format(self.chapter, self.block, self.offset)

    def to_list(self):
        return [self.chapter, self.block, self.offset]

    @classmethod
    def from_list(cls, value):
        chapter, block, offset = value
        return cls(int(chapter), int(block), int(offset))


def compare(a, b):
    """Three-way comparison: -1 if a < b, 0 if equal, 1 if a > b."""
    a, b = tuple(a), tuple(b)
    return (a > b) - (a < b)


def resolve(document, position):
    """Return (Block, offset) for position.

    Raises StalePosition when the chapter or block does not exist in
    document, or when the offset runs past the block text.
    """
    chapter, block_id, offset = position
    if not 0 <= chapter < document.chapter_count:
        raise StalePosition(position, "no chapter {}".format(chapter))
    block = document.block(chapter, block_id)
    if block is None:
        raise StalePosition(position, "no block {} in chapter {}".format(block_id, chapter))
    if not 0 <= offset <= len(block.text):
        raise StalePosition(position, "offset {} outside block of length {}".format(offset, len(block.text)))
    return block, offset


def position_of(block, offset):
    return Position(block.chapter_index, block.block_id, offset)
