"""Immutable content model for an already-parsed book.

The parser that pulls chapters out of an e-book container is not part of
termreader; it hands over an intermediate structure (JSON on disk, or the
same shape in memory) and this module validates it into a Document:

    {"title": "...", "author": "...",
     "chapters": [
        {"title": "...", "blocks": [
            {"kind": "heading", "level": 1, "text": "Chapter One"},
            {"kind": "paragraph", "spans": [{"text": "plain "},
                                            {"text": "loud", "style": "strong"}]},
            {"kind": "paragraph", "text": "offsets form",
             "spans": [{"start": 0, "end": 7, "style": "emphasis"},
                       {"start": 7, "end": 12}]},
            {"kind": "code", "language": "python", "lines": ["x = 1"]},
            {"kind": "list_item", "depth": 1, "text": "an item"},
            {"kind": "quote", "text": "quoted"}]},
        {"title": "Blank page", "blocks": [], "empty": true}]}

Nothing is mutable after construction, so reflow and search can read a
Document from any thread.
"""

import hashlib
import json
import logging
import os
from dataclasses import dataclass, field

from .errors import MalformedContent
from .position import Position

logger = logging.getLogger(__name__)

# span styles
PLAIN = "plain"
EMPHASIS = "emphasis"
STRONG = "strong"
INLINE_CODE = "code"

# block kinds
HEADING = "heading"
PARAGRAPH = "paragraph"
CODE_BLOCK = "code"
LIST_ITEM = "list_item"
QUOTE = "quote"

SPAN_STYLES = {
    "plain": PLAIN, "text": PLAIN,
    "emphasis": EMPHASIS, "em": EMPHASIS, "i": EMPHASIS,
    "strong": STRONG, "b": STRONG,
    "code": INLINE_CODE, "inline-code": INLINE_CODE, "inline_code": INLINE_CODE,
}

BLOCK_KINDS = {
    "heading": HEADING, "h": HEADING,
    "paragraph": PARAGRAPH, "p": PARAGRAPH,
    "code": CODE_BLOCK, "codeblock": CODE_BLOCK, "code_block": CODE_BLOCK, "pre": CODE_BLOCK,
    "list_item": LIST_ITEM, "listitem": LIST_ITEM, "li": LIST_ITEM,
    "quote": QUOTE, "blockquote": QUOTE,
}


@dataclass(frozen=True)
class Span:
    text: str
    style: str = PLAIN
    start: int = 0

    @property
    def end(self):
        return self.start + len(self.text)


@dataclass(frozen=True)
class Block:
    kind: str
    chapter_index: int
    block_id: int
    spans: tuple = ()
    lines: tuple = ()
    level: int = 0
    depth: int = 0
    language: str = None
    text: str = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.kind == CODE_BLOCK:
            text = "\n".join(self.lines)
        else:
            text = "".join(span.text for span in self.spans)
        object.__setattr__(self, "text", text)

    @property
    def key(self):
        return (self.chapter_index, self.block_id)

    @property
    def is_code(self):
        return self.kind == CODE_BLOCK

    def style_at(self, offset):
        """Span style of the character at offset (code blocks are all code)."""
        if self.kind == CODE_BLOCK:
            return INLINE_CODE
        for span in self.spans:
            if span.start <= offset < span.end:
                return span.style
        return PLAIN

    def line_starts(self):
        """Start offset of every source line of a code block."""
        starts, offset = [], 0
        for line in self.lines:
            starts.append(offset)
            offset += len(line) + 1
        return starts


@dataclass(frozen=True)
class Chapter:
    index: int
    title: str
    blocks: tuple = ()
    _by_id: dict = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_by_id", {block.block_id: block for block in self.blocks})

    def __len__(self):
        return len(self.blocks)

    def __iter__(self):
        return iter(self.blocks)

    def block(self, block_id):
        return self._by_id.get(block_id)


class Document:
    """An open book: ordered chapters of ordered blocks."""

    def __init__(self, chapters, title="", author=None, identity=None):
        self._chapters = tuple(chapters)
        self.title = title
        self.author = author
        self.identity = identity

    @classmethod
    def from_parsed(cls, data, identity=None):
        if isinstance(data, dict):
            raw_chapters = data.get("chapters")
            title = data.get("title") or ""
            author = data.get("author")
        else:
            raw_chapters, title, author = data, "", None
        if not isinstance(raw_chapters, (list, tuple)):
            raise MalformedContent("book has no chapter list")
        chapters = [_build_chapter(raw, n) for n, raw in enumerate(raw_chapters)]
        logger.debug(
            "built document %r: %d chapters, %d blocks",
            title, len(chapters), sum(len(c) for c in chapters)
        )
        return cls(chapters, title=title, author=author, identity=identity)

    def __len__(self):
        return len(self._chapters)

    def __iter__(self):
        return iter(self._chapters)

    @property
    def chapter_count(self):
        return len(self._chapters)

    @property
    def chapters(self):
        return self._chapters

    def chapter(self, index):
        return self._chapters[index]

    def blocks(self, chapter_index):
        return iter(self._chapters[chapter_index].blocks)

    def spans(self, block):
        return iter(block.spans)

    def block(self, chapter_index, block_id):
        if not 0 <= chapter_index < len(self._chapters):
            return None
        return self._chapters[chapter_index].block(block_id)

    def chapter_start(self, chapter_index):
        blocks = self._chapters[chapter_index].blocks
        if not blocks:
            return None
        return Position(chapter_index, blocks[0].block_id, 0)

    def first_position(self):
        for chapter in self._chapters:
            if chapter.blocks:
                return Position(chapter.index, chapter.blocks[0].block_id, 0)
        return None

    def last_position(self):
        for chapter in reversed(self._chapters):
            if chapter.blocks:
                last = chapter.blocks[-1]
                return Position(chapter.index, last.block_id, len(last.text))
        return None

    def text_between(self, start, end):
        """Text from start to end; both must address the same block."""
        block = self.block(start.chapter, start.block)
        if block is None or (end.chapter, end.block) != (start.chapter, start.block):
            return ""
        return block.text[start.offset:end.offset]

    def meta(self):
        meta = [("title", self.title or "-")]
        if self.author:
            meta.append(("author", self.author))
        meta.append(("chapters", str(len(self._chapters))))
        if self.identity:
            meta.append(("identity", self.identity))
        return meta


def book_identity(data):
    """Stable identity of a book: SHA-256 of its file content."""
    return hashlib.sha256(data).hexdigest()


def load_book(path):
    """Read a parsed-book JSON file into a Document."""
    with open(path, "rb") as f:
        data = f.read()
    try:
        parsed = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedContent("{} is not a parsed book file: {}".format(path, e))
    if not isinstance(parsed, dict):
        raise MalformedContent("{} is not a parsed book file: top level must be an object".format(path))
    if not parsed.get("title"):
        parsed = dict(parsed, title=os.path.splitext(os.path.basename(path))[0])
    return Document.from_parsed(parsed, identity=book_identity(data))


def _build_chapter(raw, index):
    if isinstance(raw, dict):
        title = raw.get("title") or ""
        raw_blocks = raw.get("blocks", [])
        explicitly_empty = bool(raw.get("empty"))
    elif isinstance(raw, (list, tuple)) and len(raw) == 2:
        title, raw_blocks = raw
        explicitly_empty = False
    else:
        raise MalformedContent("chapter must be an object or a (title, blocks) pair", chapter=index)
    if not isinstance(raw_blocks, (list, tuple)):
        raise MalformedContent("chapter blocks must be a list", chapter=index)
    if not raw_blocks and not explicitly_empty:
        raise MalformedContent("chapter has no blocks and is not marked empty", chapter=index)

    blocks = []
    last_id = -1
    for raw_block in raw_blocks:
        block = _build_block(raw_block, index, last_id + 1)
        if block.block_id <= last_id:
            raise MalformedContent(
                "block ids must be strictly increasing (got {} after {})".format(block.block_id, last_id),
                chapter=index, block=block.block_id
            )
        last_id = block.block_id
        blocks.append(block)
    return Chapter(index=index, title=str(title), blocks=tuple(blocks))


def _build_block(raw, chapter_index, default_id):
    if isinstance(raw, (list, tuple)):
        if len(raw) != 3:
            raise MalformedContent("block tuple must be (kind, spans, text)", chapter=chapter_index)
        kind, spans, text = raw
        raw = {"kind": kind, "spans": spans, "text": text}
    if not isinstance(raw, dict):
        raise MalformedContent("block must be an object", chapter=chapter_index, block=default_id)

    block_id = raw.get("id", default_id)
    if not isinstance(block_id, int) or isinstance(block_id, bool) or block_id < 0:
        raise MalformedContent("invalid block id {!r}".format(block_id), chapter=chapter_index)

    kind = BLOCK_KINDS.get(str(raw.get("kind", "")).lower())
    if kind is None:
        raise MalformedContent("unknown block kind {!r}".format(raw.get("kind")),
                               chapter=chapter_index, block=block_id)

    if kind == CODE_BLOCK:
        lines = raw.get("lines")
        if lines is None:
            text = raw.get("text")
            if text is None and raw.get("spans") is not None:
                text = "".join(_span_text(s) for s in raw["spans"])
            if text is None:
                raise MalformedContent("code block has no lines", chapter=chapter_index, block=block_id)
            lines = text.split("\n")
        if not all(isinstance(line, str) and "\n" not in line for line in lines):
            raise MalformedContent("code block lines must be strings without newlines",
                                   chapter=chapter_index, block=block_id)
        return Block(kind=kind, chapter_index=chapter_index, block_id=block_id,
                     lines=tuple(lines), language=raw.get("language") or raw.get("lang"))

    spans = _build_spans(raw, chapter_index, block_id)
    level = depth = 0
    if kind == HEADING:
        level = raw.get("level", 1)
        if not isinstance(level, int) or not 1 <= level <= 6:
            raise MalformedContent("heading level must be 1-6, got {!r}".format(level),
                                   chapter=chapter_index, block=block_id)
    elif kind == LIST_ITEM:
        depth = raw.get("depth", 1)
        if not isinstance(depth, int) or depth < 1:
            raise MalformedContent("list depth must be >= 1, got {!r}".format(depth),
                                   chapter=chapter_index, block=block_id)
    return Block(kind=kind, chapter_index=chapter_index, block_id=block_id,
                 spans=spans, level=level, depth=depth)


def _span_text(raw):
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        return raw.get("text", "")
    return raw[0]


def _span_style(raw, chapter_index, block_id):
    if isinstance(raw, dict):
        name = raw.get("style", PLAIN)
    elif isinstance(raw, (list, tuple)) and len(raw) > 1:
        name = raw[1]
    else:
        name = PLAIN
    style = SPAN_STYLES.get(str(name).lower())
    if style is None:
        raise MalformedContent("unknown span style {!r}".format(name), chapter=chapter_index, block=block_id)
    return style


def _build_spans(raw, chapter_index, block_id):
    text = raw.get("text")
    raw_spans = raw.get("spans")
    if text is not None and not isinstance(text, str):
        raise MalformedContent("block text must be a string", chapter=chapter_index, block=block_id)
    if raw_spans is None:
        if text is None:
            raise MalformedContent("block has neither text nor spans", chapter=chapter_index, block=block_id)
        return (Span(text, PLAIN, 0),) if text else ()

    spans = []
    cursor = 0
    for raw_span in raw_spans:
        style = _span_style(raw_span, chapter_index, block_id)
        if isinstance(raw_span, dict) and ("start" in raw_span or "end" in raw_span):
            if text is None:
                raise MalformedContent("offset spans need the block text", chapter=chapter_index, block=block_id)
            start, end = raw_span.get("start", cursor), raw_span.get("end")
            if not isinstance(start, int) or not isinstance(end, int) or not 0 <= start <= end <= len(text):
                raise MalformedContent(
                    "span range {!r}-{!r} outside block text of length {}".format(start, end, len(text)),
                    chapter=chapter_index, block=block_id
                )
            if start < cursor:
                raise MalformedContent("spans overlap at offset {}".format(start),
                                       chapter=chapter_index, block=block_id)
            if start > cursor:
                raise MalformedContent("gap between spans at offset {}".format(cursor),
                                       chapter=chapter_index, block=block_id)
            span_text = text[start:end]
            if "text" in raw_span and raw_span["text"] != span_text:
                raise MalformedContent("span text does not match its range", chapter=chapter_index, block=block_id)
        else:
            span_text = _span_text(raw_span)
            if not isinstance(span_text, str):
                raise MalformedContent("span text must be a string", chapter=chapter_index, block=block_id)
        if span_text:
            spans.append(Span(span_text, style, cursor))
        cursor += len(span_text)

    joined = "".join(span.text for span in spans)
    if text is not None and joined != text:
        raise MalformedContent("spans do not cover the block text", chapter=chapter_index, block=block_id)
    return tuple(spans)
