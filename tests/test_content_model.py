"""Test building and traversing the content model."""

import hashlib

import pytest

from termreader import Document, MalformedContent, Position, load_book
from termreader.content import CODE_BLOCK, EMPHASIS, HEADING, INLINE_CODE, LIST_ITEM, PLAIN, STRONG

from conftest import write_book


def one_chapter(*blocks, **chapter):
    chapter.setdefault("title", "Only")
    chapter["blocks"] = list(blocks)
    return {"title": "Book", "chapters": [chapter]}


class TestDocumentFromParsed:
    """Test validation of the intermediate structure."""

    def test_chapters_and_blocks(self, sample_document):
        """Chapters keep spine order and blocks keep their kinds."""
        doc = sample_document
        assert len(doc) == 3
        assert doc.chapter_count == 3
        assert [c.index for c in doc] == [0, 1, 2]
        first = doc.chapter(0)
        assert first.title == "Getting Started"
        assert first.blocks[0].kind == HEADING
        assert first.blocks[0].level == 1
        assert first.blocks[2].kind == LIST_ITEM
        assert first.blocks[3].depth == 2
        assert doc.chapter(1).blocks == ()

    def test_span_styles_and_offsets(self, sample_document):
        """Spans are contiguous and the block text is their concatenation."""
        block = sample_document.chapter(0).blocks[1]
        assert block.text == "This is a test paragraph with emphasis and inline_code()."
        assert [s.style for s in block.spans] == [PLAIN, STRONG, PLAIN, EMPHASIS, PLAIN, INLINE_CODE, PLAIN]
        for previous, span in zip(block.spans, block.spans[1:]):
            assert span.start == previous.end
        assert block.style_at(10) == STRONG

    def test_code_block_text(self, sample_document):
        """Code block text is the lines joined with newlines."""
        code = sample_document.chapter(2).blocks[2]
        assert code.kind == CODE_BLOCK
        assert code.language == "python"
        assert code.text == "\n".join(code.lines)
        assert code.line_starts()[1] == len("def add(a, b):") + 1

    def test_block_lookup(self, sample_document):
        """Blocks are found by (chapter, block id)."""
        block = sample_document.block(2, 1)
        assert block.text == "The function below adds two numbers."
        assert sample_document.block(2, 99) is None
        assert sample_document.block(7, 0) is None

    def test_first_and_last_positions(self, sample_document):
        doc = sample_document
        assert doc.first_position() == Position(0, 0, 0)
        last = doc.chapter(2).blocks[-1]
        assert doc.last_position() == Position(2, last.block_id, len(last.text))
        assert doc.chapter_start(1) is None

    def test_explicit_block_ids(self):
        """Given ids are kept as long as they increase."""
        doc = Document.from_parsed(one_chapter(
            {"kind": "paragraph", "text": "a", "id": 10},
            {"kind": "paragraph", "text": "b", "id": 20},
            {"kind": "paragraph", "text": "c"},
        ))
        assert [b.block_id for b in doc.chapter(0).blocks] == [10, 20, 21]

    def test_offset_spans(self):
        doc = Document.from_parsed(one_chapter(
            {"kind": "paragraph", "text": "offsets form",
             "spans": [{"start": 0, "end": 7, "style": "emphasis"}, {"start": 7, "end": 12}]},
        ))
        spans = doc.chapter(0).blocks[0].spans
        assert [(s.text, s.style) for s in spans] == [("offsets", EMPHASIS), (" form", PLAIN)]

    def test_tuple_forms(self):
        """Chapters as (title, blocks) and blocks as (kind, spans, text)."""
        doc = Document.from_parsed([("One", [("paragraph", [["hi ", "plain"], ["there", "strong"]], None)])])
        block = doc.chapter(0).blocks[0]
        assert block.text == "hi there"
        assert block.spans[1].style == STRONG

    @pytest.mark.parametrize("block, message", [
        ({"kind": "table", "text": "x"}, "unknown block kind"),
        ({"kind": "paragraph", "spans": [{"text": "x", "style": "blink"}]}, "unknown span style"),
        ({"kind": "heading", "level": 7, "text": "x"}, "heading level"),
        ({"kind": "list_item", "depth": 0, "text": "x"}, "list depth"),
        ({"kind": "paragraph", "text": "abc", "spans": [{"start": 0, "end": 4}]}, "outside block text"),
        ({"kind": "paragraph", "text": "abc",
          "spans": [{"start": 0, "end": 2}, {"start": 1, "end": 3}]}, "overlap"),
        ({"kind": "paragraph", "text": "abc",
          "spans": [{"start": 0, "end": 1}, {"start": 2, "end": 3}]}, "gap"),
        ({"kind": "paragraph", "text": "abc", "spans": [{"start": 0, "end": 2}]}, "do not cover"),
        ({"kind": "paragraph"}, "neither text nor spans"),
    ])
    def test_invalid_blocks(self, block, message):
        """Invalid blocks raise MalformedContent naming the chapter."""
        with pytest.raises(MalformedContent, match=message) as info:
            Document.from_parsed(one_chapter(block))
        assert "chapter 0" in str(info.value)

    def test_block_ids_must_increase(self):
        with pytest.raises(MalformedContent, match="strictly increasing"):
            Document.from_parsed(one_chapter(
                {"kind": "paragraph", "text": "a", "id": 5},
                {"kind": "paragraph", "text": "b", "id": 5},
            ))

    def test_empty_chapter_needs_flag(self):
        with pytest.raises(MalformedContent, match="not marked empty"):
            Document.from_parsed(one_chapter())
        doc = Document.from_parsed(one_chapter(empty=True))
        assert doc.chapter(0).blocks == ()
        assert doc.first_position() is None

    def test_missing_chapter_list(self):
        with pytest.raises(MalformedContent):
            Document.from_parsed({"title": "No chapters"})


class TestLoadBook:
    """Test reading book files."""

    def test_identity_is_sha256_of_file(self, sample_book):
        doc = load_book(sample_book)
        with open(sample_book, "rb") as f:
            assert doc.identity == hashlib.sha256(f.read()).hexdigest()
        assert doc.title == "Test Book"
        assert ("author", "Test Author") in doc.meta()

    def test_title_defaults_to_file_name(self, tmp_path):
        path = write_book(tmp_path, {"chapters": [{"title": "c", "blocks": [{"kind": "p", "text": "x"}]}]},
                          "untitled.json")
        assert load_book(path).title == "untitled"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(MalformedContent, match="not a parsed book"):
            load_book(str(path))
