"""Tests for end-of-block footnote extraction."""

from __future__ import annotations

from marginalia.core.contracts.block import Block, BlockType
from marginalia.core.contracts.config import FootnotesConfig
from marginalia.core.richtext import join_plain_text, make_rich_text
from marginalia.footnotes.end_of_block import split_definitions
from marginalia.footnotes.extractor import extract_footnotes_from_block

CONFIG = FootnotesConfig(source="end-of-block", marker_prefix="ft_")


def test_single_reference_and_orphan_definition() -> None:
    """One referenced definition is extracted; the orphaned one is dropped silently."""
    block = Block.paragraph_block(
        "p1",
        [make_rich_text("See it here[^ft_a]\n\n[^ft_a]: first note\n\n[^ft_b]: second note")],
    )

    result = extract_footnotes_from_block(block, CONFIG)

    assert [fn.marker for fn in result.footnotes] == ["a"]
    footnote = result.footnotes[0]
    assert footnote.full_marker == "[^ft_a]"
    assert footnote.content.type == "rich_text"
    assert join_plain_text(footnote.content.rich_texts) == "first note"
    assert footnote.source_location == "content"

    assert result.processed_rich_texts is True
    assert result.processed_children is False

    runs = block.content.rich_texts
    assert join_plain_text(runs) == "See it here[^ft_a]"
    assert [rt.plain_text for rt in runs if rt.is_footnote_marker] == ["[^ft_a]"]


def test_definitions_keep_formatting() -> None:
    """Definition content keeps the annotations of the runs it was cut from."""
    block = Block.paragraph_block(
        "p1",
        [
            make_rich_text("Body[^ft_a] and[^ft_b]\n\n[^ft_a]: "),
            make_rich_text("bold", bold=True),
            make_rich_text(" part\n\n[^ft_b]: "),
            make_rich_text("linked", link="https://example.com"),
        ],
    )

    result = extract_footnotes_from_block(block, CONFIG)

    first, second = result.footnotes
    assert [rt.plain_text for rt in first.content.rich_texts] == ["bold", " part"]
    assert first.content.rich_texts[0].annotation.bold
    assert join_plain_text(second.content.rich_texts) == "linked"
    assert second.content.rich_texts[0].href == "https://example.com"


def test_no_residual_definition_text() -> None:
    """After extraction no `[^ft_*]:` text remains in the main content."""
    block = Block.paragraph_block(
        "p1",
        [make_rich_text("A[^ft_1] B[^ft_2]\n\n[^ft_1]: one\n\n[^ft_2]: two")],
    )
    result = extract_footnotes_from_block(block, CONFIG)

    text = join_plain_text(block.content.rich_texts)
    assert "]:" not in text
    assert {fn.marker: join_plain_text(fn.content.rich_texts) for fn in result.footnotes} == {
        "1": "one",
        "2": "two",
    }


def test_empty_definition_is_skipped() -> None:
    """A definition that trims to nothing yields no footnote."""
    block = Block.paragraph_block(
        "p1", [make_rich_text("A[^ft_a] B[^ft_b]\n\n[^ft_a]:   \n\n[^ft_b]: kept")]
    )
    result = extract_footnotes_from_block(block, CONFIG)
    assert [fn.marker for fn in result.footnotes] == ["b"]


def test_block_without_markers_is_untouched() -> None:
    """No markers: nothing is processed, even if definitions are present."""
    block = Block.paragraph_block("p1", [make_rich_text("Plain\n\n[^ft_a]: dangling")])
    runs = block.content.rich_texts

    result = extract_footnotes_from_block(block, CONFIG)

    assert result.footnotes == []
    assert result.processed_rich_texts is False
    assert block.content.rich_texts is runs


def test_markers_in_code_are_ignored() -> None:
    """A code-formatted marker does not count as a reference."""
    block = Block.paragraph_block(
        "p1",
        [make_rich_text("[^ft_a]", code=True), make_rich_text("\n\n[^ft_a]: note")],
    )
    result = extract_footnotes_from_block(block, CONFIG)
    assert result.footnotes == []
    assert result.processed_rich_texts is False


def test_caption_and_table_source_locations() -> None:
    """Definitions in captions and table cells record where they came from."""
    image = Block.media_block(
        BlockType.IMAGE, "i1", [make_rich_text("Cat[^ft_c]\n\n[^ft_c]: a cat")]
    )
    table = Block.table_block("t1", [[[make_rich_text("x[^ft_t]\n\n[^ft_t]: cell note")]]])

    (cap,) = extract_footnotes_from_block(image, CONFIG).footnotes
    (cell,) = extract_footnotes_from_block(table, CONFIG).footnotes

    assert cap.source_location == "caption"
    assert cell.source_location == "table"
    assert join_plain_text(table.content.rows[0].cells[0].rich_texts) == "x[^ft_t]"


def test_split_definitions_without_section() -> None:
    """Text without a definitions section is returned whole."""
    runs = [make_rich_text("no definitions here")]
    main, definitions = split_definitions(runs, "ft_")
    assert join_plain_text(main) == "no definitions here"
    assert definitions == {}


def test_custom_prefix() -> None:
    """The configured prefix is honoured in every pattern."""
    config = FootnotesConfig(source="end-of-block", marker_prefix="note-")
    block = Block.paragraph_block(
        "p1", [make_rich_text("Text[^note-x]\n\n[^note-x]: custom")]
    )
    (footnote,) = extract_footnotes_from_block(block, config).footnotes
    assert footnote.full_marker == "[^note-x]"
    assert join_plain_text(footnote.content.rich_texts) == "custom"
