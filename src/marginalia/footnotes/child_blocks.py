"""
Start-of-child-blocks footnotes.

A child block whose first text field starts with ``[^<prefix>key]:`` is a
footnote definition: the anchor is stripped and the child, descendants
included, moves out of the tree into the footnote. Other children stay in
place, keeping their relative order.
"""

from __future__ import annotations

from marginalia.core.contracts.block import Block
from marginalia.core.contracts.config import FootnotesConfig
from marginalia.core.contracts.footnote import (
    Footnote,
    FootnoteContent,
    FootnoteExtractionResult,
)
from marginalia.core.locations import get_rich_text_locations
from marginalia.core.richtext import join_plain_text, remove_prefix
from marginalia.footnotes.markers import (
    find_footnote_markers,
    match_definition_anchor,
    split_markers,
)


def _take_definition(child: Block, prefix: str) -> str | None:
    """Strip the anchor from ``child`` and return its key, or None if it has none."""
    child_locations = get_rich_text_locations(child)
    if not child_locations:
        return None

    first = child_locations[0]
    anchor = match_definition_anchor(join_plain_text(first.rich_texts), prefix)
    if anchor is None:
        return None

    first.write(remove_prefix(first.rich_texts, anchor.end()))
    return anchor.group(1)


def extract_start_of_child_blocks(
    block: Block, config: FootnotesConfig
) -> FootnoteExtractionResult:
    """Turn definition children of ``block`` into block footnotes."""
    prefix = config.marker_prefix
    locations = get_rich_text_locations(block)
    markers = find_footnote_markers(locations, prefix)
    if not markers:
        return FootnoteExtractionResult()

    footnotes: list[Footnote] = []
    remaining: list[Block] = []

    # Every child is examined: max(marker count, child count) is the child count.
    for child in block.children:
        key = _take_definition(child, prefix)
        if key is None:
            remaining.append(child)
            continue
        footnotes.append(
            Footnote(
                marker=key,
                full_marker=f"[^{prefix}{key}]",
                content=FootnoteContent(type="blocks", blocks=[child]),
                source_location="content",
            )
        )

    if block.children:
        block.set_children(remaining)

    for location in locations:
        location.write(split_markers(location, markers))

    return FootnoteExtractionResult(
        footnotes=footnotes, processed_rich_texts=True, processed_children=True
    )


__all__ = ["extract_start_of_child_blocks"]
