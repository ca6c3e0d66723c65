"""
End-of-block footnotes.

Definitions live at the tail of the same text field as their references::

    See it here[^ft_a]

    [^ft_a]: first note

    [^ft_b]: second note

Each location is cut at the first ``\\n\\n[^<prefix>key]:``. The head stays
in the block, the tail is parsed into one definition per anchor. Empty
definitions and definitions without a reference anywhere in the block are
dropped without logging.
"""

from __future__ import annotations

from collections.abc import Sequence

from marginalia.core.contracts.block import Block
from marginalia.core.contracts.config import FootnotesConfig
from marginalia.core.contracts.footnote import (
    Footnote,
    FootnoteContent,
    FootnoteExtractionResult,
)
from marginalia.core.contracts.richtext import RichText
from marginalia.core.locations import get_rich_text_locations
from marginalia.core.richtext import extract_range, join_plain_text, split_at
from marginalia.footnotes.markers import (
    definitions_sentinel_pattern,
    find_footnote_markers,
    split_markers,
)


def split_definitions(
    rich_texts: Sequence[RichText], prefix: str
) -> tuple[list[RichText], dict[str, list[RichText]]]:
    """Separate trailing definitions from the main content.

    Returns
    -------
    tuple[list[RichText], dict[str, list[RichText]]]
        ``(main_content, definitions)`` where ``definitions`` maps each key to
        its trimmed runs, in order of appearance. A key defined twice keeps
        its last definition.
    """
    full_text = join_plain_text(rich_texts)
    pattern = definitions_sentinel_pattern(prefix)

    first = pattern.search(full_text)
    if first is None:
        return list(rich_texts), {}

    main_content, section = split_at(rich_texts, first.start())
    section_text = full_text[first.start() :]

    anchors = list(pattern.finditer(section_text))
    definitions: dict[str, list[RichText]] = {}
    for i, anchor in enumerate(anchors):
        end = anchors[i + 1].start() if i + 1 < len(anchors) else len(section_text)
        content = extract_range(section, anchor.end(), end)
        if not join_plain_text(content).strip():
            continue
        definitions[anchor.group(1)] = content

    return main_content, definitions


def extract_end_of_block(block: Block, config: FootnotesConfig) -> FootnoteExtractionResult:
    """Pull trailing definitions out of every location of ``block``."""
    prefix = config.marker_prefix
    locations = get_rich_text_locations(block)
    markers = find_footnote_markers(locations, prefix)
    if not markers:
        return FootnoteExtractionResult()

    referenced = {m.key for m in markers}
    footnotes: list[Footnote] = []

    for location in locations:
        main_content, definitions = split_definitions(location.rich_texts, prefix)
        for key, content in definitions.items():
            if key not in referenced:
                continue
            footnotes.append(
                Footnote(
                    marker=key,
                    full_marker=f"[^{prefix}{key}]",
                    content=FootnoteContent(type="rich_text", rich_texts=content),
                    source_location=location.source_location,
                )
            )
        location.write(main_content)
        location.write(split_markers(location, markers))

    return FootnoteExtractionResult(footnotes=footnotes, processed_rich_texts=True)


__all__ = ["split_definitions", "extract_end_of_block"]
