"""
Marker finder shared by the footnote strategies.

Patterns are built per prefix and matched against the joined plain text of a
location through :func:`marginalia.core.matching.iter_pattern_matches`,
which skips matches inside code runs.

Marker isolation (:func:`split_markers`) walks the markers of one location
from the rightmost to the leftmost, so offsets of markers still waiting to be
split never move.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from marginalia.core.contracts.richtext import RichText
from marginalia.core.locations import Location
from marginalia.core.matching import iter_pattern_matches
from marginalia.core.richtext import clone_rich_text, join_plain_text, split_at


def inline_marker_pattern(prefix: str) -> re.Pattern[str]:
    """``[^<prefix>key]`` not followed by a colon (a reference, not a definition)."""
    return re.compile(rf"\[\^{re.escape(prefix)}([a-zA-Z0-9_]+)\](?!:)")


def definition_pattern(prefix: str) -> re.Pattern[str]:
    """``[^<prefix>key]:`` anchor at the start of a child block or comment."""
    return re.compile(rf"\[\^{re.escape(prefix)}(\w+)\]:\s*")


def definitions_sentinel_pattern(prefix: str) -> re.Pattern[str]:
    """A blank line followed by a definition anchor; starts each end-of-block definition."""
    return re.compile(rf"\n\n\[\^{re.escape(prefix)}([a-zA-Z0-9_]+)\]:[^\S\n]*")


def match_definition_anchor(text: str, prefix: str) -> re.Match[str] | None:
    """Return the definition anchor at the very start of ``text``, if any."""
    return definition_pattern(prefix).match(text)


@dataclass(frozen=True, slots=True)
class FootnoteMarker:
    """An inline footnote reference found in one location."""

    key: str
    full_marker: str
    property_path: str
    run_index: int
    start: int
    end: int


def find_footnote_markers(locations: Sequence[Location], prefix: str) -> list[FootnoteMarker]:
    """Collect inline markers of every location, in location then text order."""
    pattern = inline_marker_pattern(prefix)
    markers: list[FootnoteMarker] = []
    for location in locations:
        for match in iter_pattern_matches(location.rich_texts, pattern):
            markers.append(
                FootnoteMarker(
                    key=match.key,
                    full_marker=match.text,
                    property_path=location.property_path,
                    run_index=match.run_index,
                    start=match.start,
                    end=match.end,
                )
            )
    return markers


def split_markers(location: Location, markers: Sequence[FootnoteMarker]) -> list[RichText]:
    """Isolate every marker of ``location`` into its own flagged run.

    Markers of other locations are ignored, as are markers that no longer fit
    inside the current text (e.g. ones that sat in a removed definitions
    section). Returns the new run sequence; the caller writes it back.
    """
    text_length = len(join_plain_text(location.rich_texts))
    own = sorted(
        (
            m
            for m in markers
            if m.property_path == location.property_path and m.end <= text_length
        ),
        key=lambda m: m.start,
        reverse=True,
    )
    if not own:
        return location.rich_texts

    result = list(location.rich_texts)
    for marker in own:
        before, after = split_at(result, marker.start)
        marker_part, rest = split_at(after, len(marker.full_marker))
        if marker_part:
            head = clone_rich_text(marker_part[0])
            head.is_footnote_marker = True
            head.footnote_ref = marker.key
            marker_part = [head, *marker_part[1:]]
        result = [*before, *marker_part, *rest]
    return result


__all__ = [
    "inline_marker_pattern",
    "definition_pattern",
    "definitions_sentinel_pattern",
    "match_definition_anchor",
    "FootnoteMarker",
    "find_footnote_markers",
    "split_markers",
]
