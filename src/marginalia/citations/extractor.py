"""
Block-level citation extraction.

Three in-text syntaxes are understood, one active at a time:

    [@key]        \\cite{key}        #cite(key)

Keys may contain letters, digits, ``_``, ``-`` and ``:``. Matches inside
code runs are ignored. Each resolved token is replaced by a single marker run
that keeps the token text verbatim; the numeric label is applied later by the
page pass. Unknown keys are logged and their tokens left as they are.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from marginalia.citations.formatting import format_citation
from marginalia.core.contracts.block import Block
from marginalia.core.contracts.citation import (
    Citation,
    CitationExtractionResult,
    ParsedCitationEntry,
)
from marginalia.core.contracts.config import CitationsConfig
from marginalia.core.contracts.richtext import RichText
from marginalia.core.locations import get_rich_text_locations
from marginalia.core.matching import iter_pattern_matches
from marginalia.core.richtext import make_rich_text, split_at
from marginalia.core.settings import get_logger

log = get_logger("marginalia.citations")

_KEY = r"([a-zA-Z0-9_\-:]+)"

CITATION_PATTERNS: dict[str, re.Pattern[str]] = {
    "[@key]": re.compile(rf"\[@{_KEY}\]"),
    "\\cite{key}": re.compile(rf"\\cite\{{{_KEY}\}}"),
    "#cite(key)": re.compile(rf"#cite\({_KEY}\)"),
}


def citation_pattern(in_text_format: str) -> re.Pattern[str] | None:
    return CITATION_PATTERNS.get(in_text_format)


def _marker_run(token: str, key: str) -> RichText:
    marker = make_rich_text(token)
    marker.is_citation_marker = True
    marker.citation_ref = key
    return marker


def extract_citations_from_block(
    block: Block,
    config: CitationsConfig,
    bib_entries: Mapping[str, ParsedCitationEntry],
) -> CitationExtractionResult:
    """Replace resolvable citation tokens of ``block`` with marker runs.

    Returns
    -------
    CitationExtractionResult
        One :class:`Citation` per replaced token, in text order, with
        ``index`` unset and ``source_block_ids`` empty.
    """
    locations = get_rich_text_locations(block)
    if not locations:
        return CitationExtractionResult()

    pattern = citation_pattern(config.in_text_format)
    if pattern is None:
        log.warning("Unknown citation format: %s", config.in_text_format)
        return CitationExtractionResult()

    citations: list[Citation] = []
    processed_any = False

    for location in locations:
        matches = list(iter_pattern_matches(location.rich_texts, pattern))
        if not matches:
            continue
        processed_any = True

        found: list[Citation] = []
        rich_texts = list(location.rich_texts)
        for match in reversed(matches):
            entry = bib_entries.get(match.key)
            if entry is None:
                log.warning('Citation key "%s" not found in BibTeX entries', match.key)
                continue

            formatted = format_citation(entry, config.bibliography_style)
            found.append(
                Citation(
                    key=match.key,
                    formatted_entry=formatted.bibliography,
                    authors=formatted.authors,
                    year=formatted.year,
                )
            )

            before, after = split_at(rich_texts, match.start)
            _, rest = split_at(after, match.end - match.start)
            rich_texts = [*before, _marker_run(match.text, match.key), *rest]

        location.write(rich_texts)
        citations.extend(reversed(found))

    return CitationExtractionResult(citations=citations, processed_rich_texts=processed_any)


__all__ = ["CITATION_PATTERNS", "citation_pattern", "extract_citations_from_block"]
