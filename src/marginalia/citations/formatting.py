"""Citation display helpers: per-style formatting and bibliography ordering."""

from __future__ import annotations

from collections.abc import Sequence

from marginalia.core.contracts.citation import Citation, FormattedCitation, ParsedCitationEntry
from marginalia.core.contracts.config import BibliographyStyle

# Numeric in-text label until the page pass assigns indices.
IEEE_IN_TEXT_PLACEHOLDER = "[?]"


def format_citation(entry: ParsedCitationEntry, style: BibliographyStyle) -> FormattedCitation:
    """Pick the pre-rendered reference for ``style`` and build the in-text label."""
    if style == "apa":
        return FormattedCitation(
            in_text=f"{entry.authors}, {entry.year}",
            bibliography=entry.apa_formatted,
            authors=entry.authors,
            year=entry.year,
        )
    return FormattedCitation(
        in_text=IEEE_IN_TEXT_PLACEHOLDER,
        bibliography=entry.ieee_formatted,
        authors=entry.authors,
        year=entry.year,
    )


def in_text_label(citation: Citation, style: BibliographyStyle) -> str:
    """Final in-text label once the page pass has run (``[3]`` or ``Smith, 2020``)."""
    if style == "apa":
        return f"{citation.authors}, {citation.year}"
    if citation.index is None:
        return IEEE_IN_TEXT_PLACEHOLDER
    return f"[{citation.index}]"


def prepare_bibliography(
    citations: Sequence[Citation], style: BibliographyStyle
) -> list[Citation]:
    """Order citations for the bibliography.

    ``simplified-ieee`` sorts by first-appearance index (missing index sorts
    as 0); ``apa`` sorts by the author string. Both sorts are stable.
    """
    if style == "simplified-ieee":
        return sorted(citations, key=lambda c: c.index or 0)
    return sorted(citations, key=lambda c: c.authors)


__all__ = [
    "IEEE_IN_TEXT_PLACEHOLDER",
    "format_citation",
    "in_text_label",
    "prepare_bibliography",
]
