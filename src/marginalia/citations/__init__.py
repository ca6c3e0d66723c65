"""Citation extraction, bibliography fetching and formatting."""

from __future__ import annotations

from .extractor import extract_citations_from_block
from .fetch import BibFetchError, BibliographyFetcher
from .formatting import format_citation, prepare_bibliography

__all__ = [
    "extract_citations_from_block",
    "BibFetchError",
    "BibliographyFetcher",
    "format_citation",
    "prepare_bibliography",
]
