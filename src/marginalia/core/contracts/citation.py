"""Citation and bibliography contracts.

``ParsedCitationEntry`` is the durable unit of bibliographic data: it is
produced once from a BibTeX file, cached as JSON and never mutated.
``Citation`` is the per-page occurrence record; ``index`` and
``source_block_ids`` are filled in by the page-level pass.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

BibSourceKind = Literal["github-gist", "github-repo", "dropbox", "google-drive", "unknown"]


class ParsedCitationEntry(BaseModel):
    """A pre-formatted bibliography entry keyed by its citation key."""

    model_config = ConfigDict(frozen=True)

    key: str
    authors: str = Field(description="Display string, e.g. 'Smith & Jones'.")
    year: str
    ieee_formatted: str
    apa_formatted: str


class Citation(BaseModel):
    """One cited key on a page."""

    key: str
    formatted_entry: str
    authors: str
    year: str
    index: int | None = Field(default=None, description="First-appearance number on the page.")
    source_block_ids: list[str] = Field(default_factory=list)


class CitationExtractionResult(BaseModel):
    citations: list[Citation] = Field(default_factory=list)
    processed_rich_texts: bool = False


class FormattedCitation(BaseModel):
    in_text: str
    bibliography: str
    authors: str
    year: str


class BibSourceInfo(BaseModel):
    """Normalized view of a bibliography share URL."""

    source: BibSourceKind
    download_url: str
    updated_url: str | None = Field(
        default=None, description="Endpoint exposing the last remote update, if any."
    )
    updated_instructions: str | None = None


class BibFileMeta(BaseModel):
    """Per-source fetch metadata stored as ``<hash>.meta.json``."""

    url: str
    last_updated: str | None = Field(default=None, description="Remote update timestamp.")
    entry_count: int = 0
    last_fetched: str = Field(description="ISO-8601 UTC time of the last download.")
    parsed_file: str


__all__ = [
    "BibSourceKind",
    "ParsedCitationEntry",
    "Citation",
    "CitationExtractionResult",
    "FormattedCitation",
    "BibSourceInfo",
    "BibFileMeta",
]
