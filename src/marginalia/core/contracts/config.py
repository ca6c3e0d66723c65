"""Extraction configuration contracts.

These are the resolved, per-build options handed to the extractors. They are
deliberately separate from :class:`marginalia.core.settings.Settings` so that
extractors can be driven from tests or other callers without touching the
environment.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

FootnoteSource = Literal["end-of-block", "start-of-child-blocks", "block-comments"]
BibliographyStyle = Literal["apa", "simplified-ieee"]


class FootnotesConfig(BaseModel):
    """Resolved footnote options: at most one active source."""

    source: FootnoteSource | None = Field(
        default="end-of-block", description="Active footnote source, or None to disable."
    )
    marker_prefix: str = Field(default="ft_", description="Literal prefix inside `[^...]`.")
    optimize_images: bool = Field(
        default=True, description="Rewrite comment image attachment URLs to the optimized codec."
    )


class CitationsConfig(BaseModel):
    """Citation extraction options."""

    in_text_format: str = Field(
        default="[@key]", description="A key of `citations.extractor.CITATION_PATTERNS`."
    )
    bibliography_style: BibliographyStyle = Field(default="apa")


__all__ = [
    "FootnoteSource",
    "BibliographyStyle",
    "FootnotesConfig",
    "CitationsConfig",
]
