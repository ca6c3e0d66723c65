"""Pydantic contracts shared by the extractors, the cache and the CLI."""

from __future__ import annotations

from .block import Block, BlockType
from .citation import BibFileMeta, BibSourceInfo, Citation, ParsedCitationEntry
from .config import CitationsConfig, FootnotesConfig
from .footnote import CommentAttachment, Footnote, FootnoteContent, FootnoteExtractionResult
from .richtext import Annotation, Mention, RichText

__all__ = [
    "Annotation",
    "Mention",
    "RichText",
    "Block",
    "BlockType",
    "Footnote",
    "FootnoteContent",
    "CommentAttachment",
    "FootnoteExtractionResult",
    "Citation",
    "ParsedCitationEntry",
    "BibSourceInfo",
    "BibFileMeta",
    "FootnotesConfig",
    "CitationsConfig",
]
