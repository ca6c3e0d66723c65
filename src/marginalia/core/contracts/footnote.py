"""Footnote contracts produced by the extraction strategies.

A :class:`Footnote` is created once per extraction pass over a block and is
consumed by the renderer. Its content comes in one of three shapes,
depending on where the definition was found:

- ``rich_text``: runs cut from the end of the same text field;
- ``blocks``: a whole child block (with its descendants);
- ``comment``: runs decoded from a block comment, plus attachments.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from .block import Block
from .richtext import RichText

FootnoteSourceLocation = Literal["content", "caption", "table", "comment"]


class CommentAttachment(BaseModel):
    """A file attached to a footnote comment."""

    category: str = Field(description="Provider category, e.g. 'image' or 'productivity'.")
    url: str = Field(description="Original (expiring) file URL.")
    optimized_url: str = Field(description="URL of the locally optimized copy, or the original.")
    name: str = Field(description="File name derived from the URL path.")
    expiry_time: str | None = None


class FootnoteContent(BaseModel):
    type: Literal["rich_text", "blocks", "comment"]
    rich_texts: list[RichText] = Field(default_factory=list)
    blocks: list[Block] = Field(default_factory=list)
    comment_attachments: list[CommentAttachment] | None = None


class Footnote(BaseModel):
    """One extracted footnote.

    Fields
    ------
    marker : str
        Bare key, e.g. ``"a"``.
    full_marker : str
        Rendered marker, e.g. ``"[^ft_a]"``.
    content : FootnoteContent
        The definition, in one of the three shapes.
    source_location : FootnoteSourceLocation
        Where the definition was found.
    """

    marker: str
    full_marker: str
    content: FootnoteContent
    source_location: FootnoteSourceLocation = "content"


class FootnoteExtractionResult(BaseModel):
    footnotes: list[Footnote] = Field(default_factory=list)
    processed_rich_texts: bool = False
    processed_children: bool = False


__all__ = [
    "FootnoteSourceLocation",
    "CommentAttachment",
    "FootnoteContent",
    "Footnote",
    "FootnoteExtractionResult",
]
