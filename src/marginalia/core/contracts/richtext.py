"""RichText contract: the atomic annotated-text unit.

A ``RichText`` is one contiguous run of text sharing identical formatting.
Blocks hold ordered sequences of runs; the concatenation of their
``plain_text`` values is the string that every marker pattern is matched
against.

Marker flags
------------
``is_footnote_marker``/``footnote_ref`` and ``is_citation_marker``/
``citation_ref`` are only ever set on runs produced by marker substitution.
Renderers use them to turn the run into a reference link.
"""

from __future__ import annotations

from typing import Literal, get_args

from pydantic import BaseModel, Field

Color = Literal[
    "default",
    "gray",
    "brown",
    "orange",
    "yellow",
    "green",
    "blue",
    "purple",
    "pink",
    "red",
    "gray_background",
    "brown_background",
    "orange_background",
    "yellow_background",
    "green_background",
    "blue_background",
    "purple_background",
    "pink_background",
    "red_background",
]

COLORS: frozenset[str] = frozenset(get_args(Color))


class Annotation(BaseModel):
    """Formatting flags carried by every run."""

    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    code: bool = False
    color: Color = "default"


class Link(BaseModel):
    url: str


class TextContent(BaseModel):
    """Payload of a plain ``text`` run; ``content`` mirrors ``plain_text``."""

    content: str
    link: Link | None = None


class Equation(BaseModel):
    expression: str


class InterlinkedContent(BaseModel):
    """Reference to another page of the same workspace."""

    page_id: str
    type: str = "page"


class LinkMention(BaseModel):
    """Link-preview metadata attached to a ``link_mention``."""

    href: str
    title: str | None = None
    icon_url: str | None = None
    description: str | None = None
    link_author: str | None = None
    thumbnail_url: str | None = None
    height: int | None = None
    iframe_url: str | None = None
    link_provider: str | None = None


class CustomEmoji(BaseModel):
    name: str
    url: str


class Mention(BaseModel):
    """Inline mention; exactly one payload matching ``type`` is expected."""

    type: str
    page: InterlinkedContent | None = None
    date_str: str | None = None
    link_mention: LinkMention | None = None
    custom_emoji: CustomEmoji | None = None


class RichText(BaseModel):
    """One annotated run of text."""

    plain_text: str = ""
    text: TextContent | None = None
    annotation: Annotation = Field(default_factory=Annotation)
    href: str | None = None
    equation: Equation | None = None
    mention: Mention | None = None

    is_footnote_marker: bool = False
    footnote_ref: str | None = None
    is_citation_marker: bool = False
    citation_ref: str | None = None


__all__ = [
    "Color",
    "COLORS",
    "Annotation",
    "Link",
    "TextContent",
    "Equation",
    "InterlinkedContent",
    "LinkMention",
    "CustomEmoji",
    "Mention",
    "RichText",
]
