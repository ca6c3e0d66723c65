"""
Block Contract

A ``Block`` is one node of the page tree handed over by the content backend.
It is a tagged union: ``type`` names the variant and exactly one payload
field, named after the variant, is populated (``divider`` has none).

Container variants (the text-bearing kinds and ``synced_block``) own an
ordered list of child blocks. Extraction mutates blocks in place, so a block
must never be shared between two parents.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, assert_never

from pydantic import BaseModel, Field, model_validator

from .richtext import RichText


class BlockType(StrEnum):
    PARAGRAPH = "paragraph"
    HEADING_1 = "heading_1"
    HEADING_2 = "heading_2"
    HEADING_3 = "heading_3"
    BULLETED_LIST_ITEM = "bulleted_list_item"
    NUMBERED_LIST_ITEM = "numbered_list_item"
    TO_DO = "to_do"
    QUOTE = "quote"
    CALLOUT = "callout"
    TOGGLE = "toggle"
    CODE = "code"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"
    EMBED = "embed"
    BOOKMARK = "bookmark"
    LINK_PREVIEW = "link_preview"
    TABLE = "table"
    SYNCED_BLOCK = "synced_block"
    DIVIDER = "divider"


TEXT_BLOCK_TYPES: frozenset[BlockType] = frozenset(
    {
        BlockType.PARAGRAPH,
        BlockType.HEADING_1,
        BlockType.HEADING_2,
        BlockType.HEADING_3,
        BlockType.BULLETED_LIST_ITEM,
        BlockType.NUMBERED_LIST_ITEM,
        BlockType.TO_DO,
        BlockType.QUOTE,
        BlockType.CALLOUT,
        BlockType.TOGGLE,
    }
)

MEDIA_BLOCK_TYPES: frozenset[BlockType] = frozenset(
    {
        BlockType.IMAGE,
        BlockType.VIDEO,
        BlockType.AUDIO,
        BlockType.FILE,
        BlockType.EMBED,
        BlockType.BOOKMARK,
        BlockType.LINK_PREVIEW,
    }
)


# ---- Payloads ----------------------------------------------------------------


class TextBlockContent(BaseModel):
    """Payload of paragraph-like blocks (headings, list items, quote, ...)."""

    rich_texts: list[RichText] = Field(default_factory=list)
    children: list[Block] = Field(default_factory=list)
    color: str = "default"
    checked: bool | None = Field(default=None, description="to_do only")
    icon: str | None = Field(default=None, description="callout only")


class CodeBlockContent(BaseModel):
    """Code content is never scanned for markers; only the caption is."""

    rich_texts: list[RichText] = Field(default_factory=list)
    caption: list[RichText] = Field(default_factory=list)
    language: str = "plain text"


class MediaBlockContent(BaseModel):
    url: str | None = None
    caption: list[RichText] = Field(default_factory=list)


class TableCell(BaseModel):
    rich_texts: list[RichText] = Field(default_factory=list)


class TableRow(BaseModel):
    cells: list[TableCell] = Field(default_factory=list)


class TableBlockContent(BaseModel):
    rows: list[TableRow] = Field(default_factory=list)
    has_column_header: bool = False
    has_row_header: bool = False


class SyncedBlockContent(BaseModel):
    children: list[Block] = Field(default_factory=list)


# ---- Block -------------------------------------------------------------------

_PAYLOAD_FIELDS: tuple[str, ...] = tuple(t.value for t in BlockType if t is not BlockType.DIVIDER)


class Block(BaseModel):
    """A node of the page tree with exactly one populated content variant."""

    id: str = Field(..., description="Backend block identifier.")
    type: BlockType

    paragraph: TextBlockContent | None = None
    heading_1: TextBlockContent | None = None
    heading_2: TextBlockContent | None = None
    heading_3: TextBlockContent | None = None
    bulleted_list_item: TextBlockContent | None = None
    numbered_list_item: TextBlockContent | None = None
    to_do: TextBlockContent | None = None
    quote: TextBlockContent | None = None
    callout: TextBlockContent | None = None
    toggle: TextBlockContent | None = None
    code: CodeBlockContent | None = None
    image: MediaBlockContent | None = None
    video: MediaBlockContent | None = None
    audio: MediaBlockContent | None = None
    file: MediaBlockContent | None = None
    embed: MediaBlockContent | None = None
    bookmark: MediaBlockContent | None = None
    link_preview: MediaBlockContent | None = None
    table: TableBlockContent | None = None
    synced_block: SyncedBlockContent | None = None

    @model_validator(mode="after")
    def _single_variant(self) -> Block:
        """Ensure the populated payload matches ``type`` and is the only one."""
        populated = [name for name in _PAYLOAD_FIELDS if getattr(self, name) is not None]
        expected = [] if self.type is BlockType.DIVIDER else [self.type.value]
        if populated != expected:
            raise ValueError(
                f"block {self.id!r} of type '{self.type}' must populate exactly "
                f"{expected or 'no payload'}, got {populated}"
            )
        return self

    # ---- Variant access -----------------------------------------------------

    @property
    def content(self) -> Any:
        """Return the populated payload (``None`` for dividers)."""
        if self.type is BlockType.DIVIDER:
            return None
        return getattr(self, self.type.value)

    @property
    def children(self) -> list[Block]:
        """Child blocks of container variants; empty for leaf variants."""
        match self.type:
            case (
                BlockType.PARAGRAPH
                | BlockType.HEADING_1
                | BlockType.HEADING_2
                | BlockType.HEADING_3
                | BlockType.BULLETED_LIST_ITEM
                | BlockType.NUMBERED_LIST_ITEM
                | BlockType.TO_DO
                | BlockType.QUOTE
                | BlockType.CALLOUT
                | BlockType.TOGGLE
                | BlockType.SYNCED_BLOCK
            ):
                children: list[Block] = self.content.children
                return children
            case (
                BlockType.CODE
                | BlockType.IMAGE
                | BlockType.VIDEO
                | BlockType.AUDIO
                | BlockType.FILE
                | BlockType.EMBED
                | BlockType.BOOKMARK
                | BlockType.LINK_PREVIEW
                | BlockType.TABLE
                | BlockType.DIVIDER
            ):
                return []
            case _:
                assert_never(self.type)

    def set_children(self, children: list[Block]) -> None:
        """Replace the children of a container block.

        Raises
        ------
        ValueError
            If the block kind cannot hold children.
        """
        if self.type not in TEXT_BLOCK_TYPES and self.type is not BlockType.SYNCED_BLOCK:
            raise ValueError(f"block type '{self.type}' has no children")
        self.content.children = children

    # ---- Constructors -------------------------------------------------------

    @classmethod
    def text_block(
        cls,
        block_type: BlockType,
        block_id: str,
        rich_texts: list[RichText],
        children: list[Block] | None = None,
    ) -> Block:
        """Build a paragraph-like block of ``block_type``."""
        if block_type not in TEXT_BLOCK_TYPES:
            raise ValueError(f"'{block_type}' is not a text block type")
        payload = TextBlockContent(rich_texts=rich_texts, children=children or [])
        return cls.model_validate({"id": block_id, "type": block_type, block_type.value: payload})

    @classmethod
    def paragraph_block(
        cls,
        block_id: str,
        rich_texts: list[RichText],
        children: list[Block] | None = None,
    ) -> Block:
        return cls.text_block(BlockType.PARAGRAPH, block_id, rich_texts, children)

    @classmethod
    def media_block(
        cls,
        block_type: BlockType,
        block_id: str,
        caption: list[RichText],
        url: str | None = None,
    ) -> Block:
        if block_type not in MEDIA_BLOCK_TYPES:
            raise ValueError(f"'{block_type}' is not a media block type")
        payload = MediaBlockContent(url=url, caption=caption)
        return cls.model_validate({"id": block_id, "type": block_type, block_type.value: payload})

    @classmethod
    def table_block(cls, block_id: str, rows: list[list[list[RichText]]]) -> Block:
        """Build a table from ``rows[row][cell] -> rich texts``."""
        payload = TableBlockContent(
            rows=[TableRow(cells=[TableCell(rich_texts=cell) for cell in row]) for row in rows]
        )
        return cls(id=block_id, type=BlockType.TABLE, table=payload)


TextBlockContent.model_rebuild()
SyncedBlockContent.model_rebuild()
Block.model_rebuild()


__all__ = [
    "BlockType",
    "TEXT_BLOCK_TYPES",
    "MEDIA_BLOCK_TYPES",
    "TextBlockContent",
    "CodeBlockContent",
    "MediaBlockContent",
    "TableCell",
    "TableRow",
    "TableBlockContent",
    "SyncedBlockContent",
    "Block",
]
