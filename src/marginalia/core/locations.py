"""
Location index: every independently addressable rich-text field of a block.

A :class:`Location` pairs a stable property path (``"Paragraph.RichTexts"``,
``"Table.Rows[2].Cells[0]"``) with the run sequence currently stored there,
and exposes :meth:`Location.write` as the single way to replace that
sequence in the owning block. Write-back is a ``match`` over the path kind
rather than a stored closure, so every mutation site is visible here.

The index is not recursive: children are indexed by whoever walks the tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, assert_never

from marginalia.core.contracts.block import Block, BlockType
from marginalia.core.contracts.richtext import RichText

SourceLocation = Literal["content", "caption", "table"]

# Display names used in property paths.
_KIND_NAMES: dict[BlockType, str] = {
    BlockType.PARAGRAPH: "Paragraph",
    BlockType.HEADING_1: "Heading1",
    BlockType.HEADING_2: "Heading2",
    BlockType.HEADING_3: "Heading3",
    BlockType.BULLETED_LIST_ITEM: "BulletedListItem",
    BlockType.NUMBERED_LIST_ITEM: "NumberedListItem",
    BlockType.TO_DO: "ToDo",
    BlockType.QUOTE: "Quote",
    BlockType.CALLOUT: "Callout",
    BlockType.TOGGLE: "Toggle",
    BlockType.CODE: "Code",
    BlockType.IMAGE: "Image",
    BlockType.VIDEO: "Video",
    BlockType.AUDIO: "Audio",
    BlockType.FILE: "File",
    BlockType.EMBED: "Embed",
    BlockType.BOOKMARK: "Bookmark",
    BlockType.LINK_PREVIEW: "LinkPreview",
    BlockType.TABLE: "Table",
    BlockType.SYNCED_BLOCK: "SyncedBlock",
    BlockType.DIVIDER: "Divider",
}


class LocationKind(Enum):
    RICH_TEXTS = "rich_texts"
    CAPTION = "caption"
    TABLE_CELL = "table_cell"


@dataclass(frozen=True, slots=True)
class LocationPath:
    """Where a run sequence lives inside its block."""

    block_type: BlockType
    kind: LocationKind
    row: int | None = None
    cell: int | None = None

    @property
    def property_path(self) -> str:
        name = _KIND_NAMES[self.block_type]
        match self.kind:
            case LocationKind.RICH_TEXTS:
                return f"{name}.RichTexts"
            case LocationKind.CAPTION:
                return f"{name}.Caption"
            case LocationKind.TABLE_CELL:
                return f"{name}.Rows[{self.row}].Cells[{self.cell}]"
            case _:
                assert_never(self.kind)


@dataclass(slots=True)
class Location:
    """One rich-text field of ``block`` plus its write-back operation."""

    block: Block
    path: LocationPath
    rich_texts: list[RichText] = field(default_factory=list)

    @property
    def property_path(self) -> str:
        return self.path.property_path

    @property
    def source_location(self) -> SourceLocation:
        match self.path.kind:
            case LocationKind.CAPTION:
                return "caption"
            case LocationKind.TABLE_CELL:
                return "table"
            case LocationKind.RICH_TEXTS:
                return "content"
            case _:
                assert_never(self.path.kind)

    def write(self, rich_texts: list[RichText]) -> None:
        """Replace the run sequence in the owning block (and in this view)."""
        content = self.block.content
        match self.path.kind:
            case LocationKind.RICH_TEXTS:
                content.rich_texts = rich_texts
            case LocationKind.CAPTION:
                content.caption = rich_texts
            case LocationKind.TABLE_CELL:
                assert self.path.row is not None and self.path.cell is not None
                content.rows[self.path.row].cells[self.path.cell].rich_texts = rich_texts
            case _:
                assert_never(self.path.kind)
        self.rich_texts = rich_texts


def get_rich_text_locations(block: Block) -> list[Location]:
    """Return a :class:`Location` for every non-empty rich-text field of ``block``.

    Code blocks only expose their caption; code content is never scanned.
    Table blocks expose one location per cell.
    """
    locations: list[Location] = []

    def add(
        kind: LocationKind,
        rich_texts: list[RichText],
        row: int | None = None,
        cell: int | None = None,
    ) -> None:
        if rich_texts:
            path = LocationPath(block_type=block.type, kind=kind, row=row, cell=cell)
            locations.append(Location(block=block, path=path, rich_texts=rich_texts))

    match block.type:
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
        ):
            add(LocationKind.RICH_TEXTS, block.content.rich_texts)
        case (
            BlockType.CODE
            | BlockType.IMAGE
            | BlockType.VIDEO
            | BlockType.AUDIO
            | BlockType.FILE
            | BlockType.EMBED
            | BlockType.BOOKMARK
            | BlockType.LINK_PREVIEW
        ):
            add(LocationKind.CAPTION, block.content.caption)
        case BlockType.TABLE:
            for row_index, row in enumerate(block.content.rows):
                for cell_index, cell in enumerate(row.cells):
                    add(LocationKind.TABLE_CELL, cell.rich_texts, row_index, cell_index)
        case BlockType.SYNCED_BLOCK | BlockType.DIVIDER:
            pass
        case _:
            assert_never(block.type)

    return locations


__all__ = [
    "SourceLocation",
    "LocationKind",
    "LocationPath",
    "Location",
    "get_rich_text_locations",
]
