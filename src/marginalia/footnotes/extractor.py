"""Footnote dispatcher: routes a block to the configured source strategy."""

from __future__ import annotations

from marginalia.core.contracts.block import Block
from marginalia.core.contracts.config import FootnotesConfig
from marginalia.core.contracts.footnote import FootnoteExtractionResult
from marginalia.footnotes.block_comments import extract_block_comments
from marginalia.footnotes.child_blocks import extract_start_of_child_blocks
from marginalia.footnotes.end_of_block import extract_end_of_block
from marginalia.providers.comments import CommentsProvider
from marginalia.providers.files import FileDownloader


def extract_footnotes_from_block(
    block: Block,
    config: FootnotesConfig,
    comments: CommentsProvider | None = None,
    downloader: FileDownloader | None = None,
) -> FootnoteExtractionResult:
    """Extract footnotes from ``block`` in place.

    Parameters
    ----------
    block:
        The block to rewrite. Its own locations (and, for the child-blocks
        source, its children list) may be replaced.
    config:
        Resolved footnote options; ``source=None`` disables extraction.
    comments, downloader:
        Collaborators used only by the block-comments source.

    Returns
    -------
    FootnoteExtractionResult
        Footnotes in discovery order plus the processed flags.
    """
    match config.source:
        case "end-of-block":
            return extract_end_of_block(block, config)
        case "start-of-child-blocks":
            return extract_start_of_child_blocks(block, config)
        case "block-comments":
            return extract_block_comments(block, config, comments, downloader)
        case _:
            return FootnoteExtractionResult()


__all__ = ["extract_footnotes_from_block"]
