"""
Block-comments footnotes.

Definitions are comments attached to the block, each starting with
``[^<prefix>key]:``. The provider is only called when the block has at least
one inline marker. Provider failures never propagate: a permission denial is
a warning with guidance, anything else is logged as an error, and the block
is left untouched in both cases.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from marginalia.core.contracts.block import Block
from marginalia.core.contracts.config import FootnotesConfig
from marginalia.core.contracts.footnote import (
    CommentAttachment,
    Footnote,
    FootnoteContent,
    FootnoteExtractionResult,
)
from marginalia.core.locations import get_rich_text_locations
from marginalia.core.richtext import remove_prefix
from marginalia.core.settings import get_logger
from marginalia.footnotes.markers import (
    find_footnote_markers,
    match_definition_anchor,
    split_markers,
)
from marginalia.providers.comments import (
    CommentsProvider,
    CommentsProviderError,
    decode_rich_text,
)
from marginalia.providers.files import (
    FileDownloader,
    file_name_from_url,
    is_convertible_image,
    optimized_url_for,
)

log = get_logger("marginalia.footnotes.comments")

PERMISSION_GUIDANCE = (
    "Footnotes: block-comments source is enabled but Comments API permission is not "
    "available. Please grant comment permissions to your Notion integration, or switch "
    "to end-of-block or start-of-child-blocks source."
)


def _is_permission_denied(exc: Exception) -> bool:
    if isinstance(exc, CommentsProviderError):
        return exc.is_permission_denied
    return getattr(exc, "status", None) == 403 or getattr(exc, "code", None) == "restricted_resource"


def _collect_attachments(
    raw_attachments: list[Mapping[str, Any]],
    downloader: FileDownloader | None,
    optimize_images: bool,
) -> list[CommentAttachment]:
    attachments: list[CommentAttachment] = []
    for raw in raw_attachments:
        file_info = raw.get("file") or {}
        url = file_info.get("url")
        if not url:
            continue

        category = raw.get("category") or "unknown"
        is_image = category == "image"
        if downloader is not None:
            downloader.download(url, is_image)

        optimized = url
        if is_image and is_convertible_image(url) and optimize_images:
            optimized = optimized_url_for(url)

        attachments.append(
            CommentAttachment(
                category=category,
                url=url,
                optimized_url=optimized,
                name=file_name_from_url(url),
                expiry_time=file_info.get("expiry_time"),
            )
        )
    return attachments


def extract_block_comments(
    block: Block,
    config: FootnotesConfig,
    comments: CommentsProvider | None = None,
    downloader: FileDownloader | None = None,
) -> FootnoteExtractionResult:
    """Build comment footnotes for ``block``.

    Parameters
    ----------
    block:
        Block to process; its locations get marker runs on success.
    config:
        Footnote options (prefix, image optimization).
    comments:
        Comments provider. Without one the block is returned unchanged.
    downloader:
        Optional attachment downloader, called once per attachment.
    """
    prefix = config.marker_prefix
    locations = get_rich_text_locations(block)
    markers = find_footnote_markers(locations, prefix)
    if not markers:
        return FootnoteExtractionResult()

    if comments is None:
        log.warning("Footnotes: Comments API requested but no comments provider is configured")
        return FootnoteExtractionResult()

    try:
        response = comments.list(block.id)
        footnotes: list[Footnote] = []
        for comment in response.get("results") or []:
            items = comment.get("rich_text") or []
            if not items:
                continue

            anchor = match_definition_anchor(items[0].get("plain_text") or "", prefix)
            if anchor is None:
                continue

            content = remove_prefix(decode_rich_text(items), anchor.end())
            attachments = _collect_attachments(
                comment.get("attachments") or [], downloader, config.optimize_images
            )
            footnotes.append(
                Footnote(
                    marker=anchor.group(1),
                    full_marker=f"[^{prefix}{anchor.group(1)}]",
                    content=FootnoteContent(
                        type="comment",
                        rich_texts=content,
                        comment_attachments=attachments or None,
                    ),
                    source_location="comment",
                )
            )
    except Exception as exc:
        if _is_permission_denied(exc):
            log.warning(PERMISSION_GUIDANCE)
        else:
            log.error("Footnotes: error fetching comments for block %s: %s", block.id, exc)
        return FootnoteExtractionResult()

    for location in locations:
        location.write(split_markers(location, markers))

    return FootnoteExtractionResult(footnotes=footnotes, processed_rich_texts=True)


__all__ = ["PERMISSION_GUIDANCE", "extract_block_comments"]
