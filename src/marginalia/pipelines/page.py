"""
Page pass: run footnote and citation extraction over a whole block tree.

Flow
----
1. Top-level blocks are independent units of work and run on a thread pool;
   results are collected in document order.
2. Within a unit, each block gets footnote extraction, then citation
   extraction, then the pass recurses into the children that remain (child
   blocks consumed as footnotes are not revisited).
3. Citations are merged per page: one record per key in order of first
   appearance, numbered from 1, with every citing block id listed once.

The bibliography map is only read, and every block belongs to exactly one
unit, so workers share no mutable state.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from marginalia.citations.extractor import extract_citations_from_block
from marginalia.citations.formatting import prepare_bibliography
from marginalia.core.contracts.block import Block
from marginalia.core.contracts.citation import Citation, ParsedCitationEntry
from marginalia.core.contracts.config import CitationsConfig, FootnotesConfig
from marginalia.core.contracts.footnote import Footnote
from marginalia.core.settings import get_logger
from marginalia.footnotes.extractor import extract_footnotes_from_block
from marginalia.providers.comments import CommentsProvider
from marginalia.providers.files import FileDownloader

log = get_logger("marginalia.pipelines.page")


class PageExtraction(BaseModel):
    """Everything the renderer needs besides the rewritten blocks."""

    footnotes: list[Footnote] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)
    bibliography: list[Citation] = Field(default_factory=list)


@dataclass(slots=True)
class _UnitResult:
    footnotes: list[Footnote] = field(default_factory=list)
    citations: list[tuple[str, Citation]] = field(default_factory=list)


@dataclass(slots=True)
class _PageWorker:
    footnotes_config: FootnotesConfig | None
    citations_config: CitationsConfig | None
    bib_entries: Mapping[str, ParsedCitationEntry]
    comments: CommentsProvider | None
    downloader: FileDownloader | None

    def run(self, block: Block) -> _UnitResult:
        result = _UnitResult()
        self._visit(block, result)
        return result

    def _visit(self, block: Block, result: _UnitResult) -> None:
        if self.footnotes_config is not None:
            extracted = extract_footnotes_from_block(
                block, self.footnotes_config, self.comments, self.downloader
            )
            result.footnotes.extend(extracted.footnotes)

        if self.citations_config is not None and self.bib_entries:
            cited = extract_citations_from_block(block, self.citations_config, self.bib_entries)
            result.citations.extend((block.id, citation) for citation in cited.citations)

        for child in block.children:
            self._visit(child, result)


def merge_page_citations(occurrences: Sequence[tuple[str, Citation]]) -> list[Citation]:
    """Collapse per-block citations into numbered page citations.

    Parameters
    ----------
    occurrences:
        ``(block_id, citation)`` pairs in document order.

    Returns
    -------
    list[Citation]
        One citation per key, ``index`` 1..n by first appearance and
        ``source_block_ids`` listing each citing block once.
    """
    by_key: dict[str, Citation] = {}
    for block_id, citation in occurrences:
        merged = by_key.get(citation.key)
        if merged is None:
            merged = citation.model_copy(
                update={"index": len(by_key) + 1, "source_block_ids": []}
            )
            by_key[citation.key] = merged
        if block_id not in merged.source_block_ids:
            merged.source_block_ids.append(block_id)
    return list(by_key.values())


def process_page(
    blocks: Sequence[Block],
    *,
    footnotes: FootnotesConfig | None = None,
    citations: CitationsConfig | None = None,
    bib_entries: Mapping[str, ParsedCitationEntry] | None = None,
    comments: CommentsProvider | None = None,
    downloader: FileDownloader | None = None,
    max_workers: int = 4,
) -> PageExtraction:
    """Extract footnotes and citations from every block of a page, in place.

    Parameters
    ----------
    blocks:
        Top-level blocks of the page; rewritten in place.
    footnotes, citations:
        Extraction options; ``None`` skips that kind of extraction.
    bib_entries:
        Resolved bibliography; citation extraction is skipped when empty.
    comments, downloader:
        Collaborators for the block-comments footnote source.
    max_workers:
        Size of the thread pool used for top-level blocks.

    Returns
    -------
    PageExtraction
        Footnotes in document order, numbered page citations and the
        bibliography sorted for the configured style.
    """
    worker = _PageWorker(
        footnotes_config=footnotes,
        citations_config=citations,
        bib_entries=bib_entries or {},
        comments=comments,
        downloader=downloader,
    )

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        units = list(pool.map(worker.run, blocks))

    page_footnotes = [fn for unit in units for fn in unit.footnotes]
    page_citations = merge_page_citations([occ for unit in units for occ in unit.citations])
    style = citations.bibliography_style if citations is not None else "apa"

    log.info(
        "Processed %d blocks: %d footnotes, %d citations",
        len(blocks),
        len(page_footnotes),
        len(page_citations),
    )
    return PageExtraction(
        footnotes=page_footnotes,
        citations=page_citations,
        bibliography=prepare_bibliography(page_citations, style),
    )


__all__ = ["PageExtraction", "merge_page_citations", "process_page"]
