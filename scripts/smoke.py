# scripts/smoke.py
"""
Smoke Test Script for the marginalia page pass.

Usage
-----
1. Run every footnote source against the built-in sample page (offline):
    $ uv run python scripts/smoke.py

2. Also resolve citations against a real bibliography (needs network):
    $ uv run python scripts/smoke.py --bib https://gist.github.com/<user>/<id>
"""

import argparse
import logging
import sys
import tempfile
import traceback
from pathlib import Path

from dotenv import load_dotenv

from marginalia.citations.cache import BibliographyCache
from marginalia.citations.fetch import BibliographyFetcher
from marginalia.core.contracts.block import Block, BlockType
from marginalia.core.contracts.citation import ParsedCitationEntry
from marginalia.core.contracts.config import CitationsConfig, FootnotesConfig, FootnoteSource
from marginalia.core.richtext import join_plain_text, make_rich_text
from marginalia.pipelines.page import process_page

# --------------------------------------------------------------------------- #
# Environment Setup
# --------------------------------------------------------------------------- #
env_path = Path(".env")
if env_path.exists():
    load_dotenv(env_path)
    print("✅ Loaded .env file")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

# --------------------------------------------------------------------------- #
# Test Data
# --------------------------------------------------------------------------- #
SAMPLE_ENTRIES = {
    "smith2020": ParsedCitationEntry(
        key="smith2020",
        authors="Smith",
        year="2020",
        ieee_formatted='J. Smith, "Footnotes considered helpful," <i>J. Notes</i>, 2020.',
        apa_formatted="Smith, J. (2020). Footnotes considered helpful. <i>J. Notes</i>.",
    ),
}


def sample_page(source: FootnoteSource) -> list[Block]:
    """Two blocks whose footnote definitions match ``source``."""
    if source == "end-of-block":
        first = Block.paragraph_block(
            "b1",
            [make_rich_text("Prior work [@smith2020] shows this[^ft_a].\n\n[^ft_a]: See chapter 2.")],
        )
    else:
        definition = Block.paragraph_block("b1-def", [make_rich_text("[^ft_a]: See chapter 2.")])
        first = Block.paragraph_block(
            "b1", [make_rich_text("Prior work [@smith2020] shows this[^ft_a].")], [definition]
        )
    caption = Block.media_block(
        BlockType.IMAGE, "b2", [make_rich_text("A figure [@unknown2000]")], url="figure.png"
    )
    return [first, caption]


def main() -> None:
    """Execute the smoke test workflow."""
    parser = argparse.ArgumentParser(description="Run marginalia Smoke Test")
    parser.add_argument("--bib", "-b", action="append", help="Bibliography share URL")
    args = parser.parse_args()

    # 1. Bibliography
    entries: dict[str, ParsedCitationEntry] = dict(SAMPLE_ENTRIES)
    if args.bib:
        cache_dir = Path(tempfile.mkdtemp(prefix="marginalia-bib-"))
        print(f"\n📚 Fetching bibliography into {cache_dir}")
        entries.update(BibliographyFetcher(cache=BibliographyCache(cache_dir)).load_all(args.bib))

    # 2. Execution Phase
    sources: list[FootnoteSource] = ["end-of-block", "start-of-child-blocks"]
    for source in sources:
        print("\n" + "=" * 60)
        print(f"Footnote source: {source}")
        print("=" * 60)
        blocks = sample_page(source)
        try:
            result = process_page(
                blocks,
                footnotes=FootnotesConfig(source=source),
                citations=CitationsConfig(bibliography_style="simplified-ieee"),
                bib_entries=entries,
            )
        except Exception as exc:
            print(f"\n❌ Page pass crashed: {exc}")
            traceback.print_exc()
            return

        # 3. Inspection Phase
        print(f"📝 Block text: {join_plain_text(blocks[0].content.rich_texts)}")
        for fn in result.footnotes:
            if fn.content.type == "blocks":
                body = " / ".join(join_plain_text(b.content.rich_texts) for b in fn.content.blocks)
            else:
                body = join_plain_text(fn.content.rich_texts)
            print(f"  - {fn.full_marker} ({fn.source_location}): {body}")
        for citation in result.bibliography:
            print(f"  [{citation.index}] {citation.formatted_entry}")

    print("\n✅ Smoke test finished")


if __name__ == "__main__":
    main()
