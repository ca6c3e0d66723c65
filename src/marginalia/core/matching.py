"""
Restartable pattern scanning over run sequences.

Patterns run against the joined plain text; every match is mapped back to
the run holding its first character. Matches starting inside a run with the
``code`` annotation are skipped, for footnote and citation patterns alike.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from marginalia.core.contracts.richtext import RichText
from marginalia.core.richtext import join_plain_text


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """One match of a pattern in the joined text of a run sequence."""

    key: str
    text: str
    start: int
    end: int
    run_index: int


def run_index_at(rich_texts: Sequence[RichText], char_pos: int) -> int:
    """Index of the run containing ``char_pos`` (the last run if past the end)."""
    current = 0
    for index, rich_text in enumerate(rich_texts):
        current += len(rich_text.plain_text)
        if char_pos < current:
            return index
    return len(rich_texts) - 1


def iter_pattern_matches(
    rich_texts: Sequence[RichText], pattern: re.Pattern[str]
) -> Iterator[PatternMatch]:
    """Yield every non-code match of ``pattern`` in ``rich_texts``, left to right.

    ``pattern`` must capture the key in its first group. Each call scans from
    scratch; no state is shared between iterations.
    """
    full_text = join_plain_text(rich_texts)
    for match in pattern.finditer(full_text):
        run_index = run_index_at(rich_texts, match.start())
        if run_index >= 0 and rich_texts[run_index].annotation.code:
            continue
        yield PatternMatch(
            key=match.group(1),
            text=match.group(0),
            start=match.start(),
            end=match.end(),
            run_index=run_index,
        )


__all__ = ["PatternMatch", "run_index_at", "iter_pattern_matches"]
