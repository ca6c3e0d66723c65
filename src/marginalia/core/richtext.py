"""
Character-exact operations on sequences of annotated runs.

Every higher component (marker finder, footnote strategies, citation
extractor) works on the *joined* plain text of a run sequence and then maps
character offsets back onto runs with the helpers below. None of them merges
runs or drops annotations: a run that must be cut is cloned and each clone
keeps the parent's annotations, links, equation and mention payloads.

Guarantees
----------
- ``join_plain_text(before) + join_plain_text(after) == join_plain_text(spans)``
  for ``before, after = split_at(spans, k)`` and any ``0 <= k <= len``.
- No operation emits a zero-length run.
- Splitting on an existing run boundary returns the original runs untouched.
"""

from __future__ import annotations

from collections.abc import Sequence

from marginalia.core.contracts.richtext import Annotation, RichText, TextContent


def join_plain_text(rich_texts: Sequence[RichText]) -> str:
    """Concatenate ``plain_text`` of all runs; the string patterns match against."""
    return "".join(rt.plain_text for rt in rich_texts)


def clone_rich_text(rich_text: RichText) -> RichText:
    """Return a deep, fully independent copy of ``rich_text``."""
    return rich_text.model_copy(deep=True)


def make_rich_text(text: str, *, link: str | None = None, **annotations: object) -> RichText:
    """Build a plain ``text`` run, e.g. ``make_rich_text("x", bold=True)``."""
    return RichText(
        plain_text=text,
        text=TextContent.model_validate(
            {"content": text, "link": {"url": link} if link else None}
        ),
        annotation=Annotation.model_validate(annotations),
        href=link,
    )


def _with_text(rich_text: RichText, text: str) -> RichText:
    """Clone ``rich_text`` and replace its visible text with ``text``."""
    piece = clone_rich_text(rich_text)
    piece.plain_text = text
    if piece.text is not None:
        piece.text.content = text
    return piece


def split_at(
    rich_texts: Sequence[RichText], split_pos: int
) -> tuple[list[RichText], list[RichText]]:
    """Split runs at a character position of the joined text.

    Parameters
    ----------
    rich_texts:
        Runs to split; never mutated.
    split_pos:
        Offset into ``join_plain_text(rich_texts)``.

    Returns
    -------
    tuple[list[RichText], list[RichText]]
        ``(before, after)``. Runs entirely on one side are passed through as-is;
        a run straddling the cut is cloned into two halves.
    """
    before: list[RichText] = []
    after: list[RichText] = []
    current = 0

    for rich_text in rich_texts:
        length = len(rich_text.plain_text)
        start, end = current, current + length

        if split_pos <= start:
            after.append(rich_text)
        elif split_pos >= end:
            before.append(rich_text)
        else:
            offset = split_pos - start
            before.append(_with_text(rich_text, rich_text.plain_text[:offset]))
            after.append(_with_text(rich_text, rich_text.plain_text[offset:]))

        current = end

    return before, after


def extract_range(rich_texts: Sequence[RichText], start: int, end: int) -> list[RichText]:
    """Return clipped copies of the runs covering ``[start, end)``.

    Leading whitespace is trimmed from the first resulting run and trailing
    whitespace from the last one only; inner runs keep their spacing. A run
    that trimming empties is dropped and trimming continues on its neighbour.
    """
    result: list[RichText] = []
    current = 0

    for rich_text in rich_texts:
        length = len(rich_text.plain_text)
        run_start, run_end = current, current + length
        current = run_end

        if run_end <= start or run_start >= end:
            continue

        slice_start = max(0, start - run_start)
        slice_end = min(length, end - run_start)
        sliced = rich_text.plain_text[slice_start:slice_end]
        if sliced:
            result.append(_with_text(rich_text, sliced))

    while result and not result[0].plain_text.lstrip():
        result.pop(0)
    while result and not result[-1].plain_text.rstrip():
        result.pop()

    if result:
        result[0] = _with_text(result[0], result[0].plain_text.lstrip())
        result[-1] = _with_text(result[-1], result[-1].plain_text.rstrip())

    return result


def remove_prefix(rich_texts: Sequence[RichText], prefix_length: int) -> list[RichText]:
    """Drop the first ``prefix_length`` characters (e.g. a ``[^ft_a]: `` anchor)."""
    if prefix_length <= 0:
        return list(rich_texts)
    _, after = split_at(rich_texts, prefix_length)
    return after


__all__ = [
    "join_plain_text",
    "clone_rich_text",
    "make_rich_text",
    "split_at",
    "extract_range",
    "remove_prefix",
]
