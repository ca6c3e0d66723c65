"""Tests for the character-exact run operations in `marginalia.core.richtext`."""

from __future__ import annotations

from marginalia.core.contracts.richtext import RichText
from marginalia.core.richtext import (
    clone_rich_text,
    extract_range,
    join_plain_text,
    make_rich_text,
    remove_prefix,
    split_at,
)


def _runs() -> list[RichText]:
    return [
        make_rich_text("Hello "),
        make_rich_text("bold world", bold=True),
        make_rich_text("!", link="https://example.com"),
    ]


def test_split_preserves_text_at_every_position() -> None:
    """join(before) + join(after) == join(S) for every cut position."""
    runs = _runs()
    full = join_plain_text(runs)
    for pos in range(len(full) + 1):
        before, after = split_at(runs, pos)
        assert join_plain_text(before) + join_plain_text(after) == full
        assert all(rt.plain_text for rt in before + after), "no empty runs"


def test_split_straddling_run_keeps_annotations() -> None:
    """A run cut in the middle yields two clones carrying the same formatting."""
    runs = _runs()
    before, after = split_at(runs, 10)  # inside "bold world"

    assert [rt.plain_text for rt in before] == ["Hello ", "bold"]
    assert [rt.plain_text for rt in after] == [" world", "!"]
    assert before[1].annotation.bold and after[0].annotation.bold
    assert before[1].text is not None and before[1].text.content == "bold"
    # The source run is untouched.
    assert runs[1].plain_text == "bold world"


def test_split_on_boundary_returns_original_runs() -> None:
    """Cutting on a run boundary passes runs through without cloning."""
    runs = _runs()
    before, after = split_at(runs, 6)
    assert before[0] is runs[0]
    assert after[0] is runs[1]
    assert after[1] is runs[2]


def test_clone_is_independent() -> None:
    """Mutating a clone never affects the source run."""
    original = make_rich_text("x", italic=True, link="https://a.example")
    copy = clone_rich_text(original)
    copy.annotation.italic = False
    assert copy.text is not None and copy.text.link is not None
    copy.text.link.url = "https://b.example"

    assert original.annotation.italic is True
    assert original.text is not None and original.text.link is not None
    assert original.text.link.url == "https://a.example"


def test_extract_range_trims_only_outer_runs() -> None:
    """Leading/trailing whitespace is removed from the first and last run only."""
    runs = [
        make_rich_text("  first "),
        make_rich_text(" middle ", italic=True),
        make_rich_text(" last  "),
    ]
    extracted = extract_range(runs, 0, len(join_plain_text(runs)))

    assert [rt.plain_text for rt in extracted] == ["first ", " middle ", " last"]
    assert extracted[1].annotation.italic


def test_extract_range_full_span_equals_trimmed_text() -> None:
    """extract_range(S, 0, len) joined equals join(S).strip()."""
    runs = [make_rich_text("\n\n"), make_rich_text(" text "), make_rich_text("  ")]
    extracted = extract_range(runs, 0, len(join_plain_text(runs)))

    assert join_plain_text(extracted) == join_plain_text(runs).strip()
    assert len(extracted) == 1


def test_extract_range_partial() -> None:
    """Only the characters inside [start, end) are returned."""
    runs = _runs()
    extracted = extract_range(runs, 6, 10)
    assert [rt.plain_text for rt in extracted] == ["bold"]
    assert extracted[0].annotation.bold


def test_remove_prefix_drops_characters() -> None:
    """remove_prefix strips exactly n leading characters."""
    runs = [make_rich_text("[^ft_a]: "), make_rich_text("note", bold=True)]
    rest = remove_prefix(runs, 9)
    assert [rt.plain_text for rt in rest] == ["note"]

    partial = remove_prefix([make_rich_text("[^ft_a]: note")], 9)
    assert join_plain_text(partial) == "note"
    assert remove_prefix(runs, 0) == runs
