"""
BibTeX parsing and pre-formatting.

Every entry of a bibliography file becomes a :class:`ParsedCitationEntry`
carrying a display author string, a year and two rendered references: a
numeric (IEEE-like) one and an author-date (APA-like) one. Both references
are HTML fragments with the venue in ``<i>``. If a renderer fails for an
entry, that entry falls back to ``"<Authors> (<Year>). <Title>."``.

Parsing uses ``bibtexparser`` (v1 API) with the common month strings and
LaTeX-to-unicode conversion enabled.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

import bibtexparser
from bibtexparser.bparser import BibTexParser
from bibtexparser.customization import convert_to_unicode, splitname

from marginalia.core.contracts.citation import ParsedCitationEntry
from marginalia.core.settings import get_logger

log = get_logger("marginalia.citations.bibtex")

NO_DATE = "n.d."
UNKNOWN_AUTHORS = "Unknown"
MAX_LISTED_AUTHORS = 8

_AND_RE = re.compile(r"\s+and\s+", flags=re.IGNORECASE)
_YEAR_RE = re.compile(r"^\s*(\d{4})")
_SPACES_RE = re.compile(r"\s+")


# ---- Names -------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Name:
    """One parsed author. Corporate authors (``{ACME Corp}``) only have ``literal``."""

    family: str | None = None
    given: str | None = None
    literal: str | None = None

    @property
    def display(self) -> str:
        return self.family or self.literal or ""

    @property
    def initials(self) -> str:
        if not self.given:
            return ""
        return " ".join(f"{part[0]}." for part in re.split(r"[\s~]+", self.given) if part)


def _clean(value: str | None) -> str:
    """Strip BibTeX braces and collapse whitespace."""
    if not value:
        return ""
    return _SPACES_RE.sub(" ", value.replace("{", "").replace("}", "")).strip()


def _split_top_level_and(value: str) -> list[str]:
    """Split an author field on ``and`` outside of braces."""
    names: list[str] = []
    start = 0
    for match in _AND_RE.finditer(value):
        depth = value.count("{", 0, match.start()) - value.count("}", 0, match.start())
        if depth == 0:
            names.append(value[start : match.start()])
            start = match.end()
    names.append(value[start:])
    return [n.strip() for n in names if n.strip()]


def parse_name(raw: str) -> Name:
    """Parse one BibTeX name (``"Last, First"``, ``"First Last"`` or ``{Literal}``)."""
    raw = raw.strip()
    if raw.startswith("{") and raw.endswith("}") and raw.count("{") == 1:
        return Name(literal=_clean(raw))
    try:
        parts = splitname(raw, strict_mode=False)
    except ValueError:
        return Name(literal=_clean(raw))

    family = _clean(" ".join(parts.get("von", []) + parts.get("last", [])))
    given = _clean(" ".join(parts.get("first", [])))
    if not family:
        return Name(literal=_clean(raw))
    return Name(family=family, given=given or None)


def parse_names(value: str | None) -> list[Name]:
    if not value:
        return []
    return [parse_name(part) for part in _split_top_level_and(value)]


def format_authors(names: Sequence[Name]) -> str:
    """Short author string used for in-text citations and sorting.

    ``A``; ``A & B``; ``A, B & C`` up to eight names; beyond eight, the
    first eight followed by ``, et al.``.
    """
    if not names:
        return UNKNOWN_AUTHORS
    displays = [name.display for name in names]
    if len(displays) == 1:
        return displays[0] or UNKNOWN_AUTHORS
    if len(displays) == 2:
        return f"{displays[0]} & {displays[1]}"
    if len(displays) > MAX_LISTED_AUTHORS:
        return ", ".join(displays[:MAX_LISTED_AUTHORS]) + ", et al."
    return ", ".join(displays[:-1]) + f" & {displays[-1]}"


def entry_year(entry: Mapping[str, str]) -> str:
    """Year from ``date`` (biblatex), then ``year``, else ``"n.d."``."""
    match = _YEAR_RE.match(entry.get("date", ""))
    if match:
        return match.group(1)
    year = _clean(entry.get("year"))
    return year or NO_DATE


# ---- Renderers ---------------------------------------------------------------


def _venue(entry: Mapping[str, str]) -> str:
    return _clean(entry.get("journal") or entry.get("journaltitle") or entry.get("booktitle"))


def render_ieee(entry: Mapping[str, str], names: Sequence[Name], year: str) -> str:
    """IEEE-like reference: ``J. Smith and A. Doe, "Title," <i>Venue</i>, vol. 1, 2020.``"""
    people = [f"{n.initials} {n.family}".strip() if n.family else n.display for n in names]
    if len(people) > 6:
        authors = f"{people[0]} et al."
    elif len(people) > 2:
        authors = ", ".join(people[:-1]) + f", and {people[-1]}"
    else:
        authors = " and ".join(people)

    parts: list[str] = []
    title = _clean(entry.get("title"))
    head = f'{authors}, "{title},"' if authors else f'"{title},"'
    venue = _venue(entry)
    if venue:
        prefix = "in " if entry.get("booktitle") and not entry.get("journal") else ""
        parts.append(f"{prefix}<i>{venue}</i>")
    if entry.get("volume"):
        parts.append(f"vol. {_clean(entry['volume'])}")
    if entry.get("number"):
        parts.append(f"no. {_clean(entry['number'])}")
    if entry.get("pages"):
        parts.append(f"pp. {_clean(entry['pages']).replace('--', '–')}")
    parts.append(year)
    return f"{head} " + ", ".join(parts) + "."


def render_apa(entry: Mapping[str, str], names: Sequence[Name], year: str) -> str:
    """APA-like reference: ``Smith, J., & Doe, A. (2020). Title. <i>Venue</i>, <i>1</i>(2), 3–4.``"""
    people = [f"{n.family}, {n.initials}" if n.family and n.initials else n.display for n in names]
    if not people:
        authors = ""
    elif len(people) == 1:
        authors = people[0]
    elif len(people) > 20:
        authors = ", ".join(people[:19]) + f", ... {people[-1]}"
    else:
        authors = ", ".join(people[:-1]) + f", & {people[-1]}"

    title = _clean(entry.get("title"))
    text = f"{authors} ({year}). {title}." if authors else f"{title}. ({year})."

    venue = _venue(entry)
    if venue:
        tail = f"<i>{venue}</i>"
        if entry.get("volume"):
            tail += f", <i>{_clean(entry['volume'])}</i>"
            if entry.get("number"):
                tail += f"({_clean(entry['number'])})"
        if entry.get("pages"):
            tail += f", {_clean(entry['pages']).replace('--', '–')}"
        text += f" {tail}."
    elif entry.get("publisher"):
        text += f" {_clean(entry['publisher'])}."

    if entry.get("doi"):
        text += f" https://doi.org/{_clean(entry['doi'])}"
    elif entry.get("url"):
        text += f" {entry['url'].strip()}"
    return text


Renderer = Callable[[Mapping[str, str], Sequence[Name], str], str]


def _render_or_fallback(
    renderer: Renderer,
    style: str,
    entry: Mapping[str, str],
    names: Sequence[Name],
    authors: str,
    year: str,
) -> str:
    try:
        return renderer(entry, names, year)
    except Exception as exc:
        log.warning("Failed to format %s citation for %s: %s", style, entry.get("ID"), exc)
        title = _clean(entry.get("title")) or "Untitled"
        return f"{authors} ({year}). {title}."


# ---- Parsing -----------------------------------------------------------------


def _make_parser() -> BibTexParser:
    parser = BibTexParser(common_strings=True)
    parser.customization = convert_to_unicode
    parser.ignore_nonstandard_types = False
    return parser


def parse_bibtex(content: str) -> dict[str, ParsedCitationEntry]:
    """Parse BibTeX text into pre-formatted entries keyed by citation key.

    Entries without an identifier are skipped. A key defined twice keeps the
    later entry.
    """
    database = bibtexparser.loads(content, parser=_make_parser())
    entries: dict[str, ParsedCitationEntry] = {}

    for entry in database.entries:
        key = entry.get("ID")
        if not key:
            continue

        names = parse_names(entry.get("author") or entry.get("editor"))
        authors = format_authors(names)
        year = entry_year(entry)

        entries[key] = ParsedCitationEntry(
            key=key,
            authors=authors,
            year=year,
            ieee_formatted=_render_or_fallback(render_ieee, "IEEE", entry, names, authors, year),
            apa_formatted=_render_or_fallback(render_apa, "APA", entry, names, authors, year),
        )

    log.debug("Parsed %d BibTeX entries", len(entries))
    return entries


__all__ = [
    "NO_DATE",
    "Name",
    "parse_name",
    "parse_names",
    "format_authors",
    "entry_year",
    "render_ieee",
    "render_apa",
    "parse_bibtex",
]
