"""
On-disk bibliography cache.

Layout (one directory, one set of files per source URL hash)::

    bib-files-mapping.json    URL -> {cached_as, original_name, download_url, last_updated}
    <hash>.bib                raw file as last downloaded
    <hash>.meta.json          BibFileMeta
    parsed_<hash>.json        key -> ParsedCitationEntry
    combined-entries.json     merged entries of the current build

Unreadable or malformed JSON is logged and treated as missing; the caller
then behaves as on a cache miss.
"""

from __future__ import annotations

import json
import threading
import urllib.parse
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import ValidationError

from marginalia.core.contracts.citation import BibFileMeta, ParsedCitationEntry
from marginalia.core.settings import get_logger

log = get_logger("marginalia.citations.cache")

MAPPING_FILE = "bib-files-mapping.json"
COMBINED_FILE = "combined-entries.json"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(slots=True)
class BibliographyCache:
    """File-backed cache rooted at ``cache_dir``.

    Writes to the shared mapping file are serialized with an internal lock;
    per-hash files are only ever written by the fetcher holding that hash's
    lock.
    """

    cache_dir: Path
    _mapping_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    # ---- paths --------------------------------------------------------------

    def bib_path(self, url_hash: str) -> Path:
        return self.cache_dir / f"{url_hash}.bib"

    def meta_path(self, url_hash: str) -> Path:
        return self.cache_dir / f"{url_hash}.meta.json"

    def parsed_path(self, url_hash: str) -> Path:
        return self.cache_dir / f"parsed_{url_hash}.json"

    @property
    def mapping_path(self) -> Path:
        return self.cache_dir / MAPPING_FILE

    @property
    def combined_path(self) -> Path:
        return self.cache_dir / COMBINED_FILE

    def ensure_dir(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    # ---- JSON helpers -------------------------------------------------------

    def _read_json(self, path: Path) -> Any | None:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            log.warning("Ignoring unreadable cache file %s: %s", path.name, exc)
            return None

    def _write_json(self, path: Path, data: Any) -> None:
        self.ensure_dir()
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    def _read_entries(self, path: Path) -> dict[str, ParsedCitationEntry] | None:
        data = self._read_json(path)
        if data is None:
            return None
        try:
            return {key: ParsedCitationEntry.model_validate(value) for key, value in data.items()}
        except (AttributeError, ValidationError) as exc:
            log.warning("Ignoring malformed entries file %s: %s", path.name, exc)
            return None

    def _write_entries(self, path: Path, entries: dict[str, ParsedCitationEntry]) -> None:
        self._write_json(path, {key: entry.model_dump() for key, entry in entries.items()})

    # ---- per-source files ---------------------------------------------------

    def load_meta(self, url_hash: str) -> BibFileMeta | None:
        data = self._read_json(self.meta_path(url_hash))
        if data is None:
            return None
        try:
            return BibFileMeta.model_validate(data)
        except ValidationError as exc:
            log.warning("Ignoring malformed metadata for %s: %s", url_hash, exc)
            return None

    def save_meta(self, url_hash: str, meta: BibFileMeta) -> None:
        self._write_json(self.meta_path(url_hash), meta.model_dump())

    def load_parsed(self, url_hash: str) -> dict[str, ParsedCitationEntry] | None:
        return self._read_entries(self.parsed_path(url_hash))

    def save_parsed(self, url_hash: str, entries: dict[str, ParsedCitationEntry]) -> None:
        self._write_entries(self.parsed_path(url_hash), entries)
        log.info("Saved %d parsed citations to %s", len(entries), self.parsed_path(url_hash).name)

    def save_raw(self, url_hash: str, content: str) -> None:
        self.ensure_dir()
        self.bib_path(url_hash).write_text(content, encoding="utf-8")

    def existing_meta(self, url_hash: str) -> BibFileMeta | None:
        """Metadata of a usable cache entry: readable meta plus a parsed snapshot."""
        meta = self.load_meta(url_hash)
        if meta is None or not self.parsed_path(url_hash).exists():
            return None
        return meta

    # ---- shared files -------------------------------------------------------

    def load_mapping(self) -> dict[str, dict[str, Any]]:
        data = self._read_json(self.mapping_path)
        if not isinstance(data, dict):
            if data is not None:
                log.warning("Ignoring malformed %s; starting a new one", MAPPING_FILE)
            return {}
        return data

    def update_mapping(self, url: str, url_hash: str, download_url: str) -> None:
        """Record which cache file holds ``url``."""
        original_name = "unknown.bib"
        try:
            last = PurePosixPath(urllib.parse.urlparse(download_url).path).name
            if last.endswith(".bib"):
                original_name = last
        except ValueError:
            original_name = f"{url_hash}.bib"

        with self._mapping_lock:
            mapping = self.load_mapping()
            mapping[url] = {
                "cached_as": f"{url_hash}.bib",
                "original_name": original_name,
                "download_url": download_url,
                "last_updated": _now_iso(),
            }
            self._write_json(self.mapping_path, mapping)

    def load_combined(self) -> dict[str, ParsedCitationEntry] | None:
        return self._read_entries(self.combined_path)

    def save_combined(self, entries: dict[str, ParsedCitationEntry]) -> None:
        self._write_entries(self.combined_path, entries)
        log.info("Saved %d combined entries to cache", len(entries))


__all__ = ["MAPPING_FILE", "COMBINED_FILE", "BibliographyCache"]
