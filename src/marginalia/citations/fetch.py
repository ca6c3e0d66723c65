# -----------------------------------------------------------------------------
# Bibliography fetch pipeline.
#
# `BibliographyFetcher.fetch(url)` keeps one source's cache files current:
#
#   (a) no usable cache                       -> download
#   (b) host has no update probe              -> download (no change signal)
#   (c) already downloaded during this build  -> reuse, no probe
#   (d) otherwise probe the host (5 s)        -> download only if the remote
#                                                timestamp changed, else mark
#                                                the cache fresh
#
# Downloads (10 s) are parsed immediately and persisted with their metadata.
# When a download fails and a parsed snapshot exists, the snapshot is used
# ("cached-fallback"); otherwise `BibFetchError` propagates.
#
# Concurrent fetches of the same URL are serialized by a per-hash lock, so
# the cache files of one source are never written by two threads at once.
# Network access goes through `_get()`, which tests monkeypatch.
# -----------------------------------------------------------------------------
from __future__ import annotations

import http.client
import json
import threading
import urllib.error
import urllib.request
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from marginalia.citations.bibtex import parse_bibtex
from marginalia.citations.cache import BibliographyCache
from marginalia.citations.sources import get_bib_source_info, url_hash
from marginalia.core.contracts.citation import BibFileMeta, BibSourceInfo, ParsedCitationEntry
from marginalia.core.settings import get_logger

log = get_logger("marginalia.citations.fetch")

FetchOutcome = Literal["fetched", "cached", "cached-fallback"]

USER_AGENT = "marginalia-bibliography-fetcher"


class BibFetchError(RuntimeError):
    """Raised when a bibliography file (or probe) cannot be downloaded."""


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


@dataclass(slots=True)
class BibliographyFetcher:
    """Fetches, parses and caches bibliography files.

    Parameters
    ----------
    cache:
        Cache the fetcher reads and writes.
    session_started_at:
        Start of the current build; caches fetched after it are reused
        without probing.
    fetch_timeout, probe_timeout:
        Timeouts in seconds for downloads and update probes.
    """

    cache: BibliographyCache
    session_started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    fetch_timeout: float = 10.0
    probe_timeout: float = 5.0
    _locks: dict[str, threading.Lock] = field(default_factory=dict, repr=False)
    _locks_guard: threading.Lock = field(default_factory=threading.Lock, repr=False)

    # --------------------------------------------------------------------- #
    # Public API
    # --------------------------------------------------------------------- #
    def fetch(self, url: str) -> FetchOutcome:
        """Make sure the parsed snapshot for ``url`` is current.

        Raises
        ------
        BibFetchError
            If the download fails and no parsed snapshot can stand in for it.
        """
        info = get_bib_source_info(url)
        key = url_hash(url)

        with self._lock_for(key):
            self.cache.ensure_dir()
            meta = self.cache.existing_meta(key)

            refetch, probed = self._should_refetch(url, info, meta)
            if not refetch:
                log.info("Using cached parsed citations for %s", url)
                return "cached"

            log.info("Fetching BibTeX file from %s", info.download_url)
            try:
                content = self._get(info.download_url, timeout=self.fetch_timeout)
            except BibFetchError as exc:
                log.error("Failed to fetch BibTeX file from %s: %s", url, exc)
                if meta is not None and self.cache.load_parsed(key) is not None:
                    log.info("Using cached parsed citations for %s as fallback", url)
                    return "cached-fallback"
                raise

            self._store(url, key, info, content, probed)
            return "fetched"

    def load_all(
        self, urls: Sequence[str], max_workers: int = 4
    ) -> dict[str, ParsedCitationEntry]:
        """Fetch every source and merge their entries; later sources win.

        Sources that fail are logged and skipped. The merged map is also
        written to the combined snapshot.
        """
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            outcomes = list(pool.map(self._fetch_quietly, urls))

        merged: dict[str, ParsedCitationEntry] = {}
        for url, ok in zip(urls, outcomes, strict=True):
            if not ok:
                continue
            parsed = self.cache.load_parsed(url_hash(url))
            if parsed is None:
                log.warning("No parsed citations found for %s", url)
                continue
            merged.update(parsed)
            log.info("Added %d citations from %s", len(parsed), url)

        log.info("Total unique citations loaded: %d", len(merged))
        self.cache.save_combined(merged)
        return merged

    # --------------------------------------------------------------------- #
    # Internal helpers
    # --------------------------------------------------------------------- #
    def _fetch_quietly(self, url: str) -> bool:
        try:
            self.fetch(url)
        except Exception as exc:
            log.error("Failed to load citations from %s: %s", url, exc)
            return False
        return True

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def _should_refetch(
        self, url: str, info: BibSourceInfo, meta: BibFileMeta | None
    ) -> tuple[bool, str | None]:
        """Return ``(refetch, probed_timestamp)`` for one source."""
        if meta is None:
            return True, None

        if info.updated_url is None:
            log.info("BibTeX file %s cannot be checked for changes, re-fetching", url)
            return True, None

        last_fetched = _parse_timestamp(meta.last_fetched)
        if last_fetched is not None and last_fetched >= self.session_started_at:
            log.info("BibTeX file %s already fetched in this build", url)
            return False, None

        remote = self._probe(info.updated_url)
        if remote is None:
            return False, None
        if remote != meta.last_updated:
            log.info("BibTeX file %s has been updated remotely, re-fetching", url)
            return True, remote

        log.info("BibTeX file %s is up-to-date", url)
        self.cache.save_meta(
            url_hash(url), meta.model_copy(update={"last_fetched": datetime.now(UTC).isoformat()})
        )
        return False, remote

    def _probe(self, updated_url: str) -> str | None:
        """Return the remote last-updated timestamp, or None when unavailable."""
        try:
            data: Any = json.loads(self._get(updated_url, timeout=self.probe_timeout))
        except (BibFetchError, json.JSONDecodeError) as exc:
            log.warning("Failed to get last-updated timestamp from %s: %s", updated_url, exc)
            return None

        try:
            if "/gists/" in updated_url:
                value = data.get("updated_at")
            else:
                value = data[0]["commit"]["committer"]["date"]
        except (AttributeError, IndexError, KeyError, TypeError):
            value = None
        return str(value) if value else None

    def _store(
        self,
        url: str,
        key: str,
        info: BibSourceInfo,
        content: str,
        probed: str | None,
    ) -> None:
        entry_count = 0
        try:
            entries = parse_bibtex(content)
        except Exception as exc:
            log.warning("Failed to parse BibTeX from %s: %s", url, exc)
        else:
            entry_count = len(entries)
            self.cache.save_parsed(key, entries)

        remote = probed
        if remote is None and info.updated_url is not None:
            remote = self._probe(info.updated_url)

        self.cache.save_raw(key, content)
        self.cache.save_meta(
            key,
            BibFileMeta(
                url=url,
                last_updated=remote,
                entry_count=entry_count,
                last_fetched=datetime.now(UTC).isoformat(),
                parsed_file=self.cache.parsed_path(key).name,
            ),
        )
        self.cache.update_mapping(url, key, info.download_url)
        log.info("Fetched, parsed and cached %d citations from %s", entry_count, url)

    def _get(self, url: str, *, timeout: float) -> str:
        """Perform an HTTP GET and return the body as text.

        This is the seam tests patch to avoid network I/O.

        Raises
        ------
        BibFetchError
            On HTTP errors and network failures, including failures while
            the body is being read.
        """
        request = urllib.request.Request(url=url, headers={"User-Agent": USER_AGENT}, method="GET")
        try:
            with urllib.request.urlopen(request, timeout=timeout) as resp:
                body: bytes = resp.read()
        except urllib.error.HTTPError as exc:
            raise BibFetchError(f"HTTP error {exc.code} for {url}: {exc.reason}") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise BibFetchError(f"Network error for {url}: {exc}") from exc
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError as exc:
            log.warning("Invalid UTF-8 in %s at byte %d, replacing undecodable bytes", url, exc.start)
            return body.decode("utf-8", errors="replace")


__all__ = ["FetchOutcome", "BibFetchError", "BibliographyFetcher"]
