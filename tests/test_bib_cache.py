"""Tests for the bibliography cache and the fetch decision rules.

All network access goes through `BibliographyFetcher._get`, which is
monkeypatched with a fake that serves canned bodies and records calls.
The HTTP-layer tests patch `urllib.request.urlopen` instead, so the real
`_get` error mapping and decoding run.
"""

from __future__ import annotations

import http.client
import json
import threading
import time
import urllib.request
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from marginalia.citations import fetch as fetch_module
from marginalia.citations.cache import BibliographyCache
from marginalia.citations.fetch import BibFetchError, BibliographyFetcher
from marginalia.citations.sources import url_hash

GIST = "https://gist.github.com/alice/abc123"
GIST_RAW = "https://gist.githubusercontent.com/alice/abc123/raw"
GIST_API = "https://api.github.com/gists/abc123"
PLAIN = "https://example.org/refs.bib"

BIB_V1 = "@article{one, author={Smith, John}, title={First}, year={2020}}"
BIB_V2 = BIB_V1 + "\n@article{two, author={Doe, Jane}, title={Second}, year={2021}}"


class FakeWeb:
    """Serves canned bodies; a stored exception is raised instead."""

    def __init__(self, routes: dict[str, Any]):
        self.routes = routes
        self.calls: list[str] = []

    def install(self, monkeypatch: Any) -> None:
        web = self

        def fake_get(self: BibliographyFetcher, url: str, *, timeout: float) -> str:
            web.calls.append(url)
            body = web.routes.get(url)
            if body is None:
                raise BibFetchError(f"no route for {url}")
            if isinstance(body, Exception):
                raise body
            return str(body)

        monkeypatch.setattr(BibliographyFetcher, "_get", fake_get)


class FakeResponse:
    """Stands in for the object `urlopen` returns; `read()` may raise."""

    def __init__(self, body: bytes = b"", error: Exception | None = None):
        self.body = body
        self.error = error

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None

    def read(self) -> bytes:
        if self.error is not None:
            raise self.error
        return self.body


def _serve(monkeypatch: Any, response: FakeResponse) -> None:
    monkeypatch.setattr(urllib.request, "urlopen", lambda request, timeout: response)


def _gist_probe(updated_at: str) -> str:
    return json.dumps({"updated_at": updated_at})


@pytest.fixture  # type: ignore[misc]
def cache(tmp_path: Path) -> BibliographyCache:
    return BibliographyCache(cache_dir=tmp_path / "bib")


@pytest.fixture  # type: ignore[misc]
def next_build(cache: BibliographyCache) -> Callable[[], BibliographyFetcher]:
    """A fetcher whose build started after everything fetched so far."""

    def _make() -> BibliographyFetcher:
        return BibliographyFetcher(
            cache=cache, session_started_at=datetime.now(UTC) + timedelta(seconds=1)
        )

    return _make


# ---- Rule (a): no cache --------------------------------------------------------


def test_first_fetch_downloads_and_persists(monkeypatch: Any, cache: BibliographyCache) -> None:
    """A cold cache downloads, parses and writes every cache file."""
    web = FakeWeb({GIST_RAW: BIB_V1, GIST_API: _gist_probe("2024-01-01T00:00:00Z")})
    web.install(monkeypatch)

    outcome = BibliographyFetcher(cache=cache).fetch(GIST)

    key = url_hash(GIST)
    assert outcome == "fetched"
    assert web.calls == [GIST_RAW, GIST_API]
    assert cache.bib_path(key).read_text(encoding="utf-8") == BIB_V1
    assert set(cache.load_parsed(key) or {}) == {"one"}

    meta = cache.load_meta(key)
    assert meta is not None
    assert meta.url == GIST
    assert meta.last_updated == "2024-01-01T00:00:00Z"
    assert meta.entry_count == 1
    assert meta.parsed_file == f"parsed_{key}.json"

    mapping = cache.load_mapping()
    assert mapping[GIST]["cached_as"] == f"{key}.bib"
    assert mapping[GIST]["download_url"] == GIST_RAW
    assert mapping[GIST]["original_name"] == "unknown.bib"


def test_mapping_keeps_bib_file_name(monkeypatch: Any, cache: BibliographyCache) -> None:
    FakeWeb({PLAIN: BIB_V1}).install(monkeypatch)
    BibliographyFetcher(cache=cache).fetch(PLAIN)
    assert cache.load_mapping()[PLAIN]["original_name"] == "refs.bib"


# ---- Rule (b): no update probe ---------------------------------------------------


def test_source_without_probe_always_refetches(
    monkeypatch: Any, cache: BibliographyCache, next_build: Callable[[], BibliographyFetcher]
) -> None:
    web = FakeWeb({PLAIN: BIB_V1})
    web.install(monkeypatch)
    BibliographyFetcher(cache=cache).fetch(PLAIN)

    web.routes[PLAIN] = BIB_V2
    assert next_build().fetch(PLAIN) == "fetched"
    assert set(cache.load_parsed(url_hash(PLAIN)) or {}) == {"one", "two"}


# ---- Rule (c): fetched during this build -------------------------------------------


def test_same_build_reuses_cache_without_probe(monkeypatch: Any, cache: BibliographyCache) -> None:
    web = FakeWeb({GIST_RAW: BIB_V1, GIST_API: _gist_probe("2024-01-01T00:00:00Z")})
    web.install(monkeypatch)
    fetcher = BibliographyFetcher(cache=cache, session_started_at=datetime.now(UTC) - timedelta(seconds=5))
    fetcher.fetch(GIST)
    web.calls.clear()

    assert fetcher.fetch(GIST) == "cached"
    assert web.calls == []


# ---- Rule (d): probe -------------------------------------------------------------


def test_unchanged_remote_keeps_cache_and_refreshes_timestamp(
    monkeypatch: Any, cache: BibliographyCache, next_build: Callable[[], BibliographyFetcher]
) -> None:
    web = FakeWeb({GIST_RAW: BIB_V1, GIST_API: _gist_probe("2024-01-01T00:00:00Z")})
    web.install(monkeypatch)
    BibliographyFetcher(cache=cache).fetch(GIST)
    before = cache.load_meta(url_hash(GIST))
    web.calls.clear()

    assert next_build().fetch(GIST) == "cached"
    assert web.calls == [GIST_API]
    after = cache.load_meta(url_hash(GIST))
    assert before is not None and after is not None
    assert after.last_fetched > before.last_fetched
    assert after.last_updated == before.last_updated


def test_changed_remote_triggers_refetch(
    monkeypatch: Any, cache: BibliographyCache, next_build: Callable[[], BibliographyFetcher]
) -> None:
    web = FakeWeb({GIST_RAW: BIB_V1, GIST_API: _gist_probe("2024-01-01T00:00:00Z")})
    web.install(monkeypatch)
    BibliographyFetcher(cache=cache).fetch(GIST)

    web.routes.update({GIST_RAW: BIB_V2, GIST_API: _gist_probe("2024-02-01T00:00:00Z")})
    web.calls.clear()

    assert next_build().fetch(GIST) == "fetched"
    assert web.calls == [GIST_API, GIST_RAW]
    meta = cache.load_meta(url_hash(GIST))
    assert meta is not None and meta.last_updated == "2024-02-01T00:00:00Z"
    assert meta.entry_count == 2


def test_failed_probe_keeps_cache(
    monkeypatch: Any, cache: BibliographyCache, next_build: Callable[[], BibliographyFetcher]
) -> None:
    web = FakeWeb({GIST_RAW: BIB_V1, GIST_API: _gist_probe("2024-01-01T00:00:00Z")})
    web.install(monkeypatch)
    BibliographyFetcher(cache=cache).fetch(GIST)

    web.routes[GIST_API] = BibFetchError("rate limited")
    web.calls.clear()

    assert next_build().fetch(GIST) == "cached"
    assert GIST_RAW not in web.calls


def test_repo_probe_reads_latest_commit(
    monkeypatch: Any, cache: BibliographyCache, next_build: Callable[[], BibliographyFetcher]
) -> None:
    url = "https://github.com/org/papers/blob/main/refs.bib"
    raw = "https://raw.githubusercontent.com/org/papers/main/refs.bib"
    api = "https://api.github.com/repos/org/papers/commits?path=refs.bib"

    def commits(date: str) -> str:
        return json.dumps([{"commit": {"committer": {"date": date}}}])

    web = FakeWeb({raw: BIB_V1, api: commits("2024-01-01T00:00:00Z")})
    web.install(monkeypatch)
    BibliographyFetcher(cache=cache).fetch(url)
    meta = cache.load_meta(url_hash(url))
    assert meta is not None and meta.last_updated == "2024-01-01T00:00:00Z"

    web.routes[api] = commits("2024-03-01T00:00:00Z")
    assert next_build().fetch(url) == "fetched"


# ---- Failures ------------------------------------------------------------------------


def test_download_failure_falls_back_to_snapshot(
    monkeypatch: Any, cache: BibliographyCache, next_build: Callable[[], BibliographyFetcher]
) -> None:
    web = FakeWeb({PLAIN: BIB_V1})
    web.install(monkeypatch)
    BibliographyFetcher(cache=cache).fetch(PLAIN)

    web.routes[PLAIN] = BibFetchError("offline")
    assert next_build().fetch(PLAIN) == "cached-fallback"
    assert set(cache.load_parsed(url_hash(PLAIN)) or {}) == {"one"}


def test_download_failure_without_cache_raises(monkeypatch: Any, cache: BibliographyCache) -> None:
    FakeWeb({}).install(monkeypatch)
    with pytest.raises(BibFetchError):
        BibliographyFetcher(cache=cache).fetch(PLAIN)


def test_malformed_meta_is_a_cache_miss(monkeypatch: Any, cache: BibliographyCache) -> None:
    """Corrupt metadata is ignored and the source is downloaded again."""
    web = FakeWeb({PLAIN: BIB_V1})
    web.install(monkeypatch)
    fetcher = BibliographyFetcher(cache=cache)
    fetcher.fetch(PLAIN)

    cache.meta_path(url_hash(PLAIN)).write_text("{not json", encoding="utf-8")
    assert cache.load_meta(url_hash(PLAIN)) is None
    assert cache.existing_meta(url_hash(PLAIN)) is None

    web.calls.clear()
    assert fetcher.fetch(PLAIN) == "fetched"
    assert web.calls == [PLAIN]


def test_malformed_mapping_is_replaced(cache: BibliographyCache) -> None:
    cache.ensure_dir()
    cache.mapping_path.write_text("[1, 2, 3]", encoding="utf-8")
    assert cache.load_mapping() == {}
    cache.update_mapping(PLAIN, url_hash(PLAIN), PLAIN)
    assert list(cache.load_mapping()) == [PLAIN]


# ---- load_all ------------------------------------------------------------------------


def test_load_all_merges_with_later_sources_winning(
    monkeypatch: Any, cache: BibliographyCache
) -> None:
    """Later sources override earlier ones; failing sources are skipped."""
    second = "https://example.org/second.bib"
    broken = "https://example.org/broken.bib"
    override = "@article{one, author={Other, Ann}, title={Override}, year={1999}}"
    FakeWeb({PLAIN: BIB_V2, second: override}).install(monkeypatch)

    merged = BibliographyFetcher(cache=cache).load_all([PLAIN, broken, second], max_workers=3)

    assert set(merged) == {"one", "two"}
    assert merged["one"].authors == "Other"
    assert merged["one"].year == "1999"
    combined = cache.load_combined()
    assert combined is not None and set(combined) == {"one", "two"}


def test_load_all_with_no_sources(cache: BibliographyCache) -> None:
    assert BibliographyFetcher(cache=cache).load_all([]) == {}


# ---- HTTP layer ------------------------------------------------------------------------


@pytest.mark.parametrize(  # type: ignore[misc]
    "error",
    [
        ConnectionResetError("connection reset by peer"),
        http.client.IncompleteRead(b"@article{one,"),
        http.client.RemoteDisconnected("closed"),
    ],
)
def test_failure_while_reading_body_falls_back_to_snapshot(
    monkeypatch: Any,
    cache: BibliographyCache,
    next_build: Callable[[], BibliographyFetcher],
    error: Exception,
) -> None:
    """Errors raised by `read()` are network failures, so the snapshot is used."""
    _serve(monkeypatch, FakeResponse(BIB_V1.encode("utf-8")))
    assert BibliographyFetcher(cache=cache).fetch(PLAIN) == "fetched"

    _serve(monkeypatch, FakeResponse(error=error))
    assert next_build().fetch(PLAIN) == "cached-fallback"
    assert set(cache.load_parsed(url_hash(PLAIN)) or {}) == {"one"}


def test_failure_while_reading_body_without_cache_raises(
    monkeypatch: Any, cache: BibliographyCache
) -> None:
    _serve(monkeypatch, FakeResponse(error=ConnectionResetError("reset")))
    with pytest.raises(BibFetchError, match="Network error"):
        BibliographyFetcher(cache=cache).fetch(PLAIN)


def test_invalid_utf8_is_replaced_with_warning(
    monkeypatch: Any, cache: BibliographyCache, propagate_logs: Any, caplog: Any
) -> None:
    """Undecodable bytes become U+FFFD and the replacement is logged."""
    propagate_logs(fetch_module.log)
    _serve(monkeypatch, FakeResponse(b"@misc{k, title={Caf\xe9}}"))

    body = BibliographyFetcher(cache=cache)._get(PLAIN, timeout=1.0)

    assert body == "@misc{k, title={Caf�}}"
    assert any(r.levelname == "WARNING" and "Invalid UTF-8" in r.getMessage() for r in caplog.records)


def test_valid_utf8_decodes_without_warning(
    monkeypatch: Any, cache: BibliographyCache, propagate_logs: Any, caplog: Any
) -> None:
    propagate_logs(fetch_module.log)
    _serve(monkeypatch, FakeResponse("@misc{k, title={Café}}".encode("utf-8")))

    assert BibliographyFetcher(cache=cache)._get(PLAIN, timeout=1.0) == "@misc{k, title={Café}}"
    assert "Invalid UTF-8" not in caplog.text


# ---- Concurrency -----------------------------------------------------------------------


def test_concurrent_fetches_of_one_url_are_serialized(
    monkeypatch: Any, cache: BibliographyCache
) -> None:
    """Workers fetching the same source never download it at the same time."""
    guard = threading.Lock()
    state = {"active": 0, "peak": 0, "calls": 0}

    def slow_get(self: BibliographyFetcher, url: str, *, timeout: float) -> str:
        with guard:
            state["active"] += 1
            state["calls"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.05)
        with guard:
            state["active"] -= 1
        return BIB_V1

    monkeypatch.setattr(BibliographyFetcher, "_get", slow_get)

    merged = BibliographyFetcher(cache=cache).load_all([PLAIN, PLAIN, PLAIN], max_workers=3)

    assert set(merged) == {"one"}
    assert state["calls"] == 3
    assert state["peak"] == 1


def test_distinct_urls_get_distinct_locks(cache: BibliographyCache) -> None:
    fetcher = BibliographyFetcher(cache=cache)
    first = fetcher._lock_for(url_hash(PLAIN))
    assert fetcher._lock_for(url_hash(PLAIN)) is first
    assert fetcher._lock_for(url_hash(GIST)) is not first
