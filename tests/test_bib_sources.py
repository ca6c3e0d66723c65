"""Tests for bibliography share-URL normalization."""

from __future__ import annotations

from marginalia.citations.sources import get_bib_source_info, url_hash


def test_github_gist() -> None:
    info = get_bib_source_info("https://gist.github.com/alice/abc123def")
    assert info.source == "github-gist"
    assert info.download_url == "https://gist.githubusercontent.com/alice/abc123def/raw"
    assert info.updated_url == "https://api.github.com/gists/abc123def"
    assert info.updated_instructions is not None and "updated_at" in info.updated_instructions


def test_github_repo_file() -> None:
    """A blob link maps to the raw file and the commits of that path."""
    info = get_bib_source_info("https://github.com/org/papers/blob/main/refs/library.bib")
    assert info.source == "github-repo"
    assert info.download_url == "https://raw.githubusercontent.com/org/papers/main/refs/library.bib"
    assert info.updated_url == "https://api.github.com/repos/org/papers/commits?path=refs/library.bib"


def test_dropbox_switches_to_direct_download() -> None:
    info = get_bib_source_info("https://www.dropbox.com/s/xyz/refs.bib?dl=0")
    assert info.source == "dropbox"
    assert info.download_url == "https://www.dropbox.com/s/xyz/refs.bib?dl=1"
    assert info.updated_url is None
    assert info.updated_instructions is not None


def test_google_drive_file() -> None:
    info = get_bib_source_info("https://drive.google.com/file/d/FILE_ID/view?usp=sharing")
    assert info.source == "google-drive"
    assert info.download_url == "https://drive.google.com/uc?export=download&id=FILE_ID"
    assert info.updated_url is None


def test_unknown_host_passes_through() -> None:
    info = get_bib_source_info("https://example.org/refs.bib")
    assert info.source == "unknown"
    assert info.download_url == "https://example.org/refs.bib"
    assert info.updated_url is None
    assert info.updated_instructions is None


def test_url_hash_is_stable_md5() -> None:
    """The cache key depends only on the URL string."""
    assert url_hash("https://example.org/refs.bib") == url_hash("https://example.org/refs.bib")
    assert url_hash("a") == "0cc175b9c0f1b6a831c399e269772661"
    assert len(url_hash("https://example.org/other.bib")) == 32
