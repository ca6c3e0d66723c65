"""Bibliography share-URL normalization.

Maps a share link to a direct-download URL and, where the host exposes one,
an endpoint that reports when the file last changed:

- GitHub gist         -> raw gist URL, gist API ``updated_at``
- GitHub repo file    -> raw.githubusercontent URL, last commit touching the path
- Dropbox             -> ``dl=1`` link, no probe
- Google Drive        -> ``uc?export=download`` link, no probe
- anything else       -> unchanged, no probe
"""

from __future__ import annotations

import hashlib
import re

from marginalia.core.contracts.citation import BibSourceInfo

_GIST_RE = re.compile(r"gist\.github\.com/([^/]+)/([a-f0-9]+)")
_REPO_RE = re.compile(r"github\.com/([^/]+)/([^/]+)/blob/([^/]+)/(.+)")
_DRIVE_RE = re.compile(r"drive\.google\.com/file/d/([^/]+)")


def url_hash(url: str) -> str:
    """Cache key of a source: md5 hex digest of the URL string itself."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()


def get_bib_source_info(url: str) -> BibSourceInfo:
    """Normalize ``url`` into a :class:`BibSourceInfo`."""
    if match := _GIST_RE.search(url):
        user, gist_id = match.groups()
        return BibSourceInfo(
            source="github-gist",
            download_url=f"https://gist.githubusercontent.com/{user}/{gist_id}/raw",
            updated_url=f"https://api.github.com/gists/{gist_id}",
            updated_instructions="curl -s <updated_url> | jq '.updated_at'",
        )

    if match := _REPO_RE.search(url):
        owner, repo, branch, file_path = match.groups()
        return BibSourceInfo(
            source="github-repo",
            download_url=f"https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{file_path}",
            updated_url=f"https://api.github.com/repos/{owner}/{repo}/commits?path={file_path}",
            updated_instructions="curl -s <updated_url> | jq '.[0].commit.committer.date'",
        )

    if "dropbox.com" in url:
        return BibSourceInfo(
            source="dropbox",
            download_url=url.replace("dl=0", "dl=1"),
            updated_instructions="Dropbox shared links do not expose public timestamps",
        )

    if match := _DRIVE_RE.search(url):
        return BibSourceInfo(
            source="google-drive",
            download_url=f"https://drive.google.com/uc?export=download&id={match.group(1)}",
            updated_instructions="Google Drive shared links do not expose public timestamps",
        )

    return BibSourceInfo(source="unknown", download_url=url)


__all__ = ["url_hash", "get_bib_source_info"]
