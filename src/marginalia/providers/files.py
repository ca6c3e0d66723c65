"""File download collaborator for comment attachments.

The block-comments strategy calls ``downloader.download(url, is_image)`` once
per attachment. :class:`LocalFileDownloader` stores the file under a local
directory, named after the last URL path segment, and for convertible images
also writes a ``.webp`` copy with Pillow when optimization is on.
"""

from __future__ import annotations

import http.client
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol

from PIL import Image

from marginalia.core.settings import get_logger

log = get_logger("marginalia.providers.files")

CONVERTIBLE_IMAGE_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png"})
OPTIMIZED_IMAGE_EXTENSION = ".webp"


class FileDownloader(Protocol):
    def download(self, url: str, is_image: bool) -> None: ...


def file_name_from_url(url: str) -> str:
    """Last path segment of ``url``, or ``"download"`` when there is none."""
    return PurePosixPath(urllib.parse.urlparse(url).path).name or "download"


def is_convertible_image(url: str) -> bool:
    """Return True if the URL path names an image type we re-encode."""
    suffix = PurePosixPath(urllib.parse.urlparse(url).path).suffix.lower()
    return suffix in CONVERTIBLE_IMAGE_EXTENSIONS


def optimized_url_for(url: str) -> str:
    """Swap the path extension for the optimized codec, keeping any query string."""
    parsed = urllib.parse.urlparse(url)
    path = str(PurePosixPath(parsed.path).with_suffix(OPTIMIZED_IMAGE_EXTENSION))
    return urllib.parse.urlunparse(parsed._replace(path=path))


@dataclass(slots=True)
class LocalFileDownloader:
    """Saves attachments into ``dest_dir``.

    Parameters
    ----------
    dest_dir:
        Target directory; created on first download.
    optimize_images:
        Write a ``.webp`` sibling for convertible images.
    timeout_seconds:
        Timeout for each download.
    """

    dest_dir: Path
    optimize_images: bool = True
    timeout_seconds: float = 30.0

    def download(self, url: str, is_image: bool) -> None:
        self.dest_dir.mkdir(parents=True, exist_ok=True)
        target = self.dest_dir / file_name_from_url(url)
        target.write_bytes(self._get(url))
        log.debug("Downloaded %s -> %s", url, target)

        if is_image and self.optimize_images and is_convertible_image(url):
            webp_path = target.with_suffix(OPTIMIZED_IMAGE_EXTENSION)
            with Image.open(target) as img:
                img.save(webp_path, "WEBP")
            log.debug("Optimized %s -> %s", target.name, webp_path.name)

    def _get(self, url: str) -> bytes:
        """Fetch raw bytes; tests replace this seam.

        Raises
        ------
        RuntimeError
            If the request fails.
        """
        try:
            with urllib.request.urlopen(url, timeout=self.timeout_seconds) as resp:
                data: bytes = resp.read()
        except urllib.error.HTTPError as exc:
            raise RuntimeError(f"Download HTTP error {exc.code}: {exc.reason}") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise RuntimeError(f"Download network error: {exc}") from exc
        return data


__all__ = [
    "CONVERTIBLE_IMAGE_EXTENSIONS",
    "FileDownloader",
    "file_name_from_url",
    "is_convertible_image",
    "optimized_url_for",
    "LocalFileDownloader",
]
