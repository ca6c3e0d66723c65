"""External collaborators: the comments provider and the file downloader."""

from __future__ import annotations

from .comments import CommentsProvider, CommentsProviderError, NotionCommentsProvider
from .files import FileDownloader, LocalFileDownloader

__all__ = [
    "CommentsProvider",
    "CommentsProviderError",
    "NotionCommentsProvider",
    "FileDownloader",
    "LocalFileDownloader",
]
