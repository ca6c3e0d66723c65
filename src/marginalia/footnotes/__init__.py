"""Footnote extraction: marker finder, the three source strategies and the dispatcher."""

from __future__ import annotations

from .extractor import extract_footnotes_from_block

__all__ = ["extract_footnotes_from_block"]
