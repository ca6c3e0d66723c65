"""Pipeline entry points for marginalia.

Currently exposed:

- :func:`process_page`: footnote and citation extraction over a page's
  block tree, implemented in ``page.py``.
"""

from __future__ import annotations

from .page import PageExtraction, process_page

__all__ = ["process_page", "PageExtraction"]
