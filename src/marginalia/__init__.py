"""marginalia: annotation-preserving footnote and citation extraction.

The package scans rich-text block trees for footnote and citation markers,
pulls out their definitions without losing per-run formatting, and resolves
citation keys against cached, parsed bibliography files.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.3.0"
