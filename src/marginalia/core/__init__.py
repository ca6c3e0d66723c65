"""Core package initializer for marginalia.

Holds the contracts, the span operations, the location index and the
settings conveniences:
    from marginalia.core.settings import settings, load_settings, Settings, get_logger
"""

from __future__ import annotations

__all__ = ["__doc__"]
