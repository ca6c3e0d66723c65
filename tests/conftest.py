"""Shared pytest fixtures.

Loggers built by `get_logger()` do not propagate to the root logger, so
`caplog` cannot see them by default. `propagate_logs` flips propagation for
one test; `monkeypatch` restores it afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from marginalia.core.settings import load_settings


@pytest.fixture(autouse=True)  # type: ignore[misc]
def _fresh_settings() -> Iterator[None]:
    """Rebuild settings after each test so env overrides never leak."""
    yield
    load_settings.cache_clear()


@pytest.fixture  # type: ignore[misc]
def propagate_logs(monkeypatch: Any, caplog: Any) -> Callable[[logging.Logger], None]:
    def _enable(logger: logging.Logger) -> None:
        monkeypatch.setattr(logger, "propagate", True)
        caplog.set_level(logging.DEBUG, logger=logger.name)
        # get_logger() resets propagate on every call; attach caplog's
        # handler directly so records are captured regardless.
        monkeypatch.setattr(logger, "handlers", [*logger.handlers, caplog.handler])

    return _enable
