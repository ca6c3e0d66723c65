"""Centralized application configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files at the repository root: .env, .env.local, .env.dev/.env.test/.env.prod

Besides the runtime flags, the settings carry the extraction options that the
site configuration exposes (footnote source, marker prefix, citation syntax,
bibliography style, bibliography URLs). `footnotes_config()` and
`citations_config()` turn them into the small config objects the extractors
consume.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from marginalia.core.contracts.config import (
    BibliographyStyle,
    CitationsConfig,
    FootnoteSource,
    FootnotesConfig,
)

EnvName = Literal["dev", "test", "prod"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Typed application configuration loaded from env and `.env` files.

    Attributes
    ----------
    environment : EnvName
        Runtime environment flag; maps from `MARGINALIA_ENV`.
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    footnotes_end_of_block, footnotes_start_of_child_blocks, footnotes_block_comments : bool
        Footnote source switches. Only one is honoured, see `footnotes_config()`.
    footnote_marker_prefix : str
        Literal prefix injected into every marker pattern (`[^ft_a]`).
    citation_format : str
        In-text citation syntax: `[@key]`, `\\cite{key}` or `#cite(key)`.
    bibliography_style : BibliographyStyle
        `apa` or `simplified-ieee`.
    bib_urls : list[str]
        Share URLs of the BibTeX files to load, in merge order.
    bib_cache_dir : Path
        Directory holding the bibliography cache files.
    notion_token : Optional[str]
        Integration token for the comments provider. Maps from `NOTION_TOKEN`.
    """

    environment: EnvName = Field(default="dev", alias="MARGINALIA_ENV")
    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")

    footnotes_end_of_block: bool = Field(default=True, alias="FOOTNOTES_END_OF_BLOCK")
    footnotes_start_of_child_blocks: bool = Field(
        default=False, alias="FOOTNOTES_START_OF_CHILD_BLOCKS"
    )
    footnotes_block_comments: bool = Field(default=False, alias="FOOTNOTES_BLOCK_COMMENTS")
    footnote_marker_prefix: str = Field(default="ft_", alias="FOOTNOTE_MARKER_PREFIX")

    citation_format: str = Field(default="[@key]", alias="CITATION_FORMAT")
    bibliography_style: BibliographyStyle = Field(default="apa", alias="BIBLIOGRAPHY_STYLE")
    bib_urls: list[str] = Field(default_factory=list, alias="BIB_URLS")
    bib_cache_dir: Path = Field(default=Path("tmp") / "bib-files", alias="BIB_CACHE_DIR")

    optimize_images: bool = Field(default=True, alias="OPTIMIZE_IMAGES")
    notion_token: str | None = Field(default=None, alias="NOTION_TOKEN")
    comments_timeout_seconds: float = Field(default=15.0, alias="COMMENTS_TIMEOUT_SECONDS")
    max_workers: int = Field(default=4, ge=1, alias="MARGINALIA_MAX_WORKERS")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local", ".env.dev", ".env.test", ".env.prod"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def is_dev(self) -> bool:
        """Return True if running in the development environment."""
        return self.environment == "dev"

    @property
    def is_test(self) -> bool:
        """Return True if running in the test environment."""
        return self.environment == "test"

    @property
    def is_prod(self) -> bool:
        """Return True if running in the production environment."""
        return self.environment == "prod"

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)

    def footnotes_config(self) -> FootnotesConfig:
        """Resolve the footnote switches into a single active source.

        Precedence is fixed: end-of-block, then start-of-child-blocks, then
        block-comments. Enabling more than one switch is tolerated but logged,
        since only the first one in that order takes effect.
        """
        enabled: list[FootnoteSource] = []
        if self.footnotes_end_of_block:
            enabled.append("end-of-block")
        if self.footnotes_start_of_child_blocks:
            enabled.append("start-of-child-blocks")
        if self.footnotes_block_comments:
            enabled.append("block-comments")

        if len(enabled) > 1:
            get_logger("marginalia.settings").warning(
                "Several footnote sources are enabled (%s); using '%s'",
                ", ".join(enabled),
                enabled[0],
            )

        return FootnotesConfig(
            source=enabled[0] if enabled else None,
            marker_prefix=self.footnote_marker_prefix,
            optimize_images=self.optimize_images,
        )

    def citations_config(self) -> CitationsConfig:
        """Return the citation extraction options."""
        return CitationsConfig(
            in_text_format=self.citation_format,
            bibliography_style=self.bibliography_style,
        )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    We keep this behind an LRU cache so tests can force a rebuild via
    `load_settings.cache_clear()` after mutating `os.environ`.
    """
    os.environ.setdefault("MARGINALIA_ENV", "dev")
    return Settings()


# Export a ready-to-use singleton (import-time read of env / .env files).
settings: Settings = load_settings()


def get_logger(name: str = "marginalia") -> logging.Logger:
    """Return a process-global logger configured to the current log level."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(load_settings().log_level_numeric())
    logger.propagate = False
    return logger
