# -----------------------------------------------------------------------------
# Comments provider used by the block-comments footnote strategy.
#
# The strategy only depends on the `CommentsProvider` protocol:
#
#     provider.list(block_id) -> {"results": [{"rich_text": [...],
#                                              "attachments": [...]}]}
#
# `NotionCommentsProvider` is the shipped implementation. It talks to the
# public comments endpoint with `urllib.request`; tests monkeypatch its
# internal `_get()` method so no real HTTP calls are made.
#
# Provider rich text is decoded into our `RichText` contract by
# `decode_rich_text()`, which is total over the known run and mention kinds
# and drops unknown mention kinds with a warning.
# -----------------------------------------------------------------------------
from __future__ import annotations

import http.client
import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from marginalia.core.contracts.richtext import (
    COLORS,
    Annotation,
    CustomEmoji,
    Equation,
    InterlinkedContent,
    Link,
    LinkMention,
    Mention,
    RichText,
    TextContent,
)
from marginalia.core.settings import get_logger

log = get_logger("marginalia.providers.comments")

NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"


class CommentsProviderError(RuntimeError):
    """Raised when the comments provider cannot list comments.

    ``status`` is the HTTP status when one was received and ``code`` the
    provider error code (e.g. ``"restricted_resource"``).
    """

    def __init__(self, message: str, *, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status = status
        self.code = code

    @property
    def is_permission_denied(self) -> bool:
        return self.status == 403 or self.code == "restricted_resource"


class CommentsProvider(Protocol):
    def list(self, block_id: str) -> Mapping[str, Any]:
        """Return the comment records attached to ``block_id``."""
        ...


@dataclass(slots=True)
class NotionCommentsProvider:
    """Lists block comments through the Notion REST API.

    Parameters
    ----------
    token:
        Integration token; needs the "read comments" capability.
    base_url:
        API root, overridable for tests or proxies.
    timeout_seconds:
        Timeout applied to every request.
    """

    token: str
    base_url: str = NOTION_API_BASE
    timeout_seconds: float = 15.0

    def list(self, block_id: str) -> Mapping[str, Any]:
        query = urllib.parse.urlencode({"block_id": block_id})
        url = f"{self.base_url.rstrip('/')}/comments?{query}"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Notion-Version": NOTION_VERSION,
        }
        return self._get(url=url, headers=headers)

    def _get(self, *, url: str, headers: Mapping[str, str]) -> dict[str, Any]:
        """Perform the HTTP GET and decode the JSON body.

        Raises
        ------
        CommentsProviderError
            On HTTP errors (carrying status and provider code), network
            failures and undecodable bodies.
        """
        request = urllib.request.Request(url=url, headers=dict(headers), method="GET")
        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            code: str | None = None
            try:
                code = json.loads(detail).get("code")
            except (json.JSONDecodeError, AttributeError):
                code = None
            raise CommentsProviderError(
                f"Comments HTTP error {exc.code}: {exc.reason}", status=exc.code, code=code
            ) from exc
        except (OSError, http.client.HTTPException) as exc:
            raise CommentsProviderError(f"Comments network error: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise CommentsProviderError("Comments response is not valid UTF-8") from exc

        try:
            data: dict[str, Any] = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CommentsProviderError("Failed to decode comments response as JSON") from exc
        return data


# ---- Wire decoding -----------------------------------------------------------


def format_date_mention(date: Mapping[str, Any] | None) -> str:
    """``start`` or ``"start to end"``; ``"Invalid Date"`` when start is missing."""
    date = date or {}
    formatted = date.get("start") or "Invalid Date"
    if date.get("end"):
        formatted += f" to {date['end']}"
    return str(formatted)


def _decode_annotation(raw: Mapping[str, Any] | None) -> Annotation:
    raw = raw or {}
    color = raw.get("color") or "default"
    if color not in COLORS:
        log.warning("Unknown rich text color %r; using 'default'", color)
        color = "default"
    return Annotation(
        bold=bool(raw.get("bold")),
        italic=bool(raw.get("italic")),
        strikethrough=bool(raw.get("strikethrough")),
        underline=bool(raw.get("underline")),
        code=bool(raw.get("code")),
        color=color,
    )


def _decode_mention(raw: Mapping[str, Any]) -> Mention | None:
    kind = raw.get("type")
    match kind:
        case "page":
            page = raw.get("page") or {}
            return Mention(type=kind, page=InterlinkedContent(page_id=page.get("id", ""), type=kind))
        case "date":
            return Mention(type=kind, date_str=format_date_mention(raw.get("date")))
        case "link_mention":
            link = raw.get("link_mention") or {}
            return Mention(
                type=kind,
                link_mention=LinkMention(
                    href=link.get("href", ""),
                    title=link.get("title"),
                    icon_url=link.get("icon_url"),
                    description=link.get("description"),
                    link_author=link.get("link_author"),
                    thumbnail_url=link.get("thumbnail_url"),
                    height=link.get("height"),
                    iframe_url=link.get("iframe_url"),
                    link_provider=link.get("link_provider"),
                ),
            )
        case "custom_emoji":
            emoji = raw.get("custom_emoji") or {}
            return Mention(
                type=kind,
                custom_emoji=CustomEmoji(name=emoji.get("name", ""), url=emoji.get("url", "")),
            )
        case _:
            log.warning("Dropping unsupported mention kind %r", kind)
            return None


def decode_rich_text(items: Sequence[Mapping[str, Any]]) -> list[RichText]:
    """Convert provider rich-text items into :class:`RichText` runs."""
    decoded: list[RichText] = []
    for item in items:
        rich_text = RichText(
            plain_text=item.get("plain_text") or "",
            annotation=_decode_annotation(item.get("annotations")),
            href=item.get("href"),
        )
        kind = item.get("type")
        if kind == "text" and item.get("text"):
            text = item["text"]
            link = text.get("link")
            rich_text.text = TextContent(
                content=text.get("content") or "",
                link=Link(url=link["url"]) if link and link.get("url") else None,
            )
        elif kind == "equation" and item.get("equation"):
            rich_text.equation = Equation(expression=item["equation"].get("expression") or "")
        elif kind == "mention" and item.get("mention"):
            rich_text.mention = _decode_mention(item["mention"])
        decoded.append(rich_text)
    return decoded


__all__ = [
    "NOTION_API_BASE",
    "NOTION_VERSION",
    "CommentsProviderError",
    "CommentsProvider",
    "NotionCommentsProvider",
    "format_date_mention",
    "decode_rich_text",
]
