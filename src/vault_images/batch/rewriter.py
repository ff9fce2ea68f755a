"""Rewrite path references inside notes and canvases.

Canvas files are parsed as JSON and only file nodes whose path equals the
old vault path are changed. In notes a spelling is only replaced where it
forms a complete link target (``[[...]]``, ``(...)``, ``<...>``), which
covers the full vault path as well as relative and bare-filename spellings
and leaves prose and external URLs alone.
"""

from __future__ import annotations

import json
import re
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import quote, unquote

from .links import iter_canvas_nodes, parse_canvas
from .scanner import DocumentKind, ReferringDocument
from .vault import DocumentStore

# A link target starts after one of these and ends before one of those.
_OPENERS = r"[\[(<|]"
_CLOSERS = r"[\]|#^)>\s]"


def rewrite_references(
    store: DocumentStore,
    document: ReferringDocument,
    old_path: str,
    new_path: str,
) -> int:
    """Point ``document`` at ``new_path`` and persist; return the count."""

    if old_path == new_path:
        return 0
    content = store.read_text(document.path)

    if document.kind is DocumentKind.CANVAS:
        updated, count = _rewrite_canvas(content, old_path, new_path)
    else:
        updated, count = _rewrite_note(
            content, (old_path, *document.links), old_path, new_path
        )

    if updated != content:
        store.write_text(document.path, updated)
    return count


def relink(link: str, old_path: str, new_path: str) -> Optional[str]:
    """Return ``link`` pointing at ``new_path``'s filename, or ``None``.

    Only the final path segment changes. Percent-encoded links stay
    percent-encoded.
    """

    old_name = PurePosixPath(old_path).name
    new_name = PurePosixPath(new_path).name
    for before, after in (
        (old_name, new_name),
        (quote(old_name), quote(new_name)),
    ):
        if not link.endswith(before):
            continue
        prefix = link[: len(link) - len(before)]
        if prefix and not prefix.endswith("/"):
            continue
        return prefix + after
    return None


def _rewrite_note(
    content: str,
    links: tuple[str, ...],
    old_path: str,
    new_path: str,
) -> tuple[str, int]:
    count = 0
    for link in _spellings(links):
        if link == old_path:
            replacement: Optional[str] = new_path
        else:
            replacement = relink(link, old_path, new_path)
        if replacement is None:
            continue
        pattern = re.compile(
            rf"(?<={_OPENERS}){re.escape(link)}(?={_CLOSERS})"
        )
        content, replaced = pattern.subn(
            lambda _match, value=replacement: value, content
        )
        count += replaced
    return content, count


def _spellings(links: tuple[str, ...]) -> list[str]:
    # markdown-it percent-encodes destinations; the source text may not be.
    seen: dict[str, None] = {}
    for link in links:
        seen.setdefault(link, None)
        seen.setdefault(unquote(link), None)
    return list(seen)


def _rewrite_canvas(
    content: str, old_path: str, new_path: str
) -> tuple[str, int]:
    data = parse_canvas(content)
    count = 0
    for node in iter_canvas_nodes(data):
        if node["file"] == old_path:
            node["file"] = new_path
            count += 1
    if not count:
        return content, 0
    return json.dumps(data, indent=2, ensure_ascii=False), count


__all__ = ["relink", "rewrite_references"]
