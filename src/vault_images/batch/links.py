"""Link-target extraction for notes and canvases."""

from __future__ import annotations

import json
import re
from functools import lru_cache
from typing import Any, Iterable, Iterator, Mapping
from urllib.parse import unquote

from markdown_it import MarkdownIt

EXTERNAL_PREFIXES = ("http://", "https://", "//", "data:")

# ![[target]], [[target|alias]], [[target#heading]], ![[target|300]]
_WIKI_LINK = re.compile(
    r"!?\[\[(?P<target>[^\]\|#\^\n]+)(?:[#\^][^\]\|\n]*)?(?:\|[^\]\n]*)?\]\]"
)


class CanvasFormatError(ValueError):
    """Raised when a canvas document is not a JSON object."""


def is_external(target: str) -> bool:
    candidate = target.strip().lower()
    return candidate.startswith(EXTERNAL_PREFIXES)


@lru_cache(maxsize=1)
def _markdown() -> MarkdownIt:
    return MarkdownIt("commonmark")


def extract_link_targets(text: str) -> list[str]:
    """Return link targets of ``text`` in document order, repeats kept.

    Wiki links come from a regex scan; Markdown images and links come from
    the ``markdown-it`` token stream so code spans and escapes are honoured.
    Matches are ordered by their position in the source.
    """

    found: list[tuple[int, int, str]] = []
    for match in _WIKI_LINK.finditer(text):
        found.append((match.start(), 0, match.group("target").strip()))

    offsets = [0]
    for line in text.split("\n"):
        offsets.append(offsets[-1] + len(line) + 1)

    sequence = 1
    for token in _markdown().parse(text):
        if token.type != "inline" or not token.children:
            continue
        if token.map:
            first, last = token.map
            cursor = offsets[min(first, len(offsets) - 1)]
            end = offsets[min(last, len(offsets) - 1)]
        else:
            cursor, end = 0, len(text)
        for target in _inline_targets(token.children):
            position = _locate(text, target, cursor, end)
            if position < 0:
                position = cursor
            else:
                cursor = position + 1
            found.append((position, sequence, target))
            sequence += 1

    found.sort(key=lambda item: (item[0], item[1]))
    return [target for _, _, target in found if target]


def _locate(text: str, target: str, start: int, end: int) -> int:
    # markdown-it percent-encodes destinations; the source may not be.
    for spelling in (target, unquote(target)):
        position = text.find(spelling, start, end)
        if position >= 0:
            return position
    return -1


def _inline_targets(children: Iterable[Any]) -> Iterable[str]:
    for child in children:
        if child.type == "image":
            src = child.attrGet("src")
            if isinstance(src, str):
                yield src
        elif child.type == "link_open":
            href = child.attrGet("href")
            if isinstance(href, str) and not href.startswith("#"):
                yield href


def parse_canvas(text: str) -> Mapping[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CanvasFormatError(f"Invalid canvas JSON: {exc}") from exc
    if not isinstance(data, Mapping):
        raise CanvasFormatError("Canvas document must be a JSON object.")
    return data


def iter_canvas_nodes(data: Mapping[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield every file node (``type == "file"`` with a string ``file``).

    Nested ``children`` lists are walked depth first. The yielded dicts are
    the parsed objects themselves, so callers may edit them in place.
    """

    yield from _walk_file_nodes(data.get("nodes"))


def _walk_file_nodes(nodes: Any) -> Iterator[dict[str, Any]]:
    if not isinstance(nodes, list):
        return
    for node in nodes:
        if not isinstance(node, dict):
            continue
        if node.get("type") == "file" and isinstance(node.get("file"), str):
            yield node
        yield from _walk_file_nodes(node.get("children"))


def iter_canvas_file_nodes(data: Mapping[str, Any]) -> list[str]:
    """Return ``file`` values of every file node, including nested ones."""

    return [node["file"] for node in iter_canvas_nodes(data)]


__all__ = [
    "CanvasFormatError",
    "EXTERNAL_PREFIXES",
    "extract_link_targets",
    "is_external",
    "iter_canvas_file_nodes",
    "iter_canvas_nodes",
    "parse_canvas",
]
