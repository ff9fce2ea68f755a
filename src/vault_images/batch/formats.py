"""Image format tables shared by the scanner, filter and processor."""

from __future__ import annotations

from pathlib import PurePosixPath

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
    {
        "jpg",
        "jpeg",
        "png",
        "webp",
        "heic",
        "heif",
        "avif",
        "tif",
        "tiff",
        "bmp",
        "svg",
        "gif",
    }
)

# Formats a run may convert into, mapped to the extension written to disk.
OUTPUT_EXTENSIONS: dict[str, str] = {
    "webp": "webp",
    "jpeg": "jpeg",
    "png": "png",
}

DISABLED = "disabled"

_ALIASES = {
    "jpg": "jpeg",
    "tif": "tiff",
    "heif": "heic",
}


def extension_of(name: str) -> str:
    """Return the lowercase extension of ``name`` without the dot."""

    return PurePosixPath(name).suffix.lstrip(".").lower()


def is_supported(name: str) -> bool:
    return extension_of(name) in SUPPORTED_EXTENSIONS


def normalize_format(value: str) -> str:
    """Canonical comparison key for a format or extension string."""

    candidate = value.strip().lower().lstrip(".")
    return _ALIASES.get(candidate, candidate)


def same_format(left: str, right: str) -> bool:
    return normalize_format(left) == normalize_format(right)


def extension_for_format(fmt: str) -> str:
    try:
        return OUTPUT_EXTENSIONS[normalize_format(fmt)]
    except KeyError as exc:
        raise ValueError(f"Unsupported output format '{fmt}'.") from exc


__all__ = [
    "DISABLED",
    "OUTPUT_EXTENSIONS",
    "SUPPORTED_EXTENSIONS",
    "extension_for_format",
    "extension_of",
    "is_supported",
    "normalize_format",
    "same_format",
]
