"""Per-image and per-run decisions about whether processing is needed."""

from __future__ import annotations

from typing import Iterable, Sequence

from .config import ConversionSettings
from .formats import same_format
from .scanner import ImageTarget


def should_process(
    target: ImageTarget,
    keep_original_format: bool,
    target_format: str,
    skip_formats: Sequence[str],
    skip_if_target_format: bool,
) -> bool:
    """Return ``False`` when configuration excludes ``target``.

    With ``keep_original_format`` the effective target format is the image's
    own extension, so ``skip_if_target_format`` then skips every image.
    """

    extension = target.extension
    if extension in {item.lower() for item in skip_formats}:
        return False
    effective = extension if keep_original_format else target_format
    if skip_if_target_format and same_format(extension, effective):
        return False
    return True


def should_process_with(
    target: ImageTarget, settings: ConversionSettings
) -> bool:
    return should_process(
        target,
        settings.keep_original_format,
        settings.convert_to,
        settings.skip_formats,
        settings.skip_if_target_format,
    )


def is_noop(settings: ConversionSettings) -> bool:
    """True when the settings can never change any image."""

    return (
        settings.keep_original_format
        and settings.lossless
        and not settings.resizes
    )


def all_skippable(
    targets: Iterable[ImageTarget], settings: ConversionSettings
) -> bool:
    """True when every target is already final and nothing is re-encoded.

    A target is final when it is in the skip list or already uses the target
    format; without compression or resizing there is then nothing to do.
    """

    if not settings.lossless or settings.resizes:
        return False
    skip = set(settings.skip_formats)
    for target in targets:
        if target.extension in skip:
            continue
        if settings.keep_original_format:
            continue
        if same_format(target.extension, settings.convert_to):
            continue
        return False
    return True


__all__ = [
    "all_skippable",
    "is_noop",
    "should_process",
    "should_process_with",
]
