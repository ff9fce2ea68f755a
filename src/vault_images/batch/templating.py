"""Destination filename templates rendered with Jinja2."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from jinja2 import (
    Environment,
    StrictUndefined,
    Template,
    TemplateError,
    TemplateSyntaxError,
)

from .vault import VaultFile

_FORBIDDEN = set('/\\:*?"<>|')


class TemplateConfigError(RuntimeError):
    """Raised when a filename template cannot be compiled."""


class TemplateRenderError(RuntimeError):
    """Raised when a template renders to an unusable filename."""


class FilenameTemplater:
    """Render destination stems for one run.

    ``counter(width)`` yields 1, 2, 3 ... per destination folder. The counter
    map lives on the instance, so a new templater starts every run at 1.
    """

    def __init__(
        self,
        source: str,
        *,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.source = source
        self._now = now or datetime.now
        self._counters: dict[str, int] = {}
        environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=False,
        )
        try:
            self._template: Template = environment.from_string(source)
        except TemplateSyntaxError as exc:
            raise TemplateConfigError(
                f"Invalid filename template {source!r}: {exc.message}"
            ) from exc

    @property
    def counters(self) -> dict[str, int]:
        return dict(self._counters)

    def render(
        self,
        image: VaultFile,
        *,
        note: Optional[VaultFile] = None,
        destination_dir: Optional[str] = None,
    ) -> str:
        """Render the destination stem (no extension) for ``image``."""

        folder = image.parent if destination_dir is None else destination_dir

        def counter(width: int = 3) -> str:
            value = self._counters.get(folder, 0) + 1
            self._counters[folder] = value
            return str(value).zfill(width)

        def date(fmt: str = "%Y-%m-%d") -> str:
            return self._now().strftime(fmt)

        try:
            rendered = self._template.render(
                imagename=image.stem,
                imageext=image.extension,
                notename=note.stem if note is not None else "",
                notefolder=note.parent if note is not None else "",
                counter=counter,
                date=date,
            )
        except TemplateError as exc:
            raise TemplateRenderError(
                f"Filename template failed for {image.path}: {exc}"
            ) from exc

        stem = rendered.strip()
        if not stem or stem in (".", ".."):
            raise TemplateRenderError(
                f"Filename template rendered an empty name for {image.path}"
            )
        if _FORBIDDEN.intersection(stem):
            raise TemplateRenderError(
                f"Filename template rendered an invalid name {stem!r}"
            )
        return stem


__all__ = [
    "FilenameTemplater",
    "TemplateConfigError",
    "TemplateRenderError",
]
