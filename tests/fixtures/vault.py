"""Vault trees and real image files for tests."""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Union

from PIL import Image

from vault_images.batch.vault import Vault

TreeValue = Union[str, bytes, "Tree", None]
Tree = Mapping[str, TreeValue]

_PIL_FORMATS = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "webp": "WEBP",
    "gif": "GIF",
    "bmp": "BMP",
    "tif": "TIFF",
    "tiff": "TIFF",
}


def make_image(
    extension: str = "png",
    size: tuple[int, int] = (40, 30),
    color: tuple[int, int, int] = (200, 40, 40),
) -> bytes:
    """Encode a solid-colour image in the format implied by ``extension``."""

    image = Image.new("RGB", size, color)
    buffer = io.BytesIO()
    image.save(buffer, format=_PIL_FORMATS[extension.lower()])
    return buffer.getvalue()


def build_tree(base: Path, tree: Tree) -> None:
    """Create files/directories under ``base`` from a nested mapping.

    ``tree`` maps names to either strings/bytes (file content), ``None``
    (directories), or nested mappings for subdirectories.
    """

    for name, value in tree.items():
        path = base / name
        if isinstance(value, (str, bytes)):
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(value, bytes):
                path.write_bytes(value)
            else:
                path.write_text(value, encoding="utf-8")
        elif isinstance(value, Mapping):
            path.mkdir(parents=True, exist_ok=True)
            build_tree(path, value)  # type: ignore[arg-type]
        elif value is None:
            path.mkdir(parents=True, exist_ok=True)
        else:
            raise TypeError(f"Unsupported tree value for {path}: {value!r}")


@dataclass
class VaultBuilder:
    """A temporary vault directory with shortcuts for notes and images."""

    root: Path

    def create(self, tree: Tree) -> Vault:
        build_tree(self.root, tree)
        return self.vault()

    def vault(self) -> Vault:
        return Vault(self.root)

    def note(self, relative: str, content: str) -> Path:
        return self.write(relative, content)

    def image(
        self,
        relative: str,
        size: tuple[int, int] = (40, 30),
        data: bytes | None = None,
    ) -> Path:
        extension = relative.rsplit(".", 1)[-1]
        return self.write(relative, data or make_image(extension, size))

    def write(self, relative: str, content: Union[str, bytes]) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    def read(self, relative: str) -> str:
        return (self.root / relative).read_text(encoding="utf-8")

    def exists(self, relative: str) -> bool:
        return (self.root / relative).exists()

    def files(self) -> list[str]:
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*")
            if path.is_file()
        )
