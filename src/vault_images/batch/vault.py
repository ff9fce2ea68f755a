"""Filesystem-backed document store for a vault directory.

Every file is addressed by its vault path: a POSIX-style path relative to
the vault root (``attachments/diagram.png``). The batch pipeline only talks
to :class:`DocumentStore`, so tests and other hosts can swap the backend.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Optional, Protocol
from urllib.parse import unquote

from .formats import extension_of

MARKDOWN_EXTENSION = "md"
CANVAS_EXTENSION = "canvas"


class VaultError(RuntimeError):
    """Raised when a vault root or vault path is unusable."""


@dataclass(frozen=True)
class VaultFile:
    """A file inside the vault, identified by its normalized vault path."""

    path: str
    absolute: Optional[Path] = field(default=None, compare=False, repr=False)

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        return extension_of(self.path)

    @property
    def parent(self) -> str:
        parent = PurePosixPath(self.path).parent.as_posix()
        return "" if parent == "." else parent

    @property
    def size(self) -> int:
        """Byte size, read from disk on access."""

        if self.absolute is None:
            raise VaultError(f"No backing file for {self.path}")
        return self.absolute.stat().st_size


class DocumentStore(Protocol):
    """Host capabilities consumed by the scanner and the orchestrator."""

    def resolve(self, path: str) -> Optional[VaultFile]: ...

    def exists(self, path: str) -> bool: ...

    def is_folder(self, path: str) -> bool: ...

    def read_text(self, path: str) -> str: ...

    def write_text(self, path: str, content: str) -> None: ...

    def read_bytes(self, path: str) -> bytes: ...

    def write_bytes(self, path: str, data: bytes) -> None: ...

    def rename(self, old_path: str, new_path: str) -> None: ...

    def delete(self, path: str) -> None: ...

    def list_files(
        self, folder: str = "", recursive: bool = True
    ) -> list[VaultFile]: ...

    def list_markdown_files(self) -> list[VaultFile]: ...

    def list_canvas_files(self) -> list[VaultFile]: ...

    def resolve_link(self, link: str, source: str) -> Optional[VaultFile]: ...


def normalize_vault_path(path: str) -> str:
    """Normalize separators and dot segments of a vault path.

    Raises :class:`VaultError` when the path escapes the vault root.
    """

    raw = path.replace("\\", "/").strip()
    parts: list[str] = []
    for part in raw.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                raise VaultError(f"Path escapes the vault root: {path}")
            parts.pop()
            continue
        parts.append(part)
    return "/".join(parts)


def join_vault_path(folder: str, name: str) -> str:
    if not folder:
        return normalize_vault_path(name)
    return normalize_vault_path(f"{folder}/{name}")


class Vault:
    """A vault rooted at a directory on the local filesystem."""

    def __init__(self, root: Path) -> None:
        resolved = Path(root).expanduser()
        if not resolved.is_dir():
            raise VaultError(f"Vault root is not a directory: {resolved}")
        self.root = resolved.resolve()
        self._names: Optional[dict[str, list[str]]] = None

    def __repr__(self) -> str:
        return f"Vault({str(self.root)!r})"

    def absolute(self, path: str) -> Path:
        normalized = normalize_vault_path(path)
        if not normalized:
            return self.root
        return self.root.joinpath(*normalized.split("/"))

    def resolve(self, path: str) -> Optional[VaultFile]:
        try:
            normalized = normalize_vault_path(path)
        except VaultError:
            return None
        if not normalized or _is_hidden(normalized):
            return None
        candidate = self.absolute(normalized)
        if not candidate.is_file():
            return None
        return VaultFile(normalized, candidate)

    def exists(self, path: str) -> bool:
        try:
            return self.absolute(path).exists()
        except VaultError:
            return False

    def is_folder(self, path: str) -> bool:
        try:
            return self.absolute(path).is_dir()
        except VaultError:
            return False

    def read_text(self, path: str) -> str:
        return self.absolute(path).read_text(encoding="utf-8")

    def write_text(self, path: str, content: str) -> None:
        self.write_bytes(path, content.encode("utf-8"))

    def read_bytes(self, path: str) -> bytes:
        return self.absolute(path).read_bytes()

    def write_bytes(self, path: str, data: bytes) -> None:
        """Replace the file atomically; a failed write leaves it untouched."""

        target = self.absolute(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        existed = target.exists()
        handle, temp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
        )
        mode = target.stat().st_mode & 0o777 if existed else 0o644
        try:
            with os.fdopen(handle, "wb") as stream:
                stream.write(data)
            os.chmod(temp_name, mode)
            os.replace(temp_name, target)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        if not existed:
            self._names = None

    def rename(self, old_path: str, new_path: str) -> None:
        source = self.absolute(old_path)
        destination = self.absolute(new_path)
        if not source.is_file():
            raise FileNotFoundError(f"No such vault file: {old_path}")
        destination.parent.mkdir(parents=True, exist_ok=True)
        os.replace(source, destination)
        self._names = None

    def delete(self, path: str) -> None:
        target = self.absolute(path)
        if not target.is_file():
            raise FileNotFoundError(f"No such vault file: {path}")
        target.unlink()
        self._names = None

    def list_files(
        self, folder: str = "", recursive: bool = True
    ) -> list[VaultFile]:
        """Return visible files under ``folder`` sorted by vault path."""

        base = self.absolute(folder)
        if not base.is_dir():
            return []
        candidates = base.rglob("*") if recursive else base.iterdir()
        files: list[VaultFile] = []
        for candidate in candidates:
            if not candidate.is_file():
                continue
            relative = candidate.relative_to(self.root).as_posix()
            if _is_hidden(relative):
                continue
            files.append(VaultFile(relative, candidate))
        files.sort(key=lambda item: item.path)
        return files

    def list_markdown_files(self) -> list[VaultFile]:
        return [
            item
            for item in self.list_files()
            if item.extension == MARKDOWN_EXTENSION
        ]

    def list_canvas_files(self) -> list[VaultFile]:
        return [
            item
            for item in self.list_files()
            if item.extension == CANVAS_EXTENSION
        ]

    def resolve_link(self, link: str, source: str) -> Optional[VaultFile]:
        """Resolve a link target written inside the document ``source``.

        Links starting with ``./`` or ``../`` are relative to the source
        folder. Otherwise the vault path is tried, then the path relative to
        the source folder, then a basename lookup preferring the source's
        own folder.
        """

        target = unquote(link).strip()
        if not target:
            return None
        source_folder = VaultFile(normalize_vault_path(source)).parent
        try:
            relative = join_vault_path(source_folder, target)
        except VaultError:
            relative = None

        if target.startswith(("./", "../")):
            return self.resolve(relative) if relative else None

        direct = self.resolve(target)
        if direct is not None:
            return direct
        if relative:
            found = self.resolve(relative)
            if found is not None:
                return found

        if "/" in target.replace("\\", "/"):
            return None
        matches = self._name_index().get(target, [])
        if not matches:
            return None
        for path in matches:
            if VaultFile(path).parent == source_folder:
                return self.resolve(path)
        best = min(matches, key=lambda path: (path.count("/"), path))
        return self.resolve(best)

    def _name_index(self) -> dict[str, list[str]]:
        if self._names is None:
            index: dict[str, list[str]] = {}
            for item in self.list_files():
                index.setdefault(item.name, []).append(item.path)
            self._names = index
        return self._names


def _is_hidden(path: str) -> bool:
    return any(part.startswith(".") for part in path.split("/"))


__all__ = [
    "CANVAS_EXTENSION",
    "DocumentStore",
    "MARKDOWN_EXTENSION",
    "Vault",
    "VaultError",
    "VaultFile",
    "join_vault_path",
    "normalize_vault_path",
]
