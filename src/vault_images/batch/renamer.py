"""Collision-free destination names inside a vault folder."""

from __future__ import annotations

from pathlib import PurePosixPath

from .config import ConflictMode
from .vault import DocumentStore, join_vault_path


def resolve_conflict(
    store: DocumentStore,
    destination_dir: str,
    desired_filename: str,
    mode: ConflictMode = ConflictMode.REUSE,
) -> str:
    """Return the filename to use for ``desired_filename`` in a folder.

    ``REUSE`` always returns the desired name, so the caller takes over an
    existing file of that name. ``INCREMENT`` appends ``-1``, ``-2`` ... to
    the stem until the name is free.
    """

    if mode is ConflictMode.REUSE:
        return desired_filename

    if not store.exists(join_vault_path(destination_dir, desired_filename)):
        return desired_filename

    pure = PurePosixPath(desired_filename)
    stem, suffix = pure.stem, pure.suffix
    counter = 1
    while True:
        candidate = f"{stem}-{counter}{suffix}"
        if not store.exists(join_vault_path(destination_dir, candidate)):
            return candidate
        counter += 1


__all__ = ["resolve_conflict"]
