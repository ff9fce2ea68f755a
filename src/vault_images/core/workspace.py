"""Workspace bootstrap helpers for vault-images commands.

The workspace holds tool state that must not live inside a vault: the TOML
configuration and the JSON run logs.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

WORKSPACE_ENV = "VAULT_IMAGES_DATA_HOME"
DEFAULT_WORKSPACE = Path.home() / ".vault-images-data"
FALLBACK_DIRNAME = "vault-images-data"

# Subdirectory keys, each created under the workspace home with that name.
WORKSPACE_DIRECTORIES = ("config", "logs")


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Resolved workspace paths and which of them this call created."""

    home: Path
    directories: Mapping[str, Path]
    created: Mapping[str, bool]

    @classmethod
    def prepare(cls, home: Path, *, create: bool = True) -> "WorkspaceLayout":
        if home.exists() and not home.is_dir():
            raise WorkspaceError(
                f"Configured workspace exists and is not a directory: {home}"
            )
        directories = {key: home / key for key in WORKSPACE_DIRECTORIES}
        if create:
            created = {"home": _ensure_dir(home)}
            created.update(
                {key: _ensure_dir(path) for key, path in directories.items()}
            )
        else:
            for key, path in directories.items():
                if path.exists() and not path.is_dir():
                    raise WorkspaceError(
                        f"Expected workspace directory for '{key}' but found "
                        f"a file: {path}"
                    )
            created = dict.fromkeys(("home", *directories), False)
        return cls(
            home=home,
            directories=MappingProxyType(directories),
            created=MappingProxyType(created),
        )

    def path_for(self, key: str) -> Path:
        try:
            return self.directories[key]
        except KeyError as exc:
            raise KeyError(f"Unknown workspace directory '{key}'.") from exc

    def items(self) -> tuple[tuple[str, Path], ...]:
        return tuple(self.directories.items())


def workspace_home(
    env: Mapping[str, str], *, override: Path | None = None
) -> tuple[Path, bool]:
    """Return the workspace home and whether the user chose it."""

    if override is not None:
        chosen: Path | None = override
    else:
        raw = (env.get(WORKSPACE_ENV) or "").strip()
        chosen = Path(raw) if raw else None
    if chosen is None:
        return DEFAULT_WORKSPACE, False
    return chosen.expanduser().absolute(), True


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Ensure the workspace exists and return its layout.

    An explicit ``path`` or ``VAULT_IMAGES_DATA_HOME`` wins and is never
    replaced. The default home falls back to a temp directory when it cannot
    be created.
    """

    home, explicit = workspace_home(
        os.environ if env is None else env, override=path
    )
    candidates = [home]
    if create and not explicit:
        candidates.append(Path(tempfile.gettempdir()) / FALLBACK_DIRNAME)

    denied: PermissionError | None = None
    for candidate in candidates:
        try:
            return WorkspaceLayout.prepare(candidate, create=create)
        except PermissionError as exc:
            denied = exc
    raise WorkspaceError(f"Unable to prepare workspace at {home}") from denied


def _ensure_dir(path: Path) -> bool:
    """Create ``path`` (mode 0700) and report whether it was new."""

    existed = path.exists()
    if existed and not path.is_dir():
        raise WorkspaceError(
            f"Expected directory but found a non-directory entry: {path}"
        )
    path.mkdir(parents=True, exist_ok=True)
    try:
        path.chmod(0o700)
    except (PermissionError, NotImplementedError):
        pass
    return not existed
