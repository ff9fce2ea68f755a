"""Layered TOML configuration shared by vault-images commands.

A command declares a defaults table. The config file (``--config`` flag,
``*_CONFIG`` environment variable, or the workspace default) is layered on
top of it with unknown keys rejected; environment variables and CLI flags
are applied afterwards by the command itself.
"""

from __future__ import annotations

import copy
import os
import tempfile
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

__all__ = [
    "ConfigSource",
    "TomlConfigError",
    "env_value",
    "layer_table",
    "load_layered",
    "load_toml",
    "locate_config",
    "write_toml_template",
]


class TomlConfigError(RuntimeError):
    """Raised when TOML config IO or validation fails."""


@dataclass(frozen=True)
class ConfigSource:
    """Where a command should read its config file from.

    ``required`` is set when the user named the file explicitly, in which
    case a missing file is an error instead of "use the defaults".
    """

    path: Path
    required: bool
    origin: str


def locate_config(
    explicit: Optional[Path],
    env: Mapping[str, str],
    *,
    env_key: str,
    default: Path,
) -> ConfigSource:
    if explicit is not None:
        return ConfigSource(explicit.expanduser(), True, "flag")
    from_env = env_value(env, env_key)
    if from_env is not None:
        return ConfigSource(Path(from_env).expanduser(), True, "env")
    return ConfigSource(default, False, "workspace")


def env_value(env: Mapping[str, str], key: str) -> Optional[str]:
    """Return the stripped value of ``key``; blank counts as unset."""

    raw = env.get(key)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise TomlConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise TomlConfigError(
            f"Failed to parse config TOML {path}: {exc}"
        ) from exc


def layer_table(
    defaults: Mapping[str, Any], override: Mapping[str, Any]
) -> dict[str, Any]:
    """Return a copy of ``defaults`` with ``override`` merged in.

    Keys missing from ``defaults`` are rejected, and a table may only
    replace a table.
    """

    merged = copy.deepcopy(dict(defaults))
    _merge_into(merged, override, prefix="")
    return merged


def load_layered(
    source: ConfigSource, defaults: Mapping[str, Any]
) -> tuple[dict[str, Any], Optional[Path]]:
    """Layer the file named by ``source`` over ``defaults``.

    Returns the merged table and the path actually read (``None`` when the
    optional workspace file does not exist).
    """

    if not source.path.exists():
        if source.required:
            raise TomlConfigError(f"Config file not found: {source.path}")
        return copy.deepcopy(dict(defaults)), None
    return layer_table(defaults, load_toml(source.path)), source.path


def _merge_into(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    prefix: str,
) -> None:
    for key, value in override.items():
        dotted = f"{prefix}{key}"
        if key not in base:
            raise TomlConfigError(f"Unknown configuration key '{dotted}'.")
        current = base[key]
        if isinstance(current, MutableMapping):
            if not isinstance(value, Mapping):
                raise TomlConfigError(
                    f"Expected table for '{dotted}', found "
                    f"{type(value).__name__}."
                )
            _merge_into(current, value, prefix=f"{dotted}.")
        elif isinstance(value, Mapping):
            raise TomlConfigError(
                f"Expected a value for '{dotted}', found a table."
            )
        else:
            base[key] = value


def write_toml_template(
    path: Path,
    *,
    template: str,
    overwrite: bool = False,
    mode: int = 0o600,
) -> Path:
    """Write ``template`` to ``path`` after checking it parses.

    The file is replaced in one step, so an existing config is never left
    half written.
    """

    try:
        tomllib.loads(template)
    except tomllib.TOMLDecodeError as exc:
        raise TomlConfigError(f"Template is not valid TOML: {exc}") from exc

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise TomlConfigError(f"Config already exists: {path}")

    handle, temp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(template)
        os.chmod(temp_name, mode)
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
    return path
