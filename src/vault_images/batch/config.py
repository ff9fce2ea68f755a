"""Configuration loader for batch image runs.

Two independent conversion tables are read: ``[note]`` drives single-note and
folder runs, ``[vault]`` drives whole-vault runs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

from vault_images.core import config as core_config
from vault_images.core import workspace as workspace_mod

from .formats import DISABLED, OUTPUT_EXTENSIONS, normalize_format

CONFIG_FILENAME = "vault_images.toml"
CONFIG_ENV = "VAULT_IMAGES_CONFIG"
ENV_PREFIX = "VAULT_IMAGES_"

SCOPE_TABLES = ("note", "vault")
_DEFAULT_LOG_LEVEL = "INFO"
_DEFAULT_TEMPLATE = "{{ imagename }}"

# Older settings files spell "auto" as "Always".
_CHOICE_ALIASES = {"always": "auto"}


class BatchConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


class _Choice(Enum):
    """Enum parsed leniently from config strings."""

    @classmethod
    def from_value(cls, value: str) -> Any:
        key = _choice_key(value)
        key = _CHOICE_ALIASES.get(key, key)
        for member in cls:
            if _choice_key(member.value) == key:
                return member
        expected = ", ".join(member.value for member in cls)
        raise BatchConfigError(
            f"Unknown {cls.__name__} '{value}'. Expected one of: {expected}."
        )


class ResizeMode(_Choice):
    NONE = "none"
    FIT = "fit"
    FILL = "fill"
    LONGEST_EDGE = "longest_edge"
    SHORTEST_EDGE = "shortest_edge"
    WIDTH = "width"
    HEIGHT = "height"


class EnlargeReduce(_Choice):
    AUTO = "auto"
    REDUCE = "reduce"
    ENLARGE = "enlarge"


class ConflictMode(_Choice):
    REUSE = "reuse"
    INCREMENT = "increment"


@dataclass(frozen=True)
class ConversionSettings:
    """One conversion parameter set (note scope or vault scope)."""

    convert_to: str = "webp"
    quality: float = 0.75
    resize_mode: ResizeMode = ResizeMode.NONE
    desired_width: int = 600
    desired_height: int = 800
    desired_length: int = 800
    enlarge_or_reduce: EnlargeReduce = EnlargeReduce.AUTO
    allow_larger_files: bool = False
    skip_formats: tuple[str, ...] = ("tif", "tiff", "heic")
    skip_if_target_format: bool = False
    conflict_resolution: ConflictMode = ConflictMode.INCREMENT
    filename_template: str = _DEFAULT_TEMPLATE

    @property
    def keep_original_format(self) -> bool:
        return self.convert_to == DISABLED

    @property
    def lossless(self) -> bool:
        return self.quality == 1

    @property
    def resizes(self) -> bool:
        return self.resize_mode is not ResizeMode.NONE


@dataclass(frozen=True)
class BatchConfig:
    """Fully resolved configuration for batch runs."""

    vault_root: Optional[Path]
    log_level: str
    note: ConversionSettings
    vault: ConversionSettings


@dataclass(frozen=True)
class ConfigOverrides:
    """CLI-sourced overrides applied on top of file/env options.

    Conversion overrides apply to both scope tables; only the table of the
    scope being run is consulted.
    """

    vault_root: Optional[Path] = None
    log_level: Optional[str] = None
    convert_to: Optional[str] = None
    quality: Optional[float] = None
    resize_mode: Optional[str] = None
    skip_formats: Optional[str] = None


@dataclass(frozen=True)
class LoadResult:
    config: BatchConfig
    layout: workspace_mod.WorkspaceLayout
    config_path: Optional[Path]


def parse_skip_formats(raw: object) -> tuple[str, ...]:
    """Parse a comma separated (or list) skip-format value."""

    if raw is None:
        return ()
    if isinstance(raw, str):
        items: list[object] = list(raw.split(","))
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        raise BatchConfigError(
            "skip_formats must be a comma separated string or a list."
        )
    result: list[str] = []
    for item in items:
        if not isinstance(item, str):
            raise BatchConfigError("skip_formats entries must be strings.")
        candidate = item.strip().lower().lstrip(".")
        if candidate and candidate not in result:
            result.append(candidate)
    return tuple(result)


def load_config(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[ConfigOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    """Load configuration applying precedence CLI > env > TOML defaults."""

    overrides = overrides or ConfigOverrides()
    env_map = os.environ if env is None else env

    layout = workspace_mod.ensure_workspace(env=env_map, path=workspace_path)
    source = core_config.locate_config(
        config_path,
        env_map,
        env_key=CONFIG_ENV,
        default=layout.path_for("config") / CONFIG_FILENAME,
    )
    try:
        table, loaded_path = core_config.load_layered(
            source, _default_table()
        )
    except core_config.TomlConfigError as exc:
        raise BatchConfigError(str(exc)) from exc

    vault_root = _resolve_vault_root(
        _pick_first(
            overrides.vault_root,
            _env_string(env_map, "VAULT"),
            table["paths"]["vault"],
        )
    )
    log_level = _resolve_log_level(
        _pick_first(
            overrides.log_level,
            _env_string(env_map, "LOG_LEVEL"),
            table["logging"]["level"],
        )
    )

    scopes = {}
    for scope in SCOPE_TABLES:
        raw = dict(table[scope])
        raw.update(_env_scope_values(env_map, scope))
        settings = build_settings(raw, scope=scope)
        scopes[scope] = apply_overrides(settings, overrides)

    config = BatchConfig(
        vault_root=vault_root,
        log_level=log_level,
        note=scopes["note"],
        vault=scopes["vault"],
    )
    return LoadResult(config=config, layout=layout, config_path=loaded_path)


def build_settings(
    raw: Mapping[str, object], *, scope: str = "note"
) -> ConversionSettings:
    """Validate a raw scope table into :class:`ConversionSettings`."""

    values = dict(_scope_defaults(scope))
    values.update(raw)
    try:
        return ConversionSettings(
            convert_to=_coerce_convert_to(values["convert_to"]),
            quality=_coerce_quality(values["quality"]),
            resize_mode=ResizeMode.from_value(str(values["resize_mode"])),
            desired_width=_coerce_dimension(
                values["desired_width"], "desired_width"
            ),
            desired_height=_coerce_dimension(
                values["desired_height"], "desired_height"
            ),
            desired_length=_coerce_dimension(
                values["desired_length"], "desired_length"
            ),
            enlarge_or_reduce=EnlargeReduce.from_value(
                str(values["enlarge_or_reduce"])
            ),
            allow_larger_files=_coerce_bool(
                values["allow_larger_files"], "allow_larger_files"
            ),
            skip_formats=parse_skip_formats(values["skip_formats"]),
            skip_if_target_format=_coerce_bool(
                values["skip_if_target_format"], "skip_if_target_format"
            ),
            conflict_resolution=ConflictMode.from_value(
                str(values["conflict_resolution"])
            ),
            filename_template=_coerce_template(values["filename_template"]),
        )
    except BatchConfigError as exc:
        raise BatchConfigError(f"[{scope}] {exc}") from exc


def apply_overrides(
    settings: ConversionSettings, overrides: ConfigOverrides
) -> ConversionSettings:
    changes: dict[str, object] = {}
    if overrides.convert_to is not None:
        changes["convert_to"] = _coerce_convert_to(overrides.convert_to)
    if overrides.quality is not None:
        changes["quality"] = _coerce_quality(overrides.quality)
    if overrides.resize_mode is not None:
        changes["resize_mode"] = ResizeMode.from_value(overrides.resize_mode)
    if overrides.skip_formats is not None:
        changes["skip_formats"] = parse_skip_formats(overrides.skip_formats)
    if not changes:
        return settings
    return replace(settings, **changes)


def _scope_defaults(scope: str) -> Mapping[str, object]:
    table = _default_table()
    if scope not in table:
        raise BatchConfigError(f"Unknown settings scope '{scope}'.")
    return table[scope]


def _default_table() -> MutableMapping[str, MutableMapping[str, Any]]:
    note = {
        "convert_to": "webp",
        "quality": 0.75,
        "resize_mode": "none",
        "desired_width": 600,
        "desired_height": 800,
        "desired_length": 800,
        "enlarge_or_reduce": "auto",
        "allow_larger_files": False,
        "skip_formats": "tif,tiff,heic",
        "skip_if_target_format": False,
        "conflict_resolution": "increment",
        "filename_template": _DEFAULT_TEMPLATE,
    }
    vault = dict(note)
    vault.update(
        {
            "convert_to": DISABLED,
            "desired_width": 500,
            "desired_height": 500,
            "desired_length": 500,
            "skip_formats": "",
        }
    )
    return {
        "paths": {"vault": None},
        "logging": {"level": _DEFAULT_LOG_LEVEL},
        "note": note,
        "vault": vault,
    }


def _resolve_vault_root(value: object) -> Optional[Path]:
    if value is None:
        return None
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        stripped = value.strip()
        return Path(stripped).expanduser() if stripped else None
    raise BatchConfigError("paths.vault must be a string when provided.")


def _resolve_log_level(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise BatchConfigError("logging.level must be a non-empty string.")
    return value.strip().upper()


def _coerce_convert_to(value: object) -> str:
    if not isinstance(value, str):
        raise BatchConfigError("convert_to must be a string.")
    candidate = value.strip().lower()
    if candidate in ("", "none", "original", DISABLED):
        return DISABLED
    normalized = normalize_format(candidate)
    if normalized not in OUTPUT_EXTENSIONS:
        expected = ", ".join([DISABLED, *OUTPUT_EXTENSIONS])
        raise BatchConfigError(
            f"Unsupported convert_to '{value}'. Expected one of: {expected}."
        )
    return normalized


def _coerce_quality(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BatchConfigError("quality must be a number between 0 and 1.")
    quality = float(value)
    if not 0 < quality <= 1:
        raise BatchConfigError("quality must be greater than 0 and at most 1.")
    return quality


def _coerce_dimension(value: object, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise BatchConfigError(f"{key} must be a positive integer.")
    return value


def _coerce_bool(value: object, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
    raise BatchConfigError(f"{key} must be a boolean.")


def _coerce_template(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise BatchConfigError("filename_template must be a non-empty string.")
    return value.strip()


def _env_scope_values(
    env_map: Mapping[str, str], scope: str
) -> Mapping[str, object]:
    values: dict[str, object] = {}
    for key in ("convert_to", "skip_formats", "resize_mode"):
        raw = _env_string(env_map, f"{scope}_{key}".upper())
        if raw is not None:
            values[key] = raw
    quality = _env_string(env_map, f"{scope}_QUALITY".upper())
    if quality is not None:
        try:
            values["quality"] = float(quality)
        except ValueError as exc:
            raise BatchConfigError(
                f"{ENV_PREFIX}{scope.upper()}_QUALITY must be a number."
            ) from exc
    return values


def _env_string(env_map: Mapping[str, str], key: str) -> Optional[str]:
    return core_config.env_value(env_map, f"{ENV_PREFIX}{key}")


def _choice_key(value: str) -> str:
    return value.strip().lower().replace("-", "").replace("_", "").replace(
        " ", ""
    )


def _pick_first(*candidates: object) -> object:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


__all__ = [
    "BatchConfig",
    "BatchConfigError",
    "CONFIG_FILENAME",
    "ConfigOverrides",
    "ConflictMode",
    "ConversionSettings",
    "EnlargeReduce",
    "LoadResult",
    "ResizeMode",
    "apply_overrides",
    "build_settings",
    "load_config",
    "parse_skip_formats",
]
