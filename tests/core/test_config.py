from __future__ import annotations

import stat
import tomllib
from pathlib import Path

import pytest

from vault_images.core import config as core_config
from vault_images.core.config import ConfigSource, TomlConfigError

DEFAULTS = {
    "paths": {"vault": None},
    "note": {"quality": 0.75, "convert_to": "webp"},
}


def test_locate_config_prefers_flag_then_env(tmp_path: Path) -> None:
    default = tmp_path / "ws" / "config.toml"
    env = {"APP_CONFIG": str(tmp_path / "env.toml")}

    from_flag = core_config.locate_config(
        tmp_path / "flag.toml", env, env_key="APP_CONFIG", default=default
    )
    from_env = core_config.locate_config(
        None, env, env_key="APP_CONFIG", default=default
    )
    fallback = core_config.locate_config(
        None, {"APP_CONFIG": "  "}, env_key="APP_CONFIG", default=default
    )

    assert from_flag == ConfigSource(tmp_path / "flag.toml", True, "flag")
    assert from_env == ConfigSource(tmp_path / "env.toml", True, "env")
    assert fallback == ConfigSource(default, False, "workspace")


def test_env_value_strips_and_treats_blank_as_unset() -> None:
    env = {"A": "  x ", "B": "   "}

    assert core_config.env_value(env, "A") == "x"
    assert core_config.env_value(env, "B") is None
    assert core_config.env_value(env, "C") is None


def test_layer_table_returns_merged_copy() -> None:
    merged = core_config.layer_table(DEFAULTS, {"note": {"quality": 0.5}})

    assert merged["note"] == {"quality": 0.5, "convert_to": "webp"}
    assert DEFAULTS["note"]["quality"] == 0.75
    merged["paths"]["vault"] = "/x"
    assert DEFAULTS["paths"]["vault"] is None


@pytest.mark.parametrize(
    "override, message",
    [
        ({"bogus": 1}, "Unknown configuration key 'bogus'"),
        ({"note": {"size": 1}}, "Unknown configuration key 'note.size'"),
        ({"note": 3}, "Expected table for 'note', found int."),
        ({"note": {"quality": {}}}, "Expected a value for 'note.quality'"),
    ],
)
def test_layer_table_rejects_bad_shapes(override, message) -> None:
    with pytest.raises(TomlConfigError, match=message):
        core_config.layer_table(DEFAULTS, override)


def test_load_layered_optional_missing_file_uses_defaults(
    tmp_path: Path,
) -> None:
    source = ConfigSource(tmp_path / "missing.toml", False, "workspace")

    table, loaded = core_config.load_layered(source, DEFAULTS)

    assert table == DEFAULTS
    assert loaded is None


def test_load_layered_required_missing_file_raises(tmp_path: Path) -> None:
    source = ConfigSource(tmp_path / "missing.toml", True, "flag")

    with pytest.raises(TomlConfigError, match="Config file not found"):
        core_config.load_layered(source, DEFAULTS)


def test_load_layered_reads_file(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[note]\nconvert_to = 'png'\n", encoding="utf-8")

    table, loaded = core_config.load_layered(
        ConfigSource(path, False, "workspace"), DEFAULTS
    )

    assert loaded == path
    assert table["note"]["convert_to"] == "png"


def test_load_toml_reports_parse_errors(tmp_path: Path) -> None:
    path = tmp_path / "broken.toml"
    path.write_text("[note\n", encoding="utf-8")

    with pytest.raises(TomlConfigError, match="Failed to parse config TOML"):
        core_config.load_toml(path)


def test_write_toml_template_respects_overwrite(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "config.toml"

    assert core_config.write_toml_template(target, template="a = 1\n") == target
    assert tomllib.loads(target.read_text(encoding="utf-8")) == {"a": 1}
    assert stat.S_IMODE(target.stat().st_mode) == 0o600

    with pytest.raises(TomlConfigError, match="already exists"):
        core_config.write_toml_template(target, template="a = 2\n")

    core_config.write_toml_template(
        target, template="a = 2\n", overwrite=True, mode=0o644
    )
    assert target.read_text(encoding="utf-8") == "a = 2\n"
    assert stat.S_IMODE(target.stat().st_mode) == 0o644
    assert sorted(p.name for p in target.parent.iterdir()) == ["config.toml"]


def test_write_toml_template_rejects_invalid_toml(tmp_path: Path) -> None:
    target = tmp_path / "config.toml"

    with pytest.raises(TomlConfigError, match="not valid TOML"):
        core_config.write_toml_template(target, template="[broken\n")
    assert not target.exists()
