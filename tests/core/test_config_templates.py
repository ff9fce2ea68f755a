from __future__ import annotations

from pathlib import Path

import pytest

from vault_images.batch import config as batch_config
from vault_images.core import config_templates
from vault_images.core import workspace as workspace_mod
from vault_images.core.config_templates import (
    ConfigTemplate,
    ConfigTemplateError,
)


def test_batch_template_writes_packaged_text(tmp_path: Path) -> None:
    template = config_templates.get_template("batch")
    assert isinstance(template, ConfigTemplate)

    contents = template.read_text()
    for table in ("[paths]", "[logging]", "[note]", "[vault]"):
        assert table in contents

    target = tmp_path / "vault_images.toml"
    assert template.write(target) == target
    assert target.read_text(encoding="utf-8") == contents

    with pytest.raises(ConfigTemplateError, match="already exists"):
        template.write(target)
    assert template.write(target, overwrite=True) == target


def test_batch_template_matches_builtin_defaults() -> None:
    parsed = config_templates.get_template("batch").parse()

    for scope in batch_config.SCOPE_TABLES:
        from_template = batch_config.build_settings(parsed[scope], scope=scope)
        assert from_template == batch_config.build_settings({}, scope=scope)
    assert parsed["logging"]["level"] == "INFO"


def test_default_path_uses_workspace_config_dir(tmp_path: Path) -> None:
    layout = workspace_mod.ensure_workspace(path=tmp_path / "ws")
    template = config_templates.get_template("batch")

    assert template.filename == batch_config.CONFIG_FILENAME
    assert template.default_path(layout) == (
        tmp_path / "ws" / "config" / batch_config.CONFIG_FILENAME
    )


def test_iter_templates_lists_batch() -> None:
    names = {template.name for template in config_templates.iter_templates()}
    assert names == {"batch"}


@pytest.mark.parametrize("unknown", ["missing", "", "note"])
def test_get_template_unknown_raises(unknown: str) -> None:
    with pytest.raises(ConfigTemplateError):
        config_templates.get_template(unknown)


def test_missing_resource_raises() -> None:
    template = ConfigTemplate(
        name="ghost",
        package="vault_images.batch",
        resource="ghost.toml",
        filename="ghost.toml",
        description="",
    )

    with pytest.raises(ConfigTemplateError, match="ghost.toml"):
        template.read_text()


def test_missing_package_raises() -> None:
    template = ConfigTemplate(
        name="ghost",
        package="vault_images.nope",
        resource="template.toml",
        filename="ghost.toml",
        description="",
    )

    with pytest.raises(ConfigTemplateError):
        template.parse()
