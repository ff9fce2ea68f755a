"""Config templates shipped inside the vault-images package."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Mapping

from .config import TomlConfigError, write_toml_template
from .workspace import WorkspaceLayout

__all__ = [
    "ConfigTemplate",
    "ConfigTemplateError",
    "get_template",
    "iter_templates",
]


class ConfigTemplateError(RuntimeError):
    """Raised when a requested configuration template is not available."""


@dataclass(frozen=True)
class ConfigTemplate:
    """A commented TOML file packaged as ``package/resource``.

    ``filename`` is the name the template is installed under in the
    workspace ``config/`` directory.
    """

    name: str
    package: str
    resource: str
    filename: str
    description: str

    def read_text(self) -> str:
        try:
            source = resources.files(self.package).joinpath(self.resource)
            return source.read_text(encoding="utf-8")
        except (FileNotFoundError, ModuleNotFoundError) as exc:
            raise ConfigTemplateError(
                f"Template '{self.name}' resource {self.resource!r} not "
                f"found in '{self.package}'."
            ) from exc

    def parse(self) -> Mapping[str, Any]:
        try:
            return tomllib.loads(self.read_text())
        except tomllib.TOMLDecodeError as exc:
            raise ConfigTemplateError(
                f"Template '{self.name}' is not valid TOML: {exc}"
            ) from exc

    def default_path(self, layout: WorkspaceLayout) -> Path:
        return layout.path_for("config") / self.filename

    def write(
        self, path: Path, *, overwrite: bool = False, mode: int = 0o600
    ) -> Path:
        try:
            return write_toml_template(
                path,
                template=self.read_text(),
                overwrite=overwrite,
                mode=mode,
            )
        except TomlConfigError as exc:
            raise ConfigTemplateError(str(exc)) from exc


_TEMPLATES: dict[str, ConfigTemplate] = {
    "batch": ConfigTemplate(
        name="batch",
        package="vault_images.batch",
        resource="template.toml",
        filename="vault_images.toml",
        description="Defaults for note, folder and vault image processing.",
    ),
}


def get_template(name: str) -> ConfigTemplate:
    try:
        return _TEMPLATES[name]
    except KeyError as exc:
        raise ConfigTemplateError(f"Unknown config template '{name}'.") from exc


def iter_templates() -> Iterable[ConfigTemplate]:
    return tuple(_TEMPLATES.values())
