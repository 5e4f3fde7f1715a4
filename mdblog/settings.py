"""Blog settings for mdblog.

Settings are layered:

1. Defaults from the Settings dataclass.
2. ``mdblog.yaml`` in the blog root.
3. Environment variables prefixed with ``BLOG_`` (``BLOG_SITE_NAME`` and so on).

Key functions:
- load_settings: Resolve the layered settings for a blog root.
- dump_settings: Write settings back to ``mdblog.yaml``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .utils import write_file

CONFIG_FILE = "mdblog.yaml"
ENV_PREFIX = "BLOG_"


@dataclass(frozen=True)
class Settings:
    """Blog settings.

    Attributes:
        theme: Name of the active theme.
        site_logo: URL of the site logo.
        site_name: Site name, also the index page title.
        site_motto: Tagline shown under the site name.
        footer_note: Footer text.
        build_dir: Output directory, absolute or relative to the blog root.
        rebuild_interval: Minimum seconds between two watcher rebuilds.
    """

    theme: str = "simple"
    site_logo: str = "/static/logo.svg"
    site_name: str = "Mdblog"
    site_motto: str = "Simple is Beautiful!"
    footer_note: str = "Keep It Simple, Stupid!"
    build_dir: str = "_build"
    rebuild_interval: int = 2

    def merge(self, values: Mapping[str, Any], source: str) -> Settings:
        """Return a copy with known keys from ``values`` applied.

        Unknown keys are ignored. Values are coerced to the field type.

        Raises:
            ConfigError: If a value cannot be coerced.
        """
        updates: dict[str, Any] = {}
        for f in fields(self):
            if f.name not in values:
                continue
            value = values[f.name]
            if f.name == "rebuild_interval":
                try:
                    value = int(value)
                except (TypeError, ValueError) as exc:
                    raise ConfigError(
                        f"{source}: rebuild_interval must be an integer, got {value!r}"
                    ) from exc
                if value < 0:
                    raise ConfigError(f"{source}: rebuild_interval must not be negative")
            elif value is None:
                raise ConfigError(f"{source}: {f.name} must not be empty")
            else:
                value = str(value)
            updates[f.name] = value
        return replace(self, **updates)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML settings file.

    Returns an empty mapping when the file does not exist.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML: {exc}", path) from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError("settings file must contain a mapping", path)
    return loaded


def read_environment(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    environ = os.environ if environ is None else environ
    return {
        key[len(ENV_PREFIX) :].lower(): value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX)
    }


def load_settings(
    root: Path,
    base: Settings | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Resolve settings for a blog root.

    Args:
        root: Blog root directory.
        base: Starting settings; defaults to Settings().
        environ: Environment mapping; defaults to os.environ.

    Returns:
        The layered Settings.
    """
    settings = base or Settings()
    config_path = root / CONFIG_FILE
    settings = settings.merge(read_config_file(config_path), CONFIG_FILE)
    return settings.merge(read_environment(environ), "environment")


def dump_settings(root: Path, settings: Settings) -> Path:
    path = root / CONFIG_FILE
    write_file(path, yaml.safe_dump(settings.to_dict(), sort_keys=False))
    return path
