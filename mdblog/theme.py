"""Theme handling for mdblog.

A theme is a directory with a ``templates/`` folder (``post.tpl``,
``index.tpl``, ``tag.tpl`` plus any partials) and a ``static/`` folder copied
verbatim into ``<build_dir>/static``. Themes live in ``<root>/_themes/<name>``;
the ``simple`` theme also ships inside the package and is used when no
on-disk copy exists.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .errors import MdblogError, ThemeNotFoundError
from .utils import is_hidden_name

logger = logging.getLogger(__name__)

THEMES_DIR = "_themes"
BUILTIN_THEMES_DIR = Path(__file__).parent / "themes"


def _copy_tree(src: Path, dest: Path) -> None:
    """Copy a directory tree, skipping hidden entries."""
    for path in sorted(src.rglob("*")):
        rel = path.relative_to(src)
        if any(is_hidden_name(part) for part in rel.parts):
            continue
        target = dest / rel
        if path.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(path, target)


class Theme:
    """A resolved theme.

    Attributes:
        root: Blog root directory.
        name: Theme name.
        path: Directory the theme files are read from.
    """

    def __init__(self, root: Path, name: str, path: Path):
        self.root = root
        self.name = name
        self.path = path

    @classmethod
    def load(cls, root: Path, name: str) -> Theme:
        """Resolve a theme by name, preferring the blog's own copy.

        Raises:
            ThemeNotFoundError: If neither the blog nor the package has the theme.
        """
        for base in (root / THEMES_DIR, BUILTIN_THEMES_DIR):
            candidate = base / name
            if candidate.is_dir():
                logger.debug("theme %s loaded from %s", name, candidate)
                return cls(root, name, candidate)
        raise ThemeNotFoundError(name)

    @property
    def templates_dir(self) -> Path:
        return self.path / "templates"

    @property
    def static_dir(self) -> Path:
        return self.path / "static"

    def export_static(self, build_dir: Path) -> None:
        """Copy the theme's static files into ``build_dir/static``."""
        if self.static_dir.is_dir():
            _copy_tree(self.static_dir, build_dir / "static")

    def init_dir(self, name: str) -> Path:
        """Copy this theme into ``<root>/_themes/<name>``.

        Raises:
            MdblogError: If the target theme directory already exists.
        """
        target = self.root / THEMES_DIR / name
        if target.exists():
            raise MdblogError(f"blog theme `{name}` already exists", target)
        _copy_tree(self.path, target)
        return target


def list_themes(root: Path) -> list[str]:
    themes_dir = root / THEMES_DIR
    if not themes_dir.is_dir():
        return []
    return sorted(
        p.name for p in themes_dir.iterdir() if p.is_dir() and not is_hidden_name(p.name)
    )
