"""The blog object for mdblog.

Mdblog ties the pipeline together for one blog root. Its state lives in an
immutable Snapshot (settings, theme, renderer, posts, tags); ``load()`` and
``load_customize_settings()`` build a new snapshot and swap it in with a
single assignment, so readers never see a half-updated blog.

Key classes:
- Snapshot: Frozen view of everything an export needs.
- Mdblog: Loads, builds, scaffolds and manages themes for a blog root.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path

from .collections import PostCollection, TagIndex
from .errors import (
    PostPathExistedError,
    PostPathInvalidError,
    RootDirExistedError,
    ThemeInUseError,
    ThemeNotFoundError,
)
from .export import MEDIA_DIR, Exporter
from .loader import POSTS_DIR, PostLoader
from .post import DATE_FORMAT
from .protocols import PageRenderer
from .settings import Settings, dump_settings, load_settings
from .templates import TemplateRenderer
from .theme import THEMES_DIR, Theme, list_themes
from .utils import expand_path, is_hidden_name, write_file
from .watcher import IgnorePatterns

logger = logging.getLogger(__name__)

HELLO_POST = """\
date: 1970-01-01 00:00:00
tags: hello

This is your first post, written in [markdown](https://commonmark.org/).

Edit or delete `posts/hello.md`, then run `mdblog serve` to see the result.
"""

MATH_POST = """\
date: 1970-01-01 00:00:01
tags: math, hello

Posts are plain markdown with a small header. Code blocks are highlighted:

```python
def area(r):
    return 3.14159 * r ** 2
```

Inline math such as $e^{i\\pi} + 1 = 0$ is kept for client-side rendering.
"""


@dataclass(frozen=True)
class Snapshot:
    settings: Settings
    theme: Theme
    renderer: PageRenderer
    posts: PostCollection
    tags: TagIndex


class Mdblog:
    """A blog rooted at a directory.

    Attributes:
        root: Blog root directory.
    """

    def __init__(self, root: Path, settings: Settings | None = None):
        self.root = root
        settings = settings or Settings()
        theme = Theme.load(root, settings.theme)
        posts = PostCollection(())
        self._snapshot = Snapshot(
            settings=settings,
            theme=theme,
            renderer=TemplateRenderer(theme.templates_dir),
            posts=posts,
            tags=TagIndex(posts, {}),
        )

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def settings(self) -> Settings:
        return self._snapshot.settings

    @property
    def theme(self) -> Theme:
        return self._snapshot.theme

    @property
    def posts(self) -> PostCollection:
        return self._snapshot.posts

    @property
    def tags(self) -> TagIndex:
        return self._snapshot.tags

    def load_customize_settings(self, environ: Mapping[str, str] | None = None) -> None:
        """Layer ``mdblog.yaml`` and ``BLOG_*`` variables over the current settings.

        Raises:
            ConfigError: If the settings are invalid.
            ThemeNotFoundError: If the configured theme does not exist.
        """
        settings = load_settings(self.root, base=self.settings, environ=environ)
        self._use_settings(settings)

    def _use_settings(self, settings: Settings) -> None:
        theme = Theme.load(self.root, settings.theme)
        self._snapshot = replace(
            self._snapshot,
            settings=settings,
            theme=theme,
            renderer=TemplateRenderer(theme.templates_dir),
        )

    def load(self) -> None:
        """Reload every post and rebuild the tag index.

        Raises:
            PostError: If any post fails to parse; the previous snapshot is kept.
        """
        result = PostLoader(self.root).load()
        self._snapshot = replace(self._snapshot, posts=result.posts, tags=result.tags)

    @property
    def build_dir(self) -> Path:
        build_dir = expand_path(self.settings.build_dir)
        if build_dir.is_absolute():
            return build_dir
        return self.root / build_dir

    def ignore_patterns(self) -> IgnorePatterns:
        return IgnorePatterns.default(self.root, self.build_dir)

    def exporter(self) -> Exporter:
        return Exporter(self._snapshot, self.root, self.build_dir)

    def build(self) -> None:
        """Export the current snapshot into the build directory."""
        self.exporter().export()
        logger.debug("built blog into %s", self.build_dir)

    def init(self) -> None:
        """Scaffold a new blog with sample posts, settings and the active theme.

        Raises:
            RootDirExistedError: If the root directory already exists.
        """
        if self.root.exists():
            raise RootDirExistedError(self.root)
        write_file(self.root / POSTS_DIR / "hello.md", HELLO_POST)
        write_file(self.root / POSTS_DIR / "math.md", MATH_POST)
        self.export_config()
        self.theme.init_dir(self.theme.name)
        (self.root / MEDIA_DIR).mkdir(parents=True, exist_ok=True)

    def export_config(self) -> Path:
        return dump_settings(self.root, self.settings)

    def create_post(self, path: Path, tags: Sequence[str] = ()) -> Path:
        """Create ``posts/<path>.md`` with a dated header.

        Args:
            path: Relative path without extension, e.g. ``rust/ownership``.
            tags: Tags for the new post.

        Returns:
            Path of the created file.

        Raises:
            PostPathInvalidError: If the path is absolute, has an extension,
                is empty or contains hidden or parent components.
            PostPathExistedError: If the post or a directory of that name exists.
        """
        if (
            path.is_absolute()
            or not path.parts
            or path.suffix
            or not path.stem
            or any(is_hidden_name(part) for part in path.parts)
        ):
            raise PostPathInvalidError(path)
        target = self.root / POSTS_DIR / path
        post_path = target.with_suffix(".md")
        if target.is_dir() or post_path.exists():
            raise PostPathExistedError(path)
        content = (
            f"date: {datetime.now().strftime(DATE_FORMAT)}\n"
            f"tags: {', '.join(tags)}\n"
            "\n"
            "this is a new post!\n"
        )
        write_file(post_path, content)
        return post_path

    def list_themes(self) -> list[str]:
        return list_themes(self.root)

    def create_theme(self, name: str) -> Path:
        """Copy the active theme to ``_themes/<name>``."""
        return self.theme.init_dir(name)

    def delete_theme(self, name: str) -> None:
        """Delete ``_themes/<name>``.

        Raises:
            ThemeInUseError: If the theme is the active one.
            ThemeNotFoundError: If the theme directory does not exist.
        """
        if self.settings.theme == name:
            raise ThemeInUseError(name)
        theme_path = self.root / THEMES_DIR / name
        if not theme_path.is_dir():
            raise ThemeNotFoundError(name)
        shutil.rmtree(theme_path)

    def set_theme(self, name: str) -> None:
        """Make ``_themes/<name>`` the active theme and save the settings.

        Raises:
            ThemeNotFoundError: If the theme directory does not exist.
        """
        if not (self.root / THEMES_DIR / name).is_dir():
            raise ThemeNotFoundError(name)
        self._use_settings(replace(self.settings, theme=name))
        self.export_config()
