"""Static site export for mdblog.

This module renders a loaded blog snapshot and writes the result to the build
directory. Every step overwrites its previous output, so each one can be
re-run on its own.

Export order (``Exporter.export``):
1. media: mirror ``<root>/media`` byte for byte.
2. static: copy the theme's static files.
3. posts: one page per post, hidden posts included.
4. index: ``index.html`` listing the visible posts.
5. tags: ``blog/tags/<tag>.html`` per tag.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import TagIndexInconsistencyError
from .post import Post
from .utils import is_hidden_name, write_file

if TYPE_CHECKING:
    from .blog import Snapshot

logger = logging.getLogger(__name__)

MEDIA_DIR = "media"
TAGS_DIR = "blog/tags"


def tag_url(name: str) -> str:
    return f"/{TAGS_DIR}/{name}.html"


def tag_map(name: str, count: int) -> dict[str, str]:
    return {"name": name, "num": str(count), "url": tag_url(name)}


class Exporter:
    """Writes a blog snapshot to the build directory.

    Attributes:
        snapshot: Settings, theme, renderer, posts and tags to export.
        root: Blog root directory.
        build_dir: Output directory.
    """

    def __init__(self, snapshot: Snapshot, root: Path, build_dir: Path):
        self.snapshot = snapshot
        self.root = root
        self.build_dir = build_dir

    def export(self) -> None:
        self.export_media()
        self.export_static()
        self.export_posts()
        self.export_index()
        self.export_tags()

    def media_dest(self, media: Path) -> Path:
        return self.build_dir / media.relative_to(self.root / MEDIA_DIR)

    def export_media(self) -> None:
        """Mirror the media tree into the build directory."""
        logger.debug("exporting media ...")
        media_dir = self.root / MEDIA_DIR
        if not media_dir.is_dir():
            return
        for path in sorted(media_dir.rglob("*")):
            rel = path.relative_to(media_dir)
            if any(is_hidden_name(part) for part in rel.parts):
                continue
            dest = self.media_dest(path)
            if path.is_dir():
                dest.mkdir(parents=True, exist_ok=True)
                continue
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, dest)

    def export_static(self) -> None:
        logger.debug("exporting static files ...")
        self.snapshot.theme.export_static(self.build_dir)

    def export_posts(self) -> None:
        for post in self.snapshot.posts:
            write_file(self.build_dir / post.dest, self.render_post(post))

    def export_index(self) -> None:
        write_file(self.build_dir / "index.html", self.render_index())

    def export_tags(self) -> None:
        for tag in self.snapshot.tags:
            write_file(self.build_dir / TAGS_DIR / f"{tag}.html", self.render_tag(tag))

    def base_context(self, title: str) -> dict[str, Any]:
        """Context shared by every page: site fields plus the tag navigation."""
        settings = self.snapshot.settings
        tags = self.snapshot.tags
        all_tags = [tag_map(name, tags.count(name)) for name in tags]
        all_tags.sort(key=lambda t: t["name"].lower())
        return {
            "title": title,
            "site_logo": settings.site_logo,
            "site_name": settings.site_name,
            "site_motto": settings.site_motto,
            "footer_note": settings.footer_note,
            "all_tags": all_tags,
        }

    def render_post(self, post: Post) -> str:
        """Render a single post page.

        Raises:
            TagIndexInconsistencyError: If a visible post has a tag missing from the index.
            TemplateError: If rendering fails.
        """
        logger.debug("rendering post(%s) ...", post.source_path)
        context = self.base_context(post.title)
        context["post"] = post.to_map()
        context["content"] = post.content
        post_tags = []
        if post.is_hidden:
            context["datetime"] = ""
        else:
            context["datetime"] = post.formatted_datetime()
            tags = self.snapshot.tags
            for name in post.tags:
                if name not in tags:
                    raise TagIndexInconsistencyError(name, post.source_path)
                post_tags.append(tag_map(name, tags.count(name)))
        context["post_tags"] = post_tags
        return self.snapshot.renderer.render("post.tpl", context)

    def render_index(self) -> str:
        logger.debug("rendering index ...")
        context = self.base_context(self.snapshot.settings.site_name)
        context["posts"] = self.post_maps(self.snapshot.posts)
        return self.snapshot.renderer.render("index.tpl", context)

    def render_tag(self, tag: str) -> str:
        logger.debug("rendering tag(%s) ...", tag)
        context = self.base_context(tag)
        context["posts"] = self.post_maps(self.snapshot.tags[tag])
        return self.snapshot.renderer.render("tag.tpl", context)

    @staticmethod
    def post_maps(posts: Iterable[Post]) -> list[dict[str, Any]]:
        return [p.to_map() for p in posts if not p.is_hidden]
