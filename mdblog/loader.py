"""Post discovery and loading for mdblog.

Key classes:
- PostLoader: Walks ``<root>/posts`` and parses every markdown file.
- LoadResult: The freshly built PostCollection and TagIndex.

A load is all or nothing: the first post that fails to parse aborts it, so a
blog is never rendered from a partial post set.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .collections import PostCollection, TagIndex, newest_first
from .post import Post, load_post
from .utils import is_hidden_name, is_markdown_name

logger = logging.getLogger(__name__)

POSTS_DIR = "posts"


@dataclass(frozen=True)
class LoadResult:
    posts: PostCollection
    tags: TagIndex


class PostLoader:
    """Loads every post below a blog root.

    Attributes:
        root: Blog root directory.
        posts_dir: Directory holding the post sources.
    """

    def __init__(self, root: Path):
        self.root = root
        self.posts_dir = root / POSTS_DIR

    def iter_files(self) -> list[Path]:
        """Return post source paths relative to the blog root.

        Hidden directories are pruned; hidden files, editor temp files and
        non-markdown files are skipped. The order is deterministic.
        """
        files: list[Path] = []
        if not self.posts_dir.is_dir():
            return files
        for dirpath, dirnames, filenames in os.walk(self.posts_dir):
            dirnames[:] = sorted(d for d in dirnames if not is_hidden_name(d))
            current = Path(dirpath)
            for name in sorted(filenames):
                if not is_markdown_name(name):
                    continue
                path = current / name
                if path.is_file():
                    files.append(path.relative_to(self.root))
        return files

    def load(self) -> LoadResult:
        """Parse all posts and build the tag index.

        Returns:
            LoadResult with posts newest first and the tag index.

        Raises:
            PostError: If any post fails to parse.
            OSError: If a post cannot be read.
        """
        parsed: list[Post] = []
        for source_path in self.iter_files():
            logger.debug("loading post %s", source_path)
            parsed.append(load_post(self.root, source_path))
        posts = PostCollection(newest_first(parsed))
        tags = TagIndex.build(posts)
        logger.debug("loaded %d posts with %d tags", len(posts), len(tags))
        return LoadResult(posts=posts, tags=tags)
