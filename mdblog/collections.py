from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from pathlib import Path

from .post import Post


def newest_first(posts: Iterable[Post]) -> list[Post]:
    """Sort posts by datetime, newest first, keeping encounter order on ties."""
    return sorted(posts, key=lambda p: p.datetime, reverse=True)


class PostCollection(Sequence[Post]):
    """Immutable, ordered sequence of posts that doubles as a lookup arena.

    Posts are addressed by their ``source_path``; other containers such as the
    TagIndex store those identifiers and resolve them here.
    """

    def __init__(self, posts: Iterable[Post]):
        self._posts = tuple(posts)
        self._by_path = {p.source_path: p for p in self._posts}

    def __iter__(self) -> Iterator[Post]:
        return iter(self._posts)

    def __len__(self) -> int:
        return len(self._posts)

    def __getitem__(self, item):
        return self._posts[item]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PostCollection):
            return NotImplemented
        return self._posts == other._posts

    __hash__ = None  # type: ignore[assignment]

    def get(self, source_path: Path) -> Post | None:
        return self._by_path.get(source_path)

    def resolve(self, source_paths: Iterable[Path]) -> list[Post]:
        return [self._by_path[path] for path in source_paths]

    def visible(self) -> list[Post]:
        return [p for p in self._posts if not p.is_hidden]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostCollection({len(self._posts)} posts)"


class TagIndex(Mapping[str, Sequence[Post]]):
    """Mapping of tag name to the non-hidden posts carrying it, newest first.

    Only post identifiers are stored; lookups resolve them through the
    PostCollection the index was built from.
    """

    def __init__(self, posts: PostCollection, mapping: Mapping[str, Iterable[Path]]):
        self._posts = posts
        self._mapping = {tag: tuple(paths) for tag, paths in mapping.items()}

    @classmethod
    def build(cls, posts: PostCollection) -> TagIndex:
        """Aggregate the non-hidden posts of a collection by tag.

        The collection is already newest first, so the per-tag sequences are
        sorted again only to keep the ordering independent of the input.
        """
        grouped: dict[str, list[Post]] = {}
        for post in posts:
            if post.is_hidden:
                continue
            for tag in post.tags:
                grouped.setdefault(tag, []).append(post)
        mapping = {
            tag: [p.source_path for p in newest_first(tagged)]
            for tag, tagged in sorted(grouped.items())
        }
        return cls(posts, mapping)

    def __getitem__(self, tag: str) -> list[Post]:
        return self._posts.resolve(self._mapping[tag])

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def paths(self, tag: str) -> tuple[Path, ...]:
        return self._mapping[tag]

    def count(self, tag: str) -> int:
        return len(self._mapping[tag])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagIndex):
            return NotImplemented
        return self._mapping == other._mapping and self._posts == other._posts

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagIndex({len(self._mapping)} tags)"
