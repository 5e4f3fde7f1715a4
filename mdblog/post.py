"""Post model for mdblog.

A post source file is plain text: a header of ``key: value`` lines, one blank
line, then the markdown body::

    date: 2020-01-01 10:00:00
    tags: intro, math

    Hello *world*.

Key classes and functions:
- Post: Frozen dataclass holding parsed metadata, body and derived fields.
- parse_post: Pure transformation from a relative path and raw bytes to a Post.
- load_post: Read a post file below the blog root and parse it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from functools import cached_property
from pathlib import Path, PurePosixPath
from typing import Any

from .errors import PostEncodingError, PostHeadFormatError, PostNoBodyError
from .markdown import render_markdown
from .utils import parse_bool, split_tags, titleize

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
# Posts without a ``date`` header sort as the oldest posts.
EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class Post:
    """A parsed post.

    Attributes:
        source_path: Source path relative to the blog root, e.g. ``posts/hello.md``.
        metadata: Header fields in file order.
        body: Raw markdown following the header.
        title: ``title`` header, or the titleized file stem.
        datetime: Parsed ``date`` header, or EPOCH when absent.
        tags: Tags from the ``tags`` header, in file order.
        is_hidden: Whether the post is excluded from listings.
    """

    source_path: Path
    metadata: dict[str, str]
    body: str
    title: str
    datetime: datetime
    tags: tuple[str, ...] = ()
    is_hidden: bool = False

    @property
    def dest(self) -> Path:
        return self.source_path.with_suffix(".html")

    @property
    def url(self) -> str:
        return "/" + PurePosixPath(*self.dest.parts).as_posix()

    @cached_property
    def content(self) -> str:
        """Body converted to HTML, computed on first access."""
        return render_markdown(self.body)

    def formatted_datetime(self) -> str:
        return self.datetime.strftime(DATE_FORMAT)

    def to_map(self) -> dict[str, Any]:
        """Return the post fields used by listing templates."""
        return {
            "title": self.title,
            "url": self.url,
            "datetime": self.formatted_datetime(),
            "tags": list(self.tags),
        }


def parse_headers(path: Path, head: str) -> dict[str, str]:
    """Parse ``key: value`` header lines.

    Raises:
        PostHeadFormatError: If a non-blank line has no ``:`` or an empty key.
    """
    headers: dict[str, str] = {}
    for line in head.splitlines():
        if not line.strip():
            continue
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            raise PostHeadFormatError(path, f"head line {line!r} is not `key: value`")
        headers[key] = value.strip()
    return headers


def parse_tags(path: Path, value: str) -> tuple[str, ...]:
    """Split the ``tags`` header.

    Tags name output files under ``blog/tags/``, so they may not contain path
    separators or be ``.`` or ``..``.

    Raises:
        PostHeadFormatError: If a tag is not a plain file name.
    """
    tags = split_tags(value)
    for tag in tags:
        if "/" in tag or "\\" in tag or tag in (".", ".."):
            raise PostHeadFormatError(path, f"tag {tag!r} is not a valid file name")
    return tuple(tags)


def parse_datetime(path: Path, value: str | None) -> datetime:
    if value is None:
        return EPOCH
    try:
        return datetime.strptime(value, DATE_FORMAT)
    except ValueError as exc:
        raise PostHeadFormatError(
            path, f"date {value!r} does not match {DATE_FORMAT}"
        ) from exc


def parse_post(source_path: Path, raw: bytes) -> Post:
    """Parse a post from its relative path and raw file content.

    Args:
        source_path: Path relative to the blog root.
        raw: File content.

    Returns:
        The parsed Post.

    Raises:
        PostEncodingError: If the content is not UTF-8.
        PostNoBodyError: If no blank line separates header and body, or the body is empty.
        PostHeadFormatError: If a header line, the date or a tag is malformed.
    """
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise PostEncodingError(source_path) from exc
    text = text.replace("\r\n", "\n")

    head, sep, body = text.partition("\n\n")
    if not sep or not body.strip():
        raise PostNoBodyError(source_path)
    metadata = parse_headers(source_path, head)

    return Post(
        source_path=source_path,
        metadata=metadata,
        body=body.strip("\n"),
        title=metadata.get("title") or titleize(source_path.stem),
        datetime=parse_datetime(source_path, metadata.get("date")),
        tags=parse_tags(source_path, metadata.get("tags", "")),
        is_hidden=parse_bool(metadata.get("hidden", "")),
    )


def load_post(root: Path, source_path: Path) -> Post:
    """Read ``root / source_path`` and parse it."""
    return parse_post(source_path, (root / source_path).read_bytes())
