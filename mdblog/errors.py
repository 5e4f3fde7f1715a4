"""Error types for mdblog.

Every failure that mdblog raises on purpose derives from MdblogError, so the
CLI can report it with file context and a non-zero exit code. I/O failures are
left as the built-in OSError.

Key classes:
- MdblogError: Base error carrying a message and an optional offending path.
- PostError: Base for failures while parsing a single post file.
- InternalConsistencyError: Raised when loader output and renderer input disagree.
"""

from __future__ import annotations

from pathlib import Path


class MdblogError(Exception):
    """Base error with optional file context.

    Attributes:
        message: Human-readable error message.
        path: Path to the file or directory that caused the error, if any.
    """

    def __init__(self, message: str, path: Path | None = None):
        self.message = message
        self.path = path
        super().__init__(f"{path}: {message}" if path is not None else message)


class ConfigError(MdblogError):
    """Settings could not be loaded or contain invalid values."""


class TemplateError(MdblogError):
    """A template failed to load or render."""


class PostError(MdblogError):
    """Base for errors raised while parsing a post."""


class PostHeadFormatError(PostError):
    def __init__(self, path: Path, detail: str = "head part format error"):
        super().__init__(detail, path)


class PostNoBodyError(PostError):
    def __init__(self, path: Path):
        super().__init__("post has no body part", path)


class PostEncodingError(PostError):
    def __init__(self, path: Path):
        super().__init__("post is not valid UTF-8", path)


class PostPathInvalidError(MdblogError):
    def __init__(self, path: Path):
        super().__init__("invalid post path", path)


class PostPathExistedError(MdblogError):
    def __init__(self, path: Path):
        super().__init__("post already exists", path)


class RootDirExistedError(MdblogError):
    def __init__(self, path: Path):
        super().__init__("blog root directory already exists", path)


class ThemeNotFoundError(MdblogError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"blog theme `{name}` not found")


class ThemeInUseError(MdblogError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"blog theme `{name}` is in use")


class AddressParseError(MdblogError):
    """A server address could not be parsed."""


class WatcherError(MdblogError):
    """The filesystem watcher could not be created or started."""


class InternalConsistencyError(MdblogError):
    """State that should be impossible was reached."""


class TagIndexInconsistencyError(InternalConsistencyError):
    """A post references a tag missing from the tag index."""

    def __init__(self, tag: str, path: Path):
        self.tag = tag
        super().__init__(f"post tag `{tag}` is missing from the tag index", path)
