"""Utility functions for mdblog.

String, path and logging helpers shared by the loader, exporter and watcher.

Key functions:
    titleize: Convert a post file stem to a title.
    split_tags: Parse a comma-separated tag field.
    parse_bool: Interpret boolean-like header values.
    is_hidden_name: Check for dotfile names.
    is_markdown_name: Check whether a file name is a post source.
    write_file: Write text to a file, creating parent directories.
    log_error: Log an exception together with its cause chain.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

CONTENT_SUFFIX = ".md"
TRUE_VALUES = {"true", "yes", "on", "1"}


def titleize(stem: str) -> str:
    """Convert a file stem to a title by turning ``_`` and ``-`` into spaces.

    Case is left alone so that stems such as ``Rust_FFI`` keep their spelling.

    Examples:
        >>> titleize("hello_world-again")
        'hello world again'
    """
    title = stem.replace("_", " ").replace("-", " ")
    return " ".join(title.split()) or stem


def split_tags(value: str) -> list[str]:
    """Split a comma-separated tag field.

    Entries are trimmed, empty entries dropped and duplicates removed while
    keeping the first occurrence.

    Examples:
        >>> split_tags(" math, intro,, math ")
        ['math', 'intro']
    """
    tags: list[str] = []
    for raw in value.split(","):
        tag = raw.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def parse_bool(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES


def is_hidden_name(name: str) -> bool:
    return name.startswith(".")


def is_markdown_name(name: str) -> bool:
    """Check whether a file name is a post source.

    Editor temp files (leading ``.`` or ``~``) are never posts.
    """
    if name.startswith((".", "~")):
        return False
    return name.endswith(CONTENT_SUFFIX)


def expand_path(value: str) -> Path:
    """Expand ``~`` and environment variables in a configured path."""
    return Path(os.path.expanduser(os.path.expandvars(value)))


def write_file(path: Path, content: str | bytes) -> None:
    """Write content to a file, creating parent directories as needed.

    Args:
        path: Destination file.
        content: Text (written as UTF-8) or bytes.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")


def log_error(exc: BaseException) -> None:
    """Log an error and every exception in its ``__cause__`` chain."""
    logger.error("error: %s", exc)
    cause = exc.__cause__
    while cause is not None:
        logger.error("  caused by: %s", cause)
        cause = cause.__cause__
