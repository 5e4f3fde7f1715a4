"""mdblog static site generator.

This package turns a directory of markdown posts into a static HTML blog. It
parses posts, builds a tag index, renders pages through Jinja2 theme
templates and writes the result to a build directory. A development mode
serves the output and rebuilds it when sources change.

The main entry point is the CLI module, which provides commands for
scaffolding blogs, building, serving and managing posts and themes.
"""

from .blog import Mdblog, Snapshot
from .errors import MdblogError
from .post import Post, parse_post

__all__ = ["Mdblog", "MdblogError", "Post", "Snapshot", "__version__", "parse_post"]
__version__ = "0.1.0"
