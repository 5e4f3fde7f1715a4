"""Protocol definitions for mdblog.

These describe the collaborators the content pipeline depends on, so the
exporter and the watcher can be driven by test doubles.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class PageRenderer(Protocol):
    """Renders a named template with a string-keyed context."""

    @abstractmethod
    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render a template.

        Args:
            name: Template name, e.g. ``post.tpl``.
            context: Scalars and lists of mappings.

        Returns:
            Rendered string.

        Raises:
            TemplateError: If rendering fails.
        """
        ...


@runtime_checkable
class Rebuildable(Protocol):
    """Something the watcher can reload and rebuild."""

    @abstractmethod
    def load(self) -> None:
        """Reload the full post set."""
        ...

    @abstractmethod
    def build(self) -> None:
        """Export the site into the build directory."""
        ...
