"""Template rendering for mdblog.

This module wraps a Jinja2 environment loaded from a theme's ``templates/``
directory. Pages are addressed by template name (``post.tpl``, ``index.tpl``,
``tag.tpl``) and rendered with a plain string-keyed context.

Key class:
- TemplateRenderer: Loads templates from a theme and renders them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateError as JinjaTemplateError
from jinja2 import TemplateNotFound, TemplateSyntaxError, select_autoescape

from .errors import TemplateError
from .markdown import pygments_css


def _describe(exc: JinjaTemplateError) -> str:
    """Format a Jinja2 exception into a user-friendly description."""
    if isinstance(exc, TemplateNotFound):
        return f"template not found: {exc.name}"
    if isinstance(exc, TemplateSyntaxError):
        return f"syntax error on line {exc.lineno}: {exc.message}"
    return f"{type(exc).__name__}: {exc}"


class TemplateRenderer:
    """Renders theme templates with Jinja2.

    Attributes:
        templates_dir: Directory templates are loaded from.
        env: Jinja2 environment.
    """

    def __init__(self, templates_dir: Path):
        self.templates_dir = templates_dir
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml", "tpl"]),
        )
        self.env.globals["pygments_css"] = pygments_css

    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render a named template.

        Args:
            name: Template name, e.g. ``post.tpl``.
            context: Variables to make available in the template.

        Returns:
            Rendered string.

        Raises:
            TemplateError: If the template is missing or fails to render.
        """
        try:
            return self.env.get_template(name).render(**context)
        except JinjaTemplateError as exc:
            raise TemplateError(_describe(exc), self.templates_dir / name) from exc
