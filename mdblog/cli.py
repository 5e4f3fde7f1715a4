"""Command-line interface for mdblog.

This module defines the CLI commands using the Click framework. Every command
runs against the blog in the current directory, except ``init``.

Commands:
- init: Scaffold a new blog.
- build: Build the blog into the build directory.
- serve: Serve the build directory and rebuild on change.
- new: Create a new post, prompting for the path when it is not given.
- theme: List, create, delete or select themes.
"""

from __future__ import annotations

import functools
import logging
from pathlib import Path

import click
import questionary

from . import __version__
from .blog import Mdblog
from .errors import MdblogError


def _report_errors(func):
    """Turn mdblog and I/O errors into a styled message and exit code 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except MdblogError as exc:
            click.echo(click.style("Error:", fg="red", bold=True) + f" {exc.message}", err=True)
            if exc.path is not None:
                click.echo(click.style(f"  File: {exc.path}", fg="yellow"), err=True)
            if exc.__cause__ is not None:
                click.echo(f"  Cause: {exc.__cause__}", err=True)
            raise SystemExit(1) from None
        except OSError as exc:
            click.echo(click.style("Error:", fg="red", bold=True) + f" {exc}", err=True)
            raise SystemExit(1) from None

    return wrapper


def _open_blog() -> Mdblog:
    blog = Mdblog(Path.cwd())
    blog.load_customize_settings()
    return blog


@click.group()
@click.version_option(version=__version__, prog_name="mdblog")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
def cli(verbose: bool):
    """Static site generator from markdown files."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(message)s",
    )


@cli.command()
@click.argument("name")
@_report_errors
def init(name: str):
    """Scaffold a new blog in directory NAME."""
    root = Path(name).resolve()
    Mdblog(root).init()
    click.echo(f"New blog created at {root}")


@cli.command()
@_report_errors
def build():
    """Build the blog into the build directory."""
    blog = _open_blog()
    blog.load()
    blog.build()
    click.echo(f"Built {len(blog.posts)} posts into {blog.build_dir}")


@cli.command()
@click.option("-p", "--port", type=int, default=5000, show_default=True, help="HTTP port")
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (defaults to PORT + 1)",
)
@click.option("--no-browser", is_flag=True, help="Do not open a browser window")
@_report_errors
def serve(port: int, ws_port: int | None, no_browser: bool):
    """Serve the blog and rebuild it when sources change."""
    from .server import DevServer

    blog = _open_blog()
    blog.load()
    blog.build()
    server = DevServer(blog, port=port, ws_port=ws_port, open_browser=not no_browser)
    server.start()


@cli.command()
@click.argument("path", required=False)
@click.option("-t", "--tag", "tags", multiple=True, help="Tag for the post (repeatable)")
@_report_errors
def new(path: str | None, tags: tuple[str, ...]):
    """Create a new post at posts/PATH.md."""
    blog = _open_blog()
    if path is None:
        path = questionary.text(
            "Post path (without .md extension):",
            validate=lambda x: len(x.strip()) > 0 or "Path cannot be empty",
            style=_questionary_style(),
        ).ask()
        if path is None:
            raise click.Abort()
        if not tags:
            answer = questionary.text(
                "Tags (comma separated):", style=_questionary_style()
            ).ask()
            if answer is None:
                raise click.Abort()
            tags = tuple(t.strip() for t in answer.split(",") if t.strip())
    created = blog.create_post(Path(path.strip()), tags)
    click.echo(f"Created {created.relative_to(blog.root)}")


@cli.group()
def theme():
    """Manage blog themes."""


@theme.command("list")
@_report_errors
def list_themes():
    """List the themes in _themes/."""
    blog = _open_blog()
    names = blog.list_themes()
    if not names:
        click.echo("no theme")
        return
    for name in names:
        marker = "*" if name == blog.settings.theme else " "
        click.echo(f"{marker} {name}")


@theme.command("new")
@click.argument("name")
@_report_errors
def new_theme(name: str):
    """Create theme NAME as a copy of the active theme."""
    target = _open_blog().create_theme(name)
    click.echo(f"Created theme at {target}")


@theme.command("delete")
@click.argument("name")
@_report_errors
def delete_theme(name: str):
    """Delete theme NAME."""
    _open_blog().delete_theme(name)
    click.echo(f"Deleted theme {name}")


@theme.command("set")
@click.argument("name")
@_report_errors
def set_theme(name: str):
    """Use theme NAME."""
    _open_blog().set_theme(name)
    click.echo(f"Using theme {name}")


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
