#!/usr/bin/env python3
"""
dw: CLI for the docwiki content store

Usage:
    dw get hipaa/overview            # Read a content file
    dw list --section=hipaa          # List content with sorting and paging
    dw search "encryption"           # Relevance search
    dw create guides/setup --title=.. --content=..
    dw tree                          # Browse structure
    dw serve                         # Run the HTTP API
"""

from __future__ import annotations

import asyncio
import difflib
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError
from pydantic import BaseModel

from . import __version__ as DOCWIKI_VERSION
from ._logging import configure_logging, set_verbose
from .config import ConfigurationError
from .errors import ContentError, ErrorKind
from .models import SearchResult


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def format_table(rows: list[dict], columns: list[str], max_widths: dict | None = None) -> str:
    """Format rows as a simple table."""
    if not rows:
        return ""

    max_widths = max_widths or {}

    def cell(row: dict, col: str) -> str:
        val = row.get(col)
        val = "" if val is None else str(val)
        limit = max_widths.get(col, 50)
        if len(val) > limit:
            val = val[: limit - 3] + "..."
        return val

    widths = {col: len(col) for col in columns}
    for row in rows:
        for col in columns:
            widths[col] = max(widths[col], len(cell(row, col)))

    header = "  ".join(col.upper().ljust(widths[col]) for col in columns)
    separator = "  ".join("-" * widths[col] for col in columns)
    lines = [header, separator]
    for row in rows:
        lines.append("  ".join(cell(row, col).ljust(widths[col]) for col in columns))

    return "\n".join(lines)


def _jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, list):
        return [_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {key: _jsonable(value) for key, value in data.items()}
    return data


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(_jsonable(data), indent=2, default=str))
    else:
        click.echo(data)


def format_json_error(code: str, message: str, details: dict | None = None) -> str:
    """Format an error as JSON for --json-errors output."""
    error: dict[str, dict[str, object]] = {"error": {"code": code, "message": message}}
    if details:
        error["error"]["details"] = details
    return json.dumps(error)


def get_error_code_for_exception(exc: Exception) -> str:
    """Map Click exceptions to error codes."""
    if isinstance(exc, click.BadParameter):
        return "INVALID_ARGUMENT"
    elif isinstance(exc, click.MissingParameter):
        return "MISSING_ARGUMENT"
    elif isinstance(exc, click.NoSuchOption):
        return "UNKNOWN_OPTION"
    elif isinstance(exc, UsageError):
        return "USAGE_ERROR"
    elif isinstance(exc, ClickException):
        return "CLI_ERROR"
    return "UNKNOWN_ERROR"


def _handle_error(ctx: click.Context, error: Exception, exit_code: int = 1) -> NoReturn:
    """Report an error as text or, with --json-errors, as structured JSON."""
    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, ContentError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
    elif isinstance(error, ConfigurationError):
        if json_errors:
            click.echo(format_json_error("CONFIGURATION_ERROR", str(error)), err=True)
        else:
            click.echo(f"Error: {error}", err=True)
    else:
        raise error

    sys.exit(exit_code)


def _run(ctx: click.Context, coro):
    """Run a store coroutine, turning ContentError/ConfigurationError into CLI errors."""
    try:
        return run_async(coro)
    except (ContentError, ConfigurationError) as e:
        _handle_error(ctx, e)


def _get_store(ctx: click.Context):
    from .store import ContentStore

    try:
        return ContentStore()
    except ConfigurationError as e:
        _handle_error(ctx, e)


def _read_content(content: str | None, file: str | None) -> str | None:
    if content is not None and file:
        raise UsageError("Use either --content or --file, not both")
    if file:
        return Path(file).read_text(encoding="utf-8")
    return content


def _frontmatter_options(
    title: str | None, description: str | None, category: str | None, tags: str | None
) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if title is not None:
        fields["title"] = title
    if description is not None:
        fields["description"] = description
    if category is not None:
        fields["category"] = category
    if tags is not None:
        fields["tags"] = tags
    return fields


# ─────────────────────────────────────────────────────────────────────────────
# JSON Error Handling
# ─────────────────────────────────────────────────────────────────────────────


class JsonErrorGroup(click.Group):
    """Group for ``dw``: usage errors become JSON under --json-errors.

    Unknown commands get a "Did you mean" hint when one name is close enough.
    """

    JSON_ERRORS_FLAG = "--json-errors"

    def closest_command(self, ctx: click.Context, name: str) -> str | None:
        found = difflib.get_close_matches(name, self.list_commands(ctx), n=1, cutoff=0.6)
        return found[0] if found else None

    def resolve_command(self, ctx, args):
        name = args[0] if args else ""
        if name and not name.startswith("-") and self.get_command(ctx, name) is None:
            suggestion = self.closest_command(ctx, name)
            if suggestion:
                raise UsageError(f"No such command '{name}'. Did you mean '{suggestion}'?", ctx)
        return super().resolve_command(ctx, args)

    @staticmethod
    def fail_as_json(error: ClickException) -> NoReturn:
        code = get_error_code_for_exception(error)
        click.echo(format_json_error(code, error.format_message()), err=True)
        sys.exit(1)

    def invoke(self, ctx):
        if not ctx.params.get("json_errors"):
            return super().invoke(ctx)
        try:
            return super().invoke(ctx)
        except ClickException as e:
            self.fail_as_json(e)

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        """Run the CLI; with --json-errors anywhere in argv, parse errors are JSON too.

        The flag is global, so it is moved ahead of the subcommand before
        parsing. Click then runs non-standalone and raises instead of printing.
        """
        argv = list(sys.argv[1:] if args is None else args)
        flag = self.JSON_ERRORS_FLAG
        if flag not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        argv = [flag, *(arg for arg in argv if arg != flag)]
        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except ClickException as e:
            self.fail_as_json(e)


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=DOCWIKI_VERSION, prog_name="dw")
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show informational log messages")
@click.pass_context
def cli(ctx: click.Context, json_errors: bool, verbose: bool):
    """dw: CLI for the docwiki content store.

    The content root is DOCWIKI_CONTENT_ROOT, or ./content if it exists.

    \b
    Read:
      dw get hipaa/overview
      dw list --section=hipaa --sort-by=frontmatter.title
      dw search "encryption" --tag=security
      dw tree

    \b
    Write:
      dw create guides/setup --title="Setup" --tags="a,b" --content="..."
      dw update guides/setup --description="..."
      dw rename guides/setup "New Title"
      dw move guides/setup archive
      dw delete guides/setup

    \b
    For programmatic error handling:
      dw --json-errors get missing/page
    """
    ctx.ensure_object(dict)
    ctx.obj["json_errors"] = json_errors

    configure_logging(default_level="WARNING")
    if verbose:
        set_verbose(True)


# ─────────────────────────────────────────────────────────────────────────────
# Read Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--metadata", "-m", is_flag=True, help="Show only frontmatter")
@click.pass_context
def get(ctx: click.Context, path: str, as_json: bool, metadata: bool):
    """Read a content file.

    PATH is a logical path without extension; PATH.md, PATH.mdx and
    PATH/index.md are tried in that order.

    \b
    Examples:
      dw get hipaa/overview
      dw get hipaa --json
      dw get guides/setup.md --metadata
    """
    store = _get_store(ctx)
    content = _run(ctx, store.require(path, ErrorKind.CONTENT_NOT_FOUND))

    if as_json:
        output(content.frontmatter if metadata else content, as_json=True)
        return

    fm = content.frontmatter
    click.echo(f"# {fm.title}")
    click.echo(f"Path: {content.path}")
    if fm.description:
        click.echo(f"Description: {fm.description}")
    if fm.category:
        click.echo(f"Category: {fm.category}")
    if fm.tags:
        click.echo(f"Tags: {', '.join(fm.tags)}")
    if fm.last_updated:
        click.echo(f"Last updated: {fm.last_updated}")
    if not metadata:
        click.echo()
        click.echo(content.body)


@cli.command("list")
@click.option("--section", "-s", default="", help="Only content below this directory")
@click.option("--tag", "tags", multiple=True, help="Filter by tag (repeatable)")
@click.option("--sort-by", help="Field to sort by, e.g. slug or frontmatter.title")
@click.option("--sort-order", type=click.Choice(["asc", "desc"]), default="asc")
@click.option("--page", "-p", type=int, default=None, help="Page number (1-based)")
@click.option("--limit", "-n", type=int, default=None, help="Page size (max 100)")
@click.option("--after", help="Cursor: continue after this path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_content(
    ctx: click.Context,
    section: str,
    tags: tuple[str, ...],
    sort_by: str | None,
    sort_order: str,
    page: int | None,
    limit: int | None,
    after: str | None,
    as_json: bool,
):
    """List content files with sorting and pagination.

    \b
    Examples:
      dw list
      dw list --section=hipaa --sort-by=frontmatter.title
      dw list --tag=security --limit=5 --page=2
      dw list --limit=5 --after=hipaa/overview.md
    """
    from .pagination import paginate, sort_items
    from .search import SearchEngine

    store = _get_store(ctx)
    if tags:
        items: list[Any] = _run(ctx, SearchEngine(store).search(None, list(tags), section))
    else:
        items = _run(ctx, store.list(section, strict=bool(section)))

    try:
        items = sort_items(items, sort_by, sort_order)
        result = paginate(items, page=page, limit=limit, cursor=after, strict_cursor=True)
    except ContentError as e:
        _handle_error(ctx, e)

    if as_json:
        output(result, as_json=True)
        return

    if not result.items:
        click.echo("No content found.")
        return

    rows = [
        {
            "path": item.path,
            "title": item.title if isinstance(item, SearchResult) else item.frontmatter.title,
        }
        for item in result.items
    ]
    click.echo(format_table(rows, ["path", "title"], {"path": 45, "title": 40}))
    footer = f"\n{len(result.items)} of {result.total}"
    if result.next_cursor:
        footer += f" (next: --after={result.next_cursor})"
    click.echo(footer)


@cli.command()
@click.argument("query", required=False)
@click.option("--tag", "tags", multiple=True, help="Filter by tag (repeatable)")
@click.option("--section", "-s", default="", help="Only search below this directory")
@click.option("--page", "-p", type=int, default=None, help="Page number (1-based)")
@click.option("--limit", "-n", type=int, default=None, help="Page size (max 100)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def search(
    ctx: click.Context,
    query: str | None,
    tags: tuple[str, ...],
    section: str,
    page: int | None,
    limit: int | None,
    as_json: bool,
):
    """Search content by relevance.

    Matches are case-insensitive substrings. Scores add up per field:
    title 10, description 5, tags 4, body 3.

    \b
    Examples:
      dw search "hipaa"
      dw search "encryption" --tag=security
      dw search --tag=compliance
    """
    from .pagination import paginate
    from .search import SearchEngine

    if not (query or "").strip() and not tags:
        raise UsageError("Provide a QUERY or at least one --tag")

    store = _get_store(ctx)
    results = _run(ctx, SearchEngine(store).search(query, list(tags), section))
    result = paginate(results, page=page, limit=limit)

    if as_json:
        output(result, as_json=True)
        return

    if not result.items:
        click.echo("No results found.")
        return

    rows = [
        {
            "path": r.path,
            "title": r.title,
            "score": "-" if r.score is None else f"{r.score:g}",
        }
        for r in result.items
    ]
    click.echo(format_table(rows, ["path", "title", "score"], {"path": 45, "title": 40}))
    if result.has_more:
        click.echo(f"\n{len(result.items)} of {result.total} (use --page for more)")


def format_tree(node: dict[str, Any], prefix: str = "") -> str:
    """Render a nested dict from _build_tree as box-drawing lines."""
    lines = []
    entries = list(node.items())
    for i, (name, value) in enumerate(entries):
        is_last = i == len(entries) - 1
        connector = "└── " if is_last else "├── "
        if value is None:
            lines.append(f"{prefix}{connector}{name}")
        else:
            lines.append(f"{prefix}{connector}{name}/")
            extension = "    " if is_last else "│   "
            lines.append(format_tree(value, prefix + extension))
    return "\n".join(line for line in lines if line)


def _build_tree(base: str, items: list, depth: int) -> dict[str, Any]:
    """Nest a recursive listing into {name: children-or-None}, cut at ``depth``."""
    root: dict[str, Any] = {}
    prefix = f"{base}/" if base else ""
    for item in items:
        parts = item.path[len(prefix) :].split("/")
        if len(parts) > depth:
            continue
        node = root
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        if item.type == "directory":
            node.setdefault(parts[-1], {})
        else:
            node[parts[-1]] = None
    return root


@cli.command()
@click.argument("path", default="")
@click.option("--depth", "-d", default=3, type=click.IntRange(min=1), help="Max depth")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tree(ctx: click.Context, path: str, depth: int, as_json: bool):
    """Display the content directory structure.

    \b
    Examples:
      dw tree
      dw tree hipaa --depth=1
    """
    store = _get_store(ctx)
    try:
        contents = store.lister.list_directory(path, recursive=True)
    except ContentError as e:
        _handle_error(ctx, e)

    if as_json:
        output(contents, as_json=True)
        return

    formatted = format_tree(_build_tree(contents.path, contents.items, depth))
    if formatted:
        click.echo(formatted)
    directories = sum(1 for item in contents.items if item.type == "directory")
    click.echo(f"\n{directories} directories, {len(contents.items) - directories} files")


# ─────────────────────────────────────────────────────────────────────────────
# Write Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("path")
@click.option("--title", help="Title (defaults to one derived from PATH)")
@click.option("--description", help="Short description")
@click.option("--category", help="Category")
@click.option("--tags", help="Comma-separated tags")
@click.option("--content", help="Markdown body")
@click.option("--file", "file", type=click.Path(exists=True, dir_okay=False), help="Read body from file")
@click.option("--overwrite", is_flag=True, help="Replace an existing file")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def create(
    ctx: click.Context,
    path: str,
    title: str | None,
    description: str | None,
    category: str | None,
    tags: str | None,
    content: str | None,
    file: str | None,
    overwrite: bool,
    as_json: bool,
):
    """Create a content file (``.md`` is appended when PATH has no extension).

    \b
    Examples:
      dw create guides/setup --title="Setup Guide" --tags="onboarding,setup"
      dw create hipaa/technical --file=draft.md --overwrite
    """
    body = _read_content(content, file) or ""
    fields = _frontmatter_options(title, description, category, tags)

    store = _get_store(ctx)
    created = _run(ctx, store.create(path, fields, body, overwrite=overwrite))

    if as_json:
        output(created, as_json=True)
    else:
        click.echo(f"Created: {created.path}")


@cli.command()
@click.argument("path")
@click.option("--title", help="New title")
@click.option("--description", help="New description")
@click.option("--category", help="New category")
@click.option("--tags", help="Comma-separated tags (replaces existing)")
@click.option("--content", help="Replacement Markdown body")
@click.option("--file", "file", type=click.Path(exists=True, dir_okay=False), help="Read body from file")
@click.option("--create", "create_missing", is_flag=True, help="Create the file if it does not exist")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def update(
    ctx: click.Context,
    path: str,
    title: str | None,
    description: str | None,
    category: str | None,
    tags: str | None,
    content: str | None,
    file: str | None,
    create_missing: bool,
    as_json: bool,
):
    """Merge frontmatter fields into a content file and/or replace its body.

    \b
    Examples:
      dw update guides/setup --tags="setup,linux"
      dw update guides/setup --file=setup.md
    """
    body = _read_content(content, file)
    fields = _frontmatter_options(title, description, category, tags)
    if body is None and not fields:
        raise UsageError("Nothing to update: pass frontmatter options, --content or --file")

    store = _get_store(ctx)
    updated = _run(
        ctx,
        store.update(path, frontmatter=fields, body=body, create_if_not_exists=create_missing),
    )

    if as_json:
        output(updated, as_json=True)
    else:
        click.echo(f"Updated: {updated.path}")


@cli.command()
@click.argument("path")
@click.option("--recursive", "-r", is_flag=True, help="Delete a directory and its contents")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def delete(ctx: click.Context, path: str, recursive: bool, as_json: bool):
    """Delete a content file or, with --recursive, a directory.

    \b
    Examples:
      dw delete guides/setup
      dw delete archive --recursive
    """
    store = _get_store(ctx)
    removed = _run(ctx, store.delete(path, recursive=recursive))

    if as_json:
        output({"deleted": removed}, as_json=True)
    else:
        click.echo(f"Deleted: {removed}")


@cli.command()
@click.argument("source")
@click.argument("destination")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def move(ctx: click.Context, source: str, destination: str, as_json: bool):
    """Move a content file into DESTINATION directory, keeping its file name.

    \b
    Examples:
      dw move guides/setup archive
      dw move drafts/new-page ""          # to the content root
    """
    store = _get_store(ctx)
    result = _run(ctx, store.move(source, destination))

    if as_json:
        output(result, as_json=True)
    else:
        click.echo(f"Moved: {result.source_path} -> {result.destination_path}")


@cli.command()
@click.argument("path")
@click.argument("new_name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def rename(ctx: click.Context, path: str, new_name: str, as_json: bool):
    """Change the title of a content file (the path is unchanged).

    \b
    Examples:
      dw rename guides/setup "Installation Guide"
    """
    store = _get_store(ctx)
    renamed = _run(ctx, store.rename(path, new_name))

    if as_json:
        output(renamed, as_json=True)
    else:
        click.echo(f"Renamed: {renamed.path} -> {renamed.frontmatter.title}")


# ─────────────────────────────────────────────────────────────────────────────
# Server
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="Bind address (default: $HOST or 127.0.0.1)")
@click.option("--port", default=None, type=int, help="Port (default: $PORT or 8080)")
def serve(host: str | None, port: int | None):
    """Run the HTTP API with uvicorn."""
    from .webapp.api import main as serve_api

    serve_api(host=host, port=port)


if __name__ == "__main__":
    cli()
