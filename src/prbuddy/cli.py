"""CLI for prbuddy, built on cyclopts (the same framework as FastMCP's CLI)."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated

import cyclopts
from rich.console import Console

from prbuddy.models import SortMode

app = cyclopts.App(
    name="prbuddy",
    help="prbuddy: unresolved pull request review feedback for coding agents.",
)

console = Console()
err_console = Console(stderr=True)


@app.default
def serve() -> None:
    """Run the prbuddy MCP server over stdio (default command)."""
    from prbuddy.server import mcp  # noqa: PLC0415

    mcp.run()


@app.command(name="config")
def config_cmd(
    *,
    init: Annotated[bool, cyclopts.Parameter(help="Create .prbuddy.toml in the current directory")] = False,
    update: Annotated[bool, cyclopts.Parameter(help="Add missing sections, comment out deprecated keys")] = False,
    clean: Annotated[bool, cyclopts.Parameter(help="Remove deprecated keys")] = False,
    path: Annotated[Path | None, cyclopts.Parameter(help="Directory holding the config file")] = None,
) -> None:
    """Create or maintain the .prbuddy.toml config file."""
    from prbuddy.config import clean_config, init_config, update_config  # noqa: PLC0415

    chosen = [flag for flag, on in (("--init", init), ("--update", update), ("--clean", clean)) if on]
    if len(chosen) != 1:
        err_console.print("Pass exactly one of --init, --update or --clean")
        sys.exit(2)

    if init:
        init_config(path)
    elif update:
        update_config(path)
    else:
        clean_config(path)


@app.command
def unresolved(  # noqa: PLR0913
    pr: str,
    *,
    sort: SortMode | None = None,
    bots: Annotated[bool, cyclopts.Parameter(negative="--no-bots", help="Include bot comments")] = True,
    exclude_author: Annotated[list[str] | None, cyclopts.Parameter(help="Drop comments by this login (repeatable)")] = None,
    cursor: str | None = None,
    page_size: int | None = None,
    verbose: bool = False,
) -> None:
    """List unresolved review comments for PR and print them as JSON.

    Parameters
    ----------
    pr
        Pull request as owner/repo#123, owner/repo/pull/123 or a GitHub URL.
    """
    from prbuddy import cache, reviewers  # noqa: PLC0415
    from prbuddy.config import load_config, set_config  # noqa: PLC0415
    from prbuddy.errors import classify_error  # noqa: PLC0415
    from prbuddy.models import UnresolvedCommentsResult  # noqa: PLC0415
    from prbuddy.tools.comments import find_unresolved_comments  # noqa: PLC0415

    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, stream=sys.stderr)

    config, config_path = load_config()
    set_config(config, config_path=config_path)
    reviewers.apply_config(config)
    cache.configure(config.cache.ttl_seconds)

    try:
        result = asyncio.run(
            find_unresolved_comments(
                pr,
                include_bots=bots,
                exclude_authors=exclude_author,
                sort=sort,
                cursor=cursor,
                page_size=page_size,
            ),
        )
    except Exception as exc:  # noqa: BLE001
        result = UnresolvedCommentsResult(pr=pr, error=classify_error(exc, tool_name="unresolved"))

    console.print_json(result.model_dump_json(exclude_none=True))
    if result.error is not None:
        sys.exit(1)
