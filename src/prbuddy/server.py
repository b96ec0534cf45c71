"""FastMCP server for prbuddy.

Exposes tools that list unresolved pull request review feedback (inline
comments, conversation comments and parsed AI review items), ranked and
paginated for coding agents, plus a tool to resolve review threads.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Annotated

from fastmcp import FastMCP
from fastmcp.server.dependencies import get_context
from fastmcp.server.middleware.error_handling import ErrorHandlingMiddleware
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.server.middleware.ping import PingMiddleware
from fastmcp.server.middleware.timing import TimingMiddleware
from pydantic import Field

from prbuddy import cache, github_api, reviewers
from prbuddy.config import (
    Config,
    clear_reload_callbacks,
    get_config,
    get_config_path,
    load_config,
    register_reload_callback,
    set_config,
)
from prbuddy.errors import ErrorCategory, ErrorInfo, classify_error
from prbuddy.models import AIReviewOptions, ConfigInfo, ResolveThreadResult, SortMode, UnresolvedCommentsResult
from prbuddy.tools import comments, threads

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_CANCELLED = ErrorInfo(category=ErrorCategory.UNKNOWN, message="Cancelled", suggestion="Call the tool again if still needed.")


def apply_config(config: Config) -> None:
    """Push config into the parts of the process that cache it."""
    reviewers.apply_config(config)
    cache.configure(config.cache.ttl_seconds)


async def check_prerequisites() -> None:
    """Warn early when no GitHub token can be found; tools will report it per call."""
    try:
        await github_api.get_token()
    except github_api.GitHubAuthError:
        logger.warning("No GitHub token found. Set GH_TOKEN or GITHUB_TOKEN, or run 'gh auth login'.")


@asynccontextmanager
async def startup(server: FastMCP) -> AsyncIterator[dict[str, object]]:  # noqa: ARG001
    """Load config, configure adapters and check credentials on server startup."""
    config, path = load_config()
    set_config(config, config_path=path)
    apply_config(config)
    clear_reload_callbacks()
    register_reload_callback(apply_config)
    await check_prerequisites()
    yield {}


mcp = FastMCP(
    "prbuddy",
    lifespan=startup,
    instructions="""\
prbuddy lists what is still open in a pull request review: inline review
comments, PR conversation comments, and individual suggestions parsed out of
CodeRabbit review summaries.

## Workflow

1. `find_unresolved_comments(pr="owner/repo#123")`. Results come sorted by
   priority (highest first). Read `summary` for the overall shape before paging.
2. Page with `cursor=<next_cursor>` until `next_cursor` is null.
3. For each comment follow `status_indicators.suggested_action`:
   - `resolve`: the thread can be resolved with the structured `mcp_action`
     once the fix is verified.
   - `reply`: fix the code, then reply using `action_commands.reply_command`.
   - `investigate`: read the comment and decide.
   - `ignore`: low priority; handle last or skip.
4. Only resolve after checking `action_commands.resolve_condition`. Call
   `resolve_review_thread` with the `mcp_action.args`. prbuddy never resolves
   anything on its own.

## AI review items

Items parsed from CodeRabbit summaries have negative ids and carry
`ai_review_metadata` (type, severity, file/line, code suggestion, and a
ready-made `agent_prompt`). Use `ai_review_options` to drop nits, duplicates
or additional comments. `prioritize_actionable` and `group_by_type` only
break ties left by the chosen `sort`; they never override it.

## Errors

Failed calls return an `error` object with a `category`
(user, authentication, authorization, rate_limit, network, unknown) and a
`suggestion`. Do not retry `user` or `authentication` errors unchanged. For
`rate_limit`, wait `retry_after` seconds.

If `resolution_data_available` is false, thread resolution could not be
checked and comments on already-resolved threads may be listed.
""",
)

mcp.add_middleware(ErrorHandlingMiddleware(include_traceback=True, transform_errors=True))
mcp.add_middleware(TimingMiddleware())
mcp.add_middleware(LoggingMiddleware(include_payloads=True, max_payload_length=500))
mcp.add_middleware(PingMiddleware(interval_ms=30_000))


@mcp.tool(tags={"query"})
async def find_unresolved_comments(  # noqa: PLR0913, PLR0917
    pr: Annotated[str, Field(description="PR as 'owner/repo#123', 'owner/repo/pull/123' or a GitHub PR URL")],
    include_bots: Annotated[bool, Field(description="Include comments from bot accounts")] = True,
    exclude_authors: Annotated[list[str] | None, Field(description="Logins whose comments are dropped")] = None,
    sort: Annotated[SortMode | None, Field(description="chronological, by_file, by_author or priority (default)")] = None,
    cursor: Annotated[str | None, Field(description="next_cursor from a previous page")] = None,
    page_size: Annotated[int | None, Field(description="Comments per page; capped at the server page size")] = None,
    parse_review_bodies: Annotated[bool | None, Field(description="Parse AI review summaries into items")] = None,
    include_status_indicators: Annotated[bool | None, Field(description="Attach priority and resolution status")] = None,
    priority_ordering: Annotated[bool | None, Field(description="Allow priority sort and status groups")] = None,
    ai_review_options: Annotated[AIReviewOptions | None, Field(description="Filters for parsed AI review items")] = None,
) -> UnresolvedCommentsResult:
    """List unresolved review comments on a pull request, highest priority first.

    Only thread-starting comments are returned; replies and comments on
    resolved threads are left out. Each comment carries ready-to-run
    `action_commands` and, unless disabled, `status_indicators` with a
    priority score and a suggested next action.

    Returns:
        One page of comments, `next_cursor` for the following page, and a
        summary over every unresolved comment (not just this page).
    """
    try:
        ctx = get_context()
        return await comments.find_unresolved_comments(
            pr,
            include_bots=include_bots,
            exclude_authors=exclude_authors,
            sort=sort,
            cursor=cursor,
            page_size=page_size,
            parse_review_bodies=parse_review_bodies,
            include_status_indicators=include_status_indicators,
            priority_ordering=priority_ordering,
            ai_review_options=ai_review_options,
            ctx=ctx,
        )
    except Exception as exc:
        logger.exception("find_unresolved_comments failed for %s", pr)
        return UnresolvedCommentsResult(pr=pr, error=classify_error(exc, tool_name="find_unresolved_comments"))
    except asyncio.CancelledError:
        logger.warning("find_unresolved_comments cancelled for %s", pr)
        return UnresolvedCommentsResult(pr=pr, error=_CANCELLED)


@mcp.tool(tags={"command"})
async def resolve_review_thread(
    pr: Annotated[str, Field(description="PR as 'owner/repo#123', 'owner/repo/pull/123' or a GitHub PR URL")],
    thread_id: Annotated[str | None, Field(description="Review thread node id (PRRT_...)")] = None,
    comment_id: Annotated[str | None, Field(description="Review comment node id (PRRC_...); its thread is resolved")] = None,
) -> ResolveThreadResult:
    """Mark a review thread as resolved.

    Use the `mcp_action.args` of a comment from `find_unresolved_comments`.
    Only call this after the comment's `resolve_condition` holds. Threads that
    are already resolved are reported as such and left alone.
    """
    try:
        ctx = get_context()
        return await threads.resolve_review_thread(pr, thread_id=thread_id, comment_id=comment_id, ctx=ctx)
    except Exception as exc:
        logger.exception("resolve_review_thread failed for %s", thread_id or comment_id)
        return ResolveThreadResult(thread_id=thread_id, error=classify_error(exc, tool_name="resolve_review_thread"))
    except asyncio.CancelledError:
        logger.warning("resolve_review_thread cancelled for %s", thread_id or comment_id)
        return ResolveThreadResult(thread_id=thread_id, error=_CANCELLED)


@mcp.tool(tags={"query"})
def show_config() -> ConfigInfo:
    """Show the active prbuddy configuration and where it was loaded from."""
    config = get_config()
    path = get_config_path()

    parts = [
        f"Pages hold up to {config.comments.page_size} comments, sorted by {config.comments.default_sort} by default.",
        f"Review body parsing: {'on' if config.comments.parse_review_bodies else 'off'}.",
        f"Status indicators: {'on' if config.comments.include_status_indicators else 'off'}.",
    ]
    enabled = [r.name for r in reviewers.REVIEWERS if config.get_reviewer(r.name).enabled]
    parts.append(f"Review parsers enabled: {', '.join(enabled) or 'none'}.")
    parts.append(f"Response cache TTL: {config.cache.ttl_seconds:g}s.")

    return ConfigInfo(
        config=config.model_dump(mode="json"),
        source=str(path) if path else "defaults",
        explanation=" ".join(parts),
    )
