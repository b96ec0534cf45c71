"""``find_unresolved_comments``: the end-to-end listing pipeline.

fetch -> parse review bodies -> normalize -> score -> filter -> sort ->
paginate, with the summary computed over the filtered set before slicing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prbuddy.config import get_config
from prbuddy.models import PullRequestRef, SortMode, UnresolvedCommentsResult
from prbuddy.pagination import paginate, resolve_window
from prbuddy.tools.ai_review import SyntheticIdAllocator, comments_from_general_comments, comments_from_reviews
from prbuddy.tools.fetch import fetch_sources
from prbuddy.tools.filtering import apply_ai_review_filtering, apply_basic_filtering, filter_unresolved, sort_comments
from prbuddy.tools.normalize import normalize_general_comments, normalize_inline_comments
from prbuddy.tools.status import score_comments
from prbuddy.tools.summary import generate_summary

if TYPE_CHECKING:
    from fastmcp.server.context import Context

    from prbuddy.models import AIReviewOptions, Comment

logger = logging.getLogger(__name__)


async def find_unresolved_comments(  # noqa: PLR0913, PLR0917
    pr: str,
    *,
    include_bots: bool = True,
    exclude_authors: list[str] | None = None,
    sort: SortMode | None = None,
    cursor: str | None = None,
    page_size: int | None = None,
    parse_review_bodies: bool | None = None,
    include_status_indicators: bool | None = None,
    priority_ordering: bool | None = None,
    ai_review_options: AIReviewOptions | None = None,
    ctx: Context | None = None,
) -> UnresolvedCommentsResult:
    """List unresolved, thread-starting comments for *pr*, one page at a time.

    Options left as ``None`` take their defaults from the ``[comments]`` and
    ``[ai_review]`` config sections.

    Raises:
        InvalidParamsError: For a malformed PR identifier, cursor or page size.
            Raised before any network call.
        GitHubError: If any comment source cannot be fetched.
    """
    config = get_config()
    pr_ref = PullRequestRef.parse(pr)
    offset, size = resolve_window(cursor, config.comments.page_size, page_size)

    parse_bodies = config.comments.parse_review_bodies if parse_review_bodies is None else parse_review_bodies
    scoring = config.comments.include_status_indicators if include_status_indicators is None else include_status_indicators
    ordering = config.comments.priority_ordering if priority_ordering is None else priority_ordering
    options = ai_review_options or config.ai_review
    sort_mode = sort or config.comments.default_sort

    if ctx:
        await ctx.info(f"Fetching review comments for {pr_ref}")
    sources = await fetch_sources(pr_ref, include_reviews=parse_bodies)
    correlation = sources.correlation

    ids = SyntheticIdAllocator()
    all_comments: list[Comment] = []
    if parse_bodies:
        all_comments += comments_from_reviews(sources.reviews, pr_ref, ids, extract_agent_prompts=options.extract_agent_prompts)
        all_comments += comments_from_general_comments(
            sources.general_comments,
            pr_ref,
            ids,
            extract_agent_prompts=options.extract_agent_prompts,
        )
    all_comments += normalize_inline_comments(sources.inline_comments, pr_ref, correlation)
    all_comments += normalize_general_comments(sources.general_comments, pr_ref)

    if scoring:
        score_comments(all_comments)

    filtered = filter_unresolved(all_comments, correlation)
    filtered = apply_basic_filtering(filtered, include_bots=include_bots, exclude_authors=exclude_authors)
    filtered = apply_ai_review_filtering(filtered, options)
    filtered = sort_comments(filtered, sort_mode, priority_enabled=scoring and ordering)

    page = paginate(filtered, offset, size)
    logger.info(
        "%s: %d comment(s) collected, %d unresolved, returning %d from offset %d",
        pr_ref,
        len(all_comments),
        len(filtered),
        len(page.items),
        offset,
    )
    if not correlation.available and ctx:
        await ctx.warning("Thread resolution data unavailable; resolved threads may be included")

    return UnresolvedCommentsResult(
        pr=str(pr_ref),
        unresolved_in_page=len(page.items),
        comments=page.items,
        next_cursor=page.next_cursor,
        summary=generate_summary(filtered, scoring_enabled=scoring, priority_ordering=ordering),
        resolution_data_available=correlation.available,
    )
