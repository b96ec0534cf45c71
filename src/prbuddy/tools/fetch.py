"""Concurrent retrieval of the three comment sources plus thread correlation."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from prbuddy import github_api
from prbuddy.tools.threads import Correlated, CorrelationUnavailable, correlate_threads

if TYPE_CHECKING:
    from prbuddy.models import PullRequestRef

logger = logging.getLogger(__name__)

SOURCE_PAGE_SIZE = 100


class FetchedSources(BaseModel):
    """Raw records for one PR, plus the thread correlation for its inline comments."""

    inline_comments: list[dict[str, Any]] = Field(default_factory=list)
    general_comments: list[dict[str, Any]] = Field(default_factory=list)
    reviews: list[dict[str, Any]] = Field(default_factory=list)
    correlation: Correlated | CorrelationUnavailable = Field(default_factory=Correlated)


async def fetch_inline_comments(pr: PullRequestRef) -> list[dict[str, Any]]:
    return await github_api.rest(
        f"/repos/{pr.full_repo}/pulls/{pr.number}/comments",
        paginate=True,
        per_page=SOURCE_PAGE_SIZE,
    )


async def fetch_general_comments(pr: PullRequestRef) -> list[dict[str, Any]]:
    return await github_api.rest(
        f"/repos/{pr.full_repo}/issues/{pr.number}/comments",
        paginate=True,
        per_page=SOURCE_PAGE_SIZE,
    )


async def fetch_reviews(pr: PullRequestRef) -> list[dict[str, Any]]:
    return await github_api.rest(
        f"/repos/{pr.full_repo}/pulls/{pr.number}/reviews",
        paginate=True,
        per_page=SOURCE_PAGE_SIZE,
    )


async def _no_reviews() -> list[dict[str, Any]]:
    return []


async def fetch_sources(pr: PullRequestRef, *, include_reviews: bool = True) -> FetchedSources:
    """Fetch all sources for *pr*.

    The three REST listings run concurrently; correlation waits for the inline
    comment ids. Source failures propagate, correlation failures do not.
    """
    inline, general, reviews = await asyncio.gather(
        fetch_inline_comments(pr),
        fetch_general_comments(pr),
        fetch_reviews(pr) if include_reviews else _no_reviews(),
    )
    logger.debug(
        "Fetched %d inline, %d general comment(s) and %d review(s) for %s",
        len(inline),
        len(general),
        len(reviews),
        pr,
    )

    correlation = await correlate_threads(pr, (int(c["id"]) for c in inline if "id" in c))
    return FetchedSources(
        inline_comments=inline,
        general_comments=general,
        reviews=reviews,
        correlation=correlation,
    )
