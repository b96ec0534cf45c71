"""Review thread correlation and resolution via GraphQL.

Inline comments only know their REST ids; which thread they belong to and
whether that thread is resolved lives in the GraphQL review-thread graph.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

from prbuddy import github_api
from prbuddy.errors import InvalidParamsError
from prbuddy.models import (
    PullRequestRef,
    ResolveThreadResult,
    ReviewCommentThreadNode,
    ReviewThreadConnection,
    ThreadStatusNode,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from fastmcp.server.context import Context

logger = logging.getLogger(__name__)

THREAD_PAGE_SIZE = 100
_MAX_THREAD_PAGES = 50

_THREADS_QUERY = """
query($owner: String!, $repo: String!, $pr: Int!, $first: Int!, $cursor: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $pr) {
      reviewThreads(first: $first, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          isResolved
          comments(first: 100) { nodes { databaseId } }
        }
      }
    }
  }
}
"""

_THREAD_STATUS_QUERY = """
query($id: ID!) {
  node(id: $id) {
    ... on PullRequestReviewThread { id isResolved }
  }
}
"""

_COMMENT_THREAD_QUERY = """
query($id: ID!) {
  node(id: $id) {
    ... on PullRequestReviewComment {
      id
      pullRequestReviewThread { id isResolved }
    }
  }
}
"""

_RESOLVE_THREAD_MUTATION = """
mutation($threadId: ID!) {
  resolveReviewThread(input: {threadId: $threadId}) {
    thread { id isResolved }
  }
}
"""


# ---------------------------------------------------------------------------
# Correlation result
# ---------------------------------------------------------------------------


class Correlated(BaseModel):
    """Thread data was fetched; lookups are authoritative."""

    kind: Literal["correlated"] = "correlated"
    thread_by_comment: dict[int, str] = Field(default_factory=dict)
    resolved_threads: frozenset[str] = frozenset()

    @property
    def available(self) -> bool:
        return True

    def thread_for(self, comment_id: int) -> str | None:
        return self.thread_by_comment.get(comment_id)

    def is_resolved(self, comment_id: int) -> bool:
        """True if the comment's thread is marked resolved."""
        thread_id = self.thread_by_comment.get(comment_id)
        return thread_id is not None and thread_id in self.resolved_threads


class CorrelationUnavailable(BaseModel):
    """Thread data could not be fetched; nothing can be filtered by resolution."""

    kind: Literal["unavailable"] = "unavailable"
    reason: str

    @property
    def available(self) -> bool:
        return False

    def thread_for(self, comment_id: int) -> str | None:  # noqa: ARG002, PLR6301
        return None

    def is_resolved(self, comment_id: int) -> bool:  # noqa: ARG002, PLR6301
        return False


ThreadCorrelation = Correlated | CorrelationUnavailable


def _extract_threads(result: dict, pr: PullRequestRef) -> ReviewThreadConnection:
    pull_request = ((result.get("data") or {}).get("repository") or {}).get("pullRequest")
    if pull_request is None:
        msg = f"Pull request {pr} not found in GraphQL response"
        raise github_api.GitHubError(msg, status_code=404)
    return ReviewThreadConnection.model_validate(pull_request.get("reviewThreads") or {})


async def _collect_threads(pr: PullRequestRef, comment_ids: set[int]) -> Correlated:
    needed = set(comment_ids)
    thread_by_comment: dict[int, str] = {}
    resolved: set[str] = set()
    cursor: str | None = None

    for page in range(1, _MAX_THREAD_PAGES + 1):
        result = await github_api.graphql(
            _THREADS_QUERY,
            {"owner": pr.owner, "repo": pr.repo, "pr": pr.number, "first": THREAD_PAGE_SIZE, "cursor": cursor},
        )
        connection = _extract_threads(result, pr)

        for thread in connection.nodes:
            if thread is None:
                continue
            if thread.is_resolved:
                resolved.add(thread.id)
            for node in thread.comments.nodes:
                if node is not None and node.database_id in needed:
                    thread_by_comment[node.database_id] = thread.id
                    needed.discard(node.database_id)

        if not needed:
            logger.debug("All %d comment(s) correlated after %d page(s)", len(comment_ids), page)
            break
        if not connection.page_info.has_next_page or not connection.page_info.end_cursor:
            break
        cursor = connection.page_info.end_cursor
    else:
        msg = f"Review threads for {pr} exceed {_MAX_THREAD_PAGES} pages"
        raise github_api.GitHubError(msg)

    if needed:
        logger.debug("%d comment(s) on %s matched no review thread", len(needed), pr)
    return Correlated(thread_by_comment=thread_by_comment, resolved_threads=frozenset(resolved))


async def correlate_threads(pr: PullRequestRef, comment_ids: Iterable[int]) -> ThreadCorrelation:
    """Map inline comment ids to review threads and collect resolved thread ids.

    Never raises: any failure yields :class:`CorrelationUnavailable` so the
    rest of the pipeline can carry on without resolution data.
    """
    ids = set(comment_ids)
    if not ids:
        return Correlated()
    try:
        return await _collect_threads(pr, ids)
    except Exception as exc:
        logger.warning("Thread correlation failed for %s, continuing without resolution data: %s", pr, exc)
        return CorrelationUnavailable(reason=str(exc) or type(exc).__name__)


# ---------------------------------------------------------------------------
# resolve_review_thread
# ---------------------------------------------------------------------------


async def _thread_from_comment(comment_id: str) -> ThreadStatusNode:
    result = await github_api.graphql(_COMMENT_THREAD_QUERY, {"id": comment_id})
    node = (result.get("data") or {}).get("node")
    thread = ReviewCommentThreadNode.model_validate(node).pull_request_review_thread if node else None
    if thread is None:
        msg = f"Unable to find a review thread for comment {comment_id!r}"
        raise InvalidParamsError(msg)
    return thread


async def _thread_status(thread_id: str) -> ThreadStatusNode:
    result = await github_api.graphql(_THREAD_STATUS_QUERY, {"id": thread_id})
    node = (result.get("data") or {}).get("node")
    if not node:
        msg = f"Review thread {thread_id!r} not found"
        raise InvalidParamsError(msg)
    return ThreadStatusNode.model_validate(node)


async def resolve_review_thread(
    pr: str,
    thread_id: str | None = None,
    comment_id: str | None = None,
    ctx: Context | None = None,
) -> ResolveThreadResult:
    """Resolve one review thread, identified directly or through one of its comments.

    Already-resolved threads are reported as such without a mutation.

    Raises:
        InvalidParamsError: If neither id is given or the ids do not resolve.
        GitHubError: On API failures.
    """
    pr_ref = PullRequestRef.parse(pr)
    if not thread_id and not comment_id:
        msg = "Either thread_id or comment_id must be provided"
        raise InvalidParamsError(msg)

    thread = await _thread_status(thread_id) if thread_id else await _thread_from_comment(comment_id or "")
    if thread.is_resolved:
        return ResolveThreadResult(
            ok=True,
            thread_id=thread.id,
            already_resolved=True,
            message=f"Thread {thread.id} on {pr_ref} was already resolved",
        )

    if ctx:
        await ctx.info(f"Resolving thread {thread.id} on {pr_ref}")
    await github_api.graphql(_RESOLVE_THREAD_MUTATION, {"threadId": thread.id})
    logger.info("Resolved thread %s on %s", thread.id, pr_ref)
    return ResolveThreadResult(ok=True, thread_id=thread.id, message=f"Resolved thread {thread.id} on {pr_ref}")
