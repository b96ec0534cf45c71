"""Tests for thread correlation and resolve_review_thread."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from prbuddy.errors import InvalidParamsError
from prbuddy.github_api import GitHubError
from prbuddy.models import PullRequestRef
from prbuddy.tools.threads import (
    THREAD_PAGE_SIZE,
    Correlated,
    CorrelationUnavailable,
    correlate_threads,
    resolve_review_thread,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

PR = PullRequestRef(owner="octo", repo="widgets", number=7)

# ---------------------------------------------------------------------------
# Fixture data
# ---------------------------------------------------------------------------


def _threads_page(nodes: list, *, has_next: bool = False, end_cursor: str | None = None) -> dict:
    return {
        "data": {
            "repository": {
                "pullRequest": {
                    "reviewThreads": {
                        "pageInfo": {"hasNextPage": has_next, "endCursor": end_cursor},
                        "nodes": nodes,
                    },
                },
            },
        },
    }


def _thread(thread_id: str, comment_ids: list[int], *, resolved: bool = False) -> dict:
    return {
        "id": thread_id,
        "isResolved": resolved,
        "comments": {"nodes": [{"databaseId": cid} for cid in comment_ids]},
    }


PAGE_ONE = _threads_page(
    [_thread("PRRT_a", [1, 2], resolved=True), _thread("PRRT_b", [3]), None],
    has_next=True,
    end_cursor="c1",
)
PAGE_TWO = _threads_page([_thread("PRRT_c", [4], resolved=True)])


class TestCorrelateThreads:
    async def test_maps_comments_to_threads(self, mocker: MockerFixture):
        graphql = mocker.patch("prbuddy.github_api.graphql", new_callable=AsyncMock, side_effect=[PAGE_ONE, PAGE_TWO])

        result = await correlate_threads(PR, [1, 2, 3, 4])

        assert isinstance(result, Correlated)
        assert result.available is True
        assert result.thread_by_comment == {1: "PRRT_a", 2: "PRRT_a", 3: "PRRT_b", 4: "PRRT_c"}
        assert result.resolved_threads == frozenset({"PRRT_a", "PRRT_c"})
        assert graphql.await_count == 2
        assert graphql.await_args_list[1].args[1]["cursor"] == "c1"
        assert graphql.await_args_list[0].args[1]["first"] == THREAD_PAGE_SIZE

    async def test_stops_once_every_comment_is_found(self, mocker: MockerFixture):
        graphql = mocker.patch("prbuddy.github_api.graphql", new_callable=AsyncMock, side_effect=[PAGE_ONE, PAGE_TWO])

        result = await correlate_threads(PR, [1, 3])

        assert graphql.await_count == 1
        assert result.is_resolved(1) is True
        assert result.is_resolved(3) is False
        assert result.thread_for(3) == "PRRT_b"

    async def test_stops_when_no_more_pages(self, mocker: MockerFixture):
        graphql = mocker.patch("prbuddy.github_api.graphql", new_callable=AsyncMock, side_effect=[PAGE_ONE, PAGE_TWO])

        result = await correlate_threads(PR, [1, 99])

        assert graphql.await_count == 2
        assert result.thread_for(99) is None
        assert result.is_resolved(99) is False

    async def test_page_limit_reports_unavailable(self, mocker: MockerFixture):
        mocker.patch("prbuddy.tools.threads._MAX_THREAD_PAGES", 2)
        endless = _threads_page([_thread("PRRT_x", [50])], has_next=True, end_cursor="more")
        graphql = mocker.patch("prbuddy.github_api.graphql", new_callable=AsyncMock, return_value=endless)

        result = await correlate_threads(PR, [1])

        assert graphql.await_count == 2
        assert isinstance(result, CorrelationUnavailable)
        assert "exceed 2 pages" in result.reason

    async def test_no_ids_skips_query(self, mocker: MockerFixture):
        graphql = mocker.patch("prbuddy.github_api.graphql", new_callable=AsyncMock)

        result = await correlate_threads(PR, [])

        graphql.assert_not_awaited()
        assert isinstance(result, Correlated)

    async def test_query_failure_degrades(self, mocker: MockerFixture, caplog: pytest.LogCaptureFixture):
        mocker.patch("prbuddy.github_api.graphql", new_callable=AsyncMock, side_effect=GitHubError("GraphQL error: boom"))

        result = await correlate_threads(PR, [1])

        assert isinstance(result, CorrelationUnavailable)
        assert result.available is False
        assert "boom" in result.reason
        assert result.thread_for(1) is None
        assert result.is_resolved(1) is False
        assert "continuing without resolution data" in caplog.text

    async def test_missing_pull_request_degrades(self, mocker: MockerFixture):
        mocker.patch(
            "prbuddy.github_api.graphql",
            new_callable=AsyncMock,
            return_value={"data": {"repository": {"pullRequest": None}}},
        )

        result = await correlate_threads(PR, [1])

        assert isinstance(result, CorrelationUnavailable)
        assert "not found" in result.reason


class TestResolveReviewThread:
    async def test_resolves_by_thread_id(self, mocker: MockerFixture):
        graphql = mocker.patch(
            "prbuddy.github_api.graphql",
            new_callable=AsyncMock,
            side_effect=[
                {"data": {"node": {"id": "PRRT_a", "isResolved": False}}},
                {"data": {"resolveReviewThread": {"thread": {"id": "PRRT_a", "isResolved": True}}}},
            ],
        )

        result = await resolve_review_thread("octo/widgets#7", thread_id="PRRT_a")

        assert result.ok is True
        assert result.already_resolved is False
        assert result.thread_id == "PRRT_a"
        assert result.message == "Resolved thread PRRT_a on octo/widgets#7"
        assert graphql.await_args_list[1].args[1] == {"threadId": "PRRT_a"}

    async def test_already_resolved_skips_mutation(self, mocker: MockerFixture):
        graphql = mocker.patch(
            "prbuddy.github_api.graphql",
            new_callable=AsyncMock,
            return_value={"data": {"node": {"id": "PRRT_a", "isResolved": True}}},
        )

        result = await resolve_review_thread("octo/widgets#7", thread_id="PRRT_a")

        assert result.ok is True
        assert result.already_resolved is True
        assert graphql.await_count == 1

    async def test_resolves_via_comment(self, mocker: MockerFixture):
        mocker.patch(
            "prbuddy.github_api.graphql",
            new_callable=AsyncMock,
            side_effect=[
                {"data": {"node": {"id": "PRRC_1", "pullRequestReviewThread": {"id": "PRRT_z", "isResolved": False}}}},
                {"data": {"resolveReviewThread": {"thread": {"id": "PRRT_z", "isResolved": True}}}},
            ],
        )

        result = await resolve_review_thread("octo/widgets#7", comment_id="PRRC_1")

        assert result.thread_id == "PRRT_z"

    async def test_reports_progress_to_context(self, mocker: MockerFixture):
        mocker.patch(
            "prbuddy.github_api.graphql",
            new_callable=AsyncMock,
            side_effect=[{"data": {"node": {"id": "PRRT_a", "isResolved": False}}}, {"data": {}}],
        )
        ctx = AsyncMock()

        await resolve_review_thread("octo/widgets#7", thread_id="PRRT_a", ctx=ctx)

        ctx.info.assert_awaited_once()

    async def test_requires_an_id(self):
        with pytest.raises(InvalidParamsError, match="thread_id or comment_id"):
            await resolve_review_thread("octo/widgets#7")

    async def test_unknown_thread(self, mocker: MockerFixture):
        mocker.patch("prbuddy.github_api.graphql", new_callable=AsyncMock, return_value={"data": {"node": None}})
        with pytest.raises(InvalidParamsError, match="not found"):
            await resolve_review_thread("octo/widgets#7", thread_id="PRRT_missing")

    async def test_comment_without_thread(self, mocker: MockerFixture):
        mocker.patch(
            "prbuddy.github_api.graphql",
            new_callable=AsyncMock,
            return_value={"data": {"node": {"id": "IC_1"}}},
        )
        with pytest.raises(InvalidParamsError, match="Unable to find a review thread"):
            await resolve_review_thread("octo/widgets#7", comment_id="IC_1")

    async def test_invalid_pr(self):
        with pytest.raises(InvalidParamsError):
            await resolve_review_thread("not-a-pr", thread_id="PRRT_a")
