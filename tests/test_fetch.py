"""Tests for the multi-source fetcher."""

from __future__ import annotations

import pytest
import respx
from httpx import Response

from prbuddy.github_api import GitHubError
from prbuddy.models import PullRequestRef
from prbuddy.tools.fetch import fetch_sources
from prbuddy.tools.threads import Correlated, CorrelationUnavailable

PR = PullRequestRef(owner="octo", repo="widgets", number=7)

API = "https://api.github.com/repos/octo/widgets"
GRAPHQL = "https://api.github.com/graphql"

INLINE = [{"id": 11, "body": "a"}, {"id": 12, "body": "b", "in_reply_to_id": 11}]
GENERAL = [{"id": 21, "body": "c"}]
REVIEWS = [{"id": 31, "body": "", "state": "APPROVED"}]

THREADS = {
    "data": {
        "repository": {
            "pullRequest": {
                "reviewThreads": {
                    "pageInfo": {"hasNextPage": False, "endCursor": None},
                    "nodes": [
                        {"id": "PRRT_1", "isResolved": True, "comments": {"nodes": [{"databaseId": 11}, {"databaseId": 12}]}},
                    ],
                },
            },
        },
    },
}


def _mock_sources(*, inline: Response | None = None, router=respx) -> dict[str, respx.Route]:
    return {
        "inline": router.get(f"{API}/pulls/7/comments").mock(return_value=inline or Response(200, json=INLINE)),
        "general": router.get(f"{API}/issues/7/comments").mock(return_value=Response(200, json=GENERAL)),
        "reviews": router.get(f"{API}/pulls/7/reviews").mock(return_value=Response(200, json=REVIEWS)),
    }


class TestFetchSources:
    async def test_fetches_everything_and_correlates(self, github_token):
        with respx.mock:
            routes = _mock_sources()
            graphql = respx.post(GRAPHQL).mock(return_value=Response(200, json=THREADS))

            sources = await fetch_sources(PR)

        assert sources.inline_comments == INLINE
        assert sources.general_comments == GENERAL
        assert sources.reviews == REVIEWS
        assert isinstance(sources.correlation, Correlated)
        assert sources.correlation.is_resolved(12) is True
        assert graphql.call_count == 1
        for route in routes.values():
            assert route.calls.last.request.url.params["per_page"] == "100"

    async def test_reviews_can_be_skipped(self, github_token):
        with respx.mock(assert_all_called=False) as respx_mock:
            routes = _mock_sources(router=respx_mock)
            respx_mock.post(GRAPHQL).mock(return_value=Response(200, json=THREADS))

            sources = await fetch_sources(PR, include_reviews=False)

        assert sources.reviews == []
        assert routes["reviews"].call_count == 0

    async def test_source_failure_propagates(self, github_token):
        with respx.mock(assert_all_called=False) as respx_mock:
            _mock_sources(inline=Response(404, json={"message": "Not Found"}), router=respx_mock)
            respx_mock.post(GRAPHQL).mock(return_value=Response(200, json=THREADS))

            with pytest.raises(GitHubError, match="404"):
                await fetch_sources(PR)

    async def test_correlation_failure_degrades(self, github_token):
        with respx.mock:
            _mock_sources()
            respx.post(GRAPHQL).mock(return_value=Response(502, json={"message": "Bad Gateway"}))

            sources = await fetch_sources(PR)

        assert isinstance(sources.correlation, CorrelationUnavailable)
        assert sources.inline_comments == INLINE

    async def test_no_inline_comments_skips_graphql(self, github_token):
        with respx.mock(assert_all_called=False) as respx_mock:
            _mock_sources(inline=Response(200, json=[]), router=respx_mock)
            graphql = respx_mock.post(GRAPHQL).mock(return_value=Response(200, json=THREADS))

            sources = await fetch_sources(PR)

        assert graphql.call_count == 0
        assert sources.correlation.available is True
