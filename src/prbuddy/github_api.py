"""Async GitHub API client (REST + GraphQL) built on httpx.

Authentication priority (resolved once, then cached for the process):
1. ``GH_TOKEN`` env var
2. ``GITHUB_TOKEN`` env var
3. ``gh auth token`` subprocess, which reads the local gh config without network
4. Raises :exc:`GitHubAuthError` with a token creation URL

GET requests and GraphQL queries go through the short-lived response cache in
:mod:`prbuddy.cache`; writes and mutations invalidate it.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import subprocess  # noqa: S404
import time
from typing import Any

import httpx

from prbuddy import cache

logger = logging.getLogger(__name__)

_GITHUB_API_URL = "https://api.github.com"
_GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
TOKEN_CREATE_URL = "https://github.com/settings/tokens/new?scopes=repo&description=prbuddy"  # noqa: S105
_TIMEOUT = httpx.Timeout(30.0, connect=10.0)

_token: str | None = None
_token_resolved: bool = False


# ---------------------------------------------------------------------------
# Error types
# ---------------------------------------------------------------------------


class GitHubError(Exception):
    """Raised when a GitHub API call fails."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubAuthError(GitHubError):
    """Raised when no token is available, the token is rejected, or access is forbidden."""

    def __init__(self, detail: str = "", status_code: int = 401) -> None:
        msg = (
            "GitHub token missing or rejected. "
            "Set GH_TOKEN or GITHUB_TOKEN env var, or run 'gh auth login'.\n"
            f"Create a token (permissions pre-filled): {TOKEN_CREATE_URL}"
        )
        if detail:
            msg = f"{detail}\n{msg}"
        super().__init__(msg, status_code=status_code)


class GitHubRateLimitError(GitHubError):
    """Raised when GitHub refuses a request because a rate limit was hit."""

    def __init__(self, message: str, status_code: int = 403, retry_after: int | None = None) -> None:
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


# ---------------------------------------------------------------------------
# Token resolution
# ---------------------------------------------------------------------------


def _resolve_token_sync() -> str | None:
    """Resolve a GitHub token synchronously. Safe to run in a thread."""
    token = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if token:
        logger.debug("GitHub token resolved from env var")
        return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],  # noqa: S607
            capture_output=True,
            text=True,
            check=False,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.debug("GitHub token resolved from gh auth token")
            return result.stdout.strip()
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        logger.debug("gh CLI not available for token lookup")

    return None


async def get_token() -> str:
    """Return the GitHub token, resolving it lazily on first call.

    Raises:
        GitHubAuthError: If no token can be found.
    """
    global _token, _token_resolved  # noqa: PLW0603
    if not _token_resolved:
        _token = await asyncio.to_thread(_resolve_token_sync)
        _token_resolved = True
    if _token is None:
        raise GitHubAuthError
    return _token


def reset_token() -> None:
    """Forget the cached token (for tests and credential rotation)."""
    global _token, _token_resolved  # noqa: PLW0603
    _token = None
    _token_resolved = False


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


async def _get_headers() -> dict[str, str]:
    token = await get_token()
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }


_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_TOO_MANY_REQUESTS = 429


def _retry_after_seconds(response: httpx.Response) -> int | None:
    """Seconds until the rate limit lifts, from ``Retry-After`` or ``x-ratelimit-reset``."""
    retry_after = response.headers.get("retry-after")
    if retry_after and retry_after.isdigit():
        return int(retry_after)
    reset = response.headers.get("x-ratelimit-reset")
    if reset and reset.isdigit():
        return max(0, int(reset) - int(time.time()))
    return None


def _is_rate_limited(response: httpx.Response, message: str) -> bool:
    if response.status_code == _HTTP_TOO_MANY_REQUESTS:
        return True
    return "rate limit" in message.lower() or response.headers.get("x-ratelimit-remaining") == "0"


def _raise_for_status(response: httpx.Response) -> None:
    """Raise the matching :exc:`GitHubError` subclass for non-2xx responses."""
    if response.is_success:
        return

    if response.status_code == _HTTP_UNAUTHORIZED:
        raise GitHubAuthError

    try:
        body = response.json()
        msg = body.get("message", response.text)
    except ValueError:
        msg = response.text

    if response.status_code in {_HTTP_FORBIDDEN, _HTTP_TOO_MANY_REQUESTS} and _is_rate_limited(response, msg):
        msg = f"GitHub API rate limit exceeded: {msg}"
        raise GitHubRateLimitError(msg, status_code=response.status_code, retry_after=_retry_after_seconds(response))

    if response.status_code == _HTTP_FORBIDDEN:
        msg = f"GitHub API access forbidden: {msg}"
        raise GitHubAuthError(msg, status_code=_HTTP_FORBIDDEN)

    msg = f"GitHub API error {response.status_code}: {msg}"
    raise GitHubError(msg, status_code=response.status_code)


def _parse_next_link(link_header: str) -> str | None:
    """Return the ``rel="next"`` URL from a ``Link:`` header, if any."""
    if not link_header:
        return None
    match = re.search(r'<([^>]+)>;\s*rel="next"', link_header)
    return match.group(1) if match else None


# ---------------------------------------------------------------------------
# GraphQL
# ---------------------------------------------------------------------------


async def graphql(query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
    """Execute a GitHub GraphQL query or mutation.

    Queries are cached with a short TTL. Mutations bypass and invalidate the cache.

    Returns:
        Parsed JSON response envelope (including ``data``).

    Raises:
        GitHubError: On GraphQL errors or HTTP failure.
        GitHubAuthError: On authentication failure.
        GitHubRateLimitError: When GitHub throttles the request.
    """
    is_mutation = query.strip().lower().startswith("mutation")

    key = cache.make_key("graphql", query, variables)
    if not is_mutation:
        cached = cache.get(key)
        if cached is not cache.MISS:
            return cached

    headers = await _get_headers()
    payload: dict[str, Any] = {"query": query}
    if variables:
        payload["variables"] = variables

    logger.debug("GraphQL %s", "mutation" if is_mutation else "query")
    async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
        response = await client.post(_GITHUB_GRAPHQL_URL, headers=headers, json=payload)

    _raise_for_status(response)
    result: dict[str, Any] = response.json()

    errors = result.get("errors")
    if errors:
        messages = "; ".join(e.get("message", str(e)) for e in errors)
        msg = f"GraphQL error: {messages}"
        raise GitHubError(msg)

    if is_mutation:
        cache.clear()
    else:
        cache.put(key, result)

    return result


# ---------------------------------------------------------------------------
# REST
# ---------------------------------------------------------------------------


async def rest(
    endpoint: str,
    method: str = "GET",
    *,
    paginate: bool = False,
    **kwargs: Any,
) -> Any:
    """Execute a GitHub REST API call.

    Args:
        endpoint: API path such as ``/repos/owner/repo/pulls/1/comments``.
        method: HTTP method (default ``GET``).
        paginate: Follow ``Link:`` headers until GitHub reports no next page
            and return a flat list of every page's items.
        **kwargs: Query parameters (GET) or JSON body fields (other methods).

    Raises:
        GitHubError: On HTTP failure.
        GitHubAuthError: On authentication failure.
        GitHubRateLimitError: When GitHub throttles the request.
    """
    is_read = method.upper() == "GET"

    key = cache.make_key("rest", endpoint, method, paginate, kwargs)
    if is_read:
        cached = cache.get(key)
        if cached is not cache.MISS:
            return cached

    url = f"{_GITHUB_API_URL}{endpoint}"
    headers = await _get_headers()

    if paginate:
        result = await _paginate_rest(url, headers, **kwargs)
    else:
        result = await _single_rest(url, method, headers, **kwargs)

    if is_read:
        cache.put(key, result)
    else:
        cache.clear()

    return result


async def _single_rest(url: str, method: str, headers: dict[str, str], **kwargs: Any) -> Any:
    upper = method.upper()
    params = dict(kwargs) if upper == "GET" and kwargs else None
    json_body = dict(kwargs) if upper != "GET" and kwargs else None

    async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
        response = await client.request(method, url, headers=headers, params=params, json=json_body)

    _raise_for_status(response)
    if not response.content:
        return None
    return response.json()


async def _paginate_rest(url: str, headers: dict[str, str], **kwargs: Any) -> list[Any]:
    """Collect every page into a flat list, trusting GitHub's ``next`` link."""
    results: list[Any] = []
    next_url: str | None = url
    pages = 0

    async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
        while next_url:
            # The next link already embeds the original query string
            params = dict(kwargs) if pages == 0 and kwargs else None
            response = await client.get(next_url, headers=headers, params=params)
            _raise_for_status(response)
            page = response.json()
            if isinstance(page, list):
                results.extend(page)
            elif page is not None:
                results.append(page)
            next_url = _parse_next_link(response.headers.get("link", ""))
            pages += 1

    logger.debug("Fetched %d item(s) across %d page(s) from %s", len(results), pages, url)
    return results
