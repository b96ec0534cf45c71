"""Error taxonomy for tool responses.

Upstream failures propagate out of the pipeline unchanged; the tool layer
calls :func:`classify_error` to turn them into an :class:`ErrorInfo` payload
that tells the calling agent whether to fix its input, fix credentials,
wait, or retry.
"""

from __future__ import annotations

import logging
from enum import StrEnum

import httpx
from pydantic import BaseModel, Field

from prbuddy.github_api import GitHubAuthError, GitHubError, GitHubRateLimitError

logger = logging.getLogger(__name__)

INVALID_PARAMS_CODE = -32602

_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_NOT_FOUND = 404
_HTTP_UNPROCESSABLE = 422


class InvalidParamsError(ValueError):
    """Raised for malformed caller input (cursor, PR identifier, thread ids).

    Carries the JSON-RPC "invalid params" code so it stays distinguishable
    from upstream failures all the way to the caller.
    """

    code = INVALID_PARAMS_CODE


class ErrorCategory(StrEnum):
    """Coarse failure classes surfaced to the calling agent."""

    USER = "user"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    UNKNOWN = "unknown"


class ErrorInfo(BaseModel):
    """Classified, user-facing description of a failed tool call."""

    category: ErrorCategory = Field(description="Failure class")
    message: str = Field(description="What went wrong")
    suggestion: str = Field(description="What the caller should do next")
    retry_after: int | None = Field(default=None, description="Seconds to wait before retrying (rate limits only)")
    code: int | None = Field(default=None, description="JSON-RPC error code, set for invalid parameters")


_SUGGESTIONS: dict[ErrorCategory, str] = {
    ErrorCategory.USER: "Check the PR identifier and parameters, then call again.",
    ErrorCategory.AUTHENTICATION: "Set GH_TOKEN or GITHUB_TOKEN, or run 'gh auth login'.",
    ErrorCategory.AUTHORIZATION: "The token lacks access to this repository. Grant the 'repo' scope or use another token.",
    ErrorCategory.RATE_LIMIT: "GitHub rate limit hit. Wait before retrying.",
    ErrorCategory.NETWORK: "Network problem talking to GitHub. Retry once.",
    ErrorCategory.UNKNOWN: "Unexpected failure. Retry once, then report it.",
}


def _categorize(exc: BaseException) -> ErrorCategory:  # noqa: PLR0911
    if isinstance(exc, InvalidParamsError):
        return ErrorCategory.USER
    if isinstance(exc, GitHubAuthError):
        if exc.status_code == _HTTP_FORBIDDEN:
            return ErrorCategory.AUTHORIZATION
        return ErrorCategory.AUTHENTICATION
    if isinstance(exc, GitHubRateLimitError):
        return ErrorCategory.RATE_LIMIT
    if isinstance(exc, GitHubError):
        if exc.status_code in {_HTTP_NOT_FOUND, _HTTP_UNPROCESSABLE}:
            return ErrorCategory.USER
        if exc.status_code == _HTTP_UNAUTHORIZED:
            return ErrorCategory.AUTHENTICATION
        if exc.status_code == _HTTP_FORBIDDEN:
            return ErrorCategory.AUTHORIZATION
        return ErrorCategory.UNKNOWN
    if isinstance(exc, httpx.TransportError):
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


def classify_error(exc: BaseException, *, tool_name: str | None = None) -> ErrorInfo:
    """Map an exception onto the error taxonomy.

    Args:
        exc: The exception raised by the pipeline or the GitHub client.
        tool_name: Optional tool name to prefix the message with.

    Returns:
        An :class:`ErrorInfo` ready to embed in a tool result.
    """
    category = _categorize(exc)
    message = str(exc) or type(exc).__name__
    if tool_name:
        message = f"{tool_name} failed: {message}"

    suggestion = _SUGGESTIONS[category]
    retry_after = exc.retry_after if isinstance(exc, GitHubRateLimitError) else None
    if retry_after is not None:
        suggestion = f"GitHub rate limit hit. Retry in {retry_after} seconds."

    code = exc.code if isinstance(exc, InvalidParamsError) else None
    logger.debug("Classified %s as %s", type(exc).__name__, category)
    return ErrorInfo(category=category, message=message, suggestion=suggestion, retry_after=retry_after, code=code)
