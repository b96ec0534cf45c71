"""Map raw GitHub comment records onto the unified :class:`Comment` shape."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from prbuddy.models import Comment, CommentType, Reactions
from prbuddy.tools.commands import build_action_commands

if TYPE_CHECKING:
    from prbuddy.models import PullRequestRef
    from prbuddy.tools.threads import ThreadCorrelation

logger = logging.getLogger(__name__)


def author_of(raw: dict[str, Any]) -> tuple[str, bool]:
    """Return ``(login, is_bot)`` for a REST record's ``user`` field."""
    user = raw.get("user") or {}
    return user.get("login") or "unknown", user.get("type") == "Bot"


def _reactions(raw: dict[str, Any]) -> Reactions | None:
    data = raw.get("reactions")
    return Reactions.model_validate(data) if isinstance(data, dict) else None


def _is_outdated(raw: dict[str, Any]) -> bool:
    """Outdated comments lost their anchor: ``line`` is gone but ``original_line`` remains."""
    if "outdated" in raw:
        return bool(raw["outdated"])
    return "line" in raw and raw["line"] is None and raw.get("original_line") is not None


def normalize_inline_comment(raw: dict[str, Any], pr: PullRequestRef, correlation: ThreadCorrelation) -> Comment:
    comment_id = int(raw["id"])
    author, is_bot = author_of(raw)
    body = raw.get("body") or ""
    return Comment(
        id=comment_id,
        type=CommentType.INLINE_REVIEW_COMMENT,
        author=author,
        author_association=raw.get("author_association") or "NONE",
        is_bot=is_bot,
        created_at=raw["created_at"],
        updated_at=raw.get("updated_at") or raw["created_at"],
        file_path=raw.get("path"),
        line_number=raw.get("line") or raw.get("original_line"),
        start_line=raw.get("start_line") or raw.get("original_start_line"),
        diff_hunk=raw.get("diff_hunk"),
        body=body,
        in_reply_to_id=raw.get("in_reply_to_id"),
        outdated=_is_outdated(raw),
        reactions=_reactions(raw),
        html_url=raw.get("html_url") or "",
        action_commands=build_action_commands(
            pr,
            comment_id=comment_id,
            comment_type=CommentType.INLINE_REVIEW_COMMENT,
            body=body,
            thread_id=correlation.thread_for(comment_id),
        ),
    )


def normalize_general_comment(raw: dict[str, Any], pr: PullRequestRef) -> Comment:
    comment_id = int(raw["id"])
    author, is_bot = author_of(raw)
    body = raw.get("body") or ""
    return Comment(
        id=comment_id,
        type=CommentType.GENERAL_COMMENT,
        author=author,
        author_association=raw.get("author_association") or "NONE",
        is_bot=is_bot,
        created_at=raw["created_at"],
        updated_at=raw.get("updated_at") or raw["created_at"],
        body=body,
        reactions=_reactions(raw),
        html_url=raw.get("html_url") or "",
        action_commands=build_action_commands(
            pr,
            comment_id=comment_id,
            comment_type=CommentType.GENERAL_COMMENT,
            body=body,
        ),
    )


def normalize_inline_comments(
    raws: list[dict[str, Any]],
    pr: PullRequestRef,
    correlation: ThreadCorrelation,
) -> list[Comment]:
    return [normalize_inline_comment(raw, pr, correlation) for raw in raws]


def normalize_general_comments(raws: list[dict[str, Any]], pr: PullRequestRef) -> list[Comment]:
    return [normalize_general_comment(raw, pr) for raw in raws]
