"""Turn parsed AI review items into synthetic comments."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from prbuddy.models import (
    AIReviewMetadata,
    Comment,
    CommentType,
    FileContext,
    ImplementationGuidance,
    SuggestionType,
)
from prbuddy.reviewers import extract_suggestions
from prbuddy.tools.commands import build_action_commands
from prbuddy.tools.normalize import author_of

if TYPE_CHECKING:
    from datetime import datetime

    from prbuddy.models import PullRequestRef
    from prbuddy.reviewers import SuggestionItem

logger = logging.getLogger(__name__)

_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("security", ("security", "vulnerability")),
    ("performance", ("performance", "slow", "optimize")),
    ("style", ("style", "format", "lint")),
    ("bug", ("error", "exception", "bug")),
)

_DISPLAY_NAMES = {"coderabbit": "CodeRabbit"}

QUICK_EFFORT = "Quick fix (1-2 minutes)"
MEDIUM_EFFORT = "Medium effort (2-5 minutes)"


class SyntheticIdAllocator:
    """Hands out negative ids (-1, -2, ...) for comments that have no GitHub id.

    One allocator per request keeps ids reproducible and keeps concurrent
    requests from interfering with each other.
    """

    __slots__ = ("_next",)

    def __init__(self) -> None:
        self._next = -1

    def allocate(self) -> int:
        value = self._next
        self._next -= 1
        return value


def infer_category(text: str) -> str:
    """First matching keyword category for *text*, or ``general``."""
    lowered = text.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return "general"


def effort_for(suggestion_type: SuggestionType) -> str:
    return QUICK_EFFORT if suggestion_type is SuggestionType.NIT else MEDIUM_EFFORT


def build_agent_prompt(item: SuggestionItem) -> str:
    """Instruction text a coding agent can act on without reading the review."""
    reviewer = _DISPLAY_NAMES.get(item.source, item.source)
    lines = [f"{reviewer} {item.suggestion_type} suggestion for {item.file_path}:{item.line_range}", ""]
    suggestion = item.code_suggestion
    if suggestion is not None:
        if suggestion.old_code:
            lines += ["Current code:", f"```{suggestion.language}", suggestion.old_code, "```", ""]
        if suggestion.new_code:
            lines += ["Suggested change:", f"```{suggestion.language}", suggestion.new_code, "```", ""]
    lines += [
        f"Context: {item.description}",
        f"Priority: {item.severity.capitalize()}",
        f"Effort: {effort_for(item.suggestion_type)}",
    ]
    return "\n".join(lines)


def item_to_comment(
    item: SuggestionItem,
    *,
    comment_id: int,
    pr: PullRequestRef,
    author: str,
    author_association: str,
    is_bot: bool,
    created_at: datetime | str,
    updated_at: datetime | str,
    html_url: str,
    extract_agent_prompts: bool = True,
) -> Comment:
    line_start, line_end = item.line_bounds
    metadata = AIReviewMetadata(
        source=item.source,
        suggestion_type=item.suggestion_type,
        severity=item.severity,
        category=infer_category(item.description),
        file_context=FileContext(path=item.file_path, line_start=line_start, line_end=line_end),
        code_suggestion=item.code_suggestion,
    )
    if extract_agent_prompts:
        metadata.agent_prompt = build_agent_prompt(item)
        metadata.implementation_guidance = ImplementationGuidance(
            priority=item.severity,
            effort_estimate=effort_for(item.suggestion_type),
            rationale=item.description,
        )

    return Comment(
        id=comment_id,
        type=CommentType.AI_REVIEW_ITEM,
        author=author,
        author_association=author_association,
        is_bot=is_bot,
        created_at=created_at,
        updated_at=updated_at,
        file_path=item.file_path,
        line_number=line_end,
        start_line=line_start if line_start != line_end else None,
        body=item.description,
        html_url=html_url,
        action_commands=build_action_commands(
            pr,
            comment_id=comment_id,
            comment_type=CommentType.AI_REVIEW_ITEM,
            body=item.description,
        ),
        ai_review_metadata=metadata,
    )


def _comments_from_body(
    raw: dict[str, Any],
    *,
    timestamp: Any,
    pr: PullRequestRef,
    ids: SyntheticIdAllocator,
    extract_agent_prompts: bool,
) -> list[Comment]:
    items = extract_suggestions(raw.get("body") or "")
    if not items:
        return []
    author, is_bot = author_of(raw)
    return [
        item_to_comment(
            item,
            comment_id=ids.allocate(),
            pr=pr,
            author=author,
            author_association=raw.get("author_association") or "NONE",
            is_bot=is_bot,
            created_at=timestamp,
            updated_at=raw.get("updated_at") or timestamp,
            html_url=raw.get("html_url") or "",
            extract_agent_prompts=extract_agent_prompts,
        )
        for item in items
    ]


def comments_from_reviews(
    reviews: list[dict[str, Any]],
    pr: PullRequestRef,
    ids: SyntheticIdAllocator,
    *,
    extract_agent_prompts: bool = True,
) -> list[Comment]:
    """Parse every submitted review body. Pending and empty reviews are skipped."""
    comments: list[Comment] = []
    for review in reviews:
        if not review.get("body") or review.get("state") == "PENDING":
            continue
        submitted_at = review.get("submitted_at")
        if not submitted_at:
            logger.debug("Skipping review %s without submitted_at", review.get("id"))
            continue
        comments.extend(
            _comments_from_body(review, timestamp=submitted_at, pr=pr, ids=ids, extract_agent_prompts=extract_agent_prompts),
        )
    return comments


def comments_from_general_comments(
    raws: list[dict[str, Any]],
    pr: PullRequestRef,
    ids: SyntheticIdAllocator,
    *,
    extract_agent_prompts: bool = True,
) -> list[Comment]:
    """Parse structured AI review content that was posted as a PR conversation comment."""
    comments: list[Comment] = []
    for raw in raws:
        if not raw.get("body"):
            continue
        comments.extend(
            _comments_from_body(raw, timestamp=raw["created_at"], pr=pr, ids=ids, extract_agent_prompts=extract_agent_prompts),
        )
    return comments
