"""Derived resolution state and priority score for each comment."""

from __future__ import annotations

from typing import TYPE_CHECKING

from prbuddy.models import ResolutionStatus, Severity, StatusIndicators, SuggestedAction, SuggestionType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from prbuddy.models import Comment

_SEVERITY_POINTS: dict[Severity, int] = {
    Severity.HIGH: 40,
    Severity.MEDIUM: 25,
    Severity.LOW: 10,
}
_TYPE_POINTS: dict[SuggestionType, int] = {
    SuggestionType.ACTIONABLE: 30,
    SuggestionType.ADDITIONAL: 20,
    SuggestionType.NIT: 5,
    SuggestionType.DUPLICATE: 0,
}
_BOT_WITH_RESOLVE_POINTS = 20
_ACTIONABLE_POINTS = 15
_MANUAL_RESPONSE_PENALTY = 10
_OUTDATED_PENALTY = 20
_IGNORE_BELOW = 30

_ACTIONABLE_WORDS = ("fix", "suggest", "change")


def has_manual_response(comment: Comment, all_comments: Sequence[Comment]) -> bool:
    """True if a different human replied directly to *comment*."""
    return any(
        other.in_reply_to_id == comment.id and other.id != comment.id and not other.is_bot and other.author != comment.author
        for other in all_comments
    )


def is_actionable(comment: Comment) -> bool:
    meta = comment.ai_review_metadata
    if meta is not None and meta.suggestion_type is SuggestionType.ACTIONABLE:
        return True
    body = comment.body.lower()
    return any(word in body for word in _ACTIONABLE_WORDS)


def priority_score(comment: Comment, *, actionable: bool, manual_response: bool, has_resolve_action: bool) -> int:
    score = 0
    meta = comment.ai_review_metadata
    if meta is not None:
        score += _SEVERITY_POINTS[meta.severity]
        score += _TYPE_POINTS[meta.suggestion_type]
    if comment.is_bot and has_resolve_action:
        score += _BOT_WITH_RESOLVE_POINTS
    if actionable:
        score += _ACTIONABLE_POINTS
    if manual_response:
        score -= _MANUAL_RESPONSE_PENALTY
    if comment.outdated:
        score -= _OUTDATED_PENALTY
    return max(0, min(100, score))


def resolution_status(*, outdated: bool, has_resolve_action: bool, manual_response: bool, actionable: bool) -> ResolutionStatus:
    if outdated:
        return ResolutionStatus.RESOLVED
    if has_resolve_action:
        return ResolutionStatus.IN_PROGRESS
    if manual_response:
        return ResolutionStatus.IN_PROGRESS if actionable else ResolutionStatus.ACKNOWLEDGED
    return ResolutionStatus.UNRESOLVED


def suggested_action(*, has_resolve_action: bool, manual_response: bool, actionable: bool, score: int) -> SuggestedAction:
    if has_resolve_action and not manual_response:
        return SuggestedAction.RESOLVE
    if actionable and not manual_response:
        return SuggestedAction.REPLY
    if score < _IGNORE_BELOW:
        return SuggestedAction.IGNORE
    return SuggestedAction.INVESTIGATE


def calculate_status_indicators(comment: Comment, all_comments: Sequence[Comment]) -> StatusIndicators:
    """Score one comment against the full comment set (needed for reply detection)."""
    resolve_action = comment.action_commands.mcp_action is not None
    manual = has_manual_response(comment, all_comments)
    actionable = is_actionable(comment)
    outdated = bool(comment.outdated)
    score = priority_score(comment, actionable=actionable, manual_response=manual, has_resolve_action=resolve_action)

    return StatusIndicators(
        priority_score=score,
        resolution_status=resolution_status(
            outdated=outdated,
            has_resolve_action=resolve_action,
            manual_response=manual,
            actionable=actionable,
        ),
        suggested_action=suggested_action(
            has_resolve_action=resolve_action,
            manual_response=manual,
            actionable=actionable,
            score=score,
        ),
        needs_mcp_resolution=resolve_action,
        has_manual_response=manual,
        is_actionable=actionable,
        is_outdated=outdated,
    )


def score_comments(comments: list[Comment]) -> list[Comment]:
    """Attach status indicators to every comment in place and return the list."""
    for comment in comments:
        comment.status_indicators = calculate_status_indicators(comment, comments)
    return comments
