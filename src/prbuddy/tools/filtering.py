"""Exclusion rules, AI review filters and the final ordering."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prbuddy.models import CommentType, SortMode, SuggestionType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from prbuddy.models import AIReviewOptions, Comment
    from prbuddy.tools.threads import ThreadCorrelation

logger = logging.getLogger(__name__)

_TYPE_ORDER: dict[SuggestionType | None, int] = {
    SuggestionType.ACTIONABLE: 0,
    SuggestionType.NIT: 1,
    SuggestionType.DUPLICATE: 2,
    SuggestionType.ADDITIONAL: 3,
}
_OTHER_TYPE_ORDER = len(_TYPE_ORDER)


def _suggestion_type(comment: Comment) -> SuggestionType | None:
    meta = comment.ai_review_metadata
    return meta.suggestion_type if meta is not None else None


# ---------------------------------------------------------------------------
# Exclusion
# ---------------------------------------------------------------------------


def filter_unresolved(comments: Iterable[Comment], correlation: ThreadCorrelation) -> list[Comment]:
    """Drop comments on resolved threads, then every reply.

    Only thread starters are surfaced; replies are dropped whatever their
    own state.
    """
    kept: list[Comment] = []
    for comment in comments:
        if comment.type is CommentType.INLINE_REVIEW_COMMENT and correlation.is_resolved(comment.id):
            continue
        if comment.in_reply_to_id is not None:
            continue
        kept.append(comment)
    return kept


def apply_basic_filtering(
    comments: Iterable[Comment],
    *,
    include_bots: bool = True,
    exclude_authors: Iterable[str] | None = None,
) -> list[Comment]:
    excluded = set(exclude_authors or ())
    return [c for c in comments if (include_bots or not c.is_bot) and c.author not in excluded]


def _type_allowed(suggestion_type: SuggestionType, options: AIReviewOptions) -> bool:
    if options.suggestion_types is not None and suggestion_type not in options.suggestion_types:
        return False
    toggles = {
        SuggestionType.NIT: options.include_nits,
        SuggestionType.DUPLICATE: options.include_duplicates,
        SuggestionType.ADDITIONAL: options.include_additional,
    }
    # Actionable items have no toggle
    return toggles.get(suggestion_type, True)


def apply_ai_review_filtering(comments: Iterable[Comment], options: AIReviewOptions) -> list[Comment]:
    """Apply per-type toggles and the allow-list to AI review items, then the optional reorderings.

    Comments without AI review metadata always pass. The reorderings run before
    :func:`sort_comments`, so they only decide the order of items it leaves tied.
    """
    kept = [c for c in comments if (t := _suggestion_type(c)) is None or _type_allowed(t, options)]
    if options.prioritize_actionable:
        kept = prioritize_actionable(kept)
    if options.group_by_type:
        kept = group_by_type(kept)
    return kept


def prioritize_actionable(comments: list[Comment]) -> list[Comment]:
    """Stable partition: actionable items first, everything else after."""
    actionable = [c for c in comments if _suggestion_type(c) is SuggestionType.ACTIONABLE]
    rest = [c for c in comments if _suggestion_type(c) is not SuggestionType.ACTIONABLE]
    return actionable + rest


def group_by_type(comments: list[Comment]) -> list[Comment]:
    """Order by suggestion type (actionable, nit, duplicate, additional, other), then file path."""
    return sorted(comments, key=lambda c: (_TYPE_ORDER.get(_suggestion_type(c), _OTHER_TYPE_ORDER), c.file_path or ""))


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


def _priority_key(comment: Comment) -> tuple[int, int, float]:
    indicators = comment.status_indicators
    score = indicators.priority_score if indicators else 0
    has_action = comment.action_commands.mcp_action is not None
    return (-score, 0 if has_action else 1, -comment.created_at.timestamp())


def sort_comments(comments: list[Comment], sort: SortMode, *, priority_enabled: bool = True) -> list[Comment]:
    """Return a new list in the requested order. All sorts are stable.

    ``priority`` falls back to chronological when scoring is disabled.
    """
    if sort is SortMode.PRIORITY and not priority_enabled:
        logger.debug("Priority scoring disabled, sorting chronologically")
        sort = SortMode.CHRONOLOGICAL

    match sort:
        case SortMode.PRIORITY:
            return sorted(comments, key=_priority_key)
        case SortMode.BY_FILE:
            return sorted(comments, key=lambda c: c.file_path or "")
        case SortMode.BY_AUTHOR:
            return sorted(comments, key=lambda c: c.author)
        case _:
            return sorted(comments, key=lambda c: c.created_at)
