"""Rollup statistics over the filtered (unpaginated) comment set."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from prbuddy.models import CommentSummary, PrioritySummary, ResolutionStatus, StatusGroups

if TYPE_CHECKING:
    from collections.abc import Sequence

    from prbuddy.models import Comment

HIGH_PRIORITY_MIN = 70
MEDIUM_PRIORITY_MIN = 30


def _priority_summary(comments: Sequence[Comment]) -> PrioritySummary:
    summary = PrioritySummary()
    for comment in comments:
        indicators = comment.status_indicators
        if indicators is None:
            continue
        if indicators.priority_score >= HIGH_PRIORITY_MIN:
            summary.high += 1
        elif indicators.priority_score >= MEDIUM_PRIORITY_MIN:
            summary.medium += 1
        else:
            summary.low += 1
        summary.needs_mcp_resolution += indicators.needs_mcp_resolution
        summary.has_manual_responses += indicators.has_manual_response
        summary.actionable_items += indicators.is_actionable
        summary.outdated_comments += indicators.is_outdated
    return summary


def _status_groups(comments: Sequence[Comment]) -> StatusGroups:
    groups = StatusGroups()
    buckets = {
        ResolutionStatus.UNRESOLVED: groups.unresolved,
        ResolutionStatus.ACKNOWLEDGED: groups.acknowledged,
        ResolutionStatus.IN_PROGRESS: groups.in_progress,
        ResolutionStatus.RESOLVED: groups.resolved,
    }
    for comment in comments:
        if comment.status_indicators is not None:
            buckets[comment.status_indicators.resolution_status].append(comment.id)
    return groups


def generate_summary(
    comments: Sequence[Comment],
    *,
    scoring_enabled: bool,
    priority_ordering: bool = True,
) -> CommentSummary:
    """Summarize *comments*.

    Priority tiers need scoring; status groups need scoring and priority ordering.
    """
    bots = sum(1 for c in comments if c.is_bot)
    summary = CommentSummary(
        total_comments=len(comments),
        by_author=dict(Counter(c.author for c in comments)),
        by_type=dict(Counter(str(c.type) for c in comments)),
        bot_comments=bots,
        human_comments=len(comments) - bots,
        with_reactions=sum(1 for c in comments if c.reactions is not None and c.reactions.total_count > 0),
    )
    if scoring_enabled:
        summary.priority_summary = _priority_summary(comments)
        if priority_ordering:
            summary.status_groups = _status_groups(comments)
    return summary
