"""Parsers for structured AI review bodies."""

from __future__ import annotations

from prbuddy.reviewers.base import ReviewerAdapter, SuggestionItem
from prbuddy.reviewers.coderabbit import CodeRabbitAdapter
from prbuddy.reviewers.registry import REVIEWERS, apply_config, enabled_reviewers, extract_suggestions, get_reviewer

__all__ = [
    "REVIEWERS",
    "CodeRabbitAdapter",
    "ReviewerAdapter",
    "SuggestionItem",
    "apply_config",
    "enabled_reviewers",
    "extract_suggestions",
    "get_reviewer",
]
