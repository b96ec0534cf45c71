"""Reviewer registry: lookup, configuration and body parsing across all adapters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prbuddy.config import Config
    from prbuddy.reviewers.base import ReviewerAdapter, SuggestionItem

logger = logging.getLogger(__name__)


def _build_registry() -> list[ReviewerAdapter]:
    """Instantiate all known reviewer adapters."""
    from prbuddy.reviewers.coderabbit import CodeRabbitAdapter  # noqa: PLC0415

    return [CodeRabbitAdapter()]


REVIEWERS: list[ReviewerAdapter] = _build_registry()


def get_reviewer(name: str) -> ReviewerAdapter | None:
    """Get a reviewer adapter by name."""
    for reviewer in REVIEWERS:
        if reviewer.name == name:
            return reviewer
    return None


def enabled_reviewers() -> list[ReviewerAdapter]:
    return [reviewer for reviewer in REVIEWERS if reviewer.enabled]


def apply_config(config: Config) -> None:
    """Push ``[reviewers.<name>]`` settings into the adapters."""
    for reviewer in REVIEWERS:
        reviewer.configure(config.get_reviewer(reviewer.name))


def extract_suggestions(body: str) -> list[SuggestionItem]:
    """Run every enabled parser over *body* and concatenate their items."""
    items: list[SuggestionItem] = []
    if not body:
        return items
    for reviewer in enabled_reviewers():
        items.extend(reviewer.parse_review_body(body))
    return items
