"""Abstract base for review-body parsers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from prbuddy.models import CodeSuggestion, Severity, SuggestionType

if TYPE_CHECKING:
    from prbuddy.config import ReviewerConfig

UNKNOWN_FILE = "unknown-file"

_SEVERITY_BY_TYPE: dict[SuggestionType, Severity] = {
    SuggestionType.NIT: Severity.LOW,
    SuggestionType.ACTIONABLE: Severity.HIGH,
}


def severity_for(suggestion_type: SuggestionType) -> Severity:
    """Severity follows the section kind alone: nit is low, actionable high, the rest medium."""
    return _SEVERITY_BY_TYPE.get(suggestion_type, Severity.MEDIUM)


def parse_line_range(line_range: str) -> tuple[int | None, int | None]:
    """Parse ``"42"`` or ``"42-45"`` into ``(start, end)``.

    Returns ``(None, None)`` unless both bounds are positive and ``end >= start``.
    """
    start_text, _, end_text = line_range.partition("-")
    try:
        start = int(start_text)
        end = int(end_text) if end_text else start
    except ValueError:
        return None, None
    if start <= 0 or end < start:
        return None, None
    return start, end


class SuggestionItem(BaseModel):
    """One structured suggestion parsed out of a review body.

    Every parser produces this shape, whatever the reviewer's markup looks like.
    """

    source: str = Field(description="Name of the parser that produced the item")
    suggestion_type: SuggestionType
    file_path: str = UNKNOWN_FILE
    line_range: str = ""
    title: str = ""
    description: str = ""
    code_suggestion: CodeSuggestion | None = None

    @property
    def severity(self) -> Severity:
        return severity_for(self.suggestion_type)

    @property
    def line_bounds(self) -> tuple[int | None, int | None]:
        return parse_line_range(self.line_range)


class ReviewerAdapter(ABC):
    """Base class for AI reviewer body parsers.

    Each adapter knows one reviewer's markup for structured review bodies.
    Call :meth:`configure` to apply ``[reviewers.<name>]`` settings; without
    configuration adapters are enabled.
    """

    _config: ReviewerConfig | None = None

    def configure(self, config: ReviewerConfig) -> None:
        """Apply per-reviewer configuration overrides."""
        self._config = config

    @property
    def enabled(self) -> bool:
        """Whether this reviewer's bodies should be parsed."""
        if self._config is not None:
            return self._config.enabled
        return True

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier for this reviewer (e.g. 'coderabbit')."""

    @abstractmethod
    def parse_review_body(self, body: str) -> list[SuggestionItem]:
        """Extract structured suggestions from *body*.

        Must return an empty list for bodies in any other format. Filtering by
        type is not the parser's job.
        """
