"""CodeRabbit review-body parser.

CodeRabbit posts its review summary as nested ``<details>`` blocks::

    <details>
    <summary>🧹 Nitpick comments (2)</summary><blockquote>
    <details>
    <summary>src/app.py (1)</summary><blockquote>
    `12-14`: **Collapse the nested ifs.**
    ...
    ```diff
    -if a:
    -    if b:
    +if a and b:
    ```
    </blockquote></details>

The parser is a line-driven state machine. Section headers pick the
suggestion type, file headers set the file context, and each
``<range>: **<title>**`` line opens an item whose description runs until a
horizontal rule, a closing blockquote, the end of its diff block, or the
lookahead limit.
"""

from __future__ import annotations

import logging
import re
from enum import StrEnum
from pathlib import PurePosixPath
from typing_extensions import override

from prbuddy.models import CodeSuggestion, SuggestionType
from prbuddy.reviewers.base import UNKNOWN_FILE, ReviewerAdapter, SuggestionItem

logger = logging.getLogger(__name__)

LOOKAHEAD_LINES = 20

_SUMMARY_RE = re.compile(r"<summary>\s*(?P<title>.*?)\s*</summary>", re.IGNORECASE)
_SECTION_TITLE_RE = re.compile(r"^(?P<icon>[^\x00-\x7f\w\s]+)\s*(?P<label>[^<]*?)\s*\((?P<count>\d+)\)$")
_ACTIONABLE_TITLE_RE = re.compile(r"^(?P<label>[^<:]*actionable[^<:]*):\s*(?P<count>\d+)$", re.IGNORECASE)
_FILE_TITLE_RE = re.compile(r"^`?(?P<path>[^`\s<>()]+?)`?\s*\((?P<count>\d+)\)$")
_ITEM_RE = re.compile(r"^(?:`|\\`)?(?P<range>\d+(?:-\d+)?)(?:`|\\`)?:\s*\*\*(?P<title>.*?)\*\*")
_DIFF_OPEN_RE = re.compile(r"^(?:```|\\`\\`\\`)diff\b")
_FENCE_RE = re.compile(r"^(?:```|\\`\\`\\`)")
_DETAILS_TAG_RE = re.compile(r"^(?:</?details>|<blockquote>)+$", re.IGNORECASE)

_ICON_TYPES: tuple[tuple[str, SuggestionType], ...] = (
    ("🧹", SuggestionType.NIT),
    ("♻", SuggestionType.DUPLICATE),
    ("📜", SuggestionType.ADDITIONAL),
)

_LANGUAGES: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".java": "java",
    ".kt": "kotlin",
    ".swift": "swift",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".php": "php",
    ".sh": "bash",
    ".sql": "sql",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".json": "json",
    ".toml": "toml",
    ".md": "markdown",
}


def guess_language(file_path: str) -> str:
    """Best-effort code fence language for *file_path* (``text`` if unknown)."""
    return _LANGUAGES.get(PurePosixPath(file_path).suffix.lower(), "text")


def section_type_for(title: str) -> SuggestionType | None:
    """Suggestion type announced by a ``<summary>`` title, or ``None`` if it is not a section header."""
    match = _SECTION_TITLE_RE.match(title)
    if match:
        icon = match["icon"]
        for marker, suggestion_type in _ICON_TYPES:
            if marker in icon:
                return suggestion_type
        return SuggestionType.ACTIONABLE
    if _ACTIONABLE_TITLE_RE.match(title):
        return SuggestionType.ACTIONABLE
    return None


def file_path_for(title: str) -> str | None:
    """File path announced by a ``<summary>`` title, or ``None``."""
    match = _FILE_TITLE_RE.match(title)
    return match["path"] if match else None


class ParseState(StrEnum):
    SEEKING_SECTION = "seeking-section"
    SEEKING_ITEM = "in-section-seeking-item"
    COLLECTING = "in-item-collecting-description"
    IN_DIFF = "in-diff-block"


class _Draft:
    """An item whose description is still being collected."""

    __slots__ = ("description", "file_path", "line_range", "new_lines", "old_lines", "scanned", "saw_diff", "suggestion_type", "title")

    def __init__(self, suggestion_type: SuggestionType, file_path: str, line_range: str, title: str) -> None:
        self.suggestion_type = suggestion_type
        self.file_path = file_path
        self.line_range = line_range
        self.title = title
        self.description: list[str] = [title]
        self.old_lines: list[str] = []
        self.new_lines: list[str] = []
        self.saw_diff = False
        self.scanned = 0


class CodeRabbitParser:
    """Single-use state machine over the lines of one review body."""

    def __init__(self, source: str = "coderabbit") -> None:
        self.source = source
        self.state = ParseState.SEEKING_SECTION
        self.section: SuggestionType | None = None
        self.file_path: str | None = None
        self.draft: _Draft | None = None
        self.items: list[SuggestionItem] = []

    def parse(self, body: str) -> list[SuggestionItem]:
        for line in body.splitlines():
            self.feed(line)
        return self.finish()

    def feed(self, line: str) -> None:
        """Advance the machine by one line."""
        if self.draft is not None:
            self.draft.scanned += 1
            if self.draft.scanned > LOOKAHEAD_LINES:
                self._close_item()

        if self.state is ParseState.IN_DIFF:
            self._in_diff(line)
        elif self.state is ParseState.COLLECTING:
            self._collecting(line)
        else:
            self._seeking(line)

    def finish(self) -> list[SuggestionItem]:
        """Flush any open item (including an unterminated diff) and return everything parsed."""
        if self.draft is not None:
            self._close_item()
        return self.items

    # -- transitions ----------------------------------------------------------

    def _header(self, stripped: str) -> bool:
        """Handle a ``<summary>`` header line. Returns True if the line was one."""
        match = _SUMMARY_RE.search(stripped)
        if match is None:
            return False
        title = match["title"]
        section = section_type_for(title)
        if section is not None:
            if self.draft is not None:
                self._close_item()
            self.section = section
            self.file_path = None
            self.state = ParseState.SEEKING_ITEM
            logger.debug("CodeRabbit section %r -> %s", title, section)
            return True
        path = file_path_for(title)
        if path is not None and self.section is not None:
            if self.draft is not None:
                self._close_item()
            self.file_path = path
            self.state = ParseState.SEEKING_ITEM
            return True
        # Other summaries ("📝 Committable suggestion", "Review details") carry no structure
        return True

    def _seeking(self, line: str) -> None:
        stripped = line.strip()
        if self._header(stripped):
            return
        if self.state is ParseState.SEEKING_ITEM:
            self._maybe_open_item(stripped)

    def _maybe_open_item(self, stripped: str) -> bool:
        match = _ITEM_RE.match(stripped)
        if match is None or self.section is None:
            return False
        self.draft = _Draft(
            suggestion_type=self.section,
            file_path=self.file_path or UNKNOWN_FILE,
            line_range=match["range"],
            title=match["title"].strip(),
        )
        self.state = ParseState.COLLECTING
        return True

    def _collecting(self, line: str) -> None:
        stripped = line.strip()
        draft = self.draft
        if draft is None:  # pragma: no cover - state and draft move together
            self.state = ParseState.SEEKING_ITEM
            return

        if stripped.startswith(("---", "</blockquote>")):
            self._close_item()
            return
        if _DIFF_OPEN_RE.match(stripped):
            draft.description.append(line)
            draft.saw_diff = True
            self.state = ParseState.IN_DIFF
            return
        header = _SUMMARY_RE.search(stripped)
        if header is not None:
            title = header["title"]
            if section_type_for(title) is not None or file_path_for(title) is not None:
                self._header(stripped)
            return
        if _ITEM_RE.match(stripped):
            self._close_item()
            self._maybe_open_item(stripped)
            return
        if stripped and not _DETAILS_TAG_RE.match(stripped):
            draft.description.append(line)

    def _in_diff(self, line: str) -> None:
        draft = self.draft
        if draft is None:  # pragma: no cover - state and draft move together
            self.state = ParseState.SEEKING_ITEM
            return

        draft.description.append(line)
        if _FENCE_RE.match(line.strip()):
            self._close_item()
            return
        if line.startswith("-") and not line.startswith("---"):
            draft.old_lines.append(line[1:])
        elif line.startswith("+") and not line.startswith("+++"):
            draft.new_lines.append(line[1:])

    def _close_item(self) -> None:
        draft = self.draft
        if draft is None:
            return
        if self.state is ParseState.IN_DIFF:
            logger.debug("Diff block for %s:%s has no closing fence", draft.file_path, draft.line_range)

        suggestion = None
        if draft.saw_diff and (draft.old_lines or draft.new_lines):
            suggestion = CodeSuggestion(
                old_code="\n".join(draft.old_lines),
                new_code="\n".join(draft.new_lines),
                language=guess_language(draft.file_path),
            )
        self.items.append(
            SuggestionItem(
                source=self.source,
                suggestion_type=draft.suggestion_type,
                file_path=draft.file_path,
                line_range=draft.line_range,
                title=draft.title,
                description="\n".join(draft.description),
                code_suggestion=suggestion,
            ),
        )
        self.draft = None
        self.state = ParseState.SEEKING_ITEM


class CodeRabbitAdapter(ReviewerAdapter):
    """Parser for CodeRabbit's collapsible review summaries."""

    @property
    def name(self) -> str:
        return "coderabbit"

    @override
    def parse_review_body(self, body: str) -> list[SuggestionItem]:
        if "<summary>" not in body.lower():
            return []
        items = CodeRabbitParser(source=self.name).parse(body)
        if items:
            logger.debug("Parsed %d CodeRabbit item(s)", len(items))
        return items
