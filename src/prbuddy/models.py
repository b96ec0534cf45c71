"""Pydantic models for prbuddy."""

from __future__ import annotations

import re
from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from enum import StrEnum
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from prbuddy.errors import ErrorInfo, InvalidParamsError

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CommentType(StrEnum):
    """Where a comment came from."""

    INLINE_REVIEW_COMMENT = "inline_review_comment"
    GENERAL_COMMENT = "general_comment"
    AI_REVIEW_ITEM = "ai_review_item"


class SuggestionType(StrEnum):
    """Section kind of a structured AI review item."""

    NIT = "nit"
    DUPLICATE = "duplicate"
    ADDITIONAL = "additional"
    ACTIONABLE = "actionable"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ResolutionStatus(StrEnum):
    UNRESOLVED = "unresolved"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class SuggestedAction(StrEnum):
    REPLY = "reply"
    RESOLVE = "resolve"
    INVESTIGATE = "investigate"
    IGNORE = "ignore"


class SortMode(StrEnum):
    """Final ordering of the filtered comment list."""

    CHRONOLOGICAL = "chronological"
    BY_FILE = "by_file"
    BY_AUTHOR = "by_author"
    PRIORITY = "priority"


# ---------------------------------------------------------------------------
# Pull request identifier
# ---------------------------------------------------------------------------

_PR_PATTERNS = (
    re.compile(r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)#(?P<number>\d+)$"),
    re.compile(r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)/pulls?/(?P<number>\d+)/?$"),
    re.compile(r"^https?://github\.com/(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)/pull/(?P<number>\d+)(?:[/?#].*)?$"),
)


class PullRequestRef(BaseModel):
    """A pull request addressed as ``owner/repo#number``."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    number: int = Field(gt=0)

    @classmethod
    def parse(cls, value: str) -> PullRequestRef:
        """Parse ``owner/repo#123``, ``owner/repo/pull/123`` or a github.com PR URL.

        Raises:
            InvalidParamsError: If *value* matches none of the accepted forms.
        """
        text = value.strip()
        for pattern in _PR_PATTERNS:
            match = pattern.match(text)
            if match and int(match["number"]) > 0:
                return cls(owner=match["owner"], repo=match["repo"], number=int(match["number"]))
        msg = f"Invalid PR identifier {value!r}. Expected 'owner/repo#123', 'owner/repo/pull/123' or a GitHub PR URL."
        raise InvalidParamsError(msg)

    @property
    def full_repo(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"


# ---------------------------------------------------------------------------
# Comment building blocks
# ---------------------------------------------------------------------------


class Reactions(BaseModel):
    """Reaction counts on a comment, as reported by GitHub."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    total_count: int = 0
    thumbs_up: int = Field(default=0, validation_alias=AliasChoices("+1", "thumbs_up"))
    thumbs_down: int = Field(default=0, validation_alias=AliasChoices("-1", "thumbs_down"))
    laugh: int = 0
    hooray: int = 0
    confused: int = 0
    heart: int = 0
    rocket: int = 0
    eyes: int = 0


class ResolveThreadArgs(BaseModel):
    pr: str = Field(description="PR identifier in owner/repo#number form")
    thread_id: str = Field(description="GraphQL node ID of the review thread (PRRT_...)")


class McpAction(BaseModel):
    """Structured, machine-invokable resolve instruction."""

    tool: Literal["resolve_review_thread"] = "resolve_review_thread"
    args: ResolveThreadArgs


class ActionCommands(BaseModel):
    """Commands an agent may run for a comment. Nothing here is executed by prbuddy."""

    reply_command: str = Field(description="Shell command to reply to the comment")
    resolve_command: str | None = Field(default=None, description="Shell command to mark the comment fixed (inline comments only)")
    resolve_condition: str = Field(description="What must be verified before resolving")
    view_in_browser: str = Field(description="Shell command to open the PR in a browser")
    mcp_action: McpAction | None = Field(default=None, description="Structured resolve action, present when the thread id is known")


class CodeSuggestion(BaseModel):
    old_code: str = Field(default="", description="Lines removed by the suggested diff")
    new_code: str = Field(default="", description="Lines added by the suggested diff")
    language: str = Field(default="text", description="Language of the snippet, inferred from the file extension")


class FileContext(BaseModel):
    path: str = Field(description="File the suggestion applies to")
    line_start: int | None = Field(default=None, description="First line of the range")
    line_end: int | None = Field(default=None, description="Last line of the range")


class ImplementationGuidance(BaseModel):
    priority: Severity = Field(description="Suggested priority (mirrors severity)")
    effort_estimate: str = Field(description="Rough time needed to apply the suggestion")
    rationale: str = Field(description="Why the reviewer raised it")


class AIReviewMetadata(BaseModel):
    """Structured data parsed out of an AI review body."""

    source: str = Field(description="Parser that produced the item (e.g. coderabbit)")
    suggestion_type: SuggestionType
    severity: Severity
    category: str = Field(description="Keyword-inferred category: security, performance, style, bug or general")
    file_context: FileContext
    code_suggestion: CodeSuggestion | None = None
    agent_prompt: str | None = Field(default=None, description="Ready-to-use instruction for a coding agent")
    implementation_guidance: ImplementationGuidance | None = None


class StatusIndicators(BaseModel):
    """Derived resolution state and priority of one comment."""

    priority_score: int = Field(ge=0, le=100, description="0-100, higher means more urgent")
    resolution_status: ResolutionStatus
    suggested_action: SuggestedAction
    needs_mcp_resolution: bool = Field(description="A structured resolve action is available")
    has_manual_response: bool = Field(description="Another human replied to this comment")
    is_actionable: bool
    is_outdated: bool


class Comment(BaseModel):
    """A unified review comment from any of the three sources."""

    id: int = Field(description="GitHub comment id, or a negative synthetic id for parsed AI review items")
    type: CommentType
    author: str = "unknown"
    author_association: str = "NONE"
    is_bot: bool = False
    created_at: datetime
    updated_at: datetime
    file_path: str | None = None
    line_number: int | None = None
    start_line: int | None = None
    diff_hunk: str | None = None
    body: str = ""
    in_reply_to_id: int | None = None
    outdated: bool | None = Field(default=None, description="Inline comments only: the commented code has since changed")
    reactions: Reactions | None = None
    html_url: str = ""
    action_commands: ActionCommands
    ai_review_metadata: AIReviewMetadata | None = None
    status_indicators: StatusIndicators | None = None


# ---------------------------------------------------------------------------
# Request options
# ---------------------------------------------------------------------------


class AIReviewOptions(BaseModel):
    """Filters and reorderings that apply to parsed AI review items."""

    model_config = ConfigDict(extra="ignore")

    include_nits: bool = Field(default=True, description="Include nitpick items")
    include_duplicates: bool = Field(default=True, description="Include duplicate items")
    include_additional: bool = Field(default=True, description="Include additional-comment items")
    suggestion_types: list[SuggestionType] | None = Field(
        default=None,
        description="Allow-list of suggestion types; all types when unset",
    )
    prioritize_actionable: bool = Field(
        default=False,
        description="Move actionable items ahead of the rest among items the sort leaves tied",
    )
    group_by_type: bool = Field(
        default=False,
        description="Order items by type, then by file path, among items the sort leaves tied",
    )
    extract_agent_prompts: bool = Field(default=True, description="Generate agent prompts and implementation guidance")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class PrioritySummary(BaseModel):
    high: int = Field(default=0, description="Comments scoring 70 or more")
    medium: int = Field(default=0, description="Comments scoring 30-69")
    low: int = Field(default=0, description="Comments scoring under 30")
    needs_mcp_resolution: int = 0
    has_manual_responses: int = 0
    actionable_items: int = 0
    outdated_comments: int = 0


class StatusGroups(BaseModel):
    """Comment ids bucketed by resolution status."""

    unresolved: list[int] = Field(default_factory=list)
    acknowledged: list[int] = Field(default_factory=list)
    in_progress: list[int] = Field(default_factory=list)
    resolved: list[int] = Field(default_factory=list)


class CommentSummary(BaseModel):
    """Rollup over every filtered comment, not just the returned page."""

    total_comments: int = 0
    by_author: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    bot_comments: int = 0
    human_comments: int = 0
    with_reactions: int = 0
    priority_summary: PrioritySummary | None = Field(default=None, description="Present when scoring is enabled")
    status_groups: StatusGroups | None = Field(default=None, description="Present when scoring is enabled")


class UnresolvedCommentsResult(BaseModel):
    """One page of unresolved comments for a PR."""

    pr: str = Field(default="", description="PR identifier in owner/repo#number form")
    unresolved_in_page: int = Field(default=0, description="Number of comments in this page")
    comments: list[Comment] = Field(default_factory=list)
    next_cursor: str | None = Field(default=None, description="Pass back as `cursor` to fetch the next page")
    summary: CommentSummary = Field(default_factory=CommentSummary)
    resolution_data_available: bool = Field(
        default=True,
        description="False when thread resolution data could not be fetched; resolved threads may then appear",
    )
    error: ErrorInfo | None = Field(default=None, description="Set when the request failed")


class ResolveThreadResult(BaseModel):
    ok: bool = False
    thread_id: str | None = None
    already_resolved: bool = False
    message: str = ""
    error: ErrorInfo | None = None


class ConfigInfo(BaseModel):
    """Active prbuddy configuration with metadata."""

    config: dict = Field(description="Full configuration as a dictionary")
    source: str = Field(description="Path of the loaded config file, or 'defaults'")
    explanation: str = Field(description="Human-readable summary of the active settings")


# ---------------------------------------------------------------------------
# GraphQL response schemas
# ---------------------------------------------------------------------------


class _GraphQLModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PageInfo(_GraphQLModel):
    has_next_page: bool = Field(default=False, alias="hasNextPage")
    end_cursor: str | None = Field(default=None, alias="endCursor")


class ThreadCommentNode(_GraphQLModel):
    database_id: int | None = Field(default=None, alias="databaseId")


class ThreadCommentConnection(_GraphQLModel):
    nodes: list[ThreadCommentNode | None] = Field(default_factory=list)


class ReviewThreadNode(_GraphQLModel):
    id: str
    is_resolved: bool = Field(alias="isResolved")
    comments: ThreadCommentConnection = Field(default_factory=ThreadCommentConnection)


class ReviewThreadConnection(_GraphQLModel):
    nodes: list[ReviewThreadNode | None] = Field(default_factory=list)
    page_info: PageInfo = Field(default_factory=PageInfo, alias="pageInfo")


class ThreadStatusNode(_GraphQLModel):
    """A review thread as returned by a ``node(id:)`` lookup."""

    id: str
    is_resolved: bool = Field(alias="isResolved")


class ReviewCommentThreadNode(_GraphQLModel):
    """A review comment as returned by a ``node(id:)`` lookup, with its thread."""

    id: str
    pull_request_review_thread: ThreadStatusNode | None = Field(default=None, alias="pullRequestReviewThread")
