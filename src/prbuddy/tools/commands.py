"""Per-comment action commands.

Everything here is text for the calling agent to run. prbuddy never resolves
anything on its own, so every resolve instruction carries the condition that
must be verified first.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prbuddy.models import ActionCommands, CommentType, McpAction, ResolveThreadArgs

if TYPE_CHECKING:
    from prbuddy.models import PullRequestRef

REPLY_PLACEHOLDER = "YOUR_RESPONSE_HERE"
RESOLVE_BODY = "✅ Fixed"
UNRESOLVABLE_CONDITION = "This comment type cannot be resolved via API"
_CONDITION_PREVIEW_CHARS = 80


def _replies_endpoint(pr: PullRequestRef, comment_id: int) -> str:
    return f"/repos/{pr.full_repo}/pulls/{pr.number}/comments/{comment_id}/replies"


def resolve_condition(body: str) -> str:
    """Describe what to verify before resolving, quoting the comment's first line."""
    first_line = body.strip().splitlines()[0] if body.strip() else ""
    return f'Run ONLY after you\'ve verified the fix for: "{first_line[:_CONDITION_PREVIEW_CHARS]}..."'


def build_action_commands(
    pr: PullRequestRef,
    *,
    comment_id: int,
    comment_type: CommentType,
    body: str,
    thread_id: str | None = None,
) -> ActionCommands:
    """Build reply/resolve/view commands for one comment.

    Only inline review comments get a resolve command, and only inline
    comments with a known thread id get the structured ``mcp_action``.
    """
    inline = comment_type is CommentType.INLINE_REVIEW_COMMENT

    if inline:
        reply = f'gh api -X POST {_replies_endpoint(pr, comment_id)} -f body="{REPLY_PLACEHOLDER}"'
        resolve = f'gh api -X POST {_replies_endpoint(pr, comment_id)} -f body="{RESOLVE_BODY}"'
        condition = resolve_condition(body)
    else:
        reply = f'gh pr comment {pr.number} --repo {pr.full_repo} --body "{REPLY_PLACEHOLDER}"'
        resolve = None
        condition = UNRESOLVABLE_CONDITION

    mcp_action = None
    if inline and thread_id:
        mcp_action = McpAction(args=ResolveThreadArgs(pr=str(pr), thread_id=thread_id))

    return ActionCommands(
        reply_command=reply,
        resolve_command=resolve,
        resolve_condition=condition,
        view_in_browser=f"gh pr view {pr.number} --repo {pr.full_repo} --web",
        mcp_action=mcp_action,
    )
