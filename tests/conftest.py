"""Global test fixtures for prbuddy."""

from __future__ import annotations

import pytest

from prbuddy import cache, github_api, reviewers
from prbuddy.config import Config, clear_reload_callbacks, set_config


@pytest.fixture(autouse=True)
def _clean_state():
    """Give every test default config, an empty cache and no cached token.

    A committed .prbuddy.toml or a token from the developer's environment
    would otherwise leak into test expectations.
    """
    set_config(Config())
    reviewers.apply_config(Config())
    cache.reset()
    github_api.reset_token()
    yield
    set_config(Config())
    reviewers.apply_config(Config())
    clear_reload_callbacks()
    cache.reset()
    github_api.reset_token()


@pytest.fixture
def github_token(monkeypatch: pytest.MonkeyPatch) -> str:
    """Provide a fake token through the environment."""
    monkeypatch.setenv("GH_TOKEN", "tok_test")
    return "tok_test"


@pytest.fixture
def make_comment():
    """Factory for :class:`~prbuddy.models.Comment` objects with sensible defaults."""
    from datetime import UTC, datetime, timedelta

    from prbuddy.models import ActionCommands, Comment, CommentType

    base = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def _make(comment_id: int, **overrides):
        minutes = overrides.pop("minutes", abs(comment_id))
        created = base + timedelta(minutes=minutes)
        fields = {
            "id": comment_id,
            "type": CommentType.INLINE_REVIEW_COMMENT,
            "author": "alice",
            "created_at": created,
            "updated_at": created,
            "body": "Looks fine",
            "action_commands": ActionCommands(
                reply_command="gh pr comment 1",
                resolve_condition="n/a",
                view_in_browser="gh pr view 1 --web",
            ),
        }
        fields.update(overrides)
        return Comment(**fields)

    return _make
