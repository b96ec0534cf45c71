"""Tests for the summary aggregator."""

from __future__ import annotations

from prbuddy.models import CommentType, Reactions
from prbuddy.tools.status import score_comments
from prbuddy.tools.summary import generate_summary


class TestGenerateSummary:
    def test_bot_and_human_counts(self, make_comment):
        comments = [make_comment(n, author="ci[bot]", is_bot=True) for n in range(1, 4)]
        comments += [make_comment(n, author=f"dev{n % 2}") for n in range(4, 11)]

        summary = generate_summary(comments, scoring_enabled=False)

        assert summary.total_comments == 10
        assert summary.bot_comments == 3
        assert summary.human_comments == 7
        assert summary.by_author == {"ci[bot]": 3, "dev0": 4, "dev1": 3}

    def test_by_type_and_reactions(self, make_comment):
        comments = [
            make_comment(1, reactions=Reactions(total_count=2, thumbs_up=2)),
            make_comment(2, type=CommentType.GENERAL_COMMENT, reactions=Reactions()),
            make_comment(3, type=CommentType.GENERAL_COMMENT),
        ]
        summary = generate_summary(comments, scoring_enabled=False)
        assert summary.by_type == {"inline_review_comment": 1, "general_comment": 2}
        assert summary.with_reactions == 1

    def test_scoring_disabled_omits_priority_data(self, make_comment):
        summary = generate_summary([make_comment(1)], scoring_enabled=False)
        assert summary.priority_summary is None
        assert summary.status_groups is None

    def test_priority_tiers_and_groups(self, make_comment):
        outdated = make_comment(1, outdated=True)
        bob = make_comment(2, author="bob", body="please fix this")
        alice_reply = make_comment(3, author="alice", in_reply_to_id=2)
        plain = make_comment(4)
        comments = score_comments([outdated, bob, alice_reply, plain])

        summary = generate_summary(comments, scoring_enabled=True)

        tiers = summary.priority_summary
        assert tiers is not None
        assert (tiers.high, tiers.medium, tiers.low) == (0, 0, 4)
        assert tiers.outdated_comments == 1
        assert tiers.has_manual_responses == 1
        assert tiers.actionable_items == 1
        groups = summary.status_groups
        assert groups is not None
        assert groups.resolved == [1]
        assert groups.in_progress == [2]
        assert groups.unresolved == [3, 4]
        assert groups.acknowledged == []

    def test_priority_ordering_disabled_omits_status_groups(self, make_comment):
        comments = score_comments([make_comment(1), make_comment(2, author="bob")])

        summary = generate_summary(comments, scoring_enabled=True, priority_ordering=False)

        assert summary.priority_summary is not None
        assert summary.status_groups is None

    def test_empty(self):
        summary = generate_summary([], scoring_enabled=True)
        assert summary.total_comments == 0
        assert summary.priority_summary is not None
        assert summary.priority_summary.high == 0
