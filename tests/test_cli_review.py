"""Tests for hunkplan.cli.review: the interactive review loop."""

import pytest

from hunkplan.cli.review import ReviewSession, run_review_loop
from hunkplan.plan.builder import build_plan
from hunkplan.plan.models import CommitType
from hunkplan.plan.review import PlanReviewer


def _script(*lines):
    """read_line stand-in that replays lines, then signals end of input."""
    remaining = list(lines)

    def read_line():
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return read_line


@pytest.fixture
def build(sample_diff):
    return build_plan(sample_diff)


@pytest.fixture
def reviewer(build):
    return PlanReviewer(build.plan, build.hunks_by_id)


class TestReviewSession:
    """Tests for ReviewSession."""

    def test_approve_unchanged(self, build, reviewer):
        """Test that 'approve' returns the plan as proposed."""
        approved = run_review_loop(reviewer, build.parsed, read_line=_script("approve"))

        assert [g.id for g in approved.groups] == ["G1", "G2"]
        assert reviewer.is_frozen

    def test_abort(self, build, reviewer, capsys):
        """Test that 'abort' discards the plan."""
        result = run_review_loop(reviewer, build.parsed, read_line=_script("abort"))

        assert result is None
        assert reviewer.aborted
        assert "No commits were created" in capsys.readouterr().out

    def test_end_of_input_aborts(self, build, reviewer):
        """Test that EOF behaves like abort."""
        assert run_review_loop(reviewer, build.parsed, read_line=_script()) is None
        assert reviewer.aborted

    def test_merge_then_approve(self, build, reviewer):
        """Test merging with short group ids."""
        approved = run_review_loop(
            reviewer, build.parsed, read_line=_script("merge 1 g2", "approve")
        )

        assert len(approved.groups) == 1
        assert len(approved.groups[0].hunk_ids) == 3

    def test_split_with_short_hunk_ids(self, build, reviewer):
        """Test that 'H<n>' prefixes resolve to full hunk ids."""
        approved = run_review_loop(
            reviewer, build.parsed, read_line=_script("split G1 H2", "approve")
        )

        assert len(approved.groups) == 3
        h2 = build.parsed.hunks[1].id
        assert any(g.hunk_ids == [h2] for g in approved.groups)

    def test_reorder(self, build, reviewer):
        """Test moving a group to the front."""
        approved = run_review_loop(
            reviewer, build.parsed, read_line=_script("reorder G2 1", "approve")
        )
        assert [g.id for g in approved.groups] == ["G2", "G1"]

    def test_inline_edit(self, build, reviewer):
        """Test editing a message on the command line."""
        approved = run_review_loop(
            reviewer,
            build.parsed,
            read_line=_script("edit G2 docs(guide): explain installation", "approve"),
        )

        group = approved.groups[1]
        assert (group.type, group.scope, group.summary) == (
            CommitType.DOCS, "guide", "explain installation"
        )
        assert group.message_source == "user"

    def test_editor_edit(self, build, reviewer):
        """Test editing through the edit_text callback."""
        seen = {}

        def edit_text(group_id, current):
            seen[group_id] = current
            return "# comment\nfix: correct the output\n\nPrint one line fewer.\n"

        session = ReviewSession(
            reviewer, build.parsed, read_line=_script("edit G1", "approve"), edit_text=edit_text
        )
        approved = session.run()

        assert seen["G1"].startswith("feat")
        assert approved.groups[0].type == CommitType.FIX
        assert approved.groups[0].body == "Print one line fewer."

    def test_editor_cancelled(self, build, reviewer):
        """Test that a cancelled edit leaves the message alone."""
        before = reviewer.plan.groups[0].summary
        session = ReviewSession(
            reviewer,
            build.parsed,
            read_line=_script("edit G1", "approve"),
            edit_text=lambda group_id, current: None,
        )

        assert session.run().groups[0].summary == before

    def test_diff_uses_pager(self, build, reviewer):
        """Test that 'diff' shows the group's patch."""
        pages = []
        session = ReviewSession(
            reviewer, build.parsed, read_line=_script("diff G2", "abort"), pager=pages.append
        )
        session.run()

        assert len(pages) == 1
        assert "docs/guide.md" in pages[0]
        assert "src/app/main.py" not in pages[0]

    def test_rejected_edit_keeps_plan(self, build, reviewer, capsys):
        """Test that an invalid edit is reported and the loop continues."""
        h3 = build.parsed.hunks[2].id
        approved = run_review_loop(
            reviewer,
            build.parsed,
            read_line=_script(f"move {h3} G2 G1", "approve"),
        )

        assert "Edit rejected (non-empty)" in capsys.readouterr().err
        assert [g.id for g in approved.groups] == ["G1", "G2"]

    def test_unknown_hunk(self, build, reviewer, capsys):
        """Test that an unknown hunk id is rejected."""
        run_review_loop(reviewer, build.parsed, read_line=_script("split G1 H9", "abort"))
        assert "unknown-hunk" in capsys.readouterr().err

    def test_usage_and_unknown_commands(self, build, reviewer, capsys):
        """Test malformed commands keep the loop running."""
        run_review_loop(
            reviewer,
            build.parsed,
            read_line=_script("merge G1", "frobnicate", "reorder G1 first", "", "abort"),
        )

        err = capsys.readouterr().err
        assert "Usage: merge G1 G2" in err
        assert "Unknown command: frobnicate" in err
        assert "Usage: reorder G2 1" in err

    def test_help(self, build, reviewer, capsys):
        """Test that 'help' lists the commands."""
        run_review_loop(reviewer, build.parsed, read_line=_script("help", "abort"))

        out = capsys.readouterr().out
        assert "merge G1 G2" in out
        assert "approve" in out
