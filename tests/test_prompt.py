"""Tests for hunkplan.plan.prompt: the text-generation contract."""

import pytest

from hunkplan.llm.exceptions import JSONParseError
from hunkplan.plan.models import ChangeKind, CommitType, Group
from hunkplan.plan.parser import parse_diff
from hunkplan.plan.prompt import (
    TRUNCATION_MARKER,
    FileChange,
    MessageRequest,
    build_change_tree,
    build_message_request,
    build_user_prompt,
    describe_changes,
    parse_message_response,
    truncate_patches,
    truncate_summary,
)
from hunkplan.plan.settings import PlannerConfig


class TestChangeTree:
    """Tests for build_change_tree and describe_changes."""

    def test_tree_markers(self):
        """Test that files are listed under their directories with markers."""
        tree = build_change_tree([
            FileChange(path="src/api/routes.py", kind=ChangeKind.MODIFY),
            FileChange(path="README.md", kind=ChangeKind.ADD),
        ])
        assert tree.splitlines() == [
            "- [A] README.md",
            "src/",
            "  api/",
            "    - [M] routes.py",
        ]

    def test_rename_note(self):
        """Test that renames show where they came from."""
        tree = build_change_tree([
            FileChange(path="new.py", kind=ChangeKind.RENAME, old_path="old.py"),
        ])
        assert tree == "- [R] new.py <- old.py"

    def test_empty_tree(self):
        """Test the placeholder for no files."""
        assert build_change_tree([]) == "(none)"

    def test_describe_changes(self):
        """Test the one-line change summary."""
        text = describe_changes([
            FileChange(path="a.py", kind=ChangeKind.MODIFY, additions=3, deletions=1),
            FileChange(path="b.py", kind=ChangeKind.ADD, additions=9),
        ])
        assert text == "2 files (1 modified, 1 added), +12/-1 lines"


class TestTruncatePatches:
    """Tests for per-file and total patch limits."""

    def test_per_file_limit(self):
        """Test that a long file body is cut with a marker."""
        text = truncate_patches([("--- a.py", "x" * 100)], 10, 1000)
        assert text == "--- a.py\n" + "x" * 10 + TRUNCATION_MARKER

    def test_total_limit(self):
        """Test that excerpts stop at the total limit."""
        entries = [(f"--- f{i}.py", "y" * 20) for i in range(10)]
        text = truncate_patches(entries, 100, 70)
        assert text.endswith(TRUNCATION_MARKER)
        assert "--- f9.py" not in text

    def test_empty_bodies_skipped(self):
        """Test that files without patch text are left out."""
        assert truncate_patches([("--- a.py", "")], 10, 100) == ""


class TestBuildRequest:
    """Tests for build_message_request and build_user_prompt."""

    def test_request_for_group(self, sample_diff):
        """Test that a request lists the group's files and patch text."""
        parsed = parse_diff(sample_diff)
        group = Group(id="G1", hunk_ids=[h.id for h in parsed.hunks[:2]])
        request = build_message_request(group, parsed, CommitType.FEAT, None, branch="main")

        assert request.group_id == "G1"
        assert [f.path for f in request.files] == ["src/app/main.py"]
        assert request.files[0].additions == 4
        assert "print(\"World\")" in request.truncated_patch
        assert "docs/guide.md" not in request.truncated_patch

    def test_patch_limits_applied(self, sample_diff):
        """Test that the configured limits bound the excerpt."""
        parsed = parse_diff(sample_diff)
        group = Group(id="G1", hunk_ids=[h.id for h in parsed.hunks])
        config = PlannerConfig(max_file_patch_chars=20, max_patch_chars=200)
        request = build_message_request(group, parsed, CommitType.FEAT, None, config)

        assert TRUNCATION_MARKER in request.truncated_patch

    def test_user_prompt_contents(self):
        """Test that the prompt carries type, scope, branch and files."""
        request = MessageRequest(
            group_id="G2",
            type=CommitType.FIX,
            scope="api",
            files=[FileChange(path="src/api/routes.py", kind=ChangeKind.MODIFY, additions=2)],
            change_summary="1 file (1 modified), +2/-0 lines",
            truncated_patch="@@ -1 +1 @@\n-a\n+b\n",
            branch="bugfix/timeout",
        )
        prompt = build_user_prompt(request)

        assert "Commit type: fix" in prompt
        assert "Scope: api" in prompt
        assert "Branch: bugfix/timeout" in prompt
        assert "- src/api/routes.py (modified: +2/-0)" in prompt
        assert "Patch excerpts:" in prompt
        assert "Recent commits" not in prompt

    def test_history_for_renamed_files(self, rename_diff):
        """Test that the old side of a rename is looked up and capped."""
        parsed = parse_diff(rename_diff)
        group = Group(id="G1", hunk_ids=[h.id for h in parsed.hunks])
        looked_up = []

        def lookup(path):
            looked_up.append(path)
            return ["move config", "tidy", "add settings loader", "initial"]

        request = build_message_request(
            group, parsed, CommitType.REFACTOR, None,
            recent_commits=["feat: add parser"], path_history=lookup,
        )

        assert looked_up == ["old/settings.py"]
        assert request.path_history == {
            "old/settings.py": ["move config", "tidy", "add settings loader"],
        }
        assert request.recent_commits == ["feat: add parser"]

    def test_no_history_lookup_without_renames(self, sample_diff):
        """Test that plain modifications never query path history."""
        parsed = parse_diff(sample_diff)
        group = Group(id="G1", hunk_ids=[h.id for h in parsed.hunks])
        looked_up = []

        request = build_message_request(
            group, parsed, CommitType.FEAT, None,
            path_history=lambda path: looked_up.append(path) or ["x"],
        )

        assert looked_up == []
        assert request.path_history == {}

    def test_user_prompt_lists_history(self):
        """Test that recent and per-path commits reach the prompt."""
        request = MessageRequest(
            group_id="G1",
            type=CommitType.REFACTOR,
            files=[FileChange(
                path="new/settings.py", kind=ChangeKind.RENAME, old_path="old/settings.py",
            )],
            change_summary="1 file (1 renamed), +0/-0 lines",
            recent_commits=["feat(api): add routes", "fix: handle empty body"],
            path_history={"old/settings.py": ["add settings loader"]},
        )
        prompt = build_user_prompt(request)

        assert "Recent commits (match their style):\n- feat(api): add routes\n" in prompt
        assert "Earlier commits touching old/settings.py:\n- add settings loader\n" in prompt


class TestParseMessageResponse:
    """Tests for validating collaborator answers."""

    def test_json(self):
        """Test a plain JSON answer."""
        response = parse_message_response('{"summary": "add retry option", "body": "Details."}')
        assert response.summary == "add retry option"
        assert response.body == "Details."

    def test_fenced_json(self):
        """Test a JSON answer wrapped in a markdown fence."""
        raw = '```json\n{"summary": "add retry option", "body": null}\n```'
        response = parse_message_response(raw)
        assert response.summary == "add retry option"
        assert response.body is None

    def test_conventional_prefix_stripped(self):
        """Test that a repeated 'type(scope):' prefix is removed."""
        response = parse_message_response('{"summary": "fix(api): handle empty body."}')
        assert response.summary == "handle empty body"

    def test_plain_text(self):
        """Test a plain 'summary then body' answer."""
        response = parse_message_response("add retry option\n\nRetries failed requests.")
        assert response.summary == "add retry option"
        assert response.body == "Retries failed requests."

    def test_control_characters_removed(self):
        """Test that control characters are stripped."""
        response = parse_message_response('{"summary": "add\x07 bell"}')
        assert response.summary == "add bell"

    def test_long_summary_truncated(self):
        """Test that summaries are cut at a word boundary."""
        response = parse_message_response('{"summary": "' + "word " * 30 + '"}', 20)
        assert len(response.summary) <= 20
        assert not response.summary.endswith(" ")

    def test_empty_summary_rejected(self):
        """Test that an empty summary is an error."""
        with pytest.raises(JSONParseError):
            parse_message_response('{"summary": ""}')

    def test_broken_json_rejected(self):
        """Test that broken JSON is an error."""
        with pytest.raises(JSONParseError):
            parse_message_response('{"summary": "unterminated')

    def test_body_list_joined(self):
        """Test that a list body is joined into lines."""
        response = parse_message_response('{"summary": "update docs", "body": ["one", "two"]}')
        assert response.body == "one\ntwo"


class TestTruncateSummary:
    """Tests for truncate_summary."""

    def test_short_text_unchanged(self):
        """Test that short summaries pass through."""
        assert truncate_summary("add option", 72) == "add option"

    def test_word_boundary(self):
        """Test that truncation happens between words."""
        assert truncate_summary("add a very long option name", 12) == "add a very"

    def test_single_long_word(self):
        """Test that a single long word is hard-cut."""
        assert truncate_summary("x" * 30, 10) == "x" * 10
