"""Tests for hunkplan.plan.executor: committing an approved plan.

Covers:
- materialize_plan with an in-memory materializer (success, partial failure)
- MaterializationReport recovery hints
- GitMaterializer against a real temporary repository
"""

import pytest

from hunkplan.git import get_working_tree_diff
from hunkplan.plan.builder import build_plan
from hunkplan.plan.exceptions import MaterializationFailure
from hunkplan.plan.executor import (
    CommitStepError,
    GitMaterializer,
    MaterializationReport,
    Materializer,
    materialize_plan,
)
from hunkplan.plan.models import ApprovedPlan, CommitType, Group
from hunkplan.plan.parser import parse_diff
from hunkplan.plan.review import PlanReviewer


class RecordingMaterializer(Materializer):
    """Keeps commits in memory and can fail on a chosen group."""

    def __init__(self, fail_on=None, fail_prepare=False):
        self.fail_on = fail_on
        self.fail_prepare = fail_prepare
        self.commits = []
        self.cleaned_up = False

    def prepare(self):
        if self.fail_prepare:
            raise CommitStepError("index is locked")
        return "abc123"

    def commit(self, group_id, patch, message):
        if group_id == self.fail_on:
            raise CommitStepError(f"patch for {group_id} does not apply")
        self.commits.append((group_id, patch, message))
        return f"commit-{group_id}"

    def cleanup(self):
        self.cleaned_up = True


@pytest.fixture
def approved(sample_diff):
    parsed = parse_diff(sample_diff)
    h1, h2, h3 = parsed.hunks
    plan = ApprovedPlan(groups=(
        Group(id="G1", hunk_ids=[h1.id, h2.id], type=CommitType.FEAT, summary="print more"),
        Group(id="G2", hunk_ids=[h3.id], type=CommitType.DOCS, summary="document install"),
    ))
    return plan, parsed


class TestMaterializePlan:
    """Tests for materialize_plan."""

    def test_commits_in_order(self, approved):
        """Test that every group is committed with its patch and message."""
        plan, parsed = approved
        materializer = RecordingMaterializer()
        report = materialize_plan(plan, parsed, materializer)

        assert report.success
        assert report.committed == ["G1", "G2"]
        assert report.pending == []
        assert report.commit_ids == {"G1": "commit-G1", "G2": "commit-G2"}
        assert report.pre_head == "abc123"
        assert [c[2] for c in materializer.commits] == [
            "feat: print more",
            "docs: document install",
        ]
        assert "src/app/main.py" in materializer.commits[0][1]
        assert "docs/guide.md" not in materializer.commits[0][1]
        assert materializer.cleaned_up

    def test_partial_failure(self, approved):
        """Test that a failing group stops the run and is reported."""
        plan, parsed = approved
        materializer = RecordingMaterializer(fail_on="G2")

        with pytest.raises(MaterializationFailure) as exc_info:
            materialize_plan(plan, parsed, materializer)

        report = exc_info.value.report
        assert report.committed == ["G1"]
        assert report.failed == "G2"
        assert report.pending == []
        assert "does not apply" in report.error
        assert not report.success
        assert materializer.cleaned_up

    def test_failure_lists_pending_groups(self, approved):
        """Test that groups after the failure are listed as pending."""
        plan, parsed = approved
        with pytest.raises(MaterializationFailure) as exc_info:
            materialize_plan(plan, parsed, RecordingMaterializer(fail_on="G1"))

        report = exc_info.value.report
        assert report.committed == []
        assert report.failed == "G1"
        assert report.pending == ["G2"]
        assert "Pending: G2" in str(exc_info.value)

    def test_prepare_failure(self, approved):
        """Test that a failing prepare step is reported before any commit."""
        plan, parsed = approved
        materializer = RecordingMaterializer(fail_prepare=True)

        with pytest.raises(MaterializationFailure) as exc_info:
            materialize_plan(plan, parsed, materializer)

        assert exc_info.value.report.failed == "prepare"
        assert materializer.commits == []
        assert materializer.cleaned_up

    def test_requires_approved_plan(self, sample_diff):
        """Test that an unapproved plan cannot be materialized."""
        build = build_plan(sample_diff)
        with pytest.raises(TypeError):
            materialize_plan(build.plan, build.parsed, RecordingMaterializer())


class TestMaterializationReport:
    """Tests for MaterializationReport."""

    def test_recovery_hint(self):
        """Test the hint after commits were created."""
        report = MaterializationReport(committed=["G1", "G2"], failed="G3", pre_head="abc123")
        hint = report.recovery_hint()
        assert "2 commit(s)" in hint
        assert "git reset --soft abc123" in hint

    def test_no_hint_without_commits(self):
        """Test that nothing needs undoing when nothing was committed."""
        assert MaterializationReport(failed="G1", pre_head="abc123").recovery_hint() == ""


class TestGitMaterializer:
    """Tests for GitMaterializer against a real repository."""

    def _setup_changes(self, repo):
        lines = [f"line {i}" for i in range(1, 61)]
        (repo / "app.py").write_text("\n".join(lines) + "\n")
        (repo / "notes.txt").write_text("first\n")

    def test_end_to_end(self, temp_repo, git):
        """Test that a planned diff becomes one commit per group."""
        self._setup_changes(temp_repo)
        git(temp_repo, "add", "app.py", "notes.txt")
        git(temp_repo, "commit", "-m", "Add files")

        app = (temp_repo / "app.py").read_text().splitlines()
        app[1] = "line 2 changed"
        app[55] = "line 56 changed"
        (temp_repo / "app.py").write_text("\n".join(app) + "\n")
        (temp_repo / "notes.txt").write_text("first\nsecond\n")
        (temp_repo / "docs").mkdir()
        (temp_repo / "docs" / "usage.md").write_text("# Usage\n")

        diff = get_working_tree_diff(temp_repo, ignore_patterns=[])
        build = build_plan(diff)
        approved = PlanReviewer(build.plan, build.hunks_by_id).approve()

        report = materialize_plan(approved, build.parsed, GitMaterializer(temp_repo))

        assert report.success
        assert len(report.committed) == len(approved.groups)
        log = git(temp_repo, "log", "--pretty=%s").stdout.splitlines()
        assert len(log) == 2 + len(approved.groups)
        assert git(temp_repo, "status", "--porcelain").stdout.strip() == ""
        assert not (temp_repo / ".tmp").exists()

    def test_pre_head_recorded(self, temp_repo, git):
        """Test that prepare returns the starting HEAD."""
        head = git(temp_repo, "rev-parse", "HEAD").stdout.strip()
        assert GitMaterializer(temp_repo).prepare() == head

    def test_bad_patch_fails(self, temp_repo):
        """Test that a patch git cannot apply raises CommitStepError."""
        materializer = GitMaterializer(temp_repo)
        materializer.prepare()
        bad_patch = (
            "diff --git a/README.md b/README.md\n"
            "--- a/README.md\n"
            "+++ b/README.md\n"
            "@@ -1 +1 @@\n"
            "-not the real content\n"
            "+replacement\n"
        )
        try:
            with pytest.raises(CommitStepError, match="Failed to apply"):
                materializer.commit("G1", bad_patch, "fix: nothing")
        finally:
            materializer.cleanup()
        assert not (temp_repo / ".tmp").exists()
