"""Tests for hunkplan.git: the read-only diff source."""

import subprocess
from unittest.mock import MagicMock

import pytest

from hunkplan.git import (
    DEFAULT_DIFF_EXCLUDE_PATTERNS,
    GitError,
    NoChangesError,
    _run_git_command,
    _should_exclude_file,
    get_branch,
    get_changed_files,
    get_last_commits,
    get_path_history,
    get_repo_root,
    get_untracked_files,
    get_working_tree_diff,
)
from hunkplan.plan.parser import parse_diff


class TestRunGitCommand:
    """Tests for _run_git_command function."""

    def test_successful_command(self, mocker):
        """Test successful git command execution."""
        mock_result = MagicMock()
        mock_result.stdout = "output\n"
        mocker.patch("subprocess.run", return_value=mock_result)

        assert _run_git_command(["status"]) == "output"

    def test_unstripped_output(self, mocker):
        """Test that strip=False keeps the output exact."""
        mock_result = MagicMock()
        mock_result.stdout = " +x\n\n"
        mocker.patch("subprocess.run", return_value=mock_result)

        assert _run_git_command(["diff"], strip=False) == " +x\n\n"

    def test_extra_environment(self, mocker):
        """Test that env entries are layered over the process environment."""
        run = mocker.patch("subprocess.run", return_value=MagicMock(stdout=""))

        _run_git_command(["diff"], env={"GIT_INDEX_FILE": "/tmp/index"})

        env = run.call_args.kwargs["env"]
        assert env["GIT_INDEX_FILE"] == "/tmp/index"
        assert "PATH" in env

    def test_failed_command_raises_error(self, mocker):
        """Test that failed command raises GitError."""
        mocker.patch(
            "subprocess.run",
            side_effect=subprocess.CalledProcessError(1, "git", stderr="error"),
        )

        with pytest.raises(GitError, match="Git command failed"):
            _run_git_command(["invalid"])

    def test_git_not_found_raises_error(self, mocker):
        """Test that missing git raises GitError."""
        mocker.patch("subprocess.run", side_effect=FileNotFoundError())

        with pytest.raises(GitError, match="not installed"):
            _run_git_command(["status"])


class TestShouldExcludeFile:
    """Tests for _should_exclude_file function."""

    def test_exact_match(self):
        """Test exact file name match."""
        assert _should_exclude_file("poetry.lock", ["poetry.lock"])

    def test_basename_match(self):
        """Test that patterns match nested basenames."""
        assert _should_exclude_file("web/package-lock.json", DEFAULT_DIFF_EXCLUDE_PATTERNS)

    def test_glob_match(self):
        """Test glob patterns."""
        assert _should_exclude_file("dist/app.min.js", ["*.min.js"])
        assert _should_exclude_file("build/out.o", ["build/*"])

    def test_no_match(self):
        """Test that ordinary files are kept."""
        assert not _should_exclude_file("src/app.py", DEFAULT_DIFF_EXCLUDE_PATTERNS)


class TestRepository:
    """Tests against a real temporary repository."""

    def test_get_repo_root(self, temp_repo):
        """Test that the top level is found from a subdirectory."""
        sub = temp_repo / "src"
        sub.mkdir()
        assert get_repo_root(sub).resolve() == temp_repo.resolve()

    def test_get_repo_root_outside_repo(self, temp_dir):
        """Test that a plain directory is rejected."""
        with pytest.raises(GitError, match="Not in a git repository"):
            get_repo_root(temp_dir)

    def test_get_branch(self, temp_repo, git):
        """Test the current branch name."""
        git(temp_repo, "checkout", "-b", "feature/plans")
        assert get_branch(temp_repo) == "feature/plans"

    def test_get_branch_detached(self, temp_repo, git):
        """Test detached HEAD reporting."""
        git(temp_repo, "checkout", "--detach")
        assert get_branch(temp_repo) == "HEAD (detached)"

    def test_get_last_commits(self, temp_repo, git):
        """Test commit subjects, newest first."""
        (temp_repo / "a.txt").write_text("a\n")
        git(temp_repo, "add", "a.txt")
        git(temp_repo, "commit", "-m", "Add a")

        assert get_last_commits(5, temp_repo) == ["Add a", "Initial commit"]
        assert get_last_commits(1, temp_repo) == ["Add a"]

    def test_get_last_commits_empty_repo(self, temp_dir, git):
        """Test that a repository without commits has no history."""
        git(temp_dir, "init")
        assert get_last_commits(5, temp_dir) == []

    def test_get_path_history(self, temp_repo, git):
        """Test commit subjects for one path."""
        (temp_repo / "a.txt").write_text("a\n")
        git(temp_repo, "add", "a.txt")
        git(temp_repo, "commit", "-m", "Add a")

        assert get_path_history("README.md", repo_root=temp_repo) == ["Initial commit"]
        assert get_path_history("a.txt", repo_root=temp_repo) == ["Add a"]
        assert get_path_history("missing.txt", repo_root=temp_repo) == []


class TestWorkingTreeDiff:
    """Tests for get_working_tree_diff."""

    def test_no_changes(self, temp_repo):
        """Test that a clean tree raises NoChangesError."""
        with pytest.raises(NoChangesError):
            get_working_tree_diff(temp_repo, ignore_patterns=[])

    def test_modified_file(self, temp_repo):
        """Test a plain modification."""
        (temp_repo / "README.md").write_text("# Test Repo\n\nMore text.\n")

        diff = get_working_tree_diff(temp_repo, ignore_patterns=[])

        assert diff.startswith("diff --git a/README.md b/README.md\n")
        assert "+More text.\n" in diff
        assert diff.endswith("\n")

    def test_untracked_files_included(self, temp_repo):
        """Test that new files appear as additions."""
        (temp_repo / "new.py").write_text("x = 1\n")

        diff = get_working_tree_diff(temp_repo, ignore_patterns=[])
        parsed = parse_diff(diff)

        assert [h.file_path for h in parsed.hunks] == ["new.py"]
        assert "new file mode" in diff

    def test_repository_state_untouched(self, temp_repo, git):
        """Test that planning leaves the index and status exactly as found."""
        (temp_repo / "README.md").write_text("# Test Repo\n\nMore text.\n")
        (temp_repo / "new.py").write_text("x = 1\n")
        before = git(temp_repo, "status", "--porcelain").stdout

        diff = get_working_tree_diff(temp_repo, ignore_patterns=[])

        assert "new file mode" in diff
        assert git(temp_repo, "status", "--porcelain").stdout == before
        assert git(temp_repo, "diff", "--cached", "--name-only").stdout == ""
        assert "?? new.py" in before

    def test_untracked_files_excluded_on_request(self, temp_repo):
        """Test include_untracked=False."""
        (temp_repo / "new.py").write_text("x = 1\n")

        with pytest.raises(NoChangesError):
            get_working_tree_diff(temp_repo, include_untracked=False, ignore_patterns=[])
        assert get_untracked_files(temp_repo) == ["new.py"]

    def test_ignored_only(self, temp_repo, git):
        """Test that a tree with only ignored changes is rejected."""
        (temp_repo / "poetry.lock").write_text("lock\n")
        git(temp_repo, "add", "poetry.lock")
        git(temp_repo, "commit", "-m", "Add lock")
        (temp_repo / "poetry.lock").write_text("lock v2\n")

        with pytest.raises(NoChangesError, match="Only ignored files"):
            get_working_tree_diff(temp_repo, ignore_patterns=["poetry.lock"])

    def test_ignored_files_left_out(self, temp_repo):
        """Test that ignored files are dropped from a mixed diff."""
        (temp_repo / "poetry.lock").write_text("lock\n")
        (temp_repo / "README.md").write_text("# Changed\n")

        diff = get_working_tree_diff(temp_repo, ignore_patterns=["*.lock"])

        assert "README.md" in diff
        assert "poetry.lock" not in diff

    def test_repo_config_never_planned(self, temp_repo):
        """Test that the .hunkplan directory created by defaults is skipped."""
        (temp_repo / "README.md").write_text("# Changed\n")

        diff = get_working_tree_diff(temp_repo)

        assert (temp_repo / ".hunkplan" / "config.yaml").exists()
        assert ".hunkplan" not in diff

    def test_rename_lists_both_sides(self, temp_repo, git):
        """Test that a rename is reported as both paths."""
        git(temp_repo, "mv", "README.md", "GUIDE.md")

        assert sorted(get_changed_files(temp_repo)) == ["GUIDE.md", "README.md"]

    def test_repository_without_commits(self, temp_dir, git):
        """Test that the first diff is taken against the empty tree."""
        git(temp_dir, "init")
        (temp_dir / "main.py").write_text("print('hi')\n")

        diff = get_working_tree_diff(temp_dir, ignore_patterns=[])

        assert "+print('hi')\n" in diff
