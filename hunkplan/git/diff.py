"""Git diff utilities.

Contains:
- get_working_tree_diff: Diff of all uncommitted changes, excluding ignored files
- get_changed_files: Paths with uncommitted changes (both sides of renames)
- get_untracked_files: Untracked, non-gitignored paths
- get_path_history: Recent commit subjects touching a path
- _should_exclude_file: Check if a file should be excluded based on patterns
- DEFAULT_DIFF_EXCLUDE_PATTERNS: Default patterns for files to exclude from diff
"""

import fnmatch
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from hunkplan.git.exceptions import GitError, NoChangesError
from hunkplan.git.runner import _run_git_command
from hunkplan.user_config import get_ignore_patterns

logger = logging.getLogger(__name__)

# Git's well-known empty tree, used when the repository has no commits yet
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

# Note: This list is used as fallback; actual patterns come from .hunkplan/config.yaml
DEFAULT_DIFF_EXCLUDE_PATTERNS = [
    "poetry.lock",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "Cargo.lock",
    "Gemfile.lock",
    "composer.lock",
    "go.sum",
]

# hunkplan's own working directories never belong in a plan
ALWAYS_EXCLUDED_PATTERNS = [".hunkplan/*", ".tmp/hunkplan_*"]


def _should_exclude_file(filename: str, patterns: list[str]) -> bool:
    """Check if a file should be excluded based on patterns.

    Supports glob patterns like *.lock, build/*, etc.

    Args:
        filename: The file path to check.
        patterns: List of patterns to match against.

    Returns:
        True if the file should be excluded.
    """
    for pattern in patterns:
        # Handle exact matches
        if filename == pattern:
            return True
        # Handle glob patterns
        if fnmatch.fnmatch(filename, pattern):
            return True
        # Handle patterns that might match the basename
        if fnmatch.fnmatch(Path(filename).name, pattern):
            return True
    return False


def _base_revision(repo_root: Path) -> str:
    """HEAD, or the empty tree in a repository without commits."""
    try:
        _run_git_command(["rev-parse", "--verify", "-q", "HEAD"], cwd=repo_root)
        return "HEAD"
    except GitError:
        return EMPTY_TREE


def get_untracked_files(repo_root: Path) -> list[str]:
    """Untracked files that are not excluded by .gitignore."""
    output = _run_git_command(
        ["ls-files", "--others", "--exclude-standard"], cwd=repo_root
    )
    return [line for line in output.split("\n") if line]


def get_changed_files(repo_root: Path, env: Optional[dict[str, str]] = None) -> list[str]:
    """Paths with uncommitted changes relative to HEAD.

    Renames are listed as their two sides so that a pathspec built from
    this list still lets git pair them.
    """
    output = _run_git_command(
        ["diff", _base_revision(repo_root), "--name-only", "--no-renames"],
        cwd=repo_root,
        env=env,
    )
    return [line for line in output.split("\n") if line]


def _diff_against_base(
    repo_root: Path,
    patterns: list[str],
    env: Optional[dict[str, str]] = None,
) -> str:
    changed = get_changed_files(repo_root, env=env)
    if not changed:
        raise NoChangesError("No uncommitted changes found. Nothing to plan.")

    files_to_include = [f for f in changed if not _should_exclude_file(f, patterns)]
    if not files_to_include:
        raise NoChangesError("Only ignored files changed. Nothing to plan.")

    return _run_git_command(
        [
            "diff",
            _base_revision(repo_root),
            "--patch",
            "--find-renames",
            "--binary",
            "--no-color",
            "--no-ext-diff",
            "--",
        ] + files_to_include,
        cwd=repo_root,
        strip=False,
        env=env,
    )


def get_working_tree_diff(
    repo_root: Path,
    include_untracked: bool = True,
    ignore_patterns: Optional[list[str]] = None,
) -> str:
    """Get the diff of every uncommitted change, excluding ignored files.

    Untracked files are marked intent-to-add in a scratch copy of the
    index (GIT_INDEX_FILE), so they show up as added files and can pair
    with deletions as renames while the repository's own index stays
    untouched.

    Args:
        repo_root: The root directory of the git repository.
        include_untracked: Include untracked files as added files.
        ignore_patterns: Glob patterns to exclude; defaults to the
            repository's .hunkplan/config.yaml ignore list.

    Returns:
        The unified diff text, byte-exact.

    Raises:
        NoChangesError: If there is nothing to plan.
        GitError: If a git command fails.
    """
    if ignore_patterns is None:
        ignore_patterns = get_ignore_patterns(repo_root)
    patterns = list(ignore_patterns) + ALWAYS_EXCLUDED_PATTERNS

    untracked = []
    if include_untracked:
        untracked = [
            f for f in get_untracked_files(repo_root)
            if not _should_exclude_file(f, patterns)
        ]

    if untracked:
        # Relative paths from --git-path are relative to the working directory
        index_path = Path(repo_root) / _run_git_command(
            ["rev-parse", "--git-path", "index"], cwd=repo_root
        )
        with tempfile.TemporaryDirectory(prefix="hunkplan_index_") as scratch:
            scratch_index = Path(scratch) / "index"
            if index_path.exists():
                shutil.copyfile(index_path, scratch_index)
            env = {"GIT_INDEX_FILE": str(scratch_index)}
            logger.debug("Marking %d untracked files intent-to-add in a scratch index", len(untracked))
            _run_git_command(["add", "--intent-to-add", "--"] + untracked, cwd=repo_root, env=env)
            diff = _diff_against_base(repo_root, patterns, env=env)
    else:
        diff = _diff_against_base(repo_root, patterns)

    if not diff.strip():
        raise NoChangesError("No uncommitted changes found. Nothing to plan.")

    return diff


def get_path_history(path: str, n: int = 5, repo_root: Optional[Path] = None) -> list[str]:
    """Get the last n commit subjects that touched a path (following renames).

    Args:
        path: Repository-relative path.
        n: Number of commits to retrieve.
        repo_root: Repository to read (defaults to the current directory).

    Returns:
        List of commit subject lines (empty for new paths).
    """
    try:
        output = _run_git_command(
            ["log", f"-n{n}", "--follow", "--pretty=%s", "--", path], cwd=repo_root
        )
    except GitError:
        return []
    return output.split("\n") if output else []
