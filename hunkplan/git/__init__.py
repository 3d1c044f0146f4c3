"""Git collaborator for hunkplan (read-only diff source).

This package provides:
- exceptions: GitError, NoChangesError
- runner: _run_git_command, get_repo_root
- branch: get_branch, get_last_commits
- diff: get_working_tree_diff, get_changed_files, get_untracked_files,
        get_path_history, _should_exclude_file, DEFAULT_DIFF_EXCLUDE_PATTERNS
"""

# Exceptions
from hunkplan.git.exceptions import (
    GitError,
    NoChangesError,
)

# Runner utilities
from hunkplan.git.runner import (
    _run_git_command,
    get_repo_root,
)

# Branch utilities
from hunkplan.git.branch import (
    get_branch,
    get_last_commits,
)

# Diff utilities
from hunkplan.git.diff import (
    DEFAULT_DIFF_EXCLUDE_PATTERNS,
    _should_exclude_file,
    get_changed_files,
    get_path_history,
    get_untracked_files,
    get_working_tree_diff,
)


__all__ = [
    # Exceptions
    "GitError",
    "NoChangesError",
    # Runner
    "_run_git_command",
    "get_repo_root",
    # Branch
    "get_branch",
    "get_last_commits",
    # Diff
    "get_working_tree_diff",
    "get_changed_files",
    "get_untracked_files",
    "get_path_history",
    "_should_exclude_file",
    "DEFAULT_DIFF_EXCLUDE_PATTERNS",
]
