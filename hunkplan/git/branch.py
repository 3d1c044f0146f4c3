"""Git branch and commit utilities.

Contains:
- get_branch: Get the current branch name
- get_last_commits: Get the last n commit subjects
"""

from pathlib import Path
from typing import Optional

from hunkplan.git.exceptions import GitError
from hunkplan.git.runner import _run_git_command


def get_branch(repo_root: Optional[Path] = None) -> str:
    """Get the current branch name.

    Returns:
        The current branch name, or 'HEAD (detached)' if in detached state.
    """
    branch = _run_git_command(["branch", "--show-current"], cwd=repo_root)
    if not branch:
        # Detached HEAD state
        return "HEAD (detached)"
    return branch


def get_last_commits(n: int = 5, repo_root: Optional[Path] = None) -> list[str]:
    """Get the last n commit subjects.

    Args:
        n: Number of commits to retrieve.
        repo_root: Repository to read (defaults to the current directory).

    Returns:
        List of commit subject lines.
    """
    try:
        output = _run_git_command(["log", f"-n{n}", "--pretty=%s"], cwd=repo_root)
        if not output:
            return []
        return output.split("\n")
    except GitError:
        # No commits yet in the repo
        return []
