"""Git command runner and repository utilities.

Contains:
- _run_git_command: Run a git command and return its output
- get_repo_root: Get the root directory of the current git repository
"""

import os
import subprocess
from pathlib import Path
from typing import Optional

from hunkplan.git.exceptions import GitError


def _run_git_command(
    args: list[str],
    cwd: Optional[Path] = None,
    strip: bool = True,
    env: Optional[dict[str, str]] = None,
) -> str:
    """Run a git command and return its output.

    Args:
        args: List of arguments to pass to git.
        cwd: Directory to run in (defaults to the current directory).
        strip: Strip surrounding whitespace from stdout. Diffs must be
            read with strip=False so they stay byte-exact.
        env: Extra environment variables for this command.

    Returns:
        The stdout of the git command.

    Raises:
        GitError: If the command fails.
    """
    try:
        result = subprocess.run(
            ["git"] + args,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="surrogateescape",
            check=True,
            cwd=cwd,
            env={**os.environ, **env} if env else None,
        )
        return result.stdout.strip() if strip else result.stdout
    except subprocess.CalledProcessError as e:
        raise GitError(f"Git command failed: git {' '.join(args)}\n{e.stderr.strip()}")
    except FileNotFoundError:
        raise GitError("Git is not installed or not in PATH.")


def get_repo_root(cwd: Optional[Path] = None) -> Path:
    """Get the root directory of the current git repository.

    Returns:
        Path to the repository root.

    Raises:
        GitError: If not in a git repository.
    """
    try:
        root = _run_git_command(["rev-parse", "--show-toplevel"], cwd=cwd)
        return Path(root)
    except GitError:
        raise GitError("Not in a git repository. Please run this command from within a git repo.")
