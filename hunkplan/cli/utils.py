"""Helpers shared by the CLI commands: logging, settings, editor and pager."""

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Optional

import typer

from hunkplan import global_config
from hunkplan.git import GitError, get_repo_root
from hunkplan.plan.settings import PlannerConfig, load_planner_config_from_dict
from hunkplan.user_config import get_repo_planner_config

logger = logging.getLogger(__name__)

# Third-party loggers that are noisy at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "google_genai", "cohere", "groq")

# First matching prefix wins, so file headers come before +/-
_DIFF_STYLES = (
    ("diff --git", {"bold": True}),
    ("+++", {"bold": True}),
    ("---", {"bold": True}),
    ("@@", {"fg": typer.colors.CYAN}),
    ("+", {"fg": typer.colors.GREEN}),
    ("-", {"fg": typer.colors.RED}),
)


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging for a CLI run (INFO, or DEBUG with --verbose)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if not verbose:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_current_branch_safe() -> str:
    """Name of the checked-out branch, or 'unknown' when git cannot tell."""
    try:
        result = subprocess.run(
            ["git", "branch", "--show-current"], capture_output=True, text=True, check=False
        )
    except OSError:
        return "unknown"
    branch = result.stdout.strip()
    return branch if result.returncode == 0 and branch else "unknown"


def get_effective_planner_config(
    repo_root: Optional[Path] = None,
    overrides: Optional[dict] = None,
) -> PlannerConfig:
    """Merge planner settings: defaults, then global, repository and CLI values.

    Args:
        repo_root: Repository whose .hunkplan/config.yaml is read; the
            current repository when omitted. Outside a repository only the
            global section applies.
        overrides: CLI values; None entries are skipped.

    Returns:
        The merged PlannerConfig.
    """
    try:
        global_section = global_config.get_planner_config()
    except global_config.GlobalConfigError as e:
        typer.echo(f"Warning: {e}", err=True)
        global_section = {}

    try:
        repo_section = get_repo_planner_config(repo_root or get_repo_root())
    except GitError:
        repo_section = {}

    cli_section = {k: v for k, v in (overrides or {}).items() if v is not None}
    return load_planner_config_from_dict(global_section, repo_section, cli_section)


def find_editor() -> list[str]:
    """Editor command: $VISUAL, then $EDITOR, then nano, then vi."""
    for var in ("VISUAL", "EDITOR"):
        value = os.environ.get(var, "").strip()
        if value:
            return shlex.split(value)
    # noinspection PyArgumentList
    return ["nano"] if shutil.which("nano") else ["vi"]


def open_editor(file_path: Path) -> bool:
    """Edit ``file_path`` and wait; False if the editor is missing or fails."""
    command = find_editor() + [str(file_path)]
    try:
        returncode = subprocess.run(command, check=False).returncode
    except FileNotFoundError:
        typer.echo(f"Error: Editor not found: {command[0]}", err=True)
        return False

    if returncode:
        typer.echo(f"Warning: Editor exited with code {returncode}", err=True)
    return returncode == 0


def colorize_diff(text: str) -> str:
    """Color a patch the way `git diff` does on a terminal."""

    def _style(line: str) -> str:
        for prefix, style in _DIFF_STYLES:
            if line.startswith(prefix):
                return typer.style(line, **style)
        return line

    return "\n".join(_style(line) for line in text.split("\n"))


def show_in_pager(text: str) -> None:
    """Page ``text`` through less; print it when less is unavailable."""
    # noinspection PyArgumentList
    less = shutil.which("less")
    if less:
        try:
            with subprocess.Popen(
                [less, "-R", "--quit-if-one-screen"],
                stdin=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
            ) as proc:
                proc.communicate(input=text)
            return
        except OSError:
            logger.debug("Pager failed, printing instead", exc_info=True)
    typer.echo(text)
