"""CLI commands for the repository ignore list (.hunkplan/config.yaml)."""

from pathlib import Path

import typer

from hunkplan.git import GitError, _should_exclude_file, get_changed_files, get_repo_root, get_untracked_files
from hunkplan.user_config import (
    add_ignore_pattern,
    get_ignore_patterns,
    remove_ignore_pattern,
)

ignore_app = typer.Typer(
    name="ignore",
    help="Manage which paths are left out of the planned diff",
    add_completion=False,
)


def _repo_root() -> Path:
    try:
        return get_repo_root()
    except GitError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@ignore_app.command("list")
def ignore_list() -> None:
    """Show the ignore patterns of this repository."""
    patterns = get_ignore_patterns(_repo_root())

    typer.echo("Ignore patterns in .hunkplan/config.yaml:")
    typer.echo()
    for pattern in patterns:
        typer.echo(f"  - {pattern}")
    if patterns:
        typer.echo()
        typer.echo(f"Total: {len(patterns)} pattern(s)")
    else:
        typer.echo("  (no patterns configured)")


@ignore_app.command("add")
def ignore_add(
    pattern: str = typer.Argument(..., help="Glob to ignore (e.g., *.log, build/*)"),
) -> None:
    """Leave paths matching a pattern out of future plans."""
    repo_root = _repo_root()
    if pattern in get_ignore_patterns(repo_root):
        typer.echo(f"Pattern already exists: {pattern}")
        return
    add_ignore_pattern(repo_root, pattern)
    typer.echo(f"Added ignore pattern: {pattern}")


@ignore_app.command("remove")
def ignore_remove(
    pattern: str = typer.Argument(..., help="Pattern to drop from the ignore list"),
) -> None:
    """Plan paths matching a pattern again."""
    if not remove_ignore_pattern(_repo_root(), pattern):
        typer.echo(f"Pattern not found: {pattern}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Removed ignore pattern: {pattern}")


@ignore_app.command("check")
def ignore_check() -> None:
    """Show which changed paths the current patterns leave out of the plan."""
    repo_root = _repo_root()
    patterns = get_ignore_patterns(repo_root)
    try:
        paths = sorted(set(get_changed_files(repo_root)) | set(get_untracked_files(repo_root)))
    except GitError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    skipped = [p for p in paths if _should_exclude_file(p, patterns)]
    if not skipped:
        typer.echo(f"All {len(paths)} changed path(s) will be planned.")
        return
    typer.echo(f"Left out of the plan ({len(skipped)} of {len(paths)}):")
    for path in skipped:
        typer.echo(f"  - {path}")
