"""Main CLI command: plan, review and commit working-tree changes."""

import logging
from functools import partial
from typing import Optional

import typer

from hunkplan.cli.review import run_review_loop
from hunkplan.cli.utils import (
    colorize_diff,
    get_current_branch_safe,
    get_effective_planner_config,
    setup_logging,
    show_in_pager,
)
from hunkplan.git import (
    GitError,
    NoChangesError,
    get_last_commits,
    get_path_history,
    get_repo_root,
    get_working_tree_diff,
)
from hunkplan.llm import LLMError, MissingAPIKeyError, get_provider
from hunkplan.plan.builder import build_plan
from hunkplan.plan.exceptions import MaterializationFailure, ParseError
from hunkplan.plan.executor import GitMaterializer, materialize_plan
from hunkplan.plan.partition import parse_granularity
from hunkplan.plan.patch import build_group_patch
from hunkplan.plan.render import format_plan, format_plan_json
from hunkplan.plan.review import PlanReviewer
from hunkplan.plan.settings import PlannerConfig
from hunkplan.plan.synthesis import LLMTextGenerator, TextGenerator

logger = logging.getLogger(__name__)


def _make_generator(config: PlannerConfig) -> Optional[TextGenerator]:
    """Text generator for the configured provider, or None without an API key."""
    try:
        provider = get_provider(timeout=config.synthesis_timeout)
        provider.get_api_key()
    except MissingAPIKeyError as e:
        typer.echo(f"Warning: {e}", err=True)
        typer.echo("Falling back to template messages (use --no-llm to silence this).", err=True)
        return None
    return LLMTextGenerator(provider, config.max_summary_length)


def main_command(
    ctx: typer.Context,
    granularity: str = typer.Option(
        "auto",
        "--granularity",
        "-g",
        help="Grouping granularity: single, auto, or 'max N'",
    ),
    no_llm: bool = typer.Option(
        False,
        "--no-llm",
        help="Use template messages only (no text generation)",
    ),
    do_commit: bool = typer.Option(
        False,
        "--commit",
        "-c",
        help="Review the plan and create the commits after approval",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Approve the proposed plan without the review loop (with --commit)",
    ),
    show_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Print the plan as JSON",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        help="Concurrent text-generation calls (overrides config)",
    ),
    no_untracked: bool = typer.Option(
        False,
        "--no-untracked",
        help="Leave untracked files out of the plan",
    ),
    show: Optional[str] = typer.Option(
        None,
        "--show",
        help="Show the patch of one planned group (e.g., --show G2)",
    ),
) -> None:
    """Split working-tree changes into a reviewed stack of conventional commits.

    By default only prints the plan. Use --commit to review it and create
    the commits.
    """
    # If a subcommand is invoked, don't run the default behavior
    if ctx.invoked_subcommand is not None:
        return

    from hunkplan.config import load_config

    setup_logging(verbose)
    load_config()

    try:
        parse_granularity(granularity)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    try:
        repo_root = get_repo_root()
        config = get_effective_planner_config(repo_root, {"synthesis_workers": workers})

        diff_text = get_working_tree_diff(repo_root, include_untracked=not no_untracked)

        generator = None if no_llm or show else _make_generator(config)
        recent_commits = None
        path_history = None
        if generator is not None:
            typer.echo("Generating commit messages...", err=True)
            recent_commits = get_last_commits(5, repo_root)
            path_history = partial(get_path_history, repo_root=repo_root)

        build = build_plan(
            diff_text,
            granularity,
            generator=generator,
            config=config,
            branch=get_current_branch_safe(),
            recent_commits=recent_commits,
            path_history=path_history,
        )
        plan = build.plan

        # Handle --show <GROUP_ID>: show the patch for a specific group
        if show is not None:
            gid = show.strip().upper()
            if not gid.startswith("G"):
                gid = f"G{gid}"
            group = plan.group(gid)
            if group is None:
                typer.echo(f"Group '{gid}' not found in plan.", err=True)
                typer.echo(f"Available IDs: {', '.join(plan.group_ids())}", err=True)
                raise typer.Exit(1)
            show_in_pager(colorize_diff(build_group_patch(group.hunk_ids, build.parsed)))
            raise typer.Exit(0)

        if show_json:
            typer.echo(format_plan_json(plan, build.hunks_by_id))
        else:
            typer.echo("")
            typer.echo("=" * 60)
            typer.echo(f"Proposed commit stack ({len(plan.groups)} commits)")
            typer.echo("=" * 60)
            typer.echo(format_plan(plan, build.hunks_by_id))

        # If not committing, we're done
        if not do_commit:
            typer.echo("Plan only - no changes made to git state.", err=True)
            typer.echo("Run with --commit to review and execute this plan.", err=True)
            raise typer.Exit(0)

        reviewer = PlanReviewer(plan, build.hunks_by_id, config)
        approved = reviewer.approve() if yes else run_review_loop(reviewer, build.parsed)
        if approved is None:
            raise typer.Exit(0)

        typer.echo("")
        typer.echo(f"Creating {len(approved.groups)} commit(s)...", err=True)
        try:
            report = materialize_plan(approved, build.parsed, GitMaterializer(repo_root))
        except MaterializationFailure as e:
            typer.echo(f"\nError during execution: {e}", err=True)
            hint = e.report.recovery_hint()
            if hint:
                typer.echo("")
                typer.echo("MANUAL RECOVERY (if needed):", err=True)
                typer.echo(hint, err=True)
            raise typer.Exit(1)

        typer.echo(f"Successfully created {len(report.committed)} commit(s)!", err=True)
        for gid in report.committed:
            typer.echo(f"  {report.commit_ids.get(gid, '')[:10]}  {gid}")

    except NoChangesError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(0)
    except ParseError as e:
        typer.echo(f"Could not parse diff: {e}", err=True)
        raise typer.Exit(1)
    except GitError as e:
        typer.echo(f"Git error: {e}", err=True)
        raise typer.Exit(1)
    except LLMError as e:
        typer.echo(f"LLM error: {e}", err=True)
        raise typer.Exit(1)
