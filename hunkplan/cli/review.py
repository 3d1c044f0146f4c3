"""Interactive review loop for a proposed plan.

Commands:
    show [-v]              Show the plan (-v lists hunks)
    merge G1 G2            Merge two groups
    split G1 H3,H4         Move hunks H3 and H4 of G1 into a new group
    move H3 G1 G2          Move hunk H3 from G1 to G2
    reorder G2 1           Move G2 to position 1
    edit G1 [message]      Edit G1's message (opens $EDITOR without a message)
    diff G1                Show G1's patch
    approve                Approve the plan and continue
    abort                  Discard the plan
    help                   Show this help
"""

import logging
import shlex
import tempfile
from pathlib import Path
from typing import Callable, Optional

import typer

from hunkplan.cli.utils import colorize_diff, open_editor, show_in_pager
from hunkplan.plan.exceptions import EditRejected
from hunkplan.plan.models import ApprovedPlan, ParsedDiff
from hunkplan.plan.patch import build_group_patch
from hunkplan.plan.render import format_plan, render_message
from hunkplan.plan.review import PlanReviewer

logger = logging.getLogger(__name__)

HELP_TEXT = __doc__.split("Commands:\n", 1)[1].rstrip()

EDIT_INSTRUCTIONS = (
    "# Edit the commit message for {group_id}.\n"
    "# Format: type(scope): summary, then a blank line and an optional body.\n"
    "# Lines starting with '#' are ignored.\n"
)


class ReviewSession:
    """Reads review commands and applies them to a PlanReviewer."""

    def __init__(
        self,
        reviewer: PlanReviewer,
        parsed: ParsedDiff,
        read_line: Optional[Callable[[], str]] = None,
        edit_text: Optional[Callable[[str, str], Optional[str]]] = None,
        pager: Callable[[str], None] = show_in_pager,
    ):
        self.reviewer = reviewer
        self.parsed = parsed
        self.read_line = read_line or _prompt_line
        self.edit_text = edit_text or _edit_in_editor
        self.pager = pager
        self.commands = {
            "show": self.cmd_show,
            "merge": self.cmd_merge,
            "split": self.cmd_split,
            "move": self.cmd_move,
            "reorder": self.cmd_reorder,
            "edit": self.cmd_edit,
            "diff": self.cmd_diff,
            "help": self.cmd_help,
        }

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self) -> Optional[ApprovedPlan]:
        """Run until the plan is approved (returned) or aborted (None)."""
        self.cmd_show([])
        typer.echo("Type 'help' for commands, 'approve' to commit, 'abort' to cancel.")

        while True:
            try:
                line = self.read_line()
            except (EOFError, typer.Abort):
                typer.echo("")
                self.reviewer.abort()
                typer.echo("Aborted. No commits were created.")
                return None

            try:
                words = shlex.split(line)
            except ValueError as e:
                typer.echo(f"Error: {e}", err=True)
                continue
            if not words:
                continue

            command, args = words[0].lower(), words[1:]
            if command in ("approve", "a"):
                return self.reviewer.approve()
            if command in ("abort", "quit", "q"):
                self.reviewer.abort()
                typer.echo("Aborted. No commits were created.")
                return None

            handler = self.commands.get(command)
            if handler is None:
                typer.echo(f"Unknown command: {command}. Type 'help' for commands.", err=True)
                continue

            try:
                handler(args)
            except EditRejected as e:
                typer.echo(f"Error: {e}", err=True)
            except _UsageError as e:
                typer.echo(f"Usage: {e}", err=True)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def cmd_show(self, args: list[str]) -> None:
        verbose = "-v" in args or "--verbose" in args
        typer.echo("")
        typer.echo(format_plan(self.reviewer.plan, self.reviewer.hunks, show_hunks=verbose))

    def cmd_merge(self, args: list[str]) -> None:
        if len(args) != 2:
            raise _UsageError("merge G1 G2")
        plan = self.reviewer.merge(self._group(args[0]), self._group(args[1]))
        typer.echo(f"Merged. Plan now has {len(plan.groups)} groups.")

    def cmd_split(self, args: list[str]) -> None:
        if len(args) < 2:
            raise _UsageError("split G1 H3,H4")
        group_id = self._group(args[0])
        hunk_ids = [self._hunk(token) for arg in args[1:] for token in arg.split(",") if token]
        plan = self.reviewer.split(group_id, hunk_ids)
        typer.echo(f"Split. Plan now has {len(plan.groups)} groups.")

    def cmd_move(self, args: list[str]) -> None:
        if len(args) != 3:
            raise _UsageError("move H3 G1 G2")
        self.reviewer.move(self._hunk(args[0]), self._group(args[1]), self._group(args[2]))
        typer.echo("Moved.")

    def cmd_reorder(self, args: list[str]) -> None:
        if len(args) != 2 or not args[1].isdigit():
            raise _UsageError("reorder G2 1")
        self.reviewer.reorder(self._group(args[0]), int(args[1]))
        typer.echo("Reordered.")

    def cmd_edit(self, args: list[str]) -> None:
        if not args:
            raise _UsageError("edit G1 [message]")
        group_id = self._group(args[0])
        if len(args) > 1:
            text = " ".join(args[1:])
        else:
            group = self.reviewer.plan.group(group_id)
            if group is None:
                raise EditRejected("unknown-group", f"no group named {group_id}")
            text = self.edit_text(group_id, render_message(group))
            if text is None:
                typer.echo("Edit cancelled.")
                return
        self.reviewer.edit_message(group_id, text)
        typer.echo(f"Updated message for {group_id}.")

    def cmd_diff(self, args: list[str]) -> None:
        if len(args) != 1:
            raise _UsageError("diff G1")
        group_id = self._group(args[0])
        group = self.reviewer.plan.group(group_id)
        if group is None:
            raise EditRejected("unknown-group", f"no group named {group_id}")
        patch = build_group_patch(group.hunk_ids, self.parsed)
        self.pager(colorize_diff(patch))

    def cmd_help(self, args: list[str]) -> None:
        typer.echo(HELP_TEXT)

    # ------------------------------------------------------------------
    # Id resolution
    # ------------------------------------------------------------------

    def _group(self, token: str) -> str:
        """Accept 'G1', 'g1' or '1'."""
        gid = token.strip().upper()
        if not gid.startswith("G"):
            gid = f"G{gid}"
        return gid

    def _hunk(self, token: str) -> str:
        """Accept a full hunk id or its 'H<n>' prefix."""
        token = token.strip()
        hunks = self.reviewer.hunks
        if token in hunks:
            return token
        prefix = token.upper()
        matches = [hid for hid in hunks if hid.split("_", 1)[0] == prefix]
        if len(matches) == 1:
            return matches[0]
        raise EditRejected("unknown-hunk", f"no hunk named {token}")


class _UsageError(Exception):
    pass


def _prompt_line() -> str:
    return typer.prompt("hunkplan", default="", show_default=False, prompt_suffix="> ")


def _edit_in_editor(group_id: str, current: str) -> Optional[str]:
    """Edit a message in $EDITOR, falling back to a one-line prompt."""
    with tempfile.NamedTemporaryFile(
        "w", suffix=".txt", prefix=f"hunkplan_{group_id}_", delete=False, encoding="utf-8"
    ) as f:
        f.write(EDIT_INSTRUCTIONS.format(group_id=group_id))
        f.write(current + "\n")
        path = Path(f.name)

    try:
        if open_editor(path):
            return path.read_text(encoding="utf-8")
        line = typer.prompt("New message header", default="", show_default=False)
        return line or None
    finally:
        path.unlink(missing_ok=True)


def run_review_loop(
    reviewer: PlanReviewer,
    parsed: ParsedDiff,
    read_line: Optional[Callable[[], str]] = None,
) -> Optional[ApprovedPlan]:
    """Review a plan interactively; returns the ApprovedPlan or None if aborted."""
    return ReviewSession(reviewer, parsed, read_line=read_line).run()
