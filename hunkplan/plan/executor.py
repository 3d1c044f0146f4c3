"""Commit Materializer: turn an approved plan into commits.

Contains:
- MaterializationReport: What was committed, what failed, what is pending
- Materializer: Abstract commit backend
- GitMaterializer: Applies group patches to the index and commits them
- materialize_plan: Commit every group of an ApprovedPlan in order

The materializer never pushes and never rewrites existing history.
"""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from hunkplan.plan.exceptions import MaterializationFailure
from hunkplan.plan.models import ApprovedPlan, ParsedDiff
from hunkplan.plan.patch import build_group_patch
from hunkplan.plan.render import render_message

logger = logging.getLogger(__name__)


class CommitStepError(Exception):
    """A single commit step failed."""

    pass


@dataclass
class MaterializationReport:
    """Outcome of materializing a plan."""

    committed: list[str] = field(default_factory=list)
    failed: Optional[str] = None
    pending: list[str] = field(default_factory=list)
    error: Optional[str] = None
    commit_ids: dict[str, str] = field(default_factory=dict)
    pre_head: str = ""

    @property
    def success(self) -> bool:
        return self.failed is None

    def recovery_hint(self) -> str:
        """Manual recovery instructions after a partial run."""
        if not self.committed or not self.pre_head:
            return ""
        return (
            f"To undo the {len(self.committed)} commit(s) created:\n"
            f"  git reset --soft {self.pre_head}"
        )


class Materializer(ABC):
    """Backend that turns one group patch plus message into one commit."""

    def prepare(self) -> str:
        """Prepare the backend; returns an identifier of the starting point."""
        return ""

    @abstractmethod
    def commit(self, group_id: str, patch: str, message: str) -> str:
        """Create one commit; returns its identifier.

        Raises:
            CommitStepError: If the commit could not be created
        """
        pass

    def cleanup(self) -> None:
        """Release temporary resources."""
        pass


class GitMaterializer(Materializer):
    """Commit groups with 'git apply --cached' and 'git commit -F'."""

    def __init__(self, repo_root: Path):
        self.repo_root = Path(repo_root)
        self.tmp_dir = self.repo_root / ".tmp"
        self._pid = os.getpid()
        self._files: list[Path] = []

    def _git(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            cwd=self.repo_root,
        )

    def prepare(self) -> str:
        """Record HEAD and unstage everything so each group starts clean."""
        result = self._git("rev-parse", "HEAD")
        pre_head = result.stdout.strip() if result.returncode == 0 else ""

        result = self._git("reset", "-q")
        if result.returncode != 0:
            raise CommitStepError(f"Failed to reset index: {result.stderr.strip()}")
        return pre_head

    def _write(self, name: str, content: str) -> Path:
        self.tmp_dir.mkdir(exist_ok=True)
        path = self.tmp_dir / name
        # Patches must keep their exact bytes, including CRLF lines
        with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
            f.write(content)
        self._files.append(path)
        return path

    def commit(self, group_id: str, patch: str, message: str) -> str:
        patch_file = self._write(f"hunkplan_patch_{group_id}_{self._pid}.patch", patch)
        logger.debug("Applying %s (%d chars) from %s", group_id, len(patch), patch_file)

        result = self._git("apply", "--cached", str(patch_file))
        if result.returncode != 0:
            raise CommitStepError(f"Failed to apply patch for {group_id}: {result.stderr.strip()}")

        # Verify something is staged
        result = self._git("diff", "--cached", "--name-only")
        if not result.stdout.strip():
            raise CommitStepError(f"No changes staged after applying {group_id}")

        msg_file = self._write(f"hunkplan_msg_{group_id}_{self._pid}.txt", message + "\n")
        result = self._git("commit", "-q", "-F", str(msg_file))
        if result.returncode != 0:
            raise CommitStepError(
                f"Failed to commit {group_id}: {(result.stderr or result.stdout).strip()}"
            )

        result = self._git("rev-parse", "HEAD")
        return result.stdout.strip()

    def cleanup(self) -> None:
        for path in self._files:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
        self._files = []
        try:
            self.tmp_dir.rmdir()
        except OSError:
            pass  # Not empty or already gone


def materialize_plan(
    approved: ApprovedPlan,
    parsed: ParsedDiff,
    materializer: Materializer,
) -> MaterializationReport:
    """Commit every group of an approved plan, in sequence order.

    Stops at the first failure.

    Args:
        approved: The approved plan
        parsed: Parsed diff the plan was built from
        materializer: Commit backend

    Returns:
        MaterializationReport listing the created commits

    Raises:
        MaterializationFailure: If a group could not be committed; the
            report lists committed and pending groups
    """
    if not isinstance(approved, ApprovedPlan):
        raise TypeError("only an ApprovedPlan can be materialized")

    report = MaterializationReport(pending=[g.id for g in approved.groups])
    try:
        try:
            report.pre_head = materializer.prepare()
        except CommitStepError as e:
            report.failed = "prepare"
            report.error = str(e)
            raise MaterializationFailure(report) from e
        for group in approved.groups:
            patch = build_group_patch(group.hunk_ids, parsed)
            message = render_message(group)
            try:
                commit_id = materializer.commit(group.id, patch, message)
            except CommitStepError as e:
                report.failed = group.id
                report.pending.remove(group.id)
                report.error = str(e)
                logger.error("Commit of %s failed: %s", group.id, e)
                raise MaterializationFailure(report) from e
            report.pending.remove(group.id)
            report.committed.append(group.id)
            report.commit_ids[group.id] = commit_id
            logger.info("Committed %s: %s", group.id, message.splitlines()[0])
    finally:
        materializer.cleanup()

    return report
