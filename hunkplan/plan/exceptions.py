"""Plan-related exception classes.

Contains all exception classes raised by the planning core:
- PlanError: Base exception for planning errors
- ParseError: Malformed unified diff (fatal for the run)
- CycleError: Dependency cycle among groups (recoverable)
- EditRejected: Invalid reviewer edit (recoverable, plan unchanged)
- SynthesisDegraded: Text generation unavailable for one group (logged)
- MaterializationFailure: A commit step failed (partial state reported)
"""

from typing import Iterable, Optional


class PlanError(Exception):
    """Base exception for planning errors."""

    pass


class ParseError(PlanError):
    """Raised when the diff text cannot be parsed."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class CycleError(PlanError):
    """Raised when the dependency relation between groups is cyclic."""

    def __init__(self, groups: Iterable[str]):
        self.groups = sorted(groups, key=_group_sort_key)
        super().__init__(
            f"Dependency cycle between groups: {', '.join(self.groups)}"
        )


class EditRejected(PlanError):
    """Raised when a reviewer edit would violate a plan invariant."""

    def __init__(self, invariant: str, message: str):
        self.invariant = invariant
        super().__init__(f"Edit rejected ({invariant}): {message}")


class SynthesisDegraded(PlanError):
    """Text generation failed for a group and the template was used."""

    def __init__(self, group_id: str, reason: str):
        self.group_id = group_id
        self.reason = reason
        super().__init__(f"Message synthesis degraded for {group_id}: {reason}")


class MaterializationFailure(PlanError):
    """Raised when committing a group fails; carries the partial report."""

    def __init__(self, report):
        self.report = report
        committed = ", ".join(report.committed) or "none"
        pending = ", ".join(report.pending) or "none"
        super().__init__(
            f"Failed to commit {report.failed}: {report.error}\n"
            f"Committed: {committed}\n"
            f"Pending: {pending}"
        )


def _group_sort_key(group_id: str) -> tuple:
    digits = group_id.lstrip("G")
    return (0, int(digits), group_id) if digits.isdigit() else (1, 0, group_id)
