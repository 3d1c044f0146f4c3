"""Plan Reviewer: atomic, validated edits of a plan before approval.

Every edit runs against a deep copy of the current plan. The copy is
validated (partition completeness, non-empty groups, no new dependency
cycle, dependency-safe order) and only then replaces the current plan; a
rejected edit raises EditRejected and leaves the plan untouched.

Invariant names carried by EditRejected:
- partition: every hunk in exactly one group
- non-empty: no empty group
- acyclic: no new dependency cycle
- order: sequence respects dependencies / valid position
- unknown-group, unknown-hunk: bad references
- message: unparseable commit message
- frozen: plan already approved or aborted
"""

import logging
from typing import Callable, Iterable, Mapping, Optional, Union

from hunkplan.plan.exceptions import CycleError, EditRejected
from hunkplan.plan.models import ApprovedPlan, Group, Hunk, Plan
from hunkplan.plan.render import parse_message
from hunkplan.plan.sequence import (
    compute_dependencies,
    find_cycles,
    order_groups,
    order_violations,
)
from hunkplan.plan.settings import PlannerConfig
from hunkplan.plan.synthesis import (
    infer_commit_scope,
    infer_commit_type,
    template_summary,
)

logger = logging.getLogger(__name__)

CYCLE_WARNING_PREFIX = "Dependency cycle between"

HunkSelector = Union[Callable[[Hunk], bool], Iterable[str]]


class PlanReviewer:
    """Owns the mutable plan during review and exposes its edit operations."""

    def __init__(
        self,
        plan: Plan,
        hunks_by_id: Mapping[str, Hunk],
        config: Optional[PlannerConfig] = None,
    ):
        self._hunks = dict(hunks_by_id)
        self._config = config or PlannerConfig()
        self._plan = plan.model_copy(deep=True)
        self._approved: Optional[ApprovedPlan] = None
        self._aborted = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def plan(self) -> Plan:
        """A copy of the current plan."""
        return self._plan.model_copy(deep=True)

    @property
    def hunks(self) -> dict[str, Hunk]:
        return dict(self._hunks)

    @property
    def approved(self) -> Optional[ApprovedPlan]:
        return self._approved

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def is_frozen(self) -> bool:
        return self._approved is not None or self._aborted

    def group_hunks(self, group_id: str) -> list[Hunk]:
        """Hunks of a group in diff order."""
        group = self._require_group(self._plan, group_id)
        return [self._hunks[hid] for hid in group.hunk_ids]

    # ------------------------------------------------------------------
    # Edit operations
    # ------------------------------------------------------------------

    def merge(self, first: str, second: str) -> Plan:
        """Merge two groups into the one that comes first in the sequence."""
        def mutate(plan: Plan) -> None:
            a = self._require_group(plan, first)
            b = self._require_group(plan, second)
            if a.id == b.id:
                raise EditRejected("partition", f"cannot merge {first} with itself")
            ids = plan.group_ids()
            keep, drop = (a, b) if ids.index(a.id) < ids.index(b.id) else (b, a)
            keep.hunk_ids = self._sorted(keep.hunk_ids + drop.hunk_ids)
            plan.groups.remove(drop)
            self._refresh_message(keep)

        return self._edit(mutate, f"merge {first} {second}")

    def split(self, group_id: str, selector: HunkSelector) -> Plan:
        """Move the selected hunks of a group into a new group right after it.

        Args:
            group_id: Group to split
            selector: Predicate over hunks, or an iterable of hunk ids
        """
        def mutate(plan: Plan) -> None:
            group = self._require_group(plan, group_id)
            if callable(selector):
                chosen = [hid for hid in group.hunk_ids if selector(self._hunks[hid])]
            else:
                chosen = list(dict.fromkeys(selector))
                for hid in chosen:
                    self._require_hunk(hid)
                    if hid not in group.hunk_ids:
                        raise EditRejected("partition", f"{hid} is not in {group_id}")
            rest = [hid for hid in group.hunk_ids if hid not in chosen]
            if not chosen or not rest:
                raise EditRejected(
                    "non-empty", f"split of {group_id} must leave hunks in both groups"
                )
            new_group = Group(id=plan.next_group_id(), hunk_ids=self._sorted(chosen))
            group.hunk_ids = rest
            plan.groups.insert(plan.groups.index(group) + 1, new_group)
            self._refresh_message(group)
            self._refresh_message(new_group)

        return self._edit(mutate, f"split {group_id}")

    def move(self, hunk_id: str, from_group: str, to_group: str) -> Plan:
        """Move one hunk between groups."""
        def mutate(plan: Plan) -> None:
            self._require_hunk(hunk_id)
            source = self._require_group(plan, from_group)
            target = self._require_group(plan, to_group)
            if hunk_id not in source.hunk_ids:
                raise EditRejected("partition", f"{hunk_id} is not in {from_group}")
            if source.id == target.id:
                raise EditRejected("partition", f"{hunk_id} is already in {to_group}")
            if len(source.hunk_ids) == 1:
                raise EditRejected(
                    "non-empty",
                    f"moving {hunk_id} would leave {from_group} empty; merge the groups instead",
                )
            source.hunk_ids = [hid for hid in source.hunk_ids if hid != hunk_id]
            target.hunk_ids = self._sorted(target.hunk_ids + [hunk_id])
            self._refresh_message(source)
            self._refresh_message(target)

        return self._edit(mutate, f"move {hunk_id} {from_group} {to_group}")

    def reorder(self, group_id: str, new_position: int) -> Plan:
        """Move a group to a 1-based position in the sequence."""
        def mutate(plan: Plan) -> None:
            group = self._require_group(plan, group_id)
            if not 1 <= new_position <= len(plan.groups):
                raise EditRejected(
                    "order", f"position {new_position} is outside 1..{len(plan.groups)}"
                )
            plan.groups.remove(group)
            plan.groups.insert(new_position - 1, group)

        return self._edit(mutate, f"reorder {group_id} {new_position}", resequence=False)

    def edit_message(self, group_id: str, text: str) -> Plan:
        """Replace a group's message with 'type(scope): summary' plus optional body.

        A header without a conventional prefix replaces only the summary.
        """
        def mutate(plan: Plan) -> None:
            group = self._require_group(plan, group_id)
            try:
                commit_type, scope, summary, body = parse_message(text)
            except ValueError as e:
                raise EditRejected("message", str(e))
            if commit_type is not None:
                group.type = commit_type
                group.scope = scope
            group.summary = summary
            group.body = body
            group.message_source = "user"

        return self._edit(mutate, f"edit {group_id}", resequence=False)

    def approve(self) -> ApprovedPlan:
        """Freeze the plan; no further edits are accepted."""
        self._ensure_open()
        self._approved = ApprovedPlan(
            groups=tuple(g.model_copy(deep=True) for g in self._plan.groups),
            dependencies=tuple(tuple(dep) for dep in self._plan.dependencies),
            warnings=tuple(self._plan.warnings),
        )
        logger.info("Plan approved with %d groups", len(self._approved.groups))
        return self._approved

    def abort(self) -> None:
        """Discard the plan; nothing will be materialized."""
        self._ensure_open()
        self._aborted = True
        logger.info("Plan aborted")

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _edit(self, mutate: Callable[[Plan], None], label: str, resequence: bool = True) -> Plan:
        self._ensure_open()
        candidate = self._plan.model_copy(deep=True)
        mutate(candidate)
        self._validate(candidate, resequence)
        self._plan = candidate
        logger.debug("Applied edit: %s", label)
        return self.plan

    def _validate(self, plan: Plan, resequence: bool) -> None:
        seen: dict[str, str] = {}
        for group in plan.groups:
            if not group.hunk_ids:
                raise EditRejected("non-empty", f"group {group.id} would be empty")
            for hid in group.hunk_ids:
                if hid in seen:
                    raise EditRejected(
                        "partition", f"{hid} would be in both {seen[hid]} and {group.id}"
                    )
                seen[hid] = group.id
        missing = set(self._hunks) - set(seen)
        if missing:
            raise EditRejected("partition", f"hunks would be orphaned: {', '.join(sorted(missing))}")
        unknown = set(seen) - set(self._hunks)
        if unknown:
            raise EditRejected("unknown-hunk", f"unknown hunks: {', '.join(sorted(unknown))}")

        dependencies = compute_dependencies(plan.groups, self._hunks)
        group_ids = plan.group_ids()
        cycles = find_cycles(group_ids, dependencies)

        before = self._cyclic_hunks(self._plan)
        after = {hid for cycle in cycles for gid in cycle for hid in plan.group(gid).hunk_ids}
        if not after <= before:
            cyclic = sorted({gid for cycle in cycles for gid in cycle})
            raise EditRejected(
                "acyclic", f"edit would create a dependency cycle between {', '.join(cyclic)}"
            )

        if resequence:
            priority = {gid: i for i, gid in enumerate(group_ids)}
            order, _ = order_groups(group_ids, dependencies, priority, allow_cycles=True)
            by_id = {g.id: g for g in plan.groups}
            plan.groups = [by_id[gid] for gid in order]
        else:
            violations = order_violations(group_ids, dependencies, cycles)
            if violations:
                before_id, after_id = violations[0]
                raise EditRejected(
                    "order", f"{after_id} depends on {before_id} and must come after it"
                )

        plan.dependencies = dependencies
        plan.cycle_groups = CycleError(gid for cycle in cycles for gid in cycle).groups if cycles else []
        plan.warnings = [w for w in plan.warnings if not w.startswith(CYCLE_WARNING_PREFIX)]
        if cycles:
            plan.warnings.append(
                f"{CYCLE_WARNING_PREFIX} {', '.join(plan.cycle_groups)}: "
                "ordered by original file position; review before approving"
            )

    def _cyclic_hunks(self, plan: Plan) -> set[str]:
        dependencies = compute_dependencies(plan.groups, self._hunks)
        cycles = find_cycles(plan.group_ids(), dependencies)
        return {hid for cycle in cycles for gid in cycle for hid in plan.group(gid).hunk_ids}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._approved is not None:
            raise EditRejected("frozen", "plan is already approved")
        if self._aborted:
            raise EditRejected("frozen", "plan was aborted")

    def _require_group(self, plan: Plan, group_id: str) -> Group:
        group = plan.group(group_id)
        if group is None:
            raise EditRejected("unknown-group", f"no group named {group_id}")
        return group

    def _require_hunk(self, hunk_id: str) -> Hunk:
        hunk = self._hunks.get(hunk_id)
        if hunk is None:
            raise EditRejected("unknown-hunk", f"no hunk named {hunk_id}")
        return hunk

    def _sorted(self, hunk_ids: list[str]) -> list[str]:
        return sorted(dict.fromkeys(hunk_ids), key=lambda hid: self._hunks[hid].ordinal)

    def _refresh_message(self, group: Group) -> None:
        """Recompute heuristic annotations for a reshaped group.

        Messages written by the user are kept as they are.
        """
        if group.message_source == "user":
            return
        hunks = [self._hunks[hid] for hid in group.hunk_ids if hid in self._hunks]
        if not hunks:
            return
        group.type = infer_commit_type(hunks)
        group.scope = infer_commit_scope(hunks)
        group.summary = template_summary(
            group.type, group.scope, hunks, self._config.max_summary_length
        )
        group.body = None
        group.message_source = "template"
