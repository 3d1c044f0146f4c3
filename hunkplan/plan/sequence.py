"""Sequencer: order groups so definitions land before their uses.

A -> B when a hunk in B references an identifier first defined (lowest
ordinal definer) by a hunk in A, and A != B. Independent groups keep the
order of their earliest hunk in the diff.

Cycles raise CycleError naming every participating group. Callers that
choose the fallback get strongly connected groups ordered by earliest diff
position; the fallback is always reported through the plan's warnings.
"""

import heapq
import logging
from typing import Hashable, Iterable, Mapping, Optional

from hunkplan.plan.exceptions import CycleError
from hunkplan.plan.models import Group, Hunk, Plan

logger = logging.getLogger(__name__)

RAISE = "raise"
FALLBACK = "fallback"


def compute_dependencies(
    groups: list[Group], hunks_by_id: Mapping[str, Hunk]
) -> list[tuple[str, str]]:
    """Build the directed dependency relation between groups.

    Args:
        groups: Groups of the plan
        hunks_by_id: Hunk arena

    Returns:
        Sorted list of (before, after) group id pairs
    """
    first_definer: dict[str, str] = {}
    for hunk in sorted(hunks_by_id.values(), key=lambda h: h.ordinal):
        for name in hunk.symbols_defined:
            first_definer.setdefault(name, hunk.id)

    owner = {hid: group.id for group in groups for hid in group.hunk_ids}
    position = {group.id: i for i, group in enumerate(groups)}
    dependencies: set[tuple[str, str]] = set()

    for group in groups:
        for hid in group.hunk_ids:
            for name in hunks_by_id[hid].symbols_used:
                definer = first_definer.get(name)
                before = owner.get(definer) if definer else None
                if before is not None and before != group.id:
                    dependencies.add((before, group.id))

    return sorted(dependencies, key=lambda d: (position[d[0]], position[d[1]]))


def find_cycles(
    group_ids: Iterable[str], dependencies: Iterable[tuple[str, str]]
) -> list[list[str]]:
    """Strongly connected components with more than one group (Tarjan)."""
    nodes = list(group_ids)
    graph: dict[str, list[str]] = {node: [] for node in nodes}
    for before, after in dependencies:
        if before in graph and after in graph:
            graph[before].append(after)

    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    components: list[list[str]] = []
    counter = [0]

    def visit(node: str) -> None:
        index[node] = lowlink[node] = counter[0]
        counter[0] += 1
        stack.append(node)
        on_stack.add(node)
        for succ in graph[node]:
            if succ not in index:
                visit(succ)
                lowlink[node] = min(lowlink[node], lowlink[succ])
            elif succ in on_stack:
                lowlink[node] = min(lowlink[node], index[succ])
        if lowlink[node] == index[node]:
            component = []
            while True:
                member = stack.pop()
                on_stack.discard(member)
                component.append(member)
                if member == node:
                    break
            if len(component) > 1:
                components.append(component)

    for node in nodes:
        if node not in index:
            visit(node)

    order = {node: i for i, node in enumerate(nodes)}
    return sorted(
        (sorted(c, key=order.__getitem__) for c in components),
        key=lambda c: order[c[0]],
    )


def order_groups(
    group_ids: list[str],
    dependencies: Iterable[tuple[str, str]],
    priority: Mapping[str, Hashable],
    allow_cycles: bool = False,
) -> tuple[list[str], list[list[str]]]:
    """Topologically order groups, breaking ties by priority.

    Args:
        group_ids: Groups to order
        dependencies: (before, after) pairs
        priority: Sort key per group (lower goes first among ready groups)
        allow_cycles: Order each cycle as one unit by priority instead of
            raising

    Returns:
        Tuple of (ordered group ids, cycles found)

    Raises:
        CycleError: If the relation is cyclic and allow_cycles is False
    """
    dependencies = list(dependencies)
    cycles = find_cycles(group_ids, dependencies)
    if cycles and not allow_cycles:
        raise CycleError(g for cycle in cycles for g in cycle)

    # Condense each cycle into its highest-priority member
    component = {gid: gid for gid in group_ids}
    for cycle in cycles:
        rep = min(cycle, key=lambda g: (priority[g], g))
        for gid in cycle:
            component[gid] = rep

    members: dict[str, list[str]] = {}
    for gid in group_ids:
        members.setdefault(component[gid], []).append(gid)

    successors: dict[str, set[str]] = {rep: set() for rep in members}
    indegree: dict[str, int] = {rep: 0 for rep in members}
    for before, after in dependencies:
        if before not in component or after not in component:
            continue
        a, b = component[before], component[after]
        if a != b and b not in successors[a]:
            successors[a].add(b)
            indegree[b] += 1

    ready = [(priority[rep], rep) for rep, deg in indegree.items() if deg == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        _, rep = heapq.heappop(ready)
        order.extend(sorted(members[rep], key=lambda g: (priority[g], g)))
        for succ in successors[rep]:
            indegree[succ] -= 1
            if indegree[succ] == 0:
                heapq.heappush(ready, (priority[succ], succ))

    return order, cycles


def order_violations(
    order: list[str],
    dependencies: Iterable[tuple[str, str]],
    cycles: Optional[list[list[str]]] = None,
) -> list[tuple[str, str]]:
    """Dependencies whose 'before' group does not precede its 'after' group.

    Dependencies inside one reported cycle are exempt.
    """
    position = {gid: i for i, gid in enumerate(order)}
    cycle_of = {gid: i for i, cycle in enumerate(cycles or []) for gid in cycle}
    violations = []
    for before, after in dependencies:
        if before not in position or after not in position:
            continue
        if before in cycle_of and cycle_of[before] == cycle_of.get(after):
            continue
        if position[before] > position[after]:
            violations.append((before, after))
    return violations


def earliest_position(group: Group, hunks_by_id: Mapping[str, Hunk]) -> int:
    """Ordinal of the group's first hunk in the diff."""
    return min(hunks_by_id[hid].ordinal for hid in group.hunk_ids)


def sequence_groups(
    groups: list[Group],
    hunks_by_id: Mapping[str, Hunk],
    on_cycle: str = RAISE,
) -> Plan:
    """Order groups into a dependency-safe commit sequence.

    Args:
        groups: Groups from the partitioner
        hunks_by_id: Hunk arena
        on_cycle: "raise" to propagate CycleError, "fallback" to order cycle
            members by earliest diff position and record a warning

    Returns:
        Plan with groups in sequence order

    Raises:
        CycleError: If the dependency relation is cyclic and on_cycle is "raise"
    """
    dependencies = compute_dependencies(groups, hunks_by_id)
    priority = {g.id: earliest_position(g, hunks_by_id) for g in groups}
    group_ids = [g.id for g in groups]

    warnings: list[str] = []
    cycle_groups: list[str] = []
    try:
        order, _ = order_groups(group_ids, dependencies, priority)
    except CycleError as e:
        if on_cycle != FALLBACK:
            raise
        order, _ = order_groups(group_ids, dependencies, priority, allow_cycles=True)
        cycle_groups = e.groups
        message = (
            f"Dependency cycle between {', '.join(e.groups)}: "
            "ordered by original file position; review before approving"
        )
        warnings.append(message)
        logger.warning(message)

    by_id = {g.id: g for g in groups}
    logger.debug("Sequenced groups: %s", " -> ".join(order))
    return Plan(
        groups=[by_id[gid] for gid in order],
        dependencies=dependencies,
        cycle_groups=cycle_groups,
        warnings=warnings,
    )
