"""Partitioner: relation graph -> candidate commit groups.

Greedy agglomerative clustering over a max-heap of inter-group edges with
union-find style group indirection. Policy:
- Inter-group weight is the SUM of constituent edge weights.
- Equal weights: prefer the merge that keeps a single file's hunks
  together, then the lowest (min ordinal, max ordinal) pair of groups.
- Merging stops when the best remaining weight falls below `cut_threshold`
  or the requested maximum group count is reached.
- A hunk with no edge above the threshold stays a singleton.
"""

import heapq
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from hunkplan.plan.models import Group, Hunk, RelationGraph
from hunkplan.plan.settings import PlannerConfig

logger = logging.getLogger(__name__)

SINGLE = "single"
AUTO = "auto"
MAX = "max"

_MAX_RE = re.compile(r"^max[\s:=]*(\d+)$")


@dataclass(frozen=True)
class Granularity:
    """Granularity directive: single, auto, or at most `limit` groups."""

    mode: str = AUTO
    limit: Optional[int] = None

    def __str__(self) -> str:
        return f"max {self.limit}" if self.mode == MAX else self.mode


def parse_granularity(value: Union[str, Granularity, None]) -> Granularity:
    """Parse a granularity directive.

    Accepts "single", "auto", "max N" and "max:N" (case-insensitive).

    Raises:
        ValueError: If the directive is not recognized or N < 1
    """
    if isinstance(value, Granularity):
        return value
    text = (value or AUTO).strip().lower()
    if text in (SINGLE, AUTO):
        return Granularity(mode=text)
    match = _MAX_RE.match(text)
    if match:
        limit = int(match.group(1))
        if limit < 1:
            raise ValueError("max group count must be at least 1")
        return Granularity(mode=MAX, limit=limit)
    raise ValueError(
        f"Invalid granularity {value!r}: expected 'single', 'auto' or 'max N'"
    )


class _Clusterer:
    """Union-find over hunk ids with a lazily invalidated merge heap.

    Each group is identified by its root: the member with the lowest ordinal.
    Heap entries carry the versions of both roots at push time; an entry is
    stale once either root has merged since.
    """

    def __init__(self, hunks: list[Hunk], graph: RelationGraph):
        self.ordinal = {h.id: h.ordinal for h in hunks}
        self.members: dict[str, list[str]] = {h.id: [h.id] for h in hunks}
        self.files: dict[str, set[str]] = {h.id: {h.file_path} for h in hunks}
        self.links: dict[str, dict[str, float]] = {h.id: {} for h in hunks}
        self.version: dict[str, int] = {h.id: 0 for h in hunks}
        self.heap: list[tuple] = []

        for edge in graph.edge_list():
            if edge.a in self.links and edge.b in self.links and edge.a != edge.b:
                self.links[edge.a][edge.b] = edge.weight
                self.links[edge.b][edge.a] = edge.weight

        for a in self.links:
            for b in self.links[a]:
                if self.ordinal[a] < self.ordinal[b]:
                    self._push(a, b)

    def _push(self, a: str, b: str) -> None:
        first, second = sorted((a, b), key=self.ordinal.__getitem__)
        weight = self.links[first][second]
        same_file = len(self.files[first] | self.files[second]) == 1
        heapq.heappush(self.heap, (
            -weight,
            0 if same_file else 1,
            self.ordinal[first],
            self.ordinal[second],
            first,
            second,
            self.version[first],
            self.version[second],
        ))

    def _is_current(self, entry: tuple) -> bool:
        first, second, v_first, v_second = entry[4:]
        return (
            first in self.members
            and second in self.members
            and self.version[first] == v_first
            and self.version[second] == v_second
        )

    def count(self) -> int:
        return len(self.members)

    def merge(self, a: str, b: str) -> str:
        """Merge two groups; returns the surviving root."""
        root, other = (a, b) if self.ordinal[a] < self.ordinal[b] else (b, a)
        self.members[root].extend(self.members.pop(other))
        self.files[root] |= self.files.pop(other)

        for neighbor, weight in self.links.pop(other).items():
            if neighbor == root:
                continue
            del self.links[neighbor][other]
            combined = round(self.links[root].get(neighbor, 0.0) + weight, 6)
            self.links[root][neighbor] = combined
            self.links[neighbor][root] = combined
        self.links[root].pop(other, None)

        self.version[root] += 1
        for neighbor in self.links[root]:
            self._push(root, neighbor)
        return root

    def merge_while(self, min_weight: float, limit: Optional[int], inclusive: bool = True) -> None:
        """Merge best edges while they reach min_weight and count > limit."""
        while self.heap and (limit is None or self.count() > limit):
            entry = self.heap[0]
            if not self._is_current(entry):
                heapq.heappop(self.heap)
                continue
            weight = -entry[0]
            if weight < min_weight or (not inclusive and weight == min_weight):
                break
            heapq.heappop(self.heap)
            logger.debug("Merging %s + %s (weight %.3f)", entry[4], entry[5], weight)
            self.merge(entry[4], entry[5])

    def force_merge(self, limit: int) -> None:
        """Merge groups nearest in diff order until at most `limit` remain."""
        while self.count() > limit:
            roots = sorted(self.members, key=self.ordinal.__getitem__)
            best = None
            for prev, nxt in zip(roots, roots[1:]):
                last = max(self.ordinal[h] for h in self.members[prev])
                gap = abs(self.ordinal[nxt] - last)
                if best is None or gap < best[0]:
                    best = (gap, prev, nxt)
            logger.debug("Force-merging %s + %s to honour max group count", best[1], best[2])
            self.merge(best[1], best[2])

    def clusters(self) -> list[list[str]]:
        roots = sorted(self.members, key=self.ordinal.__getitem__)
        return [sorted(self.members[r], key=self.ordinal.__getitem__) for r in roots]


def partition_hunks(
    graph: RelationGraph,
    hunks: list[Hunk],
    granularity: Union[str, Granularity] = AUTO,
    config: Optional[PlannerConfig] = None,
) -> list[Group]:
    """Partition hunks into candidate commit groups.

    Args:
        graph: Relation graph over the hunks
        hunks: All hunks (every one ends up in exactly one group)
        granularity: "single", "auto" or "max N"
        config: Planner configuration (cut threshold)

    Returns:
        Groups G1..Gn ordered by their earliest hunk, members in diff order
    """
    config = config or PlannerConfig()
    granularity = parse_granularity(granularity)
    ordered = sorted(hunks, key=lambda h: h.ordinal)
    if not ordered:
        return []

    if granularity.mode == SINGLE:
        clusters = [[h.id for h in ordered]]
    else:
        clusterer = _Clusterer(ordered, graph)
        clusterer.merge_while(config.cut_threshold, granularity.limit)
        if granularity.limit is not None and clusterer.count() > granularity.limit:
            # Explicit limit: keep merging any remaining related groups, then
            # fall back to neighbours in diff order
            clusterer.merge_while(0.0, granularity.limit, inclusive=False)
            clusterer.force_merge(granularity.limit)
        clusters = clusterer.clusters()

    groups = [Group(id=f"G{i}", hunk_ids=ids) for i, ids in enumerate(clusters, 1)]
    logger.debug("Partitioned %d hunks into %d groups (%s)", len(ordered), len(groups), granularity)
    return groups
