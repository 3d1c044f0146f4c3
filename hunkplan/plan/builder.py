"""End-to-end planning pipeline.

Contains:
- PlanBuild: Everything produced while planning one diff
- build_plan: Extractor -> Graph -> Partitioner -> Sequencer -> Synthesizer
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from hunkplan.plan.graph import build_relation_graph
from hunkplan.plan.models import Hunk, ParsedDiff, Plan, RelationGraph
from hunkplan.plan.parser import parse_diff
from hunkplan.plan.partition import AUTO, Granularity, parse_granularity, partition_hunks
from hunkplan.plan.prompt import PathHistory
from hunkplan.plan.sequence import FALLBACK, sequence_groups
from hunkplan.plan.settings import PlannerConfig
from hunkplan.plan.synthesis import TextGenerator, synthesize_messages

logger = logging.getLogger(__name__)


@dataclass
class PlanBuild:
    """Result of build_plan."""

    parsed: ParsedDiff
    hunks_by_id: dict[str, Hunk]
    graph: RelationGraph
    plan: Plan


def build_plan(
    diff_text: str,
    granularity: Union[str, Granularity] = AUTO,
    generator: Optional[TextGenerator] = None,
    config: Optional[PlannerConfig] = None,
    on_cycle: str = FALLBACK,
    branch: Optional[str] = None,
    recent_commits: Optional[list[str]] = None,
    path_history: Optional[PathHistory] = None,
) -> PlanBuild:
    """Build a commit plan from unified diff text.

    Args:
        diff_text: Raw unified diff
        granularity: "single", "auto" or "max N"
        generator: Optional text generator for summaries and bodies
        config: Planner configuration
        on_cycle: "fallback" (default) orders cycles by diff position and
            records a warning; "raise" propagates CycleError
        branch: Current branch name, given to the generator as context
        recent_commits: Recent commit subjects, given to the generator
        path_history: Returns recent commit subjects for a path; used for
            the old side of renamed and copied files

    Returns:
        PlanBuild with the parsed diff, graph and annotated plan

    Raises:
        ParseError: If the diff is malformed
        CycleError: If on_cycle is "raise" and groups depend on each other
        ValueError: If the granularity is invalid
    """
    config = config or PlannerConfig()
    granularity = parse_granularity(granularity)

    parsed = parse_diff(diff_text, config)
    hunks_by_id = parsed.by_id()
    graph = build_relation_graph(parsed.hunks, config)
    groups = partition_hunks(graph, parsed.hunks, granularity, config)
    plan = sequence_groups(groups, hunks_by_id, on_cycle=on_cycle)
    plan = synthesize_messages(
        plan, parsed, generator, config, branch,
        recent_commits=recent_commits, path_history=path_history,
    )

    logger.info(
        "Planned %d hunks as %d commits (%s)",
        len(parsed.hunks), len(plan.groups), granularity,
    )
    return PlanBuild(parsed=parsed, hunks_by_id=hunks_by_id, graph=graph, plan=plan)
