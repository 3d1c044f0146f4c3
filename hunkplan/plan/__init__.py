"""Planning core for hunkplan - split a diff into a stack of commits.

This package provides:
- models: Hunk, ParsedDiff, RelationGraph, Group, Plan, ApprovedPlan
- parser: parse_diff (Hunk Extractor)
- graph: build_relation_graph (Relation Graph Builder)
- partition: Granularity, parse_granularity, partition_hunks (Partitioner)
- sequence: compute_dependencies, sequence_groups (Sequencer)
- synthesis: TextGenerator, LLMTextGenerator, synthesize_messages
- review: PlanReviewer
- patch: build_group_patch
- executor: GitMaterializer, MaterializationReport, materialize_plan
- builder: PlanBuild, build_plan
"""

# Exceptions
from hunkplan.plan.exceptions import (
    CycleError,
    EditRejected,
    MaterializationFailure,
    ParseError,
    PlanError,
    SynthesisDegraded,
)

# Models
from hunkplan.plan.models import (
    ApprovedPlan,
    ChangeKind,
    CommitType,
    Group,
    Hunk,
    ParsedDiff,
    Plan,
    RelationEdge,
    RelationGraph,
)

# Settings
from hunkplan.plan.settings import (
    PlannerConfig,
    load_planner_config_from_dict,
)

# Pipeline stages
from hunkplan.plan.parser import parse_diff
from hunkplan.plan.graph import build_relation_graph
from hunkplan.plan.partition import (
    Granularity,
    parse_granularity,
    partition_hunks,
)
from hunkplan.plan.sequence import (
    compute_dependencies,
    sequence_groups,
)
from hunkplan.plan.synthesis import (
    LLMTextGenerator,
    TextGenerator,
    synthesize_messages,
)

# Rendering
from hunkplan.plan.render import (
    format_plan,
    format_plan_json,
    render_message,
)

# Review and materialization
from hunkplan.plan.review import PlanReviewer
from hunkplan.plan.patch import build_group_patch
from hunkplan.plan.executor import (
    GitMaterializer,
    MaterializationReport,
    Materializer,
    materialize_plan,
)
from hunkplan.plan.builder import (
    PlanBuild,
    build_plan,
)

__all__ = [
    # Exceptions
    "PlanError",
    "ParseError",
    "CycleError",
    "EditRejected",
    "SynthesisDegraded",
    "MaterializationFailure",
    # Models
    "ChangeKind",
    "CommitType",
    "Hunk",
    "ParsedDiff",
    "RelationEdge",
    "RelationGraph",
    "Group",
    "Plan",
    "ApprovedPlan",
    # Settings
    "PlannerConfig",
    "load_planner_config_from_dict",
    # Pipeline
    "parse_diff",
    "build_relation_graph",
    "Granularity",
    "parse_granularity",
    "partition_hunks",
    "compute_dependencies",
    "sequence_groups",
    "TextGenerator",
    "LLMTextGenerator",
    "synthesize_messages",
    # Rendering
    "render_message",
    "format_plan",
    "format_plan_json",
    # Review and materialization
    "PlanReviewer",
    "build_group_patch",
    "Materializer",
    "GitMaterializer",
    "MaterializationReport",
    "materialize_plan",
    "PlanBuild",
    "build_plan",
]
