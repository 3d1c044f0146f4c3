"""Planner configuration.

PlannerConfig holds every tunable constant of the planning pipeline.
Values are merged from defaults, the global `planner` section, the
repository `planner` section and finally CLI flags.
"""

import logging
from dataclasses import asdict, dataclass, fields

logger = logging.getLogger(__name__)


@dataclass
class PlannerConfig:
    """Tunable constants for graph scoring, clustering and synthesis."""

    # Same-file adjacency
    adjacency_weight: float = 1.0
    adjacency_line_threshold: int = 40

    # Identifier overlap
    identifier_weight: float = 1.5
    min_identifier_length: int = 3

    # Rename / move detection
    rename_bonus: float = 3.0
    move_similarity_threshold: float = 0.85
    rename_similarity: float = 0.9

    # Cross-file textual similarity
    textual_weight: float = 0.4
    min_textual_similarity: float = 0.3
    shingle_size: int = 3

    # Graph sparsity and clustering cut
    min_edge_weight: float = 0.25
    cut_threshold: float = 0.6

    # Concurrency
    graph_workers: int = 1
    synthesis_workers: int = 4
    synthesis_timeout: float = 30.0

    # Message synthesis
    max_summary_length: int = 72
    max_patch_chars: int = 14000
    max_file_patch_chars: int = 2200

    def to_dict(self) -> dict:
        """Serialize to a plain dictionary (YAML friendly)."""
        return asdict(self)


def load_planner_config_from_dict(*sections: dict) -> PlannerConfig:
    """Build a PlannerConfig from one or more override dictionaries.

    Later sections win. Unknown keys are ignored with a warning and values
    are coerced to the type of the field's default.

    Args:
        *sections: Dictionaries of planner overrides (may be empty or None).

    Returns:
        PlannerConfig instance.
    """
    config = PlannerConfig()
    known = {f.name: f for f in fields(PlannerConfig)}

    for section in sections:
        for key, value in (section or {}).items():
            if key not in known:
                logger.warning("Ignoring unknown planner setting: %s", key)
                continue
            if value is None:
                continue
            default = getattr(PlannerConfig, key)
            try:
                setattr(config, key, type(default)(value))
            except (TypeError, ValueError):
                logger.warning("Invalid value for planner setting %s: %r", key, value)

    return config
