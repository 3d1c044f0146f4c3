"""Relation Graph Builder.

Scores every pair of hunks and keeps the pairs whose combined weight
reaches `min_edge_weight`. Four signals contribute:
- Same-file adjacency (closer hunks score higher)
- Identifier overlap (normalized by the smaller identifier set)
- Rename/move pairing (removed block near-identical to an added block)
- Cross-file textual similarity (token shingles, weakest signal)

Scoring is pure: the same hunks always produce the same graph, whether or
not pairs are scored on worker threads.
"""

import difflib
import logging
import math
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from hunkplan.plan.models import (
    IDENTIFIER_OVERLAP,
    RENAME_PAIR,
    SAME_FILE_ADJACENT,
    TEXTUAL_SIMILARITY,
    Hunk,
    RelationEdge,
    RelationGraph,
)
from hunkplan.plan.settings import PlannerConfig

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w+")

# Blocks shorter than this never count as a move
MIN_MOVE_LINES = 2


# ============================================================
# Per-hunk features
# ============================================================

@dataclass(frozen=True)
class _Features:
    hunk: Hunk
    added: tuple[str, ...]  # Stripped, non-blank
    removed: tuple[str, ...]
    shingles: frozenset[tuple[str, ...]]


def _features(hunk: Hunk, shingle_size: int) -> _Features:
    added = tuple(line.strip() for line in hunk.added if line.strip())
    removed = tuple(line.strip() for line in hunk.removed if line.strip())
    words = _WORD_RE.findall(" ".join(removed + added))
    if len(words) < shingle_size:
        shingles = frozenset({tuple(words)}) if words else frozenset()
    else:
        shingles = frozenset(
            tuple(words[i:i + shingle_size]) for i in range(len(words) - shingle_size + 1)
        )
    return _Features(hunk=hunk, added=added, removed=removed, shingles=shingles)


# ============================================================
# Signals
# ============================================================

def adjacency_score(a: Hunk, b: Hunk, config: PlannerConfig) -> float:
    """Same-file adjacency: full weight when touching, half at the threshold.

    Beyond `adjacency_line_threshold` the score decays exponentially toward 0.
    """
    if not set(a.paths) & set(b.paths):
        return 0.0

    a_start, a_end = a.line_span()
    b_start, b_end = b.line_span()
    if a_start > b_start:
        a_start, a_end, b_start, b_end = b_start, b_end, a_start, a_end
    gap = max(0, b_start - a_end - 1)

    threshold = max(config.adjacency_line_threshold, 1)
    if gap <= threshold:
        return config.adjacency_weight * (0.5 + 0.5 * (1 - gap / threshold))
    return config.adjacency_weight * 0.5 * math.exp(-3 * (gap - threshold) / threshold)


def identifier_score(a: Hunk, b: Hunk, config: PlannerConfig) -> float:
    """Identifier overlap normalized by the smaller identifier set."""
    ids_a, ids_b = a.identifiers, b.identifiers
    if not ids_a or not ids_b:
        return 0.0
    shared = len(ids_a & ids_b)
    if not shared:
        return 0.0
    return config.identifier_weight * shared / min(len(ids_a), len(ids_b))


def move_similarity(fa: _Features, fb: _Features) -> float:
    """Best similarity between one hunk's removed block and the other's added block."""
    best = 0.0
    for removed, added in ((fa.removed, fb.added), (fb.removed, fa.added)):
        if len(removed) < MIN_MOVE_LINES or len(added) < MIN_MOVE_LINES:
            continue
        ratio = difflib.SequenceMatcher(None, removed, added, autojunk=False).ratio()
        best = max(best, ratio)
    return best


def textual_similarity(fa: _Features, fb: _Features) -> float:
    """Jaccard similarity of word shingles."""
    if not fa.shingles or not fb.shingles:
        return 0.0
    union = len(fa.shingles | fb.shingles)
    return len(fa.shingles & fb.shingles) / union if union else 0.0


def _score_pair(fa: _Features, fb: _Features, config: PlannerConfig) -> Optional[RelationEdge]:
    """Combine all signals for one pair; None when below `min_edge_weight`."""
    a, b = fa.hunk, fb.hunk
    weight = 0.0
    reasons = set()

    adjacency = adjacency_score(a, b, config)
    if adjacency > 0:
        weight += adjacency
        reasons.add(SAME_FILE_ADJACENT)

    overlap = identifier_score(a, b, config)
    if overlap > 0:
        weight += overlap
        reasons.add(IDENTIFIER_OVERLAP)

    if move_similarity(fa, fb) >= config.move_similarity_threshold:
        weight += config.rename_bonus
        reasons.add(RENAME_PAIR)

    if not set(a.paths) & set(b.paths):
        similarity = textual_similarity(fa, fb)
        if similarity >= config.min_textual_similarity:
            weight += config.textual_weight * similarity
            reasons.add(TEXTUAL_SIMILARITY)

    weight = round(weight, 6)
    if weight < config.min_edge_weight or not reasons:
        return None
    return RelationEdge(a=a.id, b=b.id, weight=weight, reasons=frozenset(reasons))


# ============================================================
# Graph construction
# ============================================================

def build_relation_graph(
    hunks: list[Hunk], config: Optional[PlannerConfig] = None
) -> RelationGraph:
    """Build the weighted relatedness graph over hunks.

    Args:
        hunks: Hunks in diff order
        config: Planner configuration (signal weights, worker count)

    Returns:
        RelationGraph whose edges are keyed by (earlier id, later id) and
        inserted in ordinal order.
    """
    config = config or PlannerConfig()
    ordered = sorted(hunks, key=lambda h: h.ordinal)
    features = [_features(h, config.shingle_size) for h in ordered]
    pairs = [
        (features[i], features[j])
        for i in range(len(features))
        for j in range(i + 1, len(features))
    ]

    def score(pair):
        return _score_pair(pair[0], pair[1], config)

    if config.graph_workers > 1 and len(pairs) > 1:
        with ThreadPoolExecutor(max_workers=config.graph_workers) as executor:
            results = list(executor.map(score, pairs))
    else:
        results = [score(pair) for pair in pairs]

    ordinal = {h.id: h.ordinal for h in ordered}
    edges = sorted(
        (edge for edge in results if edge is not None),
        key=lambda e: (ordinal[e.a], ordinal[e.b]),
    )

    graph = RelationGraph(nodes=tuple(h.id for h in ordered))
    for edge in edges:
        graph.edges[(edge.a, edge.b)] = edge

    logger.debug(
        "Relation graph: %d nodes, %d edges (%d pairs scored)",
        len(graph.nodes), len(graph.edges), len(pairs),
    )
    return graph
