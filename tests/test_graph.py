"""Tests for hunkplan.plan.graph: the relation graph builder."""

import pytest

from hunkplan.plan.graph import adjacency_score, build_relation_graph, identifier_score
from hunkplan.plan.models import (
    IDENTIFIER_OVERLAP,
    RENAME_PAIR,
    SAME_FILE_ADJACENT,
    TEXTUAL_SIMILARITY,
)
from hunkplan.plan.parser import parse_diff
from hunkplan.plan.settings import PlannerConfig


class TestAdjacency:
    """Tests for the same-file adjacency signal."""

    def test_touching_hunks_get_full_weight(self, make_hunk):
        """Test that hunks with no gap score the full weight."""
        a = make_hunk(1, new_start=10, new_len=5)
        b = make_hunk(2, new_start=15, new_len=2)
        assert adjacency_score(a, b, PlannerConfig()) == pytest.approx(1.0)

    def test_score_halves_at_threshold(self, make_hunk):
        """Test that a gap equal to the threshold scores half the weight."""
        config = PlannerConfig(adjacency_line_threshold=40)
        a = make_hunk(1, new_start=1, new_len=1)
        b = make_hunk(2, new_start=42, new_len=1)
        assert adjacency_score(a, b, config) == pytest.approx(0.5)

    def test_score_decays_beyond_threshold(self, make_hunk):
        """Test that far-apart hunks score less than the threshold value."""
        a = make_hunk(1, new_start=1, new_len=1)
        b = make_hunk(2, new_start=500, new_len=1)
        assert 0 < adjacency_score(a, b, PlannerConfig()) < 0.5

    def test_different_files_score_zero(self, make_hunk):
        """Test that adjacency only applies within one file."""
        a = make_hunk(1, file_path="a.py", new_start=1)
        b = make_hunk(2, file_path="b.py", new_start=2)
        assert adjacency_score(a, b, PlannerConfig()) == 0.0


class TestIdentifierOverlap:
    """Tests for the identifier overlap signal."""

    def test_definition_and_use(self, make_hunk):
        """Test that a shared identifier is normalized by the smaller set."""
        a = make_hunk(1, file_path="lib/text.py", defined={"slugify_title"})
        b = make_hunk(2, file_path="web/views.py", referenced={"slugify_title", "render"})
        assert identifier_score(a, b, PlannerConfig()) == pytest.approx(1.5)

    def test_no_shared_identifiers(self, make_hunk):
        """Test that disjoint identifier sets score zero."""
        a = make_hunk(1, defined={"alpha"})
        b = make_hunk(2, referenced={"beta"})
        assert identifier_score(a, b, PlannerConfig()) == 0.0


class TestBuildRelationGraph:
    """Tests for build_relation_graph."""

    def test_sample_diff_edges(self, sample_diff):
        """Test that the two main.py hunks are linked and the docs hunk is not."""
        parsed = parse_diff(sample_diff)
        h1, h2, h3 = parsed.hunks
        graph = build_relation_graph(parsed.hunks)

        assert graph.nodes == (h1.id, h2.id, h3.id)
        assert list(graph.edges) == [(h1.id, h2.id)]
        edge = graph.edges[(h1.id, h2.id)]
        assert edge.reasons == {SAME_FILE_ADJACENT}
        assert edge.weight == pytest.approx(0.9)
        assert graph.neighbors(h3.id) == {}

    def test_weight_is_symmetric(self, sample_diff):
        """Test that weight lookups work in both directions."""
        parsed = parse_diff(sample_diff)
        h1, h2, _ = parsed.hunks
        graph = build_relation_graph(parsed.hunks)

        assert graph.weight(h1.id, h2.id) == graph.weight(h2.id, h1.id)

    def test_move_detection(self, make_hunk):
        """Test that a block removed in one file and added in another is linked."""
        body = ("def parse(text):", "    tokens = text.split()", "    return tokens")
        removed = make_hunk(1, file_path="old/parser.py", added=(), removed=body)
        added = make_hunk(2, file_path="new/parser.py", added=body)
        graph = build_relation_graph([removed, added])

        edge = graph.edges[(removed.id, added.id)]
        assert RENAME_PAIR in edge.reasons
        assert edge.weight >= PlannerConfig().rename_bonus

    def test_textual_similarity_across_files(self, make_hunk):
        """Test that near-identical text in different files is linked."""
        lines = ("retry_count = config.retry_count or default_retry_count",)
        a = make_hunk(1, file_path="svc/a.cfg", added=lines)
        b = make_hunk(2, file_path="svc/b.cfg", added=lines)
        graph = build_relation_graph([a, b], PlannerConfig(min_edge_weight=0.1))

        assert TEXTUAL_SIMILARITY in graph.edges[(a.id, b.id)].reasons

    def test_weak_edges_dropped(self, make_hunk):
        """Test that edges below min_edge_weight are not kept."""
        a = make_hunk(
            1,
            file_path="lib/text.py",
            added=("alpha = 1",),
            defined={"alpha", "beta", "gamma", "delta"},
        )
        b = make_hunk(
            2,
            file_path="web/views.py",
            added=("y = alpha(2)",),
            referenced={"alpha", "one", "two", "three"},
        )
        config = PlannerConfig(min_edge_weight=0.5)
        # 1.5 * 1/4 = 0.375
        assert build_relation_graph([a, b], config).edges == {}

    def test_identifier_reason_recorded(self, make_hunk):
        """Test that identifier overlap is listed as a reason."""
        a = make_hunk(1, file_path="lib/text.py", defined={"slugify_title"})
        b = make_hunk(2, file_path="web/views.py", referenced={"slugify_title"})
        graph = build_relation_graph([a, b])
        assert IDENTIFIER_OVERLAP in graph.edges[(a.id, b.id)].reasons

    def test_parallel_scoring_is_deterministic(self, make_hunk):
        """Test that worker threads produce the same graph as serial scoring."""
        hunks = [
            make_hunk(
                i,
                file_path=f"pkg/mod{i % 3}.py",
                new_start=i * 7,
                defined={f"name_{i}"},
                referenced={f"name_{i - 1}", "shared_helper"},
            )
            for i in range(1, 13)
        ]
        serial = build_relation_graph(hunks, PlannerConfig(graph_workers=1))
        parallel = build_relation_graph(hunks, PlannerConfig(graph_workers=4))

        assert list(serial.edges) == list(parallel.edges)
        assert serial.edge_list() == parallel.edge_list()

    def test_input_order_does_not_matter(self, make_hunk):
        """Test that hunks are scored in ordinal order regardless of input order."""
        hunks = [make_hunk(i, new_start=i * 10) for i in range(1, 5)]
        forward = build_relation_graph(hunks)
        backward = build_relation_graph(list(reversed(hunks)))

        assert forward.nodes == backward.nodes
        assert list(forward.edges) == list(backward.edges)
