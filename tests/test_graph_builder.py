from __future__ import annotations

import math
import random
from collections import Counter

import pytest

from skillgraph.engine.graph_builder import (
    GENERIC_TAG_STOPLIST,
    HIGH_INFORMATION_IDF,
    MAX_CHAIN_LENGTH,
    MAX_CHAIN_ROOTS,
    MIN_ALTERNATIVE_SIMILARITY,
    MIN_SCORE_THRESHOLD,
    SPECIFIC_DF_RATIO,
    TOP_K,
    GraphBuilder,
    build_chains,
)
from skillgraph.engine.scoring import jaccard_similarity, percentile, smoothed_idf
from skillgraph.engine.types import EdgeType


def _edge_keys(graph):
    return {(edge.from_id, edge.to_id, edge.type) for edge in graph.edges}


def test_empty_catalog_builds_empty_graph() -> None:
    graph = GraphBuilder().build([])

    assert graph.edges == []
    assert graph.chains == []
    assert graph.metrics.candidate_count == 0
    assert graph.metrics.threshold == MIN_SCORE_THRESHOLD
    assert graph.metrics.density == 0.0


def test_tag_shared_by_whole_corpus_is_not_specific(entry_factory) -> None:
    entries = [
        entry_factory("a", "implement", artifacts=["code"]),
        entry_factory("b", "verify", inputs=["code"]),
    ]

    graph = GraphBuilder().build(entries)

    assert graph.edges == []
    assert graph.metrics.drop_reasons.spec == 1
    assert graph.metrics.candidate_count == 0
    assert graph.metrics.threshold == MIN_SCORE_THRESHOLD


def test_same_stage_shared_capability_yields_alternatives(entry_factory) -> None:
    entries = [entry_factory(name, "implement", capabilities=["mcp"]) for name in "abc"]

    graph = GraphBuilder().build(entries)

    assert _edge_keys(graph) == {
        ("a", "b", EdgeType.ALTERNATIVE_TO),
        ("a", "c", EdgeType.ALTERNATIVE_TO),
        ("b", "c", EdgeType.ALTERNATIVE_TO),
    }
    # "mcp" is carried by every entry, so complements fails specificity
    assert graph.metrics.drop_reasons.spec == 3
    assert graph.metrics.threshold == pytest.approx(2.3)
    assert graph.metrics.distribution_by_type[EdgeType.ALTERNATIVE_TO] == 3
    assert graph.metrics.distribution_by_type[EdgeType.COMPLEMENTS] == 0


def test_depends_on_chain_and_metrics(handoff_catalog) -> None:
    graph = GraphBuilder().build(handoff_catalog)

    assert _edge_keys(graph) == {
        ("alpha", "beta", EdgeType.DEPENDS_ON),
        ("beta", "gamma", EdgeType.DEPENDS_ON),
    }
    expected_score = (math.log(11 / 3) + 1) * 1.35
    for edge in graph.edges:
        assert edge.score == pytest.approx(expected_score)
    assert graph.edges[0].overlap_tags in (["spec"], ["code"])

    assert graph.adjacency["alpha"] == ["beta"]
    assert graph.adjacency["beta"] == ["gamma"]
    assert graph.adjacency["gamma"] == []
    assert graph.adjacency["filler-0"] == []
    assert graph.related["beta"] == ["alpha", "gamma"]
    assert graph.chains == [["alpha", "beta", "gamma"]]

    metrics = graph.metrics
    assert metrics.edge_count == 2
    assert metrics.density == pytest.approx(2 / 90)
    assert [node.id for node in metrics.top_degree_nodes] == ["beta", "alpha", "gamma"]
    assert metrics.top_degree_nodes[0].degree == 2
    assert metrics.top_degree_nodes[0].out_degree == 1
    assert metrics.drop_reasons.model_dump() == {
        "stoplist": 0,
        "spec": 0,
        "stage": 0,
        "similarity": 0,
        "threshold": 0,
        "top_k": 0,
        "reciprocal_depends_on": 0,
    }


def test_precedes_requires_a_later_target_stage(entry_factory, filler_factory) -> None:
    entries = [
        entry_factory("docs-writer", "docs", capabilities=["docs"]),
        entry_factory("releaser", "release", inputs=["docs"]),
        entry_factory("planner", "plan", inputs=["docs"]),
        *filler_factory(7),
    ]

    graph = GraphBuilder().build(entries)

    assert _edge_keys(graph) == {("docs-writer", "releaser", EdgeType.PRECEDES)}
    assert graph.edges[0].score == pytest.approx((math.log(11 / 4) + 1) * 1.15)
    assert graph.metrics.drop_reasons.stage == 1


def test_generic_tags_are_dropped_by_stoplist(entry_factory) -> None:
    entries = [
        entry_factory("a", "implement", capabilities=["workflow"]),
        entry_factory("b", "implement", capabilities=["workflow"]),
    ]

    graph = GraphBuilder().build(entries)

    assert graph.edges == []
    assert graph.metrics.drop_reasons.stoplist == 1
    assert graph.metrics.drop_reasons.similarity == 1


def test_alternatives_need_adjacent_stages(entry_factory) -> None:
    entries = [
        entry_factory("a", "plan", capabilities=["mcp"]),
        entry_factory("b", "verify", capabilities=["mcp"]),
    ]

    graph = GraphBuilder().build(entries)

    assert all(edge.type != EdgeType.ALTERNATIVE_TO for edge in graph.edges)
    assert graph.metrics.drop_reasons.stage == 1


def test_reciprocal_depends_on_same_stage_demotes_to_complements(
    entry_factory, filler_factory
) -> None:
    entries = [
        entry_factory("alpha", "implement", inputs=["tests"], artifacts=["code"]),
        entry_factory("beta", "implement", inputs=["code"], artifacts=["tests"]),
        *filler_factory(8),
    ]

    graph = GraphBuilder().build(entries)

    assert len(graph.edges) == 1
    edge = graph.edges[0]
    assert (edge.from_id, edge.to_id, edge.type) == ("alpha", "beta", EdgeType.COMPLEMENTS)
    assert edge.overlap_tags == ["code", "tests"]
    assert graph.metrics.drop_reasons.reciprocal_depends_on == 2
    assert graph.adjacency["alpha"] == []


def test_reciprocal_depends_on_keeps_later_stage_target(entry_factory, filler_factory) -> None:
    entries = [
        entry_factory("alpha", "implement", inputs=["tests"], artifacts=["code"]),
        entry_factory("beta", "verify", inputs=["code"], artifacts=["tests"]),
        *filler_factory(8),
    ]

    graph = GraphBuilder().build(entries)

    assert _edge_keys(graph) == {("alpha", "beta", EdgeType.DEPENDS_ON)}
    assert graph.metrics.drop_reasons.reciprocal_depends_on == 1


def test_undirected_degree_cap(entry_factory) -> None:
    entries = [
        entry_factory(name, "implement", capabilities=["mcp", "rag"]) for name in "abcde"
    ]

    graph = GraphBuilder().build(entries)

    limit = TOP_K[EdgeType.ALTERNATIVE_TO]
    degree: Counter = Counter()
    for edge in graph.edges:
        assert edge.type == EdgeType.ALTERNATIVE_TO
        degree[edge.from_id] += 1
        degree[edge.to_id] += 1
    assert max(degree.values()) <= limit
    assert len(graph.edges) == 6
    assert graph.metrics.drop_reasons.top_k == 4


def _mixed_catalog(entry_factory, filler_factory):
    return [
        entry_factory("intake-bot", "intake", artifacts=["spec"], capabilities=["jira", "requirements"]),
        entry_factory("planner", "plan", inputs=["spec"], artifacts=["plan"], capabilities=["architecture", "diagram"]),
        entry_factory("architect", "plan", inputs=["spec"], artifacts=["plan", "schema"], capabilities=["architecture", "diagram"]),
        entry_factory("coder", "implement", inputs=["plan", "schema"], artifacts=["code"], capabilities=["python", "api"]),
        entry_factory("coder-ts", "implement", inputs=["plan"], artifacts=["code", "patch"], capabilities=["typescript", "api"]),
        entry_factory("tester", "verify", inputs=["code"], artifacts=["tests", "report"], capabilities=["tests", "python"]),
        entry_factory("reviewer", "verify", inputs=["patch", "code"], artifacts=["report"], capabilities=["tests", "security"]),
        entry_factory("auditor", "security", inputs=["code", "report"], artifacts=["report"], capabilities=["security", "audit"]),
        entry_factory("writer", "docs", inputs=["code"], artifacts=["docs", "readme"], capabilities=["docs", "markdown"]),
        entry_factory("releaser", "release", inputs=["docs", "changelog"], artifacts=["changelog", "deploy"], capabilities=["ci-cd", "docker"]),
        *filler_factory(4),
    ]


def test_build_is_independent_of_input_order(entry_factory, filler_factory) -> None:
    entries = _mixed_catalog(entry_factory, filler_factory)
    shuffled = list(entries)
    random.Random(7).shuffle(shuffled)

    baseline = GraphBuilder().build(entries).model_dump()

    assert GraphBuilder().build(list(reversed(entries))).model_dump() == baseline
    assert GraphBuilder().build(shuffled).model_dump() == baseline


def test_graph_invariants_hold(entry_factory, filler_factory) -> None:
    entries = _mixed_catalog(entry_factory, filler_factory)
    by_id = {entry.id: entry for entry in entries}

    graph = GraphBuilder().build(entries)

    threshold = graph.metrics.threshold
    assert threshold >= MIN_SCORE_THRESHOLD
    assert graph.edges

    depends = {(e.from_id, e.to_id) for e in graph.edges if e.type == EdgeType.DEPENDS_ON}
    for from_id, to_id in depends:
        assert (to_id, from_id) not in depends

    degrees = {edge_type: Counter() for edge_type in EdgeType}
    for edge in graph.edges:
        assert edge.score >= threshold
        degrees[edge.type][edge.from_id] += 1
        if not edge.type.directed:
            degrees[edge.type][edge.to_id] += 1
            assert edge.from_id < edge.to_id
        if edge.type == EdgeType.ALTERNATIVE_TO:
            left = [t for t in by_id[edge.from_id].capabilities_tags if t not in GENERIC_TAG_STOPLIST]
            right = [t for t in by_id[edge.to_id].capabilities_tags if t not in GENERIC_TAG_STOPLIST]
            assert jaccard_similarity(left, right) >= MIN_ALTERNATIVE_SIMILARITY

    for edge_type, counts in degrees.items():
        if counts:
            assert max(counts.values()) <= TOP_K[edge_type]

    assert graph.metrics.edge_count == len(graph.edges)
    assert sum(graph.metrics.distribution_by_type.values()) == len(graph.edges)
    assert set(graph.adjacency) == set(by_id)


def test_build_chains_keeps_dead_ends_and_drops_cycle_blocked_paths() -> None:
    adjacency = {
        "root": ["left", "right"],
        "left": [],
        "right": ["tail"],
        "tail": ["right"],
    }

    assert build_chains(adjacency) == [["root", "left"]]
    assert build_chains({"root": ["right"], "right": ["tail"], "tail": ["right"]}) == []


def test_build_chains_roots_include_isolated_nodes() -> None:
    adjacency: dict = {f"a{index:02d}": [] for index in range(MAX_CHAIN_ROOTS)}
    adjacency.update({"z1": ["z2"], "z2": []})

    assert build_chains(adjacency) == []

    del adjacency["a00"]

    assert build_chains(adjacency) == [["z1", "z2"]]


def test_build_chains_without_roots() -> None:
    assert build_chains({"a": ["b"], "b": ["c"], "c": ["a"]}) == []


def test_build_chains_respects_length_bound() -> None:
    nodes = [f"n{index}" for index in range(10)]
    adjacency = {node: [nodes[i + 1]] if i + 1 < len(nodes) else [] for i, node in enumerate(nodes)}

    chains = build_chains(adjacency)

    assert chains == [nodes[:MAX_CHAIN_LENGTH]]


def test_duplicate_ids_resolve_the_same_way_in_any_order(entry_factory, filler_factory) -> None:
    first = entry_factory("dup", "plan", artifacts=["spec"])
    second = entry_factory("dup", "plan", artifacts=["code"])
    rest = [entry_factory("consumer", "implement", inputs=["spec", "code"]), *filler_factory(8)]

    forward = GraphBuilder().build([first, second, *rest])
    backward = GraphBuilder().build([second, first, *rest])

    assert len(forward.edges) == 1
    assert forward.model_dump() == backward.model_dump()


def test_percentile_interpolates_linearly() -> None:
    assert percentile([], 0.7) == 0.0
    assert percentile([5.0], 0.7) == 5.0
    assert percentile([4.0, 1.0, 3.0, 2.0], 0.7) == pytest.approx(3.1)


def test_candidates_below_the_percentile_threshold_are_dropped(entry_factory, filler_factory) -> None:
    entries = [
        entry_factory("p1", "plan", artifacts=["spec"]),
        entry_factory("c1", "implement", inputs=["spec"]),
        entry_factory("p2", "plan", artifacts=["schema"]),
        entry_factory("c2a", "implement", inputs=["schema"]),
        entry_factory("c2b", "implement", inputs=["schema"]),
        *filler_factory(5),
    ]

    graph = GraphBuilder().build(entries)

    low = (math.log(11 / 4) + 1) * 1.35
    high = (math.log(11 / 3) + 1) * 1.35
    assert graph.metrics.candidate_count == 3
    assert graph.metrics.threshold == pytest.approx(low + (high - low) * 0.4)
    assert _edge_keys(graph) == {("p1", "c1", EdgeType.DEPENDS_ON)}
    assert graph.metrics.drop_reasons.threshold == 2


def test_directed_top_k_keeps_best_targets_per_source(entry_factory, filler_factory) -> None:
    entries = [
        entry_factory("hub", "plan", artifacts=["spec", "schema"]),
        entry_factory("c0", "implement", inputs=["spec", "schema"]),
        *(entry_factory(f"c{index}", "implement", inputs=["spec"]) for index in range(1, 6)),
        *filler_factory(17),
    ]

    graph = GraphBuilder().build(entries)

    assert graph.metrics.candidate_count == 6
    assert graph.adjacency["hub"] == ["c0", "c1", "c2", "c3", "c4"]
    assert [edge.to_id for edge in graph.edges] == ["c0", "c1", "c2", "c3", "c4"]
    assert graph.metrics.drop_reasons.top_k == 1
    assert graph.metrics.drop_reasons.threshold == 0


def test_complements_across_distant_stages(entry_factory, filler_factory) -> None:
    entries = [
        entry_factory("a", "plan", capabilities=["mcp"]),
        entry_factory("b", "verify", capabilities=["mcp"]),
        *filler_factory(8),
    ]

    graph = GraphBuilder().build(entries)

    assert _edge_keys(graph) == {("a", "b", EdgeType.COMPLEMENTS)}
    assert graph.edges[0].score == pytest.approx((math.log(11 / 3) + 1) * 1.15)
    assert graph.edges[0].overlap_tags == ["mcp"]
    assert graph.related["a"] == ["b"]
    assert graph.adjacency["a"] == []
    assert graph.metrics.drop_reasons.stage == 1


# a shared capability needs at least two entries
@pytest.mark.parametrize("size", range(2, 200))
def test_specific_tags_always_clear_the_information_floor(size: int) -> None:
    max_specific_df = math.floor(size * SPECIFIC_DF_RATIO)

    assert smoothed_idf(max_specific_df, size) >= HIGH_INFORMATION_IDF


def test_reciprocal_depends_on_keeps_clearly_stronger_direction(entry_factory, filler_factory) -> None:
    entries = [
        entry_factory("alpha", "implement", inputs=["tests"], artifacts=["code"]),
        entry_factory("beta", "implement", inputs=["code"], artifacts=["tests"]),
        entry_factory("carrier", "other", capabilities=["tests"]),
        entry_factory("writer", "plan", capabilities=["docs"]),
        *(entry_factory(f"reader-{index}", "verify", inputs=["docs"]) for index in range(3)),
        *filler_factory(13),
    ]

    graph = GraphBuilder().build(entries)

    forward = (math.log(21 / 3) + 1) * 1.35
    backward = (math.log(21 / 4) + 1) * 1.35
    assert forward - backward > 0.12
    assert graph.metrics.threshold <= backward
    assert _edge_keys(graph) == {("alpha", "beta", EdgeType.DEPENDS_ON)}
    assert graph.edges[0].score == pytest.approx(forward)
    assert graph.metrics.drop_reasons.reciprocal_depends_on == 1
    assert graph.metrics.drop_reasons.threshold == 3
