from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from skillgraph.skills.models import (
    CatalogEntry,
    DegreeNode,
    DropReasonCounts,
    GraphMetrics,
    SkillGraph,
    SkillGraphEdge,
)
from skillgraph.tools.vocabulary import INTERFACE_TAG_SET

from .scoring import intersect_tags, jaccard_similarity, normalize_tags, percentile, smoothed_idf
from .types import EDGE_PRIORITY, DropReason, EdgeType, Stage, stage_distance, stage_rank

logger = logging.getLogger(__name__)

ARTIFACT_FIELD_WEIGHT = 1.35
CAPABILITY_FIELD_WEIGHT = 1.15
MIN_SCORE_THRESHOLD = 1.2
THRESHOLD_PERCENTILE = 0.70
SPECIFIC_DF_RATIO = 0.3
HIGH_INFORMATION_IDF = 1.7
MIN_ALTERNATIVE_SIMILARITY = 0.6
RECIPROCAL_SCORE_GAP = 0.12

TOP_K: Dict[EdgeType, int] = {
    EdgeType.DEPENDS_ON: 5,
    EdgeType.PRECEDES: 5,
    EdgeType.COMPLEMENTS: 5,
    EdgeType.ALTERNATIVE_TO: 3,
}

MAX_CHAIN_ROOTS = 30
MAX_CHAIN_BRANCHING = 4
MAX_CHAIN_LENGTH = 6
MAX_CHAINS = 20
TOP_DEGREE_NODES = 10

# Tags too generic to justify a relationship on their own.
GENERIC_TAG_STOPLIST: FrozenSet[str] = frozenset(
    {
        "workflow",
        "planning",
        "tasks",
        "quality",
        "validation",
        "requirements",
    }
)


@dataclass(frozen=True, slots=True)
class _EntryTags:
    id: str
    stage: Stage
    inputs: List[str]
    artifacts: List[str]
    capabilities: List[str]

    @classmethod
    def from_entry(cls, entry: CatalogEntry) -> "_EntryTags":
        return cls(
            id=entry.id,
            stage=entry.stage,
            inputs=normalize_tags(entry.inputs_tags),
            artifacts=normalize_tags(entry.artifacts_tags),
            capabilities=normalize_tags(entry.capabilities_tags),
        )

    @property
    def all_tags(self) -> List[str]:
        return normalize_tags([*self.inputs, *self.artifacts, *self.capabilities])


@dataclass(frozen=True, slots=True)
class _CorpusStats:
    size: int
    document_frequency: Dict[str, int]
    max_specific_df: int

    def idf(self, tag: str) -> float:
        return smoothed_idf(self.document_frequency.get(tag, 0), self.size)

    def is_specific(self, tag: str) -> bool:
        return self.document_frequency.get(tag, 0) <= self.max_specific_df


@dataclass(slots=True)
class _Candidate:
    from_id: str
    to_id: str
    type: EdgeType
    score: float
    overlap_tags: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class GraphBuilder:
    """Infers a typed, scored relationship graph from catalog tag statistics.

    The build is a pure function of the entry list. Entries are ordered by id
    before anything else happens, so permuting the input never changes the
    result. Every rejected candidate is tallied in ``metrics.drop_reasons``.
    """

    top_k: Dict[EdgeType, int] = field(default_factory=lambda: dict(TOP_K))

    def build(self, entries: Sequence[CatalogEntry]) -> SkillGraph:
        """Build the relationship graph for a catalog snapshot.

        Args:
            entries: Catalog entries with canonical tag sets

        Returns:
            SkillGraph with edges, adjacency, related index, chains and metrics
        """
        ordered = self._ordered_entries(entries)
        stats = self._corpus_stats(ordered)
        drops = DropReasonCounts()

        candidates = self._generate_candidates(ordered, stats, drops)
        threshold = max(
            MIN_SCORE_THRESHOLD,
            percentile([c.score for c in candidates], THRESHOLD_PERCENTILE),
        )

        surviving: List[_Candidate] = []
        for candidate in candidates:
            if candidate.score >= threshold:
                surviving.append(candidate)
            else:
                drops.increment(DropReason.THRESHOLD)

        stage_by_id = {entry.id: entry.stage for entry in ordered}
        surviving = self._resolve_reciprocal_depends_on(surviving, stage_by_id, drops)
        surviving = self._merge_undirected(surviving)
        kept = self._prune(surviving, drops)

        edges = [
            SkillGraphEdge(
                from_id=c.from_id,
                to_id=c.to_id,
                type=c.type,
                score=c.score,
                overlap_tags=c.overlap_tags,
            )
            for c in sorted(kept, key=_edge_sort_key)
        ]

        node_ids = [entry.id for entry in ordered]
        adjacency = self._directed_adjacency(node_ids, edges)
        related = self._related_index(node_ids, edges)
        metrics = self._metrics(
            node_ids=node_ids,
            edges=edges,
            drops=drops,
            threshold=threshold,
            candidate_count=len(candidates),
        )

        graph = SkillGraph(
            edges=edges,
            adjacency=adjacency,
            related=related,
            chains=build_chains(adjacency),
            metrics=metrics,
        )
        self._log_diagnostics(ordered, graph)
        return graph

    # -------------------------------------------------------------------------
    # Corpus statistics
    # -------------------------------------------------------------------------

    def _ordered_entries(self, entries: Iterable[CatalogEntry]) -> List[_EntryTags]:
        unique: Dict[str, CatalogEntry] = {}
        for entry in sorted(entries, key=lambda e: (e.id, e.model_dump_json())):
            if entry.id in unique:
                logger.warning("Duplicate catalog id ignored in graph build: %s", entry.id)
                continue
            unique[entry.id] = entry
        return [_EntryTags.from_entry(entry) for entry in unique.values()]

    def _corpus_stats(self, entries: List[_EntryTags]) -> _CorpusStats:
        document_frequency: Counter[str] = Counter()
        for entry in entries:
            document_frequency.update(entry.all_tags)

        size = len(entries)
        return _CorpusStats(
            size=size,
            document_frequency=dict(document_frequency),
            max_specific_df=math.floor(max(size, 1) * SPECIFIC_DF_RATIO),
        )

    # -------------------------------------------------------------------------
    # Candidate generation
    # -------------------------------------------------------------------------

    def _generate_candidates(
        self,
        entries: List[_EntryTags],
        stats: _CorpusStats,
        drops: DropReasonCounts,
    ) -> List[_Candidate]:
        candidates: List[_Candidate] = []

        for source in entries:
            for target in entries:
                if source.id == target.id:
                    continue

                handoff = intersect_tags(source.artifacts, target.inputs)
                if handoff:
                    tags, reason = self._specific_overlap(handoff, stats, interface_only=True)
                    if tags is None:
                        drops.increment(reason)
                    else:
                        candidates.append(
                            _Candidate(
                                from_id=source.id,
                                to_id=target.id,
                                type=EdgeType.DEPENDS_ON,
                                score=self._score(tags, stats, ARTIFACT_FIELD_WEIGHT),
                                overlap_tags=sorted(tags),
                            )
                        )

                feeds = intersect_tags(source.capabilities, target.inputs)
                if feeds:
                    if stage_rank(target.stage) <= stage_rank(source.stage):
                        drops.increment(DropReason.STAGE)
                    else:
                        tags, reason = self._specific_overlap(feeds, stats, interface_only=True)
                        if tags is None:
                            drops.increment(reason)
                        else:
                            candidates.append(
                                _Candidate(
                                    from_id=source.id,
                                    to_id=target.id,
                                    type=EdgeType.PRECEDES,
                                    score=self._score(tags, stats, CAPABILITY_FIELD_WEIGHT),
                                    overlap_tags=sorted(tags),
                                )
                            )

        for index, left in enumerate(entries):
            for right in entries[index + 1 :]:
                shared = intersect_tags(left.capabilities, right.capabilities)
                if not shared:
                    continue

                complement = self._complements_candidate(left, right, shared, stats, drops)
                if complement is not None:
                    candidates.append(complement)

                alternative = self._alternative_candidate(left, right, shared, stats, drops)
                if alternative is not None:
                    candidates.append(alternative)

        return candidates

    def _complements_candidate(
        self,
        left: _EntryTags,
        right: _EntryTags,
        shared: List[str],
        stats: _CorpusStats,
        drops: DropReasonCounts,
    ) -> Optional[_Candidate]:
        tags, reason = self._specific_overlap(shared, stats, interface_only=False)
        if tags is None:
            drops.increment(reason)
            return None
        if not any(stats.idf(tag) >= HIGH_INFORMATION_IDF for tag in tags):
            drops.increment(DropReason.SPEC)
            return None
        return _Candidate(
            from_id=left.id,
            to_id=right.id,
            type=EdgeType.COMPLEMENTS,
            score=self._score(tags, stats, CAPABILITY_FIELD_WEIGHT),
            overlap_tags=sorted(tags),
        )

    def _alternative_candidate(
        self,
        left: _EntryTags,
        right: _EntryTags,
        shared: List[str],
        stats: _CorpusStats,
        drops: DropReasonCounts,
    ) -> Optional[_Candidate]:
        if stage_distance(left.stage, right.stage) > 1:
            drops.increment(DropReason.STAGE)
            return None

        left_caps = [tag for tag in left.capabilities if tag not in GENERIC_TAG_STOPLIST]
        right_caps = [tag for tag in right.capabilities if tag not in GENERIC_TAG_STOPLIST]
        similarity = jaccard_similarity(left_caps, right_caps)
        tags = [tag for tag in shared if tag not in GENERIC_TAG_STOPLIST]
        if similarity < MIN_ALTERNATIVE_SIMILARITY or not tags:
            drops.increment(DropReason.SIMILARITY)
            return None

        score = self._score(tags, stats, CAPABILITY_FIELD_WEIGHT) * (1 + similarity)
        return _Candidate(
            from_id=left.id,
            to_id=right.id,
            type=EdgeType.ALTERNATIVE_TO,
            score=score,
            overlap_tags=sorted(tags),
        )

    def _specific_overlap(
        self,
        overlap: List[str],
        stats: _CorpusStats,
        *,
        interface_only: bool,
    ) -> Tuple[Optional[List[str]], Optional[DropReason]]:
        """Chained specificity filter: interface subset, stoplist, rarity."""
        tags = list(overlap)
        if interface_only:
            tags = [tag for tag in tags if tag in INTERFACE_TAG_SET]
            if not tags:
                return None, DropReason.SPEC

        tags = [tag for tag in tags if tag not in GENERIC_TAG_STOPLIST]
        if not tags:
            return None, DropReason.STOPLIST

        if not any(stats.is_specific(tag) for tag in tags):
            return None, DropReason.SPEC

        return tags, None

    def _score(self, tags: Iterable[str], stats: _CorpusStats, weight: float) -> float:
        return sum(stats.idf(tag) * weight for tag in tags)

    # -------------------------------------------------------------------------
    # Reciprocal resolution, merging and pruning
    # -------------------------------------------------------------------------

    def _resolve_reciprocal_depends_on(
        self,
        candidates: List[_Candidate],
        stage_by_id: Dict[str, Stage],
        drops: DropReasonCounts,
    ) -> List[_Candidate]:
        by_pair: Dict[Tuple[str, str], Dict[Tuple[str, str], _Candidate]] = defaultdict(dict)
        result: List[_Candidate] = []

        for candidate in candidates:
            if candidate.type != EdgeType.DEPENDS_ON:
                result.append(candidate)
                continue
            pair = _pair_key(candidate.from_id, candidate.to_id)
            direction = (candidate.from_id, candidate.to_id)
            existing = by_pair[pair].get(direction)
            if existing is None or candidate.score > existing.score:
                by_pair[pair][direction] = candidate
            if existing is not None:
                drops.increment(DropReason.RECIPROCAL_DEPENDS_ON)

        for (low, high) in sorted(by_pair):
            directions = by_pair[(low, high)]
            forward = directions.get((low, high))
            backward = directions.get((high, low))
            if forward is None or backward is None:
                result.append(forward or backward)  # type: ignore[arg-type]
                continue

            forward_delta = stage_rank(stage_by_id[high]) - stage_rank(stage_by_id[low])
            if forward_delta > 0:
                result.append(forward)
                drops.increment(DropReason.RECIPROCAL_DEPENDS_ON)
            elif forward_delta < 0:
                result.append(backward)
                drops.increment(DropReason.RECIPROCAL_DEPENDS_ON)
            elif abs(forward.score - backward.score) <= RECIPROCAL_SCORE_GAP:
                result.append(
                    _Candidate(
                        from_id=low,
                        to_id=high,
                        type=EdgeType.COMPLEMENTS,
                        score=(forward.score + backward.score) / 2,
                        overlap_tags=sorted(set(forward.overlap_tags) | set(backward.overlap_tags)),
                    )
                )
                drops.increment(DropReason.RECIPROCAL_DEPENDS_ON, 2)
            else:
                result.append(forward if forward.score > backward.score else backward)
                drops.increment(DropReason.RECIPROCAL_DEPENDS_ON)

        return result

    def _merge_undirected(self, candidates: List[_Candidate]) -> List[_Candidate]:
        merged: Dict[Tuple[str, str, EdgeType], _Candidate] = {}
        result: List[_Candidate] = []

        for candidate in candidates:
            if candidate.type.directed:
                result.append(candidate)
                continue
            low, high = _pair_key(candidate.from_id, candidate.to_id)
            key = (low, high, candidate.type)
            tags = normalize_tags(candidate.overlap_tags)
            existing = merged.get(key)
            if existing is None:
                merged[key] = _Candidate(
                    from_id=low,
                    to_id=high,
                    type=candidate.type,
                    score=candidate.score,
                    overlap_tags=sorted(tags),
                )
            else:
                existing.score = max(existing.score, candidate.score)
                existing.overlap_tags = sorted(set(existing.overlap_tags) | set(tags))

        result.extend(merged[key] for key in sorted(merged, key=lambda k: (k[0], k[1], EDGE_PRIORITY[k[2]])))
        return result

    def _prune(self, candidates: List[_Candidate], drops: DropReasonCounts) -> List[_Candidate]:
        kept: List[_Candidate] = []

        directed_groups: Dict[Tuple[str, EdgeType], List[_Candidate]] = defaultdict(list)
        undirected_groups: Dict[EdgeType, List[_Candidate]] = defaultdict(list)
        for candidate in candidates:
            if candidate.type.directed:
                directed_groups[(candidate.from_id, candidate.type)].append(candidate)
            else:
                undirected_groups[candidate.type].append(candidate)

        for (_, edge_type), group in sorted(
            directed_groups.items(), key=lambda item: (item[0][0], EDGE_PRIORITY[item[0][1]])
        ):
            limit = self.top_k[edge_type]
            group.sort(key=lambda c: (-c.score, c.to_id))
            kept.extend(group[:limit])
            drops.increment(DropReason.TOP_K, len(group[limit:]))

        for edge_type in sorted(undirected_groups, key=EDGE_PRIORITY.__getitem__):
            limit = self.top_k[edge_type]
            degree: Counter[str] = Counter()
            for candidate in sorted(
                undirected_groups[edge_type],
                key=lambda c: (-c.score, c.from_id, c.to_id),
            ):
                if degree[candidate.from_id] < limit and degree[candidate.to_id] < limit:
                    kept.append(candidate)
                    degree[candidate.from_id] += 1
                    degree[candidate.to_id] += 1
                else:
                    drops.increment(DropReason.TOP_K)

        return kept

    # -------------------------------------------------------------------------
    # Assembly
    # -------------------------------------------------------------------------

    def _directed_adjacency(
        self, node_ids: List[str], edges: List[SkillGraphEdge]
    ) -> Dict[str, List[str]]:
        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
        directed = sorted(
            (e for e in edges if e.type.directed),
            key=lambda e: (e.from_id, -e.score, e.to_id, EDGE_PRIORITY[e.type]),
        )
        for edge in directed:
            targets = adjacency.setdefault(edge.from_id, [])
            if edge.to_id not in targets:
                targets.append(edge.to_id)
        return adjacency

    def _related_index(
        self, node_ids: List[str], edges: List[SkillGraphEdge]
    ) -> Dict[str, List[str]]:
        related: Dict[str, set] = {node_id: set() for node_id in node_ids}
        for edge in edges:
            related.setdefault(edge.from_id, set()).add(edge.to_id)
            related.setdefault(edge.to_id, set()).add(edge.from_id)
        return {node_id: sorted(neighbours) for node_id, neighbours in related.items()}

    def _metrics(
        self,
        *,
        node_ids: List[str],
        edges: List[SkillGraphEdge],
        drops: DropReasonCounts,
        threshold: float,
        candidate_count: int,
    ) -> GraphMetrics:
        n = len(node_ids)
        distribution = {edge_type: 0 for edge_type in EdgeType}
        degree: Counter[str] = Counter()
        out_degree: Counter[str] = Counter()

        for edge in edges:
            distribution[edge.type] += 1
            degree[edge.from_id] += 1
            degree[edge.to_id] += 1
            if edge.type.directed:
                out_degree[edge.from_id] += 1

        top_nodes = sorted(
            (node_id for node_id in degree if degree[node_id] > 0),
            key=lambda node_id: (-degree[node_id], -out_degree[node_id], node_id),
        )[:TOP_DEGREE_NODES]

        return GraphMetrics(
            edge_count=len(edges),
            density=len(edges) / (n * (n - 1)) if n > 1 else 0.0,
            distribution_by_type=distribution,
            top_degree_nodes=[
                DegreeNode(id=node_id, degree=degree[node_id], out_degree=out_degree[node_id])
                for node_id in top_nodes
            ],
            drop_reasons=drops,
            threshold=threshold,
            candidate_count=candidate_count,
        )

    def _log_diagnostics(self, entries: List[_EntryTags], graph: SkillGraph) -> None:
        if not entries:
            return

        usage: Counter[str] = Counter()
        for entry in entries:
            usage.update(entry.all_tags)
        matches: Counter[str] = Counter()
        for edge in graph.edges:
            matches.update(normalize_tags(edge.overlap_tags))

        metrics = graph.metrics
        logger.info(
            "Graph built: %d entries, %d candidates, %d edges (threshold=%.3f)",
            len(entries),
            metrics.candidate_count,
            metrics.edge_count,
            metrics.threshold,
        )
        if metrics.edge_count == 0:
            logger.warning("Graph has no edges - check catalog tags")
        logger.debug("Drop reasons: %s", metrics.drop_reasons.model_dump())

        top_tags = sorted(usage.items(), key=lambda item: (-item[1], item[0]))[:20]
        for tag, count in top_tags:
            logger.debug("tag %-18s usage=%-4d matches=%d", tag, count, matches.get(tag, 0))


def build_chains(adjacency: Dict[str, List[str]]) -> List[List[str]]:
    """Enumerate the longest linear paths through a directed adjacency.

    Uses an explicit stack so deep graphs cannot exhaust the interpreter's
    recursion limit. Only dead ends and paths at the length bound are
    recorded; a path whose successors are all already on it is dropped.
    """
    has_incoming = {target for targets in adjacency.values() for target in targets}
    roots = [node for node in sorted(adjacency) if node not in has_incoming][:MAX_CHAIN_ROOTS]

    found: set = set()
    for root in roots:
        stack: List[Tuple[Tuple[str, ...], FrozenSet[str]]] = [((root,), frozenset({root}))]
        while stack:
            path, visited = stack.pop()
            if len(path) >= MAX_CHAIN_LENGTH:
                found.add(path)
                continue
            targets = adjacency.get(path[-1], [])
            if not targets:
                found.add(path)
                continue
            successors = [node for node in targets[:MAX_CHAIN_BRANCHING] if node not in visited]
            for node in reversed(successors):
                stack.append((path + (node,), visited | {node}))

    chains = sorted((path for path in found if len(path) > 1), key=lambda p: (-len(p), p))
    return [list(path) for path in chains[:MAX_CHAINS]]


def build_skill_graph(entries: Sequence[CatalogEntry]) -> SkillGraph:
    return GraphBuilder().build(entries)


def _pair_key(a: str, b: str) -> Tuple[str, str]:
    return (a, b) if a <= b else (b, a)


def _edge_sort_key(candidate: _Candidate) -> Tuple[float, str, str, int]:
    return (-candidate.score, candidate.from_id, candidate.to_id, EDGE_PRIORITY[candidate.type])
