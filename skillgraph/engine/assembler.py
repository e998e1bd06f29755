from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from skillgraph.skills.models import (
    CatalogEntry,
    SkillGraph,
    SkillWorkflowAssembly,
    WorkflowFeedbackRecord,
    WorkflowPlan,
    WorkflowPlanStep,
    WorkflowSkillCandidate,
    WorkflowStepAssembly,
)

from .graph_builder import GraphBuilder
from .scoring import (
    clamp,
    confidence_level,
    intersect_tags,
    jaccard_similarity,
    normalize_tags,
    score_to_confidence,
)
from .types import CandidateType, EdgeType, Stage, stage_distance

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 3
MIN_SELECTABLE_SCORE = 1.15

INPUT_MATCH_WEIGHT = 1.15
OUTPUT_MATCH_WEIGHT = 1.35
CAPABILITY_MATCH_WEIGHT = 1.1
FLOW_OVERLAP_WEIGHT = 0.75
DEPENDS_ON_BOOST = 1.6
PRECEDES_BOOST = 1.1
FEEDBACK_LIMIT = 1.6

NO_CANDIDATE_REASONING = "No candidate met minimum score/overlap constraints"
LOCKED_REASONING_PREFIX = "locked selection | "

_STAGE_SCORES: Dict[int, float] = {0: 2.0, 1: 1.0, 2: 0.3}


def score_stage(step_stage: Stage, entry_stage: Stage) -> float:
    return _STAGE_SCORES.get(stage_distance(step_stage, entry_stage), 0.0)


@dataclass(slots=True)
class AssemblyOptions:
    """Knobs for a single assembly run.

    ``graph`` takes precedence; when it is absent the assembler builds one
    from the catalog unless ``use_empty_graph`` asks it not to.
    """

    graph: Optional[SkillGraph] = None
    use_empty_graph: bool = False
    alternatives_limit: int = MAX_ALTERNATIVES
    locked_skill_by_step_id: Dict[str, str] = field(default_factory=dict)
    feedback_entries: List[WorkflowFeedbackRecord] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class _StepEvaluation:
    candidate: WorkflowSkillCandidate
    score: float
    matched_tags: List[str]
    missing_tags: List[str]
    graph_boost: float

    @property
    def selectable(self) -> bool:
        return self.score >= MIN_SELECTABLE_SCORE and (
            bool(self.matched_tags) or self.graph_boost > 0
        )


@dataclass(frozen=True, slots=True)
class WorkflowAssembler:
    """Greedy, single-pass matcher from plan steps to catalog entries.

    Each step is scored independently against every entry. The only state
    carried between steps is the previous winner, which feeds the graph
    continuity boost of the next step.
    """

    graph_builder: GraphBuilder = field(default_factory=GraphBuilder)

    def assemble(
        self,
        plan: WorkflowPlan,
        catalog: Sequence[CatalogEntry],
        options: Optional[AssemblyOptions] = None,
    ) -> SkillWorkflowAssembly:
        """Match every plan step to a catalog entry.

        Args:
            plan: Ordered workflow plan
            catalog: Catalog snapshot to choose from
            options: Graph, alternatives limit, locks and feedback

        Returns:
            SkillWorkflowAssembly with per-step winners, alternatives and gaps
        """
        options = options or AssemblyOptions()
        graph = self._resolve_graph(catalog, options)
        edge_lookup = _edge_lookup(graph)
        entries_by_id = {entry.id: entry for entry in catalog}

        result = SkillWorkflowAssembly()
        missing_global: Set[str] = set()
        previous: Optional[CatalogEntry] = None

        for index, step in enumerate(plan.steps):
            step_id = step.id or f"step-{index + 1}"
            title = step.title or f"{step.stage.value} step {index + 1}"

            evaluations = sorted(
                (
                    self._evaluate(step, entry, previous, edge_lookup, options.feedback_entries)
                    for entry in catalog
                ),
                key=lambda evaluation: (-evaluation.score, evaluation.candidate.skill_id),
            )
            selectable = [evaluation for evaluation in evaluations if evaluation.selectable]

            locked_id = options.locked_skill_by_step_id.get(step_id)
            locked = None
            if locked_id:
                locked = next(
                    (e for e in evaluations if e.candidate.skill_id == locked_id),
                    None,
                )
                if locked is None:
                    logger.warning(
                        "Locked skill %s for step %s is not in the catalog, ignoring lock",
                        locked_id,
                        step_id,
                    )

            winner = locked or (selectable[0] if selectable else None)
            winner_candidate: Optional[WorkflowSkillCandidate] = None
            if winner is not None:
                winner_candidate = winner.candidate
                if locked is not None:
                    winner_candidate = winner_candidate.model_copy(
                        update={"reasoning": LOCKED_REASONING_PREFIX + winner_candidate.reasoning}
                    )

            alternatives = [
                evaluation.candidate
                for evaluation in selectable
                if winner_candidate is None or evaluation.candidate.skill_id != winner_candidate.skill_id
            ][: options.alternatives_limit]

            if winner is not None:
                missing = winner.missing_tags
                overlap = winner.matched_tags
            else:
                missing = _required_tags(step)
                overlap = []
            missing_global.update(missing)

            if winner_candidate is not None:
                result.selected.append(winner_candidate)
                result.reasoning[step_id] = winner_candidate.reasoning
                previous = entries_by_id.get(winner_candidate.skill_id)
            else:
                result.reasoning[step_id] = NO_CANDIDATE_REASONING
                previous = None
                logger.info("No candidate selected for step %s (%s)", step_id, step.stage.value)

            result.alternatives[step_id] = alternatives
            result.steps.append(
                WorkflowStepAssembly(
                    step_id=step_id,
                    title=title,
                    stage=step.stage,
                    selected=winner_candidate,
                    alternatives=alternatives,
                    overlap_tags=overlap,
                    missing_capabilities=missing,
                    locked=winner_candidate is not None and locked is not None,
                )
            )

        result.missing_capabilities = sorted(missing_global)
        logger.info(
            "Assembled %d step(s): %d selected, %d missing tag(s)",
            len(result.steps),
            len(result.selected),
            len(result.missing_capabilities),
        )
        return result

    def _resolve_graph(
        self, catalog: Sequence[CatalogEntry], options: AssemblyOptions
    ) -> SkillGraph:
        if options.graph is not None:
            return options.graph
        if options.use_empty_graph:
            return SkillGraph.empty()
        return self.graph_builder.build(catalog)

    def _evaluate(
        self,
        step: WorkflowPlanStep,
        entry: CatalogEntry,
        previous: Optional[CatalogEntry],
        edge_lookup: Dict[Tuple[str, str], Set[EdgeType]],
        feedback_entries: Sequence[WorkflowFeedbackRecord],
    ) -> _StepEvaluation:
        step_inputs = normalize_tags(step.inputs_tags)
        step_outputs = normalize_tags(step.outputs_tags)
        step_capabilities = normalize_tags(step.capabilities_tags)
        entry_inputs = normalize_tags(entry.inputs_tags)
        entry_capabilities = normalize_tags(entry.capabilities_tags)

        input_matches = intersect_tags(step_inputs, [*entry_inputs, *entry_capabilities])
        output_matches = intersect_tags(step_outputs, entry.artifacts_tags)
        capability_matches = intersect_tags(step_capabilities, entry_capabilities)

        stage_score = score_stage(step.stage, entry.stage)
        score = stage_score
        score += len(input_matches) * INPUT_MATCH_WEIGHT
        score += len(output_matches) * OUTPUT_MATCH_WEIGHT
        score += len(capability_matches) * CAPABILITY_MATCH_WEIGHT

        reasoning: List[str] = []
        if stage_score > 0:
            reasoning.append(f"stage {step.stage.value}~{entry.stage.value}")
        if input_matches:
            reasoning.append("inputs: " + ", ".join(input_matches))
        if output_matches:
            reasoning.append("outputs: " + ", ".join(output_matches))
        if capability_matches:
            reasoning.append("capabilities: " + ", ".join(capability_matches))

        graph_boost = 0.0
        if previous is not None:
            flow = intersect_tags(previous.artifacts_tags, entry_inputs)
            if flow:
                graph_boost += len(flow) * FLOW_OVERLAP_WEIGHT
                reasoning.append("prev artifacts->inputs: " + ", ".join(flow))

            edge_types = edge_lookup.get((previous.id, entry.id), set())
            if EdgeType.DEPENDS_ON in edge_types:
                graph_boost += DEPENDS_ON_BOOST
                reasoning.append("graph depends_on")
            elif EdgeType.PRECEDES in edge_types:
                graph_boost += PRECEDES_BOOST
                reasoning.append("graph precedes")

        bias, votes = feedback_bias(step, entry.id, feedback_entries)
        if bias != 0:
            score += bias
            reasoning.append(f"feedback {'+' if bias > 0 else ''}{bias:.2f} ({votes} votes)")

        score += graph_boost

        required = normalize_tags([*step_inputs, *step_outputs, *step_capabilities])
        matched = normalize_tags([*input_matches, *output_matches, *capability_matches])
        missing = [tag for tag in required if tag not in matched]

        confidence = score_to_confidence(score)
        candidate = WorkflowSkillCandidate(
            skill_id=entry.id,
            name=entry.name,
            stage=entry.stage,
            score=round(score, 4),
            confidence=confidence,
            confidence_level=confidence_level(confidence),
            matched_tags=matched,
            reasoning=" | ".join(reasoning) if reasoning else "low tag overlap",
        )
        return _StepEvaluation(
            candidate=candidate,
            score=score,
            matched_tags=matched,
            missing_tags=missing,
            graph_boost=graph_boost,
        )


def feedback_bias(
    step: WorkflowPlanStep,
    skill_id: str,
    feedback_entries: Sequence[WorkflowFeedbackRecord],
) -> Tuple[float, int]:
    """Historical vote bias for ``skill_id`` on ``step``, with the vote count."""
    if not feedback_entries:
        return 0.0, 0

    step_tags = _required_tags(step)
    total = 0.0
    votes = 0
    for feedback in feedback_entries:
        if feedback.skill_id != skill_id:
            continue
        stage_weight = 1.0 if feedback.step_stage == step.stage else 0.35
        confidence = 0.2 + 0.8 * jaccard_similarity(step_tags, feedback.expected_tags)
        source_weight = 1.0 if feedback.candidate_type == CandidateType.SELECTED else 0.8
        total += feedback.rating * stage_weight * confidence * source_weight
        votes += 1

    return clamp(round(total, 4), -FEEDBACK_LIMIT, FEEDBACK_LIMIT), votes


def assemble_workflow(
    plan: WorkflowPlan,
    catalog: Sequence[CatalogEntry],
    options: Optional[AssemblyOptions] = None,
) -> SkillWorkflowAssembly:
    return WorkflowAssembler().assemble(plan, catalog, options)


def _required_tags(step: WorkflowPlanStep) -> List[str]:
    return normalize_tags([*step.inputs_tags, *step.outputs_tags, *step.capabilities_tags])


def _edge_lookup(graph: SkillGraph) -> Dict[Tuple[str, str], Set[EdgeType]]:
    lookup: Dict[Tuple[str, str], Set[EdgeType]] = {}
    for edge in graph.edges:
        lookup.setdefault((edge.from_id, edge.to_id), set()).add(edge.type)
    return lookup
