from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from skillgraph.engine.types import (
    CandidateType,
    DropReason,
    EdgeType,
    IssueReason,
    Stage,
    TagField,
)


# =============================================================================
# Tag Issues
# =============================================================================


class TagIssue(BaseModel):
    """A raw tag that was dropped or mapped with low confidence."""

    field: TagField = Field(description="Semantic field the tag was offered for")
    raw_tag: str = Field(description="Tag exactly as supplied")
    mapped_to: Optional[str] = Field(
        default=None,
        description="Canonical tag the raw value mapped to, if any",
    )
    reason: IssueReason = Field(
        default=IssueReason.UNKNOWN_TAG,
        description="Why the tag was reported",
    )

    @property
    def dropped(self) -> bool:
        """True when the tag did not make it into the canonical set."""
        if self.reason == IssueReason.FIELD_NOT_ALLOWED:
            return True
        return self.mapped_to is None


# =============================================================================
# Catalog Entries
# =============================================================================


class RawSkillRecord(BaseModel):
    """Pre-normalization record handed over by the bundle/semantics extractors."""

    id: str = Field(description="Stable identifier of the skill bundle")
    name: str = Field(default="", description="Display name of the skill")
    one_liner: str = Field(default="", description="Short human description")
    stage: str = Field(default="other", description="Raw lifecycle stage label")
    inputs_tags: List[str] = Field(default_factory=list)
    artifacts_tags: List[str] = Field(default_factory=list)
    capabilities_tags: List[str] = Field(default_factory=list)


class CatalogEntry(BaseModel):
    """A catalogued skill with canonical tag sets."""

    id: str = Field(description="Stable identifier of the skill")
    name: str = Field(default="", description="Display name of the skill")
    one_liner: str = Field(default="", description="Short human description")
    stage: Stage = Field(default=Stage.OTHER, description="Lifecycle stage")
    inputs_tags: List[str] = Field(
        default_factory=list,
        description="Canonical tags the skill consumes",
    )
    artifacts_tags: List[str] = Field(
        default_factory=list,
        description="Canonical tags the skill produces",
    )
    capabilities_tags: List[str] = Field(
        default_factory=list,
        description="Canonical tags describing what the skill can do",
    )
    tag_issues: List[TagIssue] = Field(
        default_factory=list,
        description="Issues recorded while normalizing this entry's tags",
    )

    @property
    def display_name(self) -> str:
        return self.name or self.id


# =============================================================================
# Relationship Graph
# =============================================================================


class SkillGraphEdge(BaseModel):
    """A typed, scored relationship between two catalog entries."""

    from_id: str = Field(description="Source entry id (lower id for undirected types)")
    to_id: str = Field(description="Target entry id")
    type: EdgeType = Field(description="Relationship type")
    score: float = Field(description="Weighted overlap score")
    overlap_tags: List[str] = Field(
        default_factory=list,
        description="Tags that justified the edge",
    )


class DropReasonCounts(BaseModel):
    """Tally of rejected candidates, per reason."""

    stoplist: int = 0
    spec: int = 0
    stage: int = 0
    similarity: int = 0
    threshold: int = 0
    top_k: int = 0
    reciprocal_depends_on: int = 0

    def increment(self, reason: DropReason, amount: int = 1) -> None:
        setattr(self, reason.value, getattr(self, reason.value) + amount)


class DegreeNode(BaseModel):
    id: str
    degree: int
    out_degree: int


class GraphMetrics(BaseModel):
    """Diagnostics computed alongside every graph build."""

    edge_count: int = Field(default=0, description="Number of kept edges")
    density: float = Field(default=0.0, description="edges / (n * (n - 1))")
    distribution_by_type: Dict[EdgeType, int] = Field(
        default_factory=lambda: {edge_type: 0 for edge_type in EdgeType},
        description="Kept edge count per relationship type",
    )
    top_degree_nodes: List[DegreeNode] = Field(
        default_factory=list,
        description="Up to ten most connected entries",
    )
    drop_reasons: DropReasonCounts = Field(default_factory=DropReasonCounts)
    threshold: float = Field(default=0.0, description="Score threshold applied")
    candidate_count: int = Field(
        default=0,
        description="Candidates generated before thresholding and pruning",
    )


class SkillGraph(BaseModel):
    """Relationship graph over a catalog snapshot."""

    edges: List[SkillGraphEdge] = Field(default_factory=list)
    adjacency: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Directed adjacency (depends_on and precedes only)",
    )
    related: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Symmetric neighbour index across all edge types",
    )
    chains: List[List[str]] = Field(
        default_factory=list,
        description="Longest linear paths through the directed adjacency",
    )
    metrics: GraphMetrics = Field(default_factory=GraphMetrics)

    @classmethod
    def empty(cls) -> "SkillGraph":
        return cls()


# =============================================================================
# Workflow Plans
# =============================================================================


class WorkflowPlanStep(BaseModel):
    """A single step of an ordered workflow plan."""

    id: Optional[str] = Field(default=None, description="Step identifier")
    title: Optional[str] = Field(default=None, description="Human title")
    stage: Stage = Field(description="Lifecycle stage of this step")
    inputs_tags: List[str] = Field(default_factory=list)
    outputs_tags: List[str] = Field(default_factory=list)
    capabilities_tags: List[str] = Field(default_factory=list)


class WorkflowPlan(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    steps: List[WorkflowPlanStep] = Field(default_factory=list)


class WorkflowFeedbackRecord(BaseModel):
    """A historical human vote on a candidate for a plan step."""

    skill_id: str = Field(description="Catalog entry the vote refers to")
    step_stage: Stage = Field(description="Stage of the step that was voted on")
    expected_tags: List[str] = Field(
        default_factory=list,
        description="Tags the step required at the time of the vote",
    )
    matched_tags: List[str] = Field(default_factory=list)
    rating: float = Field(ge=-1.0, le=1.0, description="+1 upvote, -1 downvote")
    candidate_type: CandidateType = Field(default=CandidateType.SELECTED)


# =============================================================================
# Workflow Assembly
# =============================================================================


class WorkflowSkillCandidate(BaseModel):
    """One catalog entry scored against one plan step."""

    skill_id: str
    name: str = ""
    stage: Stage
    score: float = Field(description="Unbounded score rounded to 4 decimals")
    confidence: float = Field(ge=0.0, le=1.0)
    confidence_level: Literal["high", "medium", "low"] = "low"
    matched_tags: List[str] = Field(default_factory=list)
    reasoning: str = ""


class WorkflowStepAssembly(BaseModel):
    step_id: str
    title: str
    stage: Stage
    selected: Optional[WorkflowSkillCandidate] = None
    alternatives: List[WorkflowSkillCandidate] = Field(default_factory=list)
    overlap_tags: List[str] = Field(default_factory=list)
    missing_capabilities: List[str] = Field(default_factory=list)
    locked: bool = False


class SkillWorkflowAssembly(BaseModel):
    """Result of matching a whole plan against the catalog."""

    selected: List[WorkflowSkillCandidate] = Field(default_factory=list)
    alternatives: Dict[str, List[WorkflowSkillCandidate]] = Field(default_factory=dict)
    reasoning: Dict[str, str] = Field(default_factory=dict)
    missing_capabilities: List[str] = Field(
        default_factory=list,
        description="Sorted tags left unmet across all steps",
    )
    steps: List[WorkflowStepAssembly] = Field(default_factory=list)
