from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from skillgraph.engine.types import IssueReason, TagField
from skillgraph.skills.models import TagIssue, WorkflowPlan


# =============================================================================
# Tag Normalization Tool Models
# =============================================================================


class TagNormalizationResult(BaseModel):
    """Canonical tags for one field plus everything worth reporting."""

    field: TagField = Field(description="Field the tags were normalized for")
    tags: List[str] = Field(
        default_factory=list,
        description="Ordered, unique canonical tags (at most 8)",
    )
    issues: List[TagIssue] = Field(
        default_factory=list,
        description="Unknown, disallowed or low-confidence tags",
    )


class MachineTagsResult(BaseModel):
    """Normalization result for all three semantic fields."""

    inputs_tags: List[str] = Field(default_factory=list)
    artifacts_tags: List[str] = Field(default_factory=list)
    capabilities_tags: List[str] = Field(default_factory=list)
    issues: List[TagIssue] = Field(default_factory=list)


# =============================================================================
# Workflow Plan Normalization Tool Models
# =============================================================================


class PlanNormalizationWarning(BaseModel):
    """A tag on a plan step that was remapped or dropped."""

    step_id: str = Field(description="Id of the step the tag belongs to")
    field: Literal["inputs", "outputs", "capabilities"] = Field(
        description="Plan field the tag was supplied in",
    )
    raw_tag: str
    mapped_tag: Optional[str] = None
    reason: str = Field(default="normalized")


class WorkflowPlanNormalizationResult(BaseModel):
    plan: WorkflowPlan
    warnings: List[PlanNormalizationWarning] = Field(default_factory=list)
    raw_plan: Dict[str, Any] = Field(
        default_factory=dict,
        description="Payload exactly as received",
    )


# =============================================================================
# Dropped Tag Summary Tool Models
# =============================================================================


class DroppedTagSummary(BaseModel):
    """Aggregated view of one kind of dropped tag across the catalog."""

    field: TagField
    raw_tag: str
    mapped_to: Optional[str] = None
    reason: IssueReason
    count: int = Field(ge=1)
    recommendation: Literal["map", "allow", "keep_dropped"]


# =============================================================================
# HTML Report Generation Tool Models
# =============================================================================


class HTMLReportRequest(BaseModel):
    """Request to generate HTML report."""

    output_directory: str = Field(
        description="Path where HTML files will be written",
    )
    report_title: str = Field(
        default="SkillGraph Workflow Report",
        description="Title for the report",
    )
    plan_name: str = Field(default="", description="Name of the assembled plan")


class HTMLReportResult(BaseModel):
    """Result of HTML report generation."""

    output_path: str = Field(description="Directory where files were written")
    files_generated: List[str] = Field(
        description="List of generated file paths",
    )
    index_file: str = Field(description="Path to the index.html file")
    total_skills: int = Field(description="Number of skill pages generated")
    total_steps: int = Field(description="Number of plan steps rendered")
