"""Tool definitions and adapters."""

from .html_report_generator import HTMLReportGeneratorTool
from .models import (
    DroppedTagSummary,
    HTMLReportRequest,
    HTMLReportResult,
    MachineTagsResult,
    PlanNormalizationWarning,
    TagNormalizationResult,
    WorkflowPlanNormalizationResult,
)
from .plan_schema import (
    WorkflowPlanError,
    WorkflowPlanNormalizationTool,
    normalize_workflow_plan,
)
from .tag_issue_report import DroppedTagSummaryTool, summarize_dropped_tags
from .tag_normalizer import TagNormalizer

__all__ = [
    # Tag Normalization
    "TagNormalizer",
    "TagNormalizationResult",
    "MachineTagsResult",
    # Plan Normalization
    "WorkflowPlanNormalizationTool",
    "WorkflowPlanNormalizationResult",
    "PlanNormalizationWarning",
    "WorkflowPlanError",
    "normalize_workflow_plan",
    # Dropped Tag Summary
    "DroppedTagSummaryTool",
    "DroppedTagSummary",
    "summarize_dropped_tags",
    # HTML Report Generator
    "HTMLReportGeneratorTool",
    "HTMLReportRequest",
    "HTMLReportResult",
]
