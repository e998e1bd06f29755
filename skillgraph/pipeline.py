from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from skillgraph.engine.assembler import AssemblyOptions, WorkflowAssembler
from skillgraph.engine.graph_builder import GraphBuilder
from skillgraph.logger import get_pipeline_logger
from skillgraph.settings import SkillGraphSettings
from skillgraph.skills.catalog import build_catalog
from skillgraph.skills.models import (
    CatalogEntry,
    RawSkillRecord,
    SkillGraph,
    SkillWorkflowAssembly,
    WorkflowFeedbackRecord,
    WorkflowPlan,
)
from skillgraph.tools.fingerprints import assembly_fingerprint
from skillgraph.tools.html_report_generator import HTMLReportGeneratorTool
from skillgraph.tools.models import (
    DroppedTagSummary,
    HTMLReportRequest,
    PlanNormalizationWarning,
)
from skillgraph.tools.plan_schema import WorkflowPlanNormalizationTool
from skillgraph.tools.tag_issue_report import DroppedTagSummaryTool
from skillgraph.tools.tag_normalizer import TagNormalizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Runtime configuration for a pipeline run."""

    alternatives_limit: int = 3
    output_directory: str = "output/report"
    report_title: str = "SkillGraph Workflow Report"
    generate_report: bool = True
    use_graph: bool = True

    @classmethod
    def from_settings(cls, settings: SkillGraphSettings, **overrides: Any) -> "PipelineConfig":
        """Freeze loaded settings; keyword overrides that are not None win."""
        values: Dict[str, Any] = {
            "alternatives_limit": settings.alternatives_limit,
            "output_directory": settings.output_dir,
            "report_title": settings.report_title,
            "generate_report": settings.generate_report,
            "use_graph": settings.use_graph,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    @classmethod
    def from_env(cls, **overrides: Any) -> "PipelineConfig":
        """Read ``SKILLGRAPH_*`` variables.

        Raises:
            pydantic.ValidationError: If a variable cannot be coerced
        """
        return cls.from_settings(SkillGraphSettings(), **overrides)


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Return value from a full pipeline run."""

    catalog: List[CatalogEntry]
    graph: SkillGraph
    plan: WorkflowPlan
    assembly: SkillWorkflowAssembly
    plan_warnings: List[PlanNormalizationWarning] = field(default_factory=list)
    dropped_tags: List[DroppedTagSummary] = field(default_factory=list)
    fingerprint: str = ""
    report_path: Optional[str] = None

    def summary(self) -> str:
        """Generate a human-readable summary of the run."""
        steps = self.assembly.steps
        matched = sum(1 for step in steps if step.selected is not None)
        locked = sum(1 for step in steps if step.locked)
        missing = ", ".join(self.assembly.missing_capabilities) or "none"

        lines = [
            "SkillGraph Assembly Complete",
            "----------------------------",
            f"Skills Catalogued: {len(self.catalog)}",
            f"Graph Edges: {self.graph.metrics.edge_count} "
            f"(threshold {self.graph.metrics.threshold:.2f})",
            f"Chains Found: {len(self.graph.chains)}",
            f"Steps Matched: {matched}/{len(steps)} ({locked} locked)",
            f"Missing Tags: {missing}",
            f"Plan Warnings: {len(self.plan_warnings)}",
            f"Report Location: {self.report_path or 'Not generated'}",
        ]
        for step in steps:
            winner = step.selected.skill_id if step.selected else "-"
            lines.append(f"  [{step.stage.value}] {step.title}: {winner}")
        return "\n".join(lines)


RecordInput = Union[RawSkillRecord, Mapping[str, Any]]


class SkillGraphPipeline:
    """High-level entry point: catalog, graph, plan and assembly in one call.

    The pipeline:
    1. Normalizes raw extractor records into catalog entries
    2. Builds the relationship graph over the catalog
    3. Validates and normalizes the workflow plan
    4. Assembles the plan against the catalog and graph
    5. Optionally renders a static HTML report
    """

    def __init__(
        self,
        *,
        normalizer: TagNormalizer,
        graph_builder: GraphBuilder,
        assembler: WorkflowAssembler,
        plan_tool: WorkflowPlanNormalizationTool,
        issue_report: DroppedTagSummaryTool,
        report_generator: HTMLReportGeneratorTool,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self._normalizer = normalizer
        self._graph_builder = graph_builder
        self._assembler = assembler
        self._plan_tool = plan_tool
        self._issue_report = issue_report
        self._report_generator = report_generator
        self._config = config or PipelineConfig()
        self._logger = get_pipeline_logger()

    @classmethod
    def from_env(cls, *, config: Optional[PipelineConfig] = None) -> "SkillGraphPipeline":
        """Create a pipeline wired with default collaborators."""
        normalizer = TagNormalizer()
        graph_builder = GraphBuilder()
        return cls(
            normalizer=normalizer,
            graph_builder=graph_builder,
            assembler=WorkflowAssembler(graph_builder=graph_builder),
            plan_tool=WorkflowPlanNormalizationTool(normalizer=normalizer),
            issue_report=DroppedTagSummaryTool(),
            report_generator=HTMLReportGeneratorTool(),
            config=config or PipelineConfig.from_env(),
        )

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def run(
        self,
        records: Iterable[RecordInput],
        plan_payload: Mapping[str, Any],
        locked_skill_by_step_id: Optional[Mapping[str, str]] = None,
        feedback_entries: Optional[Iterable[WorkflowFeedbackRecord]] = None,
    ) -> PipelineResult:
        """Execute the full pipeline.

        Args:
            records: Raw extractor records (models or plain mappings)
            plan_payload: Untrusted workflow plan payload
            locked_skill_by_step_id: Optional forced winners per step id
            feedback_entries: Optional historical votes

        Returns:
            PipelineResult with catalog, graph, plan, assembly and report path

        Raises:
            WorkflowPlanError: If the plan payload is malformed
        """
        raw_records = [
            record if isinstance(record, RawSkillRecord) else RawSkillRecord.model_validate(record)
            for record in records
        ]
        self._logger.info(f"Normalizing {len(raw_records)} skill record(s)")
        catalog = build_catalog(raw_records, self._normalizer)
        dropped_tags = self._issue_report.summarize(catalog)
        if dropped_tags:
            self._logger.info(f"{len(dropped_tags)} distinct dropped tag(s) in catalog")

        if self._config.use_graph:
            self._logger.info("Building relationship graph")
            graph = self._graph_builder.build(catalog)
        else:
            self._logger.info("Graph disabled, assembling without continuity edges")
            graph = SkillGraph.empty()

        plan_result = self._plan_tool.normalize(plan_payload)
        plan = plan_result.plan
        for warning in plan_result.warnings:
            logger.debug(
                "Plan tag %s on %s/%s -> %s (%s)",
                warning.raw_tag,
                warning.step_id,
                warning.field,
                warning.mapped_tag,
                warning.reason,
            )

        self._logger.info(f"Assembling {len(plan.steps)} plan step(s)")
        assembly = self._assembler.assemble(
            plan,
            catalog,
            AssemblyOptions(
                graph=graph,
                alternatives_limit=self._config.alternatives_limit,
                locked_skill_by_step_id=dict(locked_skill_by_step_id or {}),
                feedback_entries=list(feedback_entries or []),
            ),
        )

        result = PipelineResult(
            catalog=catalog,
            graph=graph,
            plan=plan,
            assembly=assembly,
            plan_warnings=plan_result.warnings,
            dropped_tags=dropped_tags,
            fingerprint=assembly_fingerprint(catalog, plan),
        )

        if not self._config.generate_report:
            return result

        report = self._report_generator.generate(
            HTMLReportRequest(
                output_directory=self._config.output_directory,
                report_title=self._config.report_title,
                plan_name=plan.name or "",
            ),
            result,
        )
        self._logger.info(f"Report written to {report.index_file}")
        return replace(result, report_path=report.index_file)
