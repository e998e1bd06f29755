from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

from skillgraph.engine.types import Stage, TagField
from skillgraph.skills.models import WorkflowPlan, WorkflowPlanStep

from .models import PlanNormalizationWarning, WorkflowPlanNormalizationResult
from .tag_normalizer import TagNormalizer

MAX_STEP_ID_LENGTH = 48

_NON_SLUG = re.compile(r"[^a-z0-9]+")

_FIELD_LABELS = {
    TagField.INPUTS: "inputs",
    TagField.ARTIFACTS: "outputs",
    TagField.CAPABILITIES: "capabilities",
}


class WorkflowPlanError(ValueError):
    """Raised when a workflow plan payload cannot be turned into a plan."""


def unique_tags(tags: Iterable[Any]) -> List[str]:
    seen: List[str] = []
    for tag in tags:
        token = str(tag).strip().lower()
        if token and token not in seen:
            seen.append(token)
    return seen


def parse_tags_input(value: str) -> List[str]:
    """Split a comma-separated tag string, e.g. ``"spec, code"``."""
    return unique_tags(str(value or "").split(","))


def tags_to_csv(tags: Iterable[str]) -> str:
    return ", ".join(unique_tags(tags))


def slugify_step_id(value: str, index: int) -> str:
    slug = _NON_SLUG.sub("-", str(value or "").strip().lower()).strip("-")
    return slug[:MAX_STEP_ID_LENGTH] or f"step-{index + 1}"


def _to_tag_list(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return unique_tags(value)
    if isinstance(value, str):
        return parse_tags_input(value)
    return []


def _field(raw_step: Mapping[str, Any], name: str, legacy_name: str) -> Any:
    if name in raw_step:
        return raw_step[name]
    return raw_step.get(legacy_name)


def _parse_step_stage(value: Any, index: int) -> Stage:
    try:
        return Stage(str(value or "").strip())
    except ValueError:
        raise WorkflowPlanError(
            f'Step {index + 1} has invalid stage "{value}".'
        ) from None


@dataclass(frozen=True, slots=True)
class WorkflowPlanNormalizationTool:
    """Turns an untrusted plan payload into a typed ``WorkflowPlan``.

    Tag fields go through the same normalizer as catalog entries, with step
    outputs checked against the artifacts allow-list. Every remapped or
    dropped tag is reported as a warning rather than an error.
    """

    normalizer: TagNormalizer = field(default_factory=TagNormalizer)

    def normalize(self, payload: Mapping[str, Any]) -> WorkflowPlanNormalizationResult:
        """Validate and canonicalize a plan payload.

        Args:
            payload: Mapping with ``steps`` and optional ``id``/``name``

        Returns:
            WorkflowPlanNormalizationResult with plan, warnings and raw payload

        Raises:
            WorkflowPlanError: If steps are missing or a stage is invalid
        """
        if not isinstance(payload, Mapping):
            raise WorkflowPlanError('Workflow plan must be an object with a "steps" array.')

        raw_steps = payload.get("steps")
        if not isinstance(raw_steps, list) or not raw_steps:
            raise WorkflowPlanError('Workflow plan must contain non-empty "steps" array.')

        warnings: List[PlanNormalizationWarning] = []
        steps: List[WorkflowPlanStep] = []

        for index, raw_step in enumerate(raw_steps):
            if not isinstance(raw_step, Mapping):
                raise WorkflowPlanError(f"Step {index + 1} must be an object.")

            stage = _parse_step_stage(raw_step.get("stage"), index)
            default_title = f"Step {index + 1}"
            title = str(raw_step.get("title") or default_title).strip() or default_title
            step_id = slugify_step_id(str(raw_step.get("id") or title), index)

            sanitized = self.normalizer.sanitize_machine_tags(
                inputs_tags=_to_tag_list(_field(raw_step, "inputs_tags", "inputsTags")),
                artifacts_tags=_to_tag_list(_field(raw_step, "outputs_tags", "outputsTags")),
                capabilities_tags=_to_tag_list(_field(raw_step, "capabilities_tags", "capabilitiesTags")),
            )
            for issue in sanitized.issues:
                warnings.append(
                    PlanNormalizationWarning(
                        step_id=step_id,
                        field=_FIELD_LABELS[issue.field],
                        raw_tag=issue.raw_tag,
                        mapped_tag=issue.mapped_to,
                        reason=issue.reason.value if issue.reason else "normalized",
                    )
                )

            steps.append(
                WorkflowPlanStep(
                    id=step_id,
                    title=title,
                    stage=stage,
                    inputs_tags=sanitized.inputs_tags,
                    outputs_tags=sanitized.artifacts_tags,
                    capabilities_tags=sanitized.capabilities_tags,
                )
            )

        plan = WorkflowPlan(
            id=str(payload["id"]) if payload.get("id") else None,
            name=str(payload["name"]) if payload.get("name") else None,
            steps=steps,
        )
        return WorkflowPlanNormalizationResult(
            plan=plan,
            warnings=warnings,
            raw_plan=dict(payload),
        )


def normalize_workflow_plan(
    payload: Mapping[str, Any], normalizer: Optional[TagNormalizer] = None
) -> WorkflowPlanNormalizationResult:
    tool = WorkflowPlanNormalizationTool(normalizer or TagNormalizer())
    return tool.normalize(payload)


def parse_workflow_plan_json(text: str) -> WorkflowPlanNormalizationResult:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise WorkflowPlanError(f"Workflow plan is not valid JSON: {exc}") from exc
    return normalize_workflow_plan(payload)


def workflow_plan_to_json(plan: WorkflowPlan) -> str:
    return json.dumps(plan.model_dump(mode="json"), indent=2)


def create_default_step(index: int) -> WorkflowPlanStep:
    return WorkflowPlanStep(
        id=f"step-{index + 1}",
        title=f"Step {index + 1}",
        stage=Stage.IMPLEMENT,
    )
