from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from skillgraph.engine.types import parse_stage
from skillgraph.tools.tag_normalizer import TagNormalizer

from .models import CatalogEntry, RawSkillRecord, WorkflowFeedbackRecord

logger = logging.getLogger(__name__)


# =============================================================================
# Catalog Construction
# =============================================================================


def build_catalog_entry(
    record: RawSkillRecord, normalizer: Optional[TagNormalizer] = None
) -> CatalogEntry:
    """Normalize a raw extractor record into a catalog entry.

    Unknown stage labels fall back to ``other``. Tag issues from all three
    fields are attached to the entry.
    """
    normalizer = normalizer or TagNormalizer()
    stage = parse_stage(record.stage)
    if record.stage and stage.value != record.stage.strip().lower():
        logger.debug("Unknown stage %r on %s, using other", record.stage, record.id)

    tags = normalizer.sanitize_machine_tags(
        inputs_tags=record.inputs_tags,
        artifacts_tags=record.artifacts_tags,
        capabilities_tags=record.capabilities_tags,
    )
    return CatalogEntry(
        id=record.id,
        name=record.name,
        one_liner=record.one_liner,
        stage=stage,
        inputs_tags=tags.inputs_tags,
        artifacts_tags=tags.artifacts_tags,
        capabilities_tags=tags.capabilities_tags,
        tag_issues=tags.issues,
    )


def build_catalog(
    records: Iterable[RawSkillRecord], normalizer: Optional[TagNormalizer] = None
) -> List[CatalogEntry]:
    """Build a catalog, keeping the first record for each id."""
    normalizer = normalizer or TagNormalizer()
    catalog: List[CatalogEntry] = []
    seen: set[str] = set()
    for record in records:
        if record.id in seen:
            logger.warning("Skipping duplicate skill id: %s", record.id)
            continue
        seen.add(record.id)
        catalog.append(build_catalog_entry(record, normalizer))
    return catalog


def reanalyze_entry(
    entry: CatalogEntry,
    raw_tags: Mapping[str, Iterable[str]],
    normalizer: Optional[TagNormalizer] = None,
) -> CatalogEntry:
    """Return a copy of ``entry`` with freshly normalized tag sets.

    ``raw_tags`` may hold any of ``inputs_tags``, ``artifacts_tags`` and
    ``capabilities_tags``; fields that are absent keep their current tags.
    The original entry is never modified.
    """
    normalizer = normalizer or TagNormalizer()
    tags = normalizer.sanitize_machine_tags(
        inputs_tags=list(raw_tags.get("inputs_tags", entry.inputs_tags)),
        artifacts_tags=list(raw_tags.get("artifacts_tags", entry.artifacts_tags)),
        capabilities_tags=list(raw_tags.get("capabilities_tags", entry.capabilities_tags)),
    )
    return entry.model_copy(
        update={
            "inputs_tags": tags.inputs_tags,
            "artifacts_tags": tags.artifacts_tags,
            "capabilities_tags": tags.capabilities_tags,
            "tag_issues": tags.issues,
        },
        deep=True,
    )


# =============================================================================
# JSON Loading
# =============================================================================


def _read_json(path: Union[str, Path]) -> Any:
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")
    with file_path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _items(payload: Any, key: str) -> List[Any]:
    if isinstance(payload, Mapping):
        payload = payload.get(key, [])
    if not isinstance(payload, list):
        raise ValueError(f'Expected a list or an object with a "{key}" list')
    return payload


def load_raw_records(path: Union[str, Path]) -> List[RawSkillRecord]:
    """Load extractor records from a JSON list or ``{"skills": [...]}``."""
    return [RawSkillRecord.model_validate(item) for item in _items(_read_json(path), "skills")]


def load_feedback_records(path: Union[str, Path]) -> List[WorkflowFeedbackRecord]:
    """Load feedback votes from a JSON list or ``{"feedback": [...]}``."""
    return [
        WorkflowFeedbackRecord.model_validate(item)
        for item in _items(_read_json(path), "feedback")
    ]


def load_plan_payload(path: Union[str, Path]) -> Mapping[str, Any]:
    payload = _read_json(path)
    if not isinstance(payload, Mapping):
        raise ValueError("Workflow plan file must contain a JSON object")
    return payload
