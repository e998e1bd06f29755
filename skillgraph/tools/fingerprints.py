"""Content fingerprints for callers that cache pipeline outputs."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable

from skillgraph.skills.models import CatalogEntry, WorkflowPlan

from .vocabulary import TAG_VOCAB_VERSION

GRAPH_LOGIC_VERSION = "graph-v3"
ASSEMBLER_LOGIC_VERSION = "assembler-v2"


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _entry_signature(entry: CatalogEntry) -> dict:
    # Names and descriptions do not influence graph or assembly output.
    return {
        "id": entry.id,
        "stage": entry.stage.value,
        "inputs": sorted(entry.inputs_tags),
        "artifacts": sorted(entry.artifacts_tags),
        "capabilities": sorted(entry.capabilities_tags),
    }


def catalog_fingerprint(entries: Iterable[CatalogEntry]) -> str:
    signatures = sorted((_entry_signature(entry) for entry in entries), key=lambda s: s["id"])
    payload = {
        "vocab": TAG_VOCAB_VERSION,
        "logic": GRAPH_LOGIC_VERSION,
        "entries": signatures,
    }
    return sha256_hex(_canonical_json(payload))


def plan_fingerprint(plan: WorkflowPlan) -> str:
    payload = {
        "vocab": TAG_VOCAB_VERSION,
        "steps": [
            {
                "id": step.id,
                "stage": step.stage.value,
                "inputs": step.inputs_tags,
                "outputs": step.outputs_tags,
                "capabilities": step.capabilities_tags,
            }
            for step in plan.steps
        ],
    }
    return sha256_hex(_canonical_json(payload))


def assembly_fingerprint(entries: Iterable[CatalogEntry], plan: WorkflowPlan) -> str:
    return sha256_hex(
        "|".join(
            [
                catalog_fingerprint(entries),
                plan_fingerprint(plan),
                ASSEMBLER_LOGIC_VERSION,
            ]
        )
    )
