from __future__ import annotations

from typing import Callable, List, Sequence

import pytest

from skillgraph.engine.types import Stage
from skillgraph.skills.models import CatalogEntry

EntryFactory = Callable[..., CatalogEntry]


def make_entry(
    entry_id: str,
    stage: str = "implement",
    *,
    inputs: Sequence[str] = (),
    artifacts: Sequence[str] = (),
    capabilities: Sequence[str] = (),
    name: str = "",
) -> CatalogEntry:
    return CatalogEntry(
        id=entry_id,
        name=name or entry_id.replace("-", " ").title(),
        stage=Stage(stage),
        inputs_tags=list(inputs),
        artifacts_tags=list(artifacts),
        capabilities_tags=list(capabilities),
    )


def fillers(count: int) -> List[CatalogEntry]:
    """Tagless entries that only grow the corpus size."""
    return [make_entry(f"filler-{index}", "other") for index in range(count)]


@pytest.fixture
def entry_factory() -> EntryFactory:
    return make_entry


@pytest.fixture
def handoff_catalog() -> List[CatalogEntry]:
    """plan -> implement -> verify hand-off over ``spec`` and ``code``."""
    return [
        make_entry("alpha", "plan", artifacts=["spec"]),
        make_entry("beta", "implement", inputs=["spec"], artifacts=["code"]),
        make_entry("gamma", "verify", inputs=["code"]),
        *fillers(7),
    ]


@pytest.fixture
def handoff_plan_payload() -> dict:
    return {
        "id": "feature",
        "name": "Ship a feature",
        "steps": [
            {"id": "design", "title": "Design", "stage": "plan", "outputs_tags": ["spec"]},
            {
                "id": "build",
                "title": "Build",
                "stage": "implement",
                "inputs_tags": ["spec"],
                "outputs_tags": ["code"],
            },
            {"id": "check", "title": "Check", "stage": "verify", "inputs_tags": ["code"]},
        ],
    }


@pytest.fixture
def filler_factory() -> Callable[[int], List[CatalogEntry]]:
    return fillers
