from __future__ import annotations

from enum import Enum
from typing import Dict


class Stage(str, Enum):
    """Ordered lifecycle phases a catalog entry or plan step belongs to."""

    INTAKE = "intake"
    PLAN = "plan"
    IMPLEMENT = "implement"
    VERIFY = "verify"
    REFACTOR = "refactor"
    SECURITY = "security"
    DOCS = "docs"
    RELEASE = "release"
    OTHER = "other"


STAGE_ORDER: Dict[Stage, int] = {stage: index for index, stage in enumerate(Stage)}


def stage_rank(stage: Stage) -> int:
    return STAGE_ORDER[Stage(stage)]


def stage_distance(a: Stage, b: Stage) -> int:
    """Absolute distance between two stages on the fixed phase ordering."""
    return abs(stage_rank(a) - stage_rank(b))


class EdgeType(str, Enum):
    """Relationship types inferred between catalog entries."""

    DEPENDS_ON = "depends_on"  # from.artifacts feed to.inputs
    PRECEDES = "precedes"  # from.capabilities feed to.inputs, later stage
    COMPLEMENTS = "complements"  # shared capabilities (undirected)
    ALTERNATIVE_TO = "alternative_to"  # near-identical capabilities (undirected)

    @property
    def directed(self) -> bool:
        return self in (EdgeType.DEPENDS_ON, EdgeType.PRECEDES)


EDGE_PRIORITY: Dict[EdgeType, int] = {
    EdgeType.DEPENDS_ON: 1,
    EdgeType.PRECEDES: 2,
    EdgeType.COMPLEMENTS: 3,
    EdgeType.ALTERNATIVE_TO: 4,
}


class TagField(str, Enum):
    """Semantic tag fields; each has its own allow-list."""

    INPUTS = "inputs"
    ARTIFACTS = "artifacts"
    CAPABILITIES = "capabilities"


class IssueReason(str, Enum):
    """Why a raw tag was reported while normalizing."""

    UNKNOWN_TAG = "unknown_tag"
    FIELD_NOT_ALLOWED = "field_not_allowed"


class DropReason(str, Enum):
    """Counters for candidate edges rejected during a graph build."""

    STOPLIST = "stoplist"
    SPEC = "spec"
    STAGE = "stage"
    SIMILARITY = "similarity"
    THRESHOLD = "threshold"
    TOP_K = "top_k"
    RECIPROCAL_DEPENDS_ON = "reciprocal_depends_on"


class CandidateType(str, Enum):
    """Which list a feedback vote was cast on."""

    SELECTED = "selected"
    ALTERNATIVE = "alternative"


def parse_stage(value: object, default: Stage = Stage.OTHER) -> Stage:
    """Lenient stage parsing used at the catalog boundary."""
    text = str(value or "").strip().lower()
    try:
        return Stage(text)
    except ValueError:
        return default
