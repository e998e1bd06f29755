"""Graph building and workflow assembly.

The builder and assembler live in their own modules and are imported from
there; only the dependency-free types are re-exported here.
"""

from .types import (
    CandidateType,
    DropReason,
    EdgeType,
    IssueReason,
    Stage,
    TagField,
)

__all__ = [
    "CandidateType",
    "DropReason",
    "EdgeType",
    "IssueReason",
    "Stage",
    "TagField",
]
