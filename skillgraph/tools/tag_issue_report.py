from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from skillgraph.engine.types import IssueReason, TagField
from skillgraph.skills.models import CatalogEntry, TagIssue

from .models import DroppedTagSummary

DEFAULT_SUMMARY_LIMIT = 50
ALLOW_RECOMMENDATION_COUNT = 3

_IssueKey = Tuple[TagField, str, Optional[str], IssueReason]


def _recommend(reason: IssueReason, count: int) -> str:
    if reason == IssueReason.FIELD_NOT_ALLOWED:
        return "allow" if count >= ALLOW_RECOMMENDATION_COUNT else "map"
    return "keep_dropped"


@dataclass(frozen=True, slots=True)
class DroppedTagSummaryTool:
    """Aggregates dropped tag issues across a catalog for vocabulary tuning.

    A tag rejected by a field allow-list many times is a hint that the
    allow-list is too strict, so it is recommended for ``allow``. Rarer
    rejections should get a mapping instead.
    """

    limit: int = DEFAULT_SUMMARY_LIMIT

    def summarize(self, entries: Iterable[CatalogEntry]) -> List[DroppedTagSummary]:
        buckets: Dict[_IssueKey, int] = {}
        for entry in entries:
            for issue in entry.tag_issues:
                if not issue.dropped:
                    continue
                key = _issue_key(issue)
                buckets[key] = buckets.get(key, 0) + 1

        ordered = sorted(
            buckets.items(),
            key=lambda item: (
                -item[1],
                item[0][1],
                item[0][0].value,
                item[0][2] or "",
                item[0][3].value,
            ),
        )
        return [
            DroppedTagSummary(
                field=field,
                raw_tag=raw_tag,
                mapped_to=mapped_to,
                reason=reason,
                count=count,
                recommendation=_recommend(reason, count),
            )
            for (field, raw_tag, mapped_to, reason), count in ordered[: self.limit]
        ]


def summarize_dropped_tags(
    entries: Iterable[CatalogEntry], limit: int = DEFAULT_SUMMARY_LIMIT
) -> List[DroppedTagSummary]:
    return DroppedTagSummaryTool(limit=limit).summarize(entries)


def _issue_key(issue: TagIssue) -> _IssueKey:
    return (issue.field, issue.raw_tag, issue.mapped_to, issue.reason)
