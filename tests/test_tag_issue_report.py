from __future__ import annotations

from skillgraph.engine.types import IssueReason, TagField
from skillgraph.skills.models import TagIssue
from skillgraph.tools.tag_issue_report import summarize_dropped_tags


def _issue(raw: str, mapped=None, reason=IssueReason.UNKNOWN_TAG, field=TagField.CAPABILITIES):
    return TagIssue(field=field, raw_tag=raw, mapped_to=mapped, reason=reason)


def test_dropped_tags_are_counted_and_ranked(entry_factory) -> None:
    not_allowed = _issue("changelog", "changelog", IssueReason.FIELD_NOT_ALLOWED)
    entries = []
    for index in range(3):
        entry = entry_factory(f"skill-{index}")
        entry.tag_issues = [not_allowed]
        entries.append(entry)
    entries[0].tag_issues = [
        not_allowed,
        _issue("zzqx"),
        _issue("python", "python", IssueReason.FIELD_NOT_ALLOWED, TagField.ARTIFACTS),
        _issue("testing framework", "tests"),
    ]
    entries[1].tag_issues = [not_allowed, _issue("zzqx")]

    summary = summarize_dropped_tags(entries)

    assert [(s.raw_tag, s.count, s.recommendation) for s in summary] == [
        ("changelog", 3, "allow"),
        ("zzqx", 2, "keep_dropped"),
        ("python", 1, "map"),
    ]
    assert summary[2].field == TagField.ARTIFACTS


def test_summary_respects_limit(entry_factory) -> None:
    entry = entry_factory("noisy")
    entry.tag_issues = [_issue(f"junk-{index}") for index in range(10)]

    assert len(summarize_dropped_tags([entry], limit=4)) == 4
    assert summarize_dropped_tags([]) == []
