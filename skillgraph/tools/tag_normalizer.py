from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from skillgraph.engine.types import IssueReason, TagField
from skillgraph.skills.models import TagIssue

from .models import MachineTagsResult, TagNormalizationResult
from .vocabulary import (
    ALIASES,
    ARTIFACT_AUTOCORRECT,
    COMPOUND_SYNONYMS,
    FIELD_ALLOW_LISTS,
    SYNONYM_TO_TAG,
    TAG_VOCAB,
    VOCAB_SET,
)

logger = logging.getLogger(__name__)

MAX_RAW_TAGS = 24
MAX_TAGS_PER_FIELD = 8
MIN_FUZZY_SCORE = 8
MAX_EDIT_DISTANCE = 2
MIN_EDIT_CANDIDATE_LENGTH = 5
MIN_TOKEN_VOCAB_LENGTH = 4

_SEPARATORS = re.compile(r"[_/\\]+")
_PUNCTUATION = re.compile(r"[^a-z0-9\s-]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_tag_token(value: str) -> str:
    """Lower-case, fold punctuation to single spaces and trim."""
    text = _SEPARATORS.sub(" ", str(value).lower())
    text = _PUNCTUATION.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def to_canonical_candidate(value: str) -> str:
    return normalize_tag_token(value).replace(" ", "-")


def levenshtein_distance(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            )
        previous = current
    return previous[-1]


@dataclass(frozen=True, slots=True)
class TagMapping:
    """Outcome of mapping a single raw tag against the global vocabulary."""

    raw: str
    mapped: Optional[str]
    low_confidence: bool = False


@dataclass(frozen=True, slots=True)
class TagNormalizer:
    """Deterministic mapper from free-form labels to the canonical vocabulary.

    Raw tags are tried against the vocabulary in decreasing order of trust:
    direct matches, aliases, synonyms, known compound phrases, single tokens
    and finally fuzzy scoring. Anything accepted through the last two routes
    is still kept but reported as a low-confidence mapping. Mapped tags are
    then checked against the allow-list of the field they were offered for.
    """

    max_raw_tags: int = MAX_RAW_TAGS
    max_tags: int = MAX_TAGS_PER_FIELD

    def normalize(
        self, raw_tags: Iterable[str], field: TagField
    ) -> TagNormalizationResult:
        """Canonicalize ``raw_tags`` for ``field``.

        Args:
            raw_tags: Free-form labels, only the first 24 are considered
            field: Target semantic field, selects the allow-list

        Returns:
            TagNormalizationResult with at most 8 ordered, unique tags
        """
        field = TagField(field)
        allowed = FIELD_ALLOW_LISTS[field]
        tags: List[str] = []
        issues: List[TagIssue] = []

        for raw in list(raw_tags or [])[: self.max_raw_tags]:
            mapping = self.map_raw_tag(raw)
            if not mapping.raw:
                continue

            if mapping.mapped is None:
                issues.append(
                    TagIssue(
                        field=field,
                        raw_tag=mapping.raw,
                        reason=IssueReason.UNKNOWN_TAG,
                    )
                )
                continue

            mapped = mapping.mapped
            if mapped not in allowed and field == TagField.ARTIFACTS:
                mapped = ARTIFACT_AUTOCORRECT.get(mapped, mapped)

            if mapped not in allowed:
                issues.append(
                    TagIssue(
                        field=field,
                        raw_tag=mapping.raw,
                        mapped_to=mapped,
                        reason=IssueReason.FIELD_NOT_ALLOWED,
                    )
                )
                continue

            if mapping.low_confidence:
                issues.append(
                    TagIssue(
                        field=field,
                        raw_tag=mapping.raw,
                        mapped_to=mapped,
                        reason=IssueReason.UNKNOWN_TAG,
                    )
                )

            if mapped not in tags:
                tags.append(mapped)

        if issues:
            logger.debug(
                "Normalized %s tags with %d issue(s): %s",
                field.value,
                len(issues),
                ", ".join(issue.raw_tag for issue in issues),
            )

        return TagNormalizationResult(
            field=field,
            tags=tags[: self.max_tags],
            issues=issues,
        )

    def sanitize_machine_tags(
        self,
        inputs_tags: Sequence[str] = (),
        artifacts_tags: Sequence[str] = (),
        capabilities_tags: Sequence[str] = (),
    ) -> MachineTagsResult:
        """Normalize all three semantic fields in one call."""
        inputs = self.normalize(inputs_tags, TagField.INPUTS)
        artifacts = self.normalize(artifacts_tags, TagField.ARTIFACTS)
        capabilities = self.normalize(capabilities_tags, TagField.CAPABILITIES)

        return MachineTagsResult(
            inputs_tags=inputs.tags,
            artifacts_tags=artifacts.tags,
            capabilities_tags=capabilities.tags,
            issues=[*inputs.issues, *artifacts.issues, *capabilities.issues],
        )

    def map_raw_tag(self, raw_tag: object) -> TagMapping:
        """Map one raw label to a vocabulary tag, ignoring field rules."""
        raw = str(raw_tag if raw_tag is not None else "").strip()
        if not raw:
            return TagMapping(raw="", mapped=None)

        candidate = to_canonical_candidate(raw)
        if candidate in VOCAB_SET:
            return TagMapping(raw=raw, mapped=candidate)

        normalized = normalize_tag_token(raw)
        if not normalized:
            return TagMapping(raw=raw, mapped=None)

        if normalized in VOCAB_SET:
            return TagMapping(raw=raw, mapped=normalized)

        compact = normalized.replace(" ", "")

        alias = ALIASES.get(normalized) or ALIASES.get(compact)
        if alias:
            return TagMapping(raw=raw, mapped=alias)

        synonym = SYNONYM_TO_TAG.get(compact) or SYNONYM_TO_TAG.get(normalized)
        if synonym:
            return TagMapping(raw=raw, mapped=synonym)

        for phrase, tag in COMPOUND_SYNONYMS:
            if phrase in normalized:
                return TagMapping(raw=raw, mapped=tag)

        for part in normalized.split(" "):
            if not part:
                continue
            synonym = SYNONYM_TO_TAG.get(part)
            if synonym:
                return TagMapping(raw=raw, mapped=synonym, low_confidence=True)
            if len(part) >= MIN_TOKEN_VOCAB_LENGTH and part in VOCAB_SET:
                return TagMapping(raw=raw, mapped=part, low_confidence=True)

        fuzzy = closest_tag(normalized)
        if fuzzy:
            return TagMapping(raw=raw, mapped=fuzzy, low_confidence=True)

        return TagMapping(raw=raw, mapped=None)


def closest_tag(normalized: str) -> Optional[str]:
    """Fuzzy fallback: token-overlap scoring, then edit distance."""
    if not normalized:
        return None

    parts = [part for part in normalized.split(" ") if part]
    multi_token = len(parts) > 1
    best_tag: Optional[str] = None
    best_score = 0

    for tag in TAG_VOCAB:
        if multi_token and len(tag) <= 3:
            continue

        spaced = tag.replace("-", " ")
        tag_words = tag.split("-")
        score = 0

        if normalized == spaced:
            score += 50
        if spaced in normalized:
            score += 8

        for part in parts:
            if part == tag:
                score += 10
            if part in tag_words:
                score += 6
            if len(part) > 3 and part in tag:
                score += 2

        if score > best_score:
            best_score = score
            best_tag = tag

    if best_score >= MIN_FUZZY_SCORE:
        return best_tag

    compact = normalized.replace(" ", "")
    if len(compact) < MIN_EDIT_CANDIDATE_LENGTH:
        return None

    nearest: Optional[str] = None
    min_distance: Optional[int] = None
    for tag in TAG_VOCAB:
        if len(tag) <= 2:
            continue
        distance = levenshtein_distance(compact, tag.replace("-", ""))
        if min_distance is None or distance < min_distance:
            min_distance = distance
            nearest = tag

    if min_distance is not None and min_distance <= MAX_EDIT_DISTANCE:
        return nearest
    return None
