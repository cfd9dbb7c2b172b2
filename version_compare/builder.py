"""
Comparison Builder v1.0.0
=========================
Orchestrates section extraction, line diffing and classification across
two revisions and aggregates the result into a VersionComparison.

compare() is deterministic for a pair of immutable revisions, so results
are cached by (from id, to id).
"""

import hashlib
import json
import threading
from collections import OrderedDict
from typing import List, Optional, Sequence, Tuple

from config_logging import get_logger, DEFAULT_CACHE_SIZE
from .classifier import ChangeClassifier
from .differ import TextDiffer, split_lines
from .models import (
    ChangeType, ClassifiedHunk, ComparisonSummary, Revision, Severity,
    VersionComparison
)
from .sections import SectionExtractor

logger = get_logger('version_compare.builder')


def revision_key(revision: Revision) -> str:
    """
    Identity of a revision for comparison ids: its store id, or a content
    hash for an unsaved candidate.
    """
    if revision.id is not None:
        return revision.id
    payload = json.dumps({
        'parentId': revision.parent_id,
        'version': revision.version,
        'sections': {kind.value: text for kind, text in revision.sections.items()},
    }, sort_keys=True, ensure_ascii=False)
    return f"content-{hashlib.sha256(payload.encode('utf-8')).hexdigest()[:16]}"


def comparison_id(from_key: str, to_key: str) -> str:
    """Stable id for the comparison of two revision keys."""
    digest = hashlib.sha256(f"{from_key}\x00{to_key}".encode('utf-8')).hexdigest()
    return f"cmp-{digest[:16]}"


def summarize(hunks: Sequence[ClassifiedHunk], old_lines: int = 0, new_lines: int = 0) -> ComparisonSummary:
    """
    Aggregate classified hunks.

    Args:
        hunks: Classified hunks of one comparison
        old_lines: Total line count across the from-revision's compared sections
        new_lines: Total line count across the to-revision's compared sections
    """
    additions = sum(1 for h in hunks if h.change_type is ChangeType.ADDED)
    deletions = sum(1 for h in hunks if h.change_type is ChangeType.REMOVED)
    modifications = sum(1 for h in hunks if h.change_type is ChangeType.MODIFIED)
    breaking = any(h.breaking for h in hunks)

    if breaking or any(h.severity is Severity.HIGH for h in hunks):
        impact = Severity.HIGH
    elif any(h.severity is Severity.MEDIUM for h in hunks):
        impact = Severity.MEDIUM
    else:
        impact = Severity.LOW

    lines_added = sum(h.hunk.new_count for h in hunks)
    lines_removed = sum(h.hunk.old_count for h in hunks)
    larger = max(old_lines, new_lines)
    if larger:
        similarity = round(max(0, old_lines - lines_removed) / larger, 4)
    else:
        similarity = 1.0

    return ComparisonSummary(
        total_changes=additions + deletions + modifications,
        additions_count=additions,
        deletions_count=deletions,
        modifications_count=modifications,
        files_changed=len({h.section for h in hunks}),
        impact_level=impact,
        breaking_changes=breaking,
        lines_added=lines_added,
        lines_removed=lines_removed,
        similarity=similarity,
    )


class ComparisonCache:
    """Thread-safe LRU of comparisons keyed by (from id, to id)."""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        self.max_size = max_size
        self._items: 'OrderedDict[Tuple[str, str], VersionComparison]' = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Tuple[str, str]) -> Optional[VersionComparison]:
        with self._lock:
            comparison = self._items.get(key)
            if comparison is not None:
                self._items.move_to_end(key)
            return comparison

    def put(self, key: Tuple[str, str], comparison: VersionComparison):
        if self.max_size <= 0:
            return
        with self._lock:
            self._items[key] = comparison
            self._items.move_to_end(key)
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def find(self, comparison_id: str) -> Optional[VersionComparison]:
        """Look a cached comparison up by its own id."""
        with self._lock:
            for comparison in self._items.values():
                if comparison.id == comparison_id:
                    return comparison
        return None

    def clear(self):
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


class ComparisonBuilder:
    """Builds VersionComparison objects from two revisions."""

    def __init__(
        self,
        extractor: Optional[SectionExtractor] = None,
        differ: Optional[TextDiffer] = None,
        classifier: Optional[ChangeClassifier] = None,
        cache: Optional[ComparisonCache] = None
    ):
        self.extractor = extractor or SectionExtractor()
        self.differ = differ or TextDiffer()
        self.classifier = classifier or ChangeClassifier()
        self.cache = cache if cache is not None else ComparisonCache()

    def compare(self, from_revision: Revision, to_revision: Revision) -> VersionComparison:
        """
        Compare two revisions.

        Sections missing from one side are diffed against empty text, so they
        show up as a whole-section addition or removal. Identical revisions
        produce a comparison with no hunks.
        """
        cacheable = not (from_revision.is_candidate or to_revision.is_candidate)
        key = (from_revision.id, to_revision.id)
        if cacheable:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Comparison cache hit for {key[0]} -> {key[1]}")
                return cached

        old_sections = self.extractor.extract(from_revision)
        new_sections = self.extractor.extract(to_revision)

        hunks: List[ClassifiedHunk] = []
        old_total = new_total = 0
        for section in self.extractor.union(old_sections, new_sections):
            old_text = old_sections.get(section, "")
            new_text = new_sections.get(section, "")
            old_total += len(split_lines(old_text))
            new_total += len(split_lines(new_text))
            section_hunks = self.differ.diff(old_text, new_text, section)
            hunks.extend(self.classifier.classify(section_hunks, section))

        summary = summarize(hunks, old_total, new_total)
        comparison = VersionComparison(
            id=comparison_id(revision_key(from_revision), revision_key(to_revision)),
            from_revision=from_revision,
            to_revision=to_revision,
            hunks=tuple(hunks),
            summary=summary,
        )

        logger.info(
            f"Compared {from_revision.id} -> {to_revision.id}: {summary.total_changes} changes "
            f"(+{summary.additions_count}, -{summary.deletions_count}, ~{summary.modifications_count}), "
            f"impact={summary.impact_level.value}",
            comparison_id=comparison.id,
            breaking=summary.breaking_changes
        )

        if cacheable:
            self.cache.put(key, comparison)
        return comparison

