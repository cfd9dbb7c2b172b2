"""
Version Compare Service v1.0.0
==============================
Entry points used by the HTTP layer and by embedding applications.

Wires the version store to the comparison builder and the reconciliation
engine, and keeps the registry of open review sessions.
"""

import threading
from collections import OrderedDict
from typing import List, Optional, Sequence

from config_logging import get_config, get_logger, AppConfig, InvalidSectionReference, RevisionNotFound
from .builder import ComparisonBuilder, ComparisonCache
from .classifier import ChangeClassifier
from .differ import TextDiffer, WordDiffer
from .exporters import export_comparison
from .models import ComparisonState, Decision, ReconciliationDecision, Revision, VersionComparison, WordChange
from .reconciler import ReconciliationEngine, ReviewSession
from .store import VersionStore, get_version_store

logger = get_logger('version_compare.service')


class VersionCompareService:
    """Compare, review, reconcile and persist revisions."""

    def __init__(self, store: Optional[VersionStore] = None, config: Optional[AppConfig] = None):
        self.config = config or get_config()
        self.store = store if store is not None else get_version_store()
        self.builder = ComparisonBuilder(
            differ=TextDiffer(self.config.coalesce_gap,
                              ignore_whitespace=self.config.ignore_whitespace,
                              ignore_case=self.config.ignore_case),
            classifier=ChangeClassifier(self.config.large_hunk_threshold),
            cache=ComparisonCache(self.config.cache_size),
        )
        self.engine = ReconciliationEngine(default_decision=Decision(self.config.default_decision))
        self.word_differ = WordDiffer()
        self.max_reviews = self.config.max_reviews
        self._reviews: 'OrderedDict[str, ReviewSession]' = OrderedDict()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def compare_versions(self, from_id: str, to_id: str) -> VersionComparison:
        """
        Compare two stored revisions.

        Raises:
            RevisionNotFound: if either id is unknown to the store
        """
        with logger.log_operation('compare_versions', from_id=from_id, to_id=to_id):
            from_revision = self.store.get_revision(from_id)
            to_revision = self.store.get_revision(to_id)
            return self.builder.compare(from_revision, to_revision)

    def compare_revisions(self, from_revision: Revision, to_revision: Revision) -> VersionComparison:
        """Compare two revisions already in hand (candidates included)."""
        return self.builder.compare(from_revision, to_revision)

    def get_comparison(self, comparison_id: str) -> VersionComparison:
        """
        A comparison built earlier by this service.

        Raises:
            RevisionNotFound: if it is neither cached nor under review
        """
        comparison = self.builder.cache.find(comparison_id)
        if comparison is not None:
            return comparison
        with self._lock:
            for review in self._reviews.values():
                if review.comparison.id == comparison_id:
                    return review.comparison
        raise RevisionNotFound(comparison_id, kind='comparison')

    def export(self, comparison_id: str, fmt: str = 'unified', context_lines: Optional[int] = None) -> str:
        if context_lines is None:
            context_lines = self.config.context_lines
        return export_comparison(self.get_comparison(comparison_id), fmt, context_lines)

    def word_changes(self, comparison_id: str, hunk_id: str) -> List[WordChange]:
        """
        Word-level changes of one hunk; empty for whole-line hunks.

        Raises:
            InvalidSectionReference: if the hunk is not part of the comparison
        """
        comparison = self.get_comparison(comparison_id)
        item = comparison.hunk(hunk_id)
        if item is None:
            raise InvalidSectionReference(hunk_id, comparison_id)
        return self.word_differ.changes(item.hunk)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile_comparison(
        self,
        comparison: VersionComparison,
        decisions: Sequence[ReconciliationDecision],
        author_id: str = ""
    ) -> Revision:
        """Candidate revision for the decisions; not persisted."""
        return self.engine.reconcile(comparison, decisions, author_id=author_id)

    def restore_candidate(self, comparison: VersionComparison, author_id: str = "") -> Revision:
        """Candidate that puts the from-revision's content back on top of the to-revision."""
        return self.engine.restore(comparison, author_id=author_id)

    def persist_candidate(self, revision: Revision) -> Revision:
        """Store a candidate, assigning its final id and version."""
        return self.store.save(revision)

    # ------------------------------------------------------------------
    # Review sessions
    # ------------------------------------------------------------------

    def open_review(self, comparison: VersionComparison) -> ReviewSession:
        """
        Register a new review session.

        Reconciled sessions are dropped first; beyond max_reviews the least
        recently used open sessions are evicted.
        """
        review = ReviewSession(comparison, self.engine)
        with self._lock:
            self._prune()
            self._reviews[review.id] = review
            while len(self._reviews) > self.max_reviews:
                evicted, _ = self._reviews.popitem(last=False)
                logger.info(f"Evicted review {evicted}", review_id=evicted)
        logger.info(f"Opened review {review.id} for {comparison.id}",
                    review_id=review.id, comparison_id=comparison.id)
        return review

    def _prune(self):
        finished = [rid for rid, review in self._reviews.items()
                    if review.state is ComparisonState.RECONCILED]
        for rid in finished:
            del self._reviews[rid]

    def get_review(self, review_id: str) -> ReviewSession:
        """
        Raises:
            RevisionNotFound: if no review has that id
        """
        with self._lock:
            review = self._reviews.get(review_id)
            if review is not None:
                self._reviews.move_to_end(review_id)
        if review is None:
            raise RevisionNotFound(review_id, kind='review')
        return review

    def close_review(self, review_id: str):
        with self._lock:
            self._reviews.pop(review_id, None)

    def review_count(self) -> int:
        with self._lock:
            return len(self._reviews)
