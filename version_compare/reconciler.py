"""
Reconciliation Engine v1.0.0
============================
Turns accept/reject decisions over a comparison into a candidate revision.

The candidate starts from the to-revision; every rejected hunk has its new
span rolled back to the from-revision's text. Undecided hunks follow the
configured default (accept unless configured otherwise). The candidate is
not persisted here.
"""

import threading
import uuid
from typing import Dict, List, Optional, Sequence, Tuple

from config_logging import (
    get_logger, DEFAULT_DECISION,
    InvalidSectionReference, InvalidStateTransition, OverlappingDecisionConflict
)
from .differ import hunk_anchors, join_lines, split_lines
from .models import (
    ComparisonState, Decision, DiffHunk, ReconciliationDecision, Revision,
    RevisionStatus, VersionComparison
)
from .sections import SectionExtractor

logger = get_logger('version_compare.reconciler')


class ReconciliationEngine:
    """Applies per-hunk decisions to a comparison."""

    def __init__(self, default_decision: Decision = Decision(DEFAULT_DECISION),
                 extractor: Optional[SectionExtractor] = None):
        self.default_decision = Decision(default_decision)
        self.extractor = extractor or SectionExtractor()

    def reconcile(
        self,
        comparison: VersionComparison,
        decisions: Sequence[ReconciliationDecision],
        author_id: str = ""
    ) -> Revision:
        """
        Build the candidate revision for a set of decisions.

        Raises:
            InvalidSectionReference: a decision names a hunk outside the comparison
            OverlappingDecisionConflict: contradictory decisions for one hunk,
                overlapping rejected spans, or hunks that no longer match
                the to-revision's text
        """
        resolved = self.resolve(comparison, decisions)
        to_revision = comparison.to_revision
        new_sections = self.extractor.extract(to_revision)
        sections = dict(new_sections)

        rejected_count = 0
        for section in comparison.sections():
            section_hunks = [item.hunk for item in comparison.hunks_for(section)]
            rejected = [
                (hunk, new_index)
                for hunk, (_, new_index) in zip(section_hunks, hunk_anchors(section_hunks))
                if resolved.get(hunk.id, self.default_decision) is Decision.REJECT
            ]
            if not rejected:
                continue
            rejected_count += len(rejected)
            text = self._roll_back(new_sections.get(section, ""), rejected)
            if section in new_sections or text:
                sections[section] = text

        logger.info(
            f"Reconciled {comparison.id}: {len(comparison.hunks) - rejected_count} accepted, "
            f"{rejected_count} rejected",
            comparison_id=comparison.id,
            explicit_decisions=len(resolved)
        )

        return Revision(
            id=None,
            version=None,
            sections=sections,
            author_id=author_id or to_revision.author_id,
            parent_id=to_revision.id,
            status=RevisionStatus.DRAFT,
            component_id=to_revision.component_id,
        )

    def restore(self, comparison: VersionComparison, author_id: str = "") -> Revision:
        """Candidate with every hunk rejected: the from-revision's content on top of the to-revision."""
        decisions = [ReconciliationDecision(item.id, Decision.REJECT) for item in comparison.hunks]
        return self.reconcile(comparison, decisions, author_id=author_id)

    def resolve(
        self,
        comparison: VersionComparison,
        decisions: Sequence[ReconciliationDecision]
    ) -> Dict[str, Decision]:
        """Map hunk id to its explicit decision, validating references."""
        resolved: Dict[str, Decision] = {}
        for decision in decisions:
            if comparison.hunk(decision.hunk_id) is None:
                raise InvalidSectionReference(decision.hunk_id, comparison.id)
            previous = resolved.get(decision.hunk_id)
            if previous is not None and previous is not decision.decision:
                raise OverlappingDecisionConflict(
                    f"Hunk {decision.hunk_id} is both accepted and rejected",
                    hunk_ids=[decision.hunk_id]
                )
            resolved[decision.hunk_id] = decision.decision
        return resolved

    def _roll_back(self, text: str, rejected: List[Tuple[DiffHunk, int]]) -> str:
        lines = split_lines(text)
        ordered = sorted(rejected, key=lambda item: (item[1], item[0].new_count, item[0].id))

        previous: Optional[Tuple[DiffHunk, int]] = None
        for hunk, new_index in ordered:
            end = new_index + hunk.new_count
            if new_index < 0 or end > len(lines) or lines[new_index:end] != hunk.new_lines():
                raise OverlappingDecisionConflict(
                    f"Hunk {hunk.id} does not match the current text of {hunk.section.value}",
                    hunk_ids=[hunk.id], reason='stale'
                )
            if previous is not None:
                prev_hunk, prev_index = previous
                if new_index == prev_index or new_index < prev_index + prev_hunk.new_count:
                    raise OverlappingDecisionConflict(
                        f"Hunks {prev_hunk.id} and {hunk.id} overlap in {hunk.section.value}",
                        hunk_ids=[prev_hunk.id, hunk.id], reason='overlap'
                    )
            previous = (hunk, new_index)

        result: List[str] = []
        position = 0
        for hunk, new_index in ordered:
            result.extend(lines[position:new_index])
            result.extend(hunk.old_lines())
            position = new_index + hunk.new_count
        result.extend(lines[position:])
        return join_lines(result)


class ReviewSession:
    """
    One review pass over a comparison.

    Built -> Reviewing (decisions accumulate) -> Reconciled (terminal).
    A reviewer may change their mind on a hunk while reviewing; the latest
    decision for a hunk wins.
    """

    def __init__(self, comparison: VersionComparison, engine: ReconciliationEngine,
                 session_id: Optional[str] = None):
        self.id = session_id or f"review-{uuid.uuid4().hex[:12]}"
        self.comparison = comparison
        self.engine = engine
        self.state = ComparisonState.BUILT
        self.candidate: Optional[Revision] = None
        self._decisions: Dict[str, ReconciliationDecision] = {}
        self._lock = threading.Lock()

    def _ensure_open(self):
        if self.state is ComparisonState.RECONCILED:
            raise InvalidStateTransition(
                f"Review {self.id} is already reconciled; compare against the candidate instead",
                state=self.state.value
            )

    def decide(self, hunk_id: str, decision: Decision) -> ReconciliationDecision:
        with self._lock:
            self._ensure_open()
            if self.comparison.hunk(hunk_id) is None:
                raise InvalidSectionReference(hunk_id, self.comparison.id)
            record = ReconciliationDecision(hunk_id, Decision(decision))
            self._decisions[hunk_id] = record
            self.state = ComparisonState.REVIEWING
            return record

    @property
    def decisions(self) -> List[ReconciliationDecision]:
        """Decisions in hunk order."""
        return [self._decisions[item.id] for item in self.comparison.hunks if item.id in self._decisions]

    @property
    def pending(self) -> List[str]:
        return [item.id for item in self.comparison.hunks if item.id not in self._decisions]

    def reconcile(self, extra: Sequence[ReconciliationDecision] = (), author_id: str = "") -> Revision:
        with self._lock:
            self._ensure_open()
            candidate = self.engine.reconcile(self.comparison, self.decisions + list(extra), author_id=author_id)
            self.state = ComparisonState.RECONCILED
            self.candidate = candidate
            return candidate

    def restore(self, author_id: str = "") -> Revision:
        with self._lock:
            self._ensure_open()
            candidate = self.engine.restore(self.comparison, author_id=author_id)
            self.state = ComparisonState.RECONCILED
            self.candidate = candidate
            return candidate

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'comparisonId': self.comparison.id,
            'state': self.state.value,
            'decisions': [d.to_dict() for d in self.decisions],
            'pending': self.pending,
            'candidate': self.candidate.to_dict() if self.candidate else None,
        }
