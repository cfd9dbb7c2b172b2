"""
Tests for ReconciliationEngine
==============================
Accept/reject reconciliation, conflict detection and review sessions.
"""

from dataclasses import replace

import pytest

from config_logging import (
    InvalidSectionReference, InvalidStateTransition, OverlappingDecisionConflict
)
from version_compare.builder import ComparisonBuilder, summarize
from version_compare.classifier import ChangeClassifier
from version_compare.models import (
    ChangeType, ComparisonState, Decision, DiffHunk, LineRange,
    ReconciliationDecision, Revision, SectionKind, VersionComparison
)
from version_compare.reconciler import ReconciliationEngine, ReviewSession


FROM_LOGIC = "line1\nold2\nline3\nline4\nold5"
TO_LOGIC = "line1\nnew2\nline3\nline4\nnew5"

REVISION_PAIRS = [
    ({"logic": FROM_LOGIC}, {"logic": TO_LOGIC}),
    ({"logic": "export function foo(){}"}, {"logic": ""}),
    ({"logic": "function foo(){}"}, {"logic": "function foo(){}\nfunction bar(){}"}),
    ({"markup": "<a>\n<b>\n<c>", "styles": "x\ny"}, {"markup": "<b>\n<c>\n<d>", "styles": "y\nx\n"}),
    ({"logic": "a\nb\nc\nd\ne\nf"}, {"logic": "f\ne\nd\nc\nb\na"}),
    ({"logic": "\n\n"}, {"logic": "\n"}),
]


def _revisions(old, new):
    return (
        Revision(id="r1", version="1.0.0", sections=old, author_id="alice"),
        Revision(id="r2", version="1.1.0", sections=new, author_id="bob", component_id="button"),
    )


def _reject(*hunk_ids):
    return [ReconciliationDecision(hunk_id, Decision.REJECT) for hunk_id in hunk_ids]


def _accept(*hunk_ids):
    return [ReconciliationDecision(hunk_id, Decision.ACCEPT) for hunk_id in hunk_ids]


@pytest.fixture
def engine() -> ReconciliationEngine:
    return ReconciliationEngine()


@pytest.fixture
def comparison() -> VersionComparison:
    return ComparisonBuilder().compare(*_revisions({"logic": FROM_LOGIC}, {"logic": TO_LOGIC}))


class TestReconcile:
    """Tests for ReconciliationEngine.reconcile."""

    def test_reject_first_accept_second(self, engine, comparison):
        assert [h.id for h in comparison.hunks] == ["logic:0", "logic:1"]
        candidate = engine.reconcile(comparison, _reject("logic:0") + _accept("logic:1"))
        assert candidate.sections[SectionKind.LOGIC] == "line1\nold2\nline3\nline4\nnew5"

    def test_candidate_metadata(self, engine, comparison):
        candidate = engine.reconcile(comparison, [])
        assert candidate.id is None
        assert candidate.version is None
        assert candidate.is_candidate
        assert candidate.parent_id == "r2"
        assert candidate.component_id == "button"
        assert candidate.author_id == "bob"
        assert engine.reconcile(comparison, [], author_id="carol").author_id == "carol"

    def test_undecided_hunks_default_to_accept(self, engine, comparison):
        candidate = engine.reconcile(comparison, _reject("logic:1"))
        assert candidate.sections[SectionKind.LOGIC] == "line1\nnew2\nline3\nline4\nold5"

    def test_default_reject_is_configurable(self, comparison):
        engine = ReconciliationEngine(default_decision=Decision.REJECT)
        candidate = engine.reconcile(comparison, _accept("logic:0"))
        assert candidate.sections[SectionKind.LOGIC] == "line1\nnew2\nline3\nline4\nold5"

    @pytest.mark.parametrize("old, new", REVISION_PAIRS)
    def test_reject_all_restores_from_revision(self, engine, old, new):
        from_rev, to_rev = _revisions(old, new)
        comparison = ComparisonBuilder().compare(from_rev, to_rev)
        candidate = engine.reconcile(comparison, _reject(*[h.id for h in comparison.hunks]))
        assert dict(candidate.sections) == dict(from_rev.sections)

    @pytest.mark.parametrize("old, new", REVISION_PAIRS)
    def test_accept_all_keeps_to_revision(self, engine, old, new):
        from_rev, to_rev = _revisions(old, new)
        comparison = ComparisonBuilder().compare(from_rev, to_rev)
        candidate = engine.reconcile(comparison, _accept(*[h.id for h in comparison.hunks]))
        assert dict(candidate.sections) == dict(to_rev.sections)

    @pytest.mark.parametrize("old, new", REVISION_PAIRS)
    def test_restore_equals_reject_all(self, engine, old, new):
        comparison = ComparisonBuilder().compare(*_revisions(old, new))
        restored = engine.restore(comparison)
        rejected = engine.reconcile(comparison, _reject(*[h.id for h in comparison.hunks]))
        assert dict(restored.sections) == dict(rejected.sections)

    def test_section_only_in_from_revision_is_restored(self, engine):
        from_rev, to_rev = _revisions({"markup": "<p/>", "styles": "p {}"}, {"markup": "<p/>"})
        comparison = ComparisonBuilder().compare(from_rev, to_rev)
        candidate = engine.restore(comparison)
        assert candidate.sections[SectionKind.STYLES] == "p {}"

    def test_duplicate_identical_decisions_are_allowed(self, engine, comparison):
        candidate = engine.reconcile(comparison, _reject("logic:0", "logic:0"))
        assert candidate.sections[SectionKind.LOGIC].startswith("line1\nold2")


class TestConflicts:
    """Tests for conflicting and invalid decisions."""

    def test_unknown_hunk_is_invalid_reference(self, engine, comparison):
        with pytest.raises(InvalidSectionReference) as exc_info:
            engine.reconcile(comparison, _reject("logic:9"))
        assert exc_info.value.hunk_id == "logic:9"
        assert exc_info.value.status_code == 422

    def test_contradictory_decisions_conflict(self, engine, comparison):
        with pytest.raises(OverlappingDecisionConflict) as exc_info:
            engine.reconcile(comparison, _accept("logic:0") + _reject("logic:0"))
        assert exc_info.value.hunk_ids == ["logic:0"]

    def test_stale_comparison_conflicts(self, engine, comparison):
        edited = Revision(id="r2", version="1.1.0", sections={"logic": "edited\nin\nplace"})
        stale = replace(comparison, to_revision=edited)
        with pytest.raises(OverlappingDecisionConflict) as exc_info:
            engine.reconcile(stale, _reject("logic:0"))
        assert exc_info.value.details['reason'] == 'stale'

    def test_overlapping_spans_conflict(self, engine):
        to_rev = Revision(id="r2", version="1.1.0", sections={"logic": "a\nb\nc"})
        from_rev = Revision(id="r1", version="1.0.0", sections={"logic": "x"})
        hunks = [
            DiffHunk("logic:0", SectionKind.LOGIC, ChangeType.MODIFIED,
                     LineRange(1, 1), LineRange(1, 2), "x\n", "a\nb\n"),
            DiffHunk("logic:1", SectionKind.LOGIC, ChangeType.MODIFIED,
                     LineRange(1, 1), LineRange(2, 2), "x\n", "b\nc\n"),
        ]
        classified = ChangeClassifier().classify(hunks)
        comparison = VersionComparison("cmp-test", from_rev, to_rev, tuple(classified),
                                       summarize(classified))
        with pytest.raises(OverlappingDecisionConflict) as exc_info:
            engine.reconcile(comparison, _reject("logic:0", "logic:1"))
        assert exc_info.value.hunk_ids == ["logic:0", "logic:1"]
        assert exc_info.value.details['reason'] == 'overlap'

    def test_overlap_ignored_when_only_one_rejected(self, engine):
        to_rev = Revision(id="r2", version="1.1.0", sections={"logic": "a\nb\nc"})
        from_rev = Revision(id="r1", version="1.0.0", sections={"logic": "x"})
        hunks = [
            DiffHunk("logic:0", SectionKind.LOGIC, ChangeType.MODIFIED,
                     LineRange(1, 1), LineRange(1, 2), "x\n", "a\nb\n"),
            DiffHunk("logic:1", SectionKind.LOGIC, ChangeType.MODIFIED,
                     LineRange(1, 1), LineRange(2, 2), "x\n", "b\nc\n"),
        ]
        classified = ChangeClassifier().classify(hunks)
        comparison = VersionComparison("cmp-test", from_rev, to_rev, tuple(classified),
                                       summarize(classified))
        candidate = engine.reconcile(comparison, _reject("logic:0"))
        assert candidate.sections[SectionKind.LOGIC] == "x\nc"


class TestReviewSession:
    """Tests for the review lifecycle."""

    def test_lifecycle(self, engine, comparison):
        review = ReviewSession(comparison, engine)
        assert review.state is ComparisonState.BUILT
        assert review.pending == ["logic:0", "logic:1"]

        review.decide("logic:0", Decision.REJECT)
        assert review.state is ComparisonState.REVIEWING
        assert review.pending == ["logic:1"]

        candidate = review.reconcile()
        assert review.state is ComparisonState.RECONCILED
        assert review.candidate is candidate
        assert candidate.sections[SectionKind.LOGIC] == "line1\nold2\nline3\nline4\nnew5"

    def test_latest_decision_wins(self, engine, comparison):
        review = ReviewSession(comparison, engine)
        review.decide("logic:0", Decision.REJECT)
        review.decide("logic:0", Decision.ACCEPT)
        assert [d.decision for d in review.decisions] == [Decision.ACCEPT]
        assert review.reconcile().sections[SectionKind.LOGIC] == TO_LOGIC

    def test_no_transition_after_reconciled(self, engine, comparison):
        review = ReviewSession(comparison, engine)
        review.reconcile()
        with pytest.raises(InvalidStateTransition):
            review.decide("logic:0", Decision.REJECT)
        with pytest.raises(InvalidStateTransition):
            review.reconcile()
        with pytest.raises(InvalidStateTransition):
            review.restore()

    def test_unknown_hunk_rejected(self, engine, comparison):
        review = ReviewSession(comparison, engine)
        with pytest.raises(InvalidSectionReference):
            review.decide("markup:0", Decision.ACCEPT)
        assert review.state is ComparisonState.BUILT

    def test_failed_reconcile_keeps_reviewing(self, engine, comparison):
        review = ReviewSession(comparison, engine)
        review.decide("logic:0", Decision.ACCEPT)
        with pytest.raises(OverlappingDecisionConflict):
            review.reconcile(_reject("logic:0"))
        assert review.state is ComparisonState.REVIEWING

    def test_restore(self, engine, comparison):
        review = ReviewSession(comparison, engine)
        candidate = review.restore()
        assert candidate.sections[SectionKind.LOGIC] == FROM_LOGIC
        assert review.state is ComparisonState.RECONCILED

    def test_to_dict(self, engine, comparison):
        review = ReviewSession(comparison, engine, session_id="review-1")
        review.decide("logic:1", "reject")
        data = review.to_dict()
        assert data['id'] == "review-1"
        assert data['comparisonId'] == comparison.id
        assert data['state'] == 'reviewing'
        assert data['decisions'][0]['hunkId'] == "logic:1"
        assert data['decisions'][0]['decision'] == 'reject'
        assert data['pending'] == ["logic:0"]
        assert data['candidate'] is None
