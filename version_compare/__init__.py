"""
Version Comparison Module v1.0.0
================================
Section-aware comparison of component revisions with per-hunk review and
reconciliation.

Features:
- Line-level diff per section (markup, logic, styles, types)
- Word-level highlighting inside modified hunks
- Severity and breaking-change classification
- Accept/reject reconciliation into a candidate revision
- Version lineage with semver-like ordering
"""

from .routes import vc_blueprint
from .builder import ComparisonBuilder, ComparisonCache
from .classifier import ChangeClassifier
from .differ import TextDiffer, WordDiffer, apply_hunks
from .exporters import export_comparison
from .reconciler import ReconciliationEngine, ReviewSession
from .service import VersionCompareService
from .store import VersionStore, InMemoryVersionStore, SqliteVersionStore
from .models import (
    SectionKind,
    ChangeType,
    Severity,
    Decision,
    Revision,
    DiffHunk,
    ClassifiedHunk,
    ComparisonSummary,
    VersionComparison,
    ReconciliationDecision
)

__version__ = "1.0.0"
__all__ = [
    'vc_blueprint',
    'ComparisonBuilder',
    'ComparisonCache',
    'ChangeClassifier',
    'TextDiffer',
    'WordDiffer',
    'apply_hunks',
    'export_comparison',
    'ReconciliationEngine',
    'ReviewSession',
    'VersionCompareService',
    'VersionStore',
    'InMemoryVersionStore',
    'SqliteVersionStore',
    'SectionKind',
    'ChangeType',
    'Severity',
    'Decision',
    'Revision',
    'DiffHunk',
    'ClassifiedHunk',
    'ComparisonSummary',
    'VersionComparison',
    'ReconciliationDecision'
]
