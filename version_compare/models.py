"""
Version Comparison Models v1.1.0
================================
Value objects for revisions, diff hunks and comparison results.

All models that cross the engine boundary are frozen: a revision handed to
the comparison builder can never be patched in place, which is what makes
comparisons cacheable by revision id.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import List, Dict, Optional, Any, Mapping, Sequence, Tuple

from config_logging import ValidationError


class SectionKind(Enum):
    """Closed set of source sections a revision can carry."""
    MARKUP = "markup"
    LOGIC = "logic"
    STYLES = "styles"
    TYPES = "types"

    @property
    def is_code(self) -> bool:
        """Code sections are the ones checked for breaking changes."""
        return self in CODE_SECTIONS

    @property
    def order(self) -> int:
        return SECTION_ORDER.index(self)

    @classmethod
    def parse(cls, name: Any) -> 'SectionKind':
        """
        Resolve a section name, accepting the legacy per-language keys.

        Raises:
            ValidationError: if the name is not a known section or alias
        """
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower()
        key = SECTION_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(f"Unknown section: {name}", field='section')


SECTION_ORDER = [SectionKind.MARKUP, SectionKind.LOGIC, SectionKind.STYLES, SectionKind.TYPES]
CODE_SECTIONS = frozenset({SectionKind.LOGIC, SectionKind.TYPES})

# Older component payloads key code by language
SECTION_ALIASES = {
    'html': 'markup',
    'template': 'markup',
    'css': 'styles',
    'scss': 'styles',
    'javascript': 'logic',
    'js': 'logic',
    'typescript': 'logic',
    'ts': 'logic',
    'dts': 'types',
}


class ChangeType(Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class Severity(Enum):
    """Per-hunk severity; also used as the comparison impact level."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RevisionStatus(Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Decision(Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class ComparisonState(Enum):
    """Lifecycle of a comparison under review."""
    BUILT = "built"
    REVIEWING = "reviewing"
    RECONCILED = "reconciled"


def _parse_enum(enum_cls, value: Any, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value}", field=field_name)


def parse_timestamp(value: Any) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value}", field='createdAt')


def format_timestamp(value: datetime) -> str:
    return value.isoformat().replace('+00:00', 'Z')


def hunk_text(lines: Sequence[str]) -> str:
    """Hunk text for a run of lines: every line newline-terminated."""
    return ''.join(f"{line}\n" for line in lines)


def hunk_lines(text: str) -> List[str]:
    """Inverse of hunk_text()."""
    if not text:
        return []
    return text[:-1].split('\n')


@dataclass(frozen=True)
class LineRange:
    """
    A run of lines inside one section.

    Attributes:
        start: 1-based line number of the first line
        count: number of lines in the run (always >= 1)
    """
    start: int
    count: int

    def __post_init__(self):
        if self.start < 1 or self.count < 1:
            raise ValueError(f"Invalid line range: start={self.start}, count={self.count}")

    def to_dict(self) -> Dict[str, int]:
        return {'start': self.start, 'count': self.count}


@dataclass(frozen=True)
class Revision:
    """
    Immutable snapshot of a component's source.

    Attributes:
        id: Store-assigned id (None for an unsaved candidate)
        version: Semver-like version string (None until assigned)
        sections: Section text keyed by SectionKind (read-only view)
        created_at: Creation timestamp (UTC)
        author_id: Author of the revision
        parent_id: Revision this one was derived from (None for a root)
        status: draft / published / archived
        component_id: Component whose lineage this revision belongs to
    """
    id: Optional[str]
    version: Optional[str]
    sections: Mapping[SectionKind, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    author_id: str = ""
    parent_id: Optional[str] = None
    status: RevisionStatus = RevisionStatus.DRAFT
    component_id: str = ""

    def __post_init__(self):
        # Copy on construction so callers cannot keep a live handle to the text
        normalized: Dict[SectionKind, str] = {}
        for name, text in dict(self.sections).items():
            kind = SectionKind.parse(name)
            if text is None:
                text = ""
            if not isinstance(text, str):
                raise ValidationError(f"Section {kind.value} must be text", field='sections')
            if kind in normalized:
                raise ValidationError(f"Section {kind.value} given more than once", field='sections')
            normalized[kind] = text
        ordered = {kind: normalized[kind] for kind in sorted(normalized, key=lambda k: k.order)}
        object.__setattr__(self, 'sections', MappingProxyType(ordered))
        object.__setattr__(self, 'status', _parse_enum(RevisionStatus, self.status, 'status'))

    @property
    def is_candidate(self) -> bool:
        """True until a version store has assigned an id."""
        return self.id is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'version': self.version,
            'componentId': self.component_id,
            'sections': {kind.value: text for kind, text in self.sections.items()},
            'createdAt': format_timestamp(self.created_at),
            'authorId': self.author_id,
            'parentId': self.parent_id,
            'status': self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Revision':
        """Build a revision from its wire shape."""
        if not isinstance(data, dict):
            raise ValidationError("Revision payload must be an object", field='revision')
        sections = data.get('sections') or {}
        if not isinstance(sections, dict):
            raise ValidationError("sections must be an object", field='sections')
        return cls(
            id=data.get('id'),
            version=data.get('version'),
            sections=sections,
            created_at=parse_timestamp(data.get('createdAt')),
            author_id=data.get('authorId') or "",
            parent_id=data.get('parentId'),
            status=data.get('status') or RevisionStatus.DRAFT.value,
            component_id=data.get('componentId') or "",
        )


@dataclass(frozen=True)
class DiffHunk:
    """
    One contiguous change inside one section.

    Hunk text holds the affected lines, each terminated by a newline, so a
    run of blank lines is non-empty text. Added hunks have empty old text,
    removed hunks empty new text, and modified hunks text on both sides.
    """
    id: str
    section: SectionKind
    change_type: ChangeType
    old_range: Optional[LineRange]
    new_range: Optional[LineRange]
    old_text: str = ""
    new_text: str = ""

    def __post_init__(self):
        has_old = self.old_range is not None and self.old_text != ""
        has_new = self.new_range is not None and self.new_text != ""
        if self.change_type is ChangeType.ADDED:
            valid = has_new and self.old_range is None and self.old_text == ""
        elif self.change_type is ChangeType.REMOVED:
            valid = has_old and self.new_range is None and self.new_text == ""
        else:
            valid = has_old and has_new
        if not valid:
            raise ValueError(f"Hunk {self.id} has ranges or text inconsistent with {self.change_type.value}")

    @property
    def old_count(self) -> int:
        return self.old_range.count if self.old_range else 0

    @property
    def new_count(self) -> int:
        return self.new_range.count if self.new_range else 0

    @property
    def span(self) -> int:
        """Lines touched on the larger side."""
        return max(self.old_count, self.new_count)

    def old_lines(self) -> List[str]:
        return hunk_lines(self.old_text)

    def new_lines(self) -> List[str]:
        return hunk_lines(self.new_text)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'section': self.section.value,
            'changeType': self.change_type.value,
            'oldRange': self.old_range.to_dict() if self.old_range else None,
            'newRange': self.new_range.to_dict() if self.new_range else None,
            'oldText': self.old_text,
            'newText': self.new_text,
        }


@dataclass(frozen=True)
class ClassifiedHunk:
    """A diff hunk annotated with severity and breaking-change signals."""
    hunk: DiffHunk
    severity: Severity
    breaking: bool = False
    removed_symbols: Tuple[str, ...] = ()
    description: str = ""

    @property
    def id(self) -> str:
        return self.hunk.id

    @property
    def section(self) -> SectionKind:
        return self.hunk.section

    @property
    def change_type(self) -> ChangeType:
        return self.hunk.change_type

    def to_dict(self) -> Dict[str, Any]:
        data = self.hunk.to_dict()
        data.update({
            'severity': self.severity.value,
            'breaking': self.breaking,
            'removedSymbols': list(self.removed_symbols),
            'description': self.description,
        })
        return data


@dataclass(frozen=True)
class ComparisonSummary:
    """
    Aggregate statistics, recomputed from the hunks on every build.

    Counts are per hunk; line totals and similarity are per line.
    """
    total_changes: int
    additions_count: int
    deletions_count: int
    modifications_count: int
    files_changed: int
    impact_level: Severity
    breaking_changes: bool
    lines_added: int = 0
    lines_removed: int = 0
    similarity: float = 1.0

    @property
    def can_merge(self) -> bool:
        """Whether the whole change set can be taken without review."""
        return self.total_changes > 0 and not self.breaking_changes

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalChanges': self.total_changes,
            'additionsCount': self.additions_count,
            'deletionsCount': self.deletions_count,
            'modificationsCount': self.modifications_count,
            'filesChanged': self.files_changed,
            'impactLevel': self.impact_level.value,
            'breakingChanges': self.breaking_changes,
            'linesAdded': self.lines_added,
            'linesRemoved': self.lines_removed,
            'similarity': self.similarity,
            'canMerge': self.can_merge,
        }


@dataclass(frozen=True)
class VersionComparison:
    """
    Result of comparing from_revision to to_revision.

    The comparison owns its hunks; the revisions are referenced only.
    """
    id: str
    from_revision: Revision
    to_revision: Revision
    hunks: Tuple[ClassifiedHunk, ...]
    summary: ComparisonSummary

    @property
    def from_revision_id(self) -> Optional[str]:
        return self.from_revision.id

    @property
    def to_revision_id(self) -> Optional[str]:
        return self.to_revision.id

    def hunk(self, hunk_id: str) -> Optional[ClassifiedHunk]:
        for item in self.hunks:
            if item.id == hunk_id:
                return item
        return None

    def hunks_for(self, section: SectionKind) -> List[ClassifiedHunk]:
        return [item for item in self.hunks if item.section is section]

    def sections(self) -> List[SectionKind]:
        """Sections touched by at least one hunk, in section order."""
        touched = {item.section for item in self.hunks}
        return [kind for kind in SECTION_ORDER if kind in touched]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire shape."""
        return {
            'id': self.id,
            'fromRevisionId': self.from_revision_id,
            'toRevisionId': self.to_revision_id,
            'hunks': [item.to_dict() for item in self.hunks],
            'summary': self.summary.to_dict(),
        }


@dataclass(frozen=True)
class ReconciliationDecision:
    """A reviewer's choice for one hunk."""
    hunk_id: str
    decision: Decision
    decided_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hunkId': self.hunk_id,
            'decision': self.decision.value,
            'decidedAt': format_timestamp(self.decided_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReconciliationDecision':
        if not isinstance(data, dict) or not data.get('hunkId'):
            raise ValidationError("Decision requires a hunkId", field='hunkId')
        return cls(
            hunk_id=str(data['hunkId']),
            decision=_parse_enum(Decision, data.get('decision'), 'decision'),
            decided_at=parse_timestamp(data.get('decidedAt')),
        )


@dataclass
class WordChange:
    """
    Word-level change inside a modified hunk.

    Attributes:
        id: Unique identifier for navigation (e.g., "logic:0/w0")
        hunk_id: Hunk this change belongs to
        old_text: Original words (empty string for insertions)
        new_text: Replacement words (empty string for deletions)
        offset: Character offset of the change within the hunk's old text
    """
    id: str
    hunk_id: str
    old_text: str
    new_text: str
    offset: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'hunkId': self.hunk_id,
            'oldText': self.old_text,
            'newText': self.new_text,
            'offset': self.offset,
        }
