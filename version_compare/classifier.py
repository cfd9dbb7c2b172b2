"""
Change Classifier v1.0.0
========================
Assigns a severity to each diff hunk and flags likely breaking changes.

The breaking-change check is a pattern match over the hunk text, not a
static analysis: a hunk in a code section is breaking when its old text
declares a public symbol (exported function/class/const, CommonJS export,
component input/output) whose name no longer appears in its new text.
"""

import re
from typing import Dict, List, Optional, Sequence

from config_logging import get_logger, DEFAULT_LARGE_HUNK_LINES
from .models import ChangeType, ClassifiedHunk, DiffHunk, SectionKind, Severity

logger = get_logger('version_compare.classifier')

IDENTIFIER = r'[A-Za-z_$][\w$]*'

# Declarations whose first group is one public name
PUBLIC_SYMBOL_PATTERNS = (
    re.compile(r'\bexport\s+(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?(?:async\s+)?'
               r'(?:function\s*\*?|class|const|let|var|interface|type|enum)\s+(' + IDENTIFIER + r')'),
    re.compile(r'\b(?:module\.)?exports\.(' + IDENTIFIER + r')\s*='),
    re.compile(r'@(?:Input|Output)\([^)]*\)\s*(?:set\s+)?(' + IDENTIFIER + r')'),
)

# `export { a, b as c }` lists several names at once
EXPORT_LIST_PATTERN = re.compile(r'\bexport\s*\{([^}]*)\}')


def public_symbols(text: str) -> List[str]:
    """Public symbol names declared in text, in order of first appearance."""
    found: Dict[int, str] = {}
    for pattern in PUBLIC_SYMBOL_PATTERNS:
        for match in pattern.finditer(text):
            found.setdefault(match.start(1), match.group(1))
    for match in EXPORT_LIST_PATTERN.finditer(text):
        cursor = match.start(1)
        for entry in match.group(1).split(','):
            parts = entry.split()
            if parts:
                name = parts[-1]  # `a as b` exports b
                if re.fullmatch(IDENTIFIER, name):
                    found.setdefault(cursor, name)
            cursor += len(entry) + 1

    ordered = []
    for _, name in sorted(found.items()):
        if name not in ordered:
            ordered.append(name)
    return ordered


def mentions(text: str, name: str) -> bool:
    """Whether name occurs in text as a whole identifier."""
    return re.search(r'(?<![\w$])' + re.escape(name) + r'(?![\w$])', text) is not None


class ChangeClassifier:
    """
    Severity policy:

    - added: low
    - removed: low outside code sections, medium in code (high if breaking)
    - modified: medium, high when breaking or spanning more than
      large_hunk_threshold lines
    """

    def __init__(self, large_hunk_threshold: int = DEFAULT_LARGE_HUNK_LINES):
        self.large_hunk_threshold = large_hunk_threshold

    def classify(self, hunks: Sequence[DiffHunk], section: Optional[SectionKind] = None) -> List[ClassifiedHunk]:
        """
        Annotate hunks with severity and breaking flags.

        Args:
            hunks: Hunks to classify, in order
            section: Section context; defaults to each hunk's own section
        """
        return [self.classify_hunk(hunk, section or hunk.section) for hunk in hunks]

    def classify_hunk(self, hunk: DiffHunk, section: SectionKind) -> ClassifiedHunk:
        removed_symbols = self._removed_symbols(hunk) if section.is_code else []
        breaking = bool(removed_symbols)

        if hunk.change_type is ChangeType.ADDED:
            severity = Severity.LOW
        elif hunk.change_type is ChangeType.REMOVED:
            if not section.is_code:
                severity = Severity.LOW
            else:
                severity = Severity.HIGH if breaking else Severity.MEDIUM
        elif breaking or hunk.span > self.large_hunk_threshold:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        if breaking:
            logger.debug(f"Breaking change in {hunk.id}: {', '.join(removed_symbols)}",
                         hunk_id=hunk.id, symbols=removed_symbols)

        return ClassifiedHunk(
            hunk=hunk,
            severity=severity,
            breaking=breaking,
            removed_symbols=tuple(removed_symbols),
            description=self._describe(hunk, removed_symbols),
        )

    def _removed_symbols(self, hunk: DiffHunk) -> List[str]:
        if not hunk.old_text:
            return []
        return [name for name in public_symbols(hunk.old_text) if not mentions(hunk.new_text, name)]

    def _describe(self, hunk: DiffHunk, removed_symbols: List[str]) -> str:
        section = hunk.section.value
        if hunk.change_type is ChangeType.ADDED:
            text = f"Added {hunk.new_count} line(s) to {section}"
        elif hunk.change_type is ChangeType.REMOVED:
            text = f"Removed {hunk.old_count} line(s) from {section}"
        else:
            text = f"Changed {hunk.old_count} line(s) to {hunk.new_count} in {section}"
        if removed_symbols:
            quoted = [f"'{name}'" for name in removed_symbols]
            text += f"; public symbol(s) {', '.join(quoted)} no longer present"
        return text
