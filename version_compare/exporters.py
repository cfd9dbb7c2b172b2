"""
Comparison Export v1.1.0
========================
Renders a VersionComparison as a unified diff, a context diff, JSON, or an
HTML fragment.

v1.1.0: Context lines around unified/context diff hunks
"""

import html
import json
from typing import List, Optional, Tuple

from config_logging import get_logger, ValidationError, DEFAULT_CONTEXT_LINES
from .differ import WordDiffer, hunk_anchors, split_lines
from .models import ChangeType, ClassifiedHunk, SectionKind, VersionComparison

logger = get_logger('version_compare.exporters')

EXPORT_FORMATS = ('unified', 'context', 'json', 'html')


def _range_header(index: int, count: int) -> str:
    # Empty ranges name the line before the insertion point
    start = index + 1 if count else index
    return f"{start},{count}"


def _context_range(start: int, stop: int) -> str:
    """Context-diff range: 'first,last', a single line number, or the line before an empty range."""
    first, length = start + 1, stop - start
    if not length:
        first -= 1
    if length <= 1:
        return str(first)
    return f"{first},{first + length - 1}"


class HunkGroup:
    """
    Hunks of one section close enough to share their context lines.

    Attributes:
        items: Classified hunks in line order
        anchors: 0-based (old, new) start of each hunk
        old_start / old_stop: 0-based slice of the old text the group covers
        new_start / new_stop: 0-based slice of the new text the group covers
    """

    def __init__(self, items: List[ClassifiedHunk], anchors: List[Tuple[int, int]],
                 context: int, old_total: int):
        self.items = items
        self.anchors = anchors
        first_old, first_new = anchors[0]
        last_old, last_new = anchors[-1]
        last = items[-1].hunk

        leading = min(context, first_old)
        trailing = min(context, old_total - (last_old + last.old_count))
        self.old_start = first_old - leading
        self.new_start = first_new - leading
        self.old_stop = last_old + last.old_count + trailing
        self.new_stop = last_new + last.new_count + trailing

    @property
    def description(self) -> str:
        return '; '.join(item.description for item in self.items)

    def walk(self, old_lines: List[str]):
        """
        Yield (kind, item_or_none, lines) in order: 'context' runs taken from
        the old text between hunks, and 'hunk' entries for each change.
        """
        position = self.old_start
        for item, (old_index, _) in zip(self.items, self.anchors):
            if old_index > position:
                yield 'context', None, old_lines[position:old_index]
            yield 'hunk', item, None
            position = old_index + item.hunk.old_count
        if self.old_stop > position:
            yield 'context', None, old_lines[position:self.old_stop]


def group_hunks(items: List[ClassifiedHunk], old_text: str, context: int) -> List[HunkGroup]:
    """Merge hunks whose context windows touch or overlap."""
    if not items:
        return []
    old_total = len(split_lines(old_text))
    anchors = hunk_anchors([item.hunk for item in items])

    runs: List[Tuple[list, list]] = []
    previous_end = None
    for item, anchor in zip(items, anchors):
        if runs and anchor[0] - previous_end <= 2 * context:
            runs[-1][0].append(item)
            runs[-1][1].append(anchor)
        else:
            runs.append(([item], [anchor]))
        previous_end = anchor[0] + item.hunk.old_count
    return [HunkGroup(group_items, group_anchors, context, old_total)
            for group_items, group_anchors in runs]


def _section_text(comparison: VersionComparison, section: SectionKind) -> str:
    return comparison.from_revision.sections.get(section, "")


class UnifiedExporter:
    """Unified diff text, one file header per changed section."""

    def __init__(self, context_lines: int = DEFAULT_CONTEXT_LINES):
        if context_lines < 0:
            raise ValidationError("context_lines cannot be negative", field='context')
        self.context_lines = context_lines

    def export(self, comparison: VersionComparison) -> str:
        out: List[str] = []
        for section in comparison.sections():
            old_text = _section_text(comparison, section)
            old_lines = split_lines(old_text)
            out.append(f"--- {comparison.from_revision_id}/{section.value}")
            out.append(f"+++ {comparison.to_revision_id}/{section.value}")
            for group in group_hunks(comparison.hunks_for(section), old_text, self.context_lines):
                old_count = group.old_stop - group.old_start
                new_count = group.new_stop - group.new_start
                out.append(f"@@ -{_range_header(group.old_start, old_count)} "
                           f"+{_range_header(group.new_start, new_count)} @@ {group.description}")
                for kind, item, lines in group.walk(old_lines):
                    if kind == 'context':
                        out.extend(f" {line}" for line in lines)
                    else:
                        out.extend(f"-{line}" for line in item.hunk.old_lines())
                        out.extend(f"+{line}" for line in item.hunk.new_lines())
        return '\n'.join(out) + ('\n' if out else '')


class ContextExporter:
    """
    Context diff text: each group shows the old side then the new side,
    with '! ' for modified lines, '- ' removed, '+ ' added, '  ' unchanged.
    """

    def __init__(self, context_lines: int = DEFAULT_CONTEXT_LINES):
        if context_lines < 0:
            raise ValidationError("context_lines cannot be negative", field='context')
        self.context_lines = context_lines

    def export(self, comparison: VersionComparison) -> str:
        out: List[str] = []
        for section in comparison.sections():
            old_text = _section_text(comparison, section)
            old_lines = split_lines(old_text)
            out.append(f"*** {comparison.from_revision_id}/{section.value}")
            out.append(f"--- {comparison.to_revision_id}/{section.value}")
            for group in group_hunks(comparison.hunks_for(section), old_text, self.context_lines):
                out.append("***************")
                out.append(f"*** {_context_range(group.old_start, group.old_stop)} ****")
                if any(item.hunk.old_count for item in group.items):
                    out.extend(self._side(group, old_lines, old_side=True))
                out.append(f"--- {_context_range(group.new_start, group.new_stop)} ----")
                if any(item.hunk.new_count for item in group.items):
                    out.extend(self._side(group, old_lines, old_side=False))
        return '\n'.join(out) + ('\n' if out else '')

    @staticmethod
    def _side(group: HunkGroup, old_lines: List[str], old_side: bool) -> List[str]:
        lines: List[str] = []
        for kind, item, context in group.walk(old_lines):
            if kind == 'context':
                lines.extend(f"  {line}" for line in context)
                continue
            hunk = item.hunk
            if hunk.change_type is ChangeType.MODIFIED:
                marker = '! '
            else:
                marker = '- ' if old_side else '+ '
            changed = hunk.old_lines() if old_side else hunk.new_lines()
            lines.extend(f"{marker}{line}" for line in changed)
        return lines


class JSONExporter:
    """Wire shape of the comparison, pretty-printed."""

    def __init__(self, pretty: bool = True):
        self.pretty = pretty

    def export(self, comparison: VersionComparison) -> str:
        return json.dumps(comparison.to_dict(), indent=2 if self.pretty else None, ensure_ascii=False)


class HTMLExporter:
    """
    HTML fragment for embedding in a review page.

    Whole-line changes are wrapped in vc-line-added / vc-line-removed spans;
    modified hunks get word-level vc-word-added / vc-word-removed spans.
    """

    def __init__(self, word_differ: Optional[WordDiffer] = None):
        self.word_differ = word_differ or WordDiffer()

    def export(self, comparison: VersionComparison) -> str:
        summary = comparison.summary
        parts = [
            f'<div class="vc-comparison" data-comparison-id="{html.escape(comparison.id)}">',
            f'<p class="vc-summary vc-impact-{summary.impact_level.value}">'
            f'{summary.total_changes} change(s): +{summary.additions_count} '
            f'-{summary.deletions_count} ~{summary.modifications_count}'
            f'{" (breaking)" if summary.breaking_changes else ""}</p>',
        ]
        for section in comparison.sections():
            parts.append(f'<section class="vc-section" data-section="{section.value}">')
            parts.append(f'<h3>{html.escape(section.value)}</h3>')
            for item in comparison.hunks_for(section):
                parts.append(self._render_hunk(item))
            parts.append('</section>')
        parts.append('</div>')
        return '\n'.join(parts)

    def _render_hunk(self, item: ClassifiedHunk) -> str:
        hunk = item.hunk
        classes = f"vc-hunk vc-{hunk.change_type.value} vc-severity-{item.severity.value}"
        if item.breaking:
            classes += " vc-breaking"
        body: List[str] = [
            f'<div class="{classes}" data-hunk-id="{html.escape(hunk.id)}" '
            f'title="{html.escape(item.description)}">'
        ]

        if hunk.change_type is ChangeType.MODIFIED:
            old_parts, new_parts = [], []
            for op, text in self.word_differ.segments(hunk):
                escaped = html.escape(text)
                if op == 0:
                    old_parts.append(escaped)
                    new_parts.append(escaped)
                elif op == -1:
                    old_parts.append(f'<span class="vc-word-removed">{escaped}</span>')
                else:
                    new_parts.append(f'<span class="vc-word-added">{escaped}</span>')
            body.append(f'<pre class="vc-old">{"".join(old_parts)}</pre>')
            body.append(f'<pre class="vc-new">{"".join(new_parts)}</pre>')
        else:
            for line in hunk.old_lines():
                body.append(f'<span class="vc-line-removed">{html.escape(line)}</span>')
            for line in hunk.new_lines():
                body.append(f'<span class="vc-line-added">{html.escape(line)}</span>')

        body.append('</div>')
        return '\n'.join(body)


def get_exporter(format_type: str, context_lines: int = DEFAULT_CONTEXT_LINES):
    """Get appropriate exporter for format type."""
    exporters = {
        'unified': UnifiedExporter,
        'diff': UnifiedExporter,
        'context': ContextExporter,
        'json': JSONExporter,
        'html': HTMLExporter,
    }

    exporter_class = exporters.get(str(format_type or '').lower())
    if not exporter_class:
        raise ValidationError(f"Unsupported export format: {format_type}. "
                              f"Must be one of {', '.join(EXPORT_FORMATS)}", field='format')

    if exporter_class in (UnifiedExporter, ContextExporter):
        return exporter_class(context_lines)
    return exporter_class()


def export_comparison(comparison: VersionComparison, fmt: str = 'unified',
                      context_lines: int = DEFAULT_CONTEXT_LINES) -> str:
    """Render a comparison in one of EXPORT_FORMATS."""
    content = get_exporter(fmt, context_lines).export(comparison)
    logger.debug(f"Exported {comparison.id} as {fmt} ({len(content)} chars)",
                 comparison_id=comparison.id, format=fmt)
    return content
