"""
Text Differ v1.2.0
==================
Line-level diff between two section texts, with word-level highlighting
inside modified hunks.

Uses a Myers shortest-edit-script for line alignment and diff-match-patch
for the word-level pass.

v1.1.0: Configurable coalescing of removal/addition runs into modified hunks
v1.2.0: Whitespace- and case-insensitive line matching; newline-terminated hunk text
"""

from typing import List, Tuple, Sequence

import diff_match_patch as dmp_module

from config_logging import get_logger, DEFAULT_COALESCE_GAP
from .models import ChangeType, DiffHunk, LineRange, SectionKind, WordChange, hunk_text

logger = get_logger('version_compare.differ')


def split_lines(text: str) -> List[str]:
    """
    Split section text into lines.

    Empty text has no lines; otherwise every newline separates two lines,
    so a trailing newline yields a final empty line and joining with '\\n'
    restores the text exactly.
    """
    if not text:
        return []
    return text.split('\n')


def join_lines(lines: Sequence[str]) -> str:
    return '\n'.join(lines)


def hunk_anchors(hunks: Sequence[DiffHunk]) -> List[Tuple[int, int]]:
    """
    0-based start positions of each hunk in the old and the new text.

    Added hunks have no old range and removed hunks no new range; their
    position on the missing side follows from the line delta accumulated by
    the preceding hunks of the same section. Hunks must be in section order.
    """
    anchors = []
    delta = 0
    for hunk in hunks:
        if hunk.old_range:
            old_index = hunk.old_range.start - 1
        else:
            old_index = hunk.new_range.start - 1 - delta
        if hunk.new_range:
            new_index = hunk.new_range.start - 1
        else:
            new_index = hunk.old_range.start - 1 + delta
        anchors.append((old_index, new_index))
        delta += hunk.new_count - hunk.old_count
    return anchors


def apply_hunks(old_text: str, hunks: Sequence[DiffHunk]) -> str:
    """
    Replay a section's hunks onto its old text.

    Applying every hunk of diff(a, b) to a reproduces b exactly.
    """
    old_lines = split_lines(old_text)
    result: List[str] = []
    position = 0
    for hunk, (old_index, _) in zip(hunks, hunk_anchors(hunks)):
        result.extend(old_lines[position:old_index])
        result.extend(hunk.new_lines())
        position = old_index + hunk.old_count
    result.extend(old_lines[position:])
    return join_lines(result)


def _shortest_edit(a: Sequence[str], b: Sequence[str]) -> List[Tuple[int, int]]:
    """
    Matched (a_index, b_index) pairs of a Myers shortest edit script.

    Diagonals are followed greedily so matches are taken as early as
    possible; on equal reach the deletion is preferred over the insertion.
    """
    n, m = len(a), len(b)
    if n == 0 or m == 0:
        return []

    frontier = {1: 0}
    trace = []
    for d in range(n + m + 1):
        trace.append(dict(frontier))
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and frontier[k - 1] < frontier[k + 1]):
                x = frontier[k + 1]
            else:
                x = frontier[k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            frontier[k] = x
            if x >= n and y >= m:
                return _backtrack(trace, n, m)
    return []


def _backtrack(trace: List[dict], n: int, m: int) -> List[Tuple[int, int]]:
    matches = []
    x, y = n, m
    for d in range(len(trace) - 1, -1, -1):
        frontier = trace[d]
        k = x - y
        if k == -d or (k != d and frontier[k - 1] < frontier[k + 1]):
            prev_k = k + 1
        else:
            prev_k = k - 1
        prev_x = frontier[prev_k]
        prev_y = prev_x - prev_k
        while x > prev_x and y > prev_y:
            x -= 1
            y -= 1
            matches.append((x, y))
        x, y = prev_x, prev_y
    matches.reverse()
    return matches


def match_lines(old_lines: Sequence[str], new_lines: Sequence[str]) -> List[Tuple[int, int]]:
    """
    Longest common subsequence of two line lists as matched index pairs.

    Common prefix and suffix are matched first. The middle is always solved
    in one canonical orientation, so match_lines(b, a) is the mirror image
    of match_lines(a, b).
    """
    n, m = len(old_lines), len(new_lines)
    prefix = 0
    while prefix < min(n, m) and old_lines[prefix] == new_lines[prefix]:
        prefix += 1
    suffix = 0
    while suffix < min(n, m) - prefix and old_lines[n - 1 - suffix] == new_lines[m - 1 - suffix]:
        suffix += 1

    middle_old = list(old_lines[prefix:n - suffix])
    middle_new = list(new_lines[prefix:m - suffix])
    if middle_old <= middle_new:
        core = _shortest_edit(middle_old, middle_new)
    else:
        core = [(i, j) for j, i in _shortest_edit(middle_new, middle_old)]

    matches = [(i, i) for i in range(prefix)]
    matches.extend((i + prefix, j + prefix) for i, j in core)
    matches.extend((n - suffix + s, m - suffix + s) for s in range(suffix))
    return matches


class TextDiffer:
    """
    Line-level diff engine for one section.

    Produces contiguous added / removed / modified hunks. A removal run and
    an addition run with no unchanged line between them form one modified
    hunk; coalesce_gap widens that to runs separated by up to that many
    unchanged lines (which are then carried on both sides of the hunk).

    With ignore_whitespace or ignore_case, lines are matched on a normalized
    form but hunks always carry the original text. Lines that differ only
    in ignored ways count as unchanged and keep the newer text.
    """

    def __init__(self, coalesce_gap: int = DEFAULT_COALESCE_GAP,
                 ignore_whitespace: bool = False, ignore_case: bool = False):
        """
        Initialize the differ.

        Args:
            coalesce_gap: Unchanged lines allowed between a removal and an
                          addition that still merge into one modified hunk
            ignore_whitespace: Match lines ignoring leading/trailing whitespace
                               and the amount of inner whitespace
            ignore_case: Match lines case-insensitively
        """
        if coalesce_gap < 0:
            raise ValueError("coalesce_gap cannot be negative")
        self.coalesce_gap = coalesce_gap
        self.ignore_whitespace = ignore_whitespace
        self.ignore_case = ignore_case

    def normalize(self, line: str) -> str:
        """Form of a line used for matching."""
        if self.ignore_whitespace:
            line = ' '.join(line.split())
        if self.ignore_case:
            line = line.casefold()
        return line

    def diff(self, old_text: str, new_text: str, section: SectionKind) -> List[DiffHunk]:
        """
        Diff two texts of the same section.

        Args:
            old_text: Section text in the older revision ('' if absent)
            new_text: Section text in the newer revision ('' if absent)
            section: Section both texts belong to

        Returns:
            Hunks in line order; empty when the texts are identical
        """
        if old_text == new_text:
            return []

        old_lines = split_lines(old_text)
        new_lines = split_lines(new_text)
        if self.ignore_whitespace or self.ignore_case:
            matches = match_lines([self.normalize(line) for line in old_lines],
                                  [self.normalize(line) for line in new_lines])
        else:
            matches = match_lines(old_lines, new_lines)
        blocks = self._coalesce(self._change_blocks(matches, len(old_lines), len(new_lines)))

        hunks = []
        for index, (i1, i2, j1, j2) in enumerate(blocks):
            removed, added = i2 - i1, j2 - j1
            if removed and added:
                change_type = ChangeType.MODIFIED
            elif added:
                change_type = ChangeType.ADDED
            else:
                change_type = ChangeType.REMOVED
            hunks.append(DiffHunk(
                id=f"{section.value}:{index}",
                section=section,
                change_type=change_type,
                old_range=LineRange(i1 + 1, removed) if removed else None,
                new_range=LineRange(j1 + 1, added) if added else None,
                old_text=hunk_text(old_lines[i1:i2]),
                new_text=hunk_text(new_lines[j1:j2]),
            ))

        logger.debug(f"Diffed {section.value}: {len(old_lines)} -> {len(new_lines)} lines, "
                     f"{len(hunks)} hunks", section=section.value, hunks=len(hunks))
        return hunks

    def _change_blocks(self, matches: List[Tuple[int, int]], n: int, m: int) -> List[list]:
        """
        Runs of unmatched lines between consecutive matches.

        Each block is [i1, i2, j1, j2, has_removal, has_addition].
        """
        blocks = []
        i = j = 0
        for mi, mj in matches + [(n, m)]:
            if mi > i or mj > j:
                blocks.append([i, mi, j, mj, mi > i, mj > j])
            i, j = mi + 1, mj + 1
        return blocks

    def _coalesce(self, blocks: List[list]) -> List[Tuple[int, int, int, int]]:
        merged: List[list] = []
        for block in blocks:
            if merged:
                last = merged[-1]
                gap = block[0] - last[1]
                has_removal = last[4] or block[4]
                has_addition = last[5] or block[5]
                if gap <= self.coalesce_gap and has_removal and has_addition:
                    last[1], last[3] = block[1], block[3]
                    last[4], last[5] = has_removal, has_addition
                    continue
            merged.append(list(block))
        return [(b[0], b[1], b[2], b[3]) for b in merged]


class WordDiffer:
    """Word-level changes inside modified hunks (diff-match-patch)."""

    def __init__(self, timeout: float = 2.0):
        self.dmp = dmp_module.diff_match_patch()
        self.dmp.Diff_Timeout = timeout  # Max seconds per diff
        self.dmp.Diff_EditCost = 4

    def changes(self, hunk: DiffHunk) -> List[WordChange]:
        """
        Word changes between a modified hunk's old and new text.

        Added and removed hunks are whole-line changes and yield nothing.
        A deletion immediately followed by an insertion is paired into one change.
        """
        if hunk.change_type is not ChangeType.MODIFIED:
            return []

        diffs = self.dmp.diff_main(hunk.old_text, hunk.new_text)
        self.dmp.diff_cleanupSemantic(diffs)

        changes: List[WordChange] = []
        offset = 0
        paired = False
        for op, text in diffs:
            if op == 0:  # Equal
                offset += len(text)
                paired = False
            elif op == -1:  # Deletion
                changes.append(WordChange(
                    id=f"{hunk.id}/w{len(changes)}",
                    hunk_id=hunk.id,
                    old_text=text,
                    new_text='',
                    offset=offset,
                ))
                offset += len(text)
                paired = True
            elif op == 1:  # Insertion
                if paired:
                    changes[-1].new_text = text
                    paired = False
                else:
                    changes.append(WordChange(
                        id=f"{hunk.id}/w{len(changes)}",
                        hunk_id=hunk.id,
                        old_text='',
                        new_text=text,
                        offset=offset,
                    ))
        return changes

    def segments(self, hunk: DiffHunk) -> List[Tuple[int, str]]:
        """Raw (op, text) segments after semantic cleanup, for rendering."""
        diffs = self.dmp.diff_main(hunk.old_text, hunk.new_text)
        self.dmp.diff_cleanupSemantic(diffs)
        return [(op, text) for op, text in diffs]
