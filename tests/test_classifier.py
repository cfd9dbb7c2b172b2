"""
Tests for ChangeClassifier
==========================
Severity policy and the breaking-change heuristic.
"""

import pytest

from version_compare.classifier import ChangeClassifier, mentions, public_symbols
from version_compare.differ import TextDiffer
from version_compare.models import ChangeType, SectionKind, Severity


def _classify(old: str, new: str, section: SectionKind = SectionKind.LOGIC, **kwargs):
    hunks = TextDiffer().diff(old, new, section)
    return ChangeClassifier(**kwargs).classify(hunks, section)


class TestPublicSymbols:
    """Tests for public symbol detection."""

    @pytest.mark.parametrize("text, expected", [
        ("export function foo(){}", ["foo"]),
        ("export default class Widget {}", ["Widget"]),
        ("export async function load() {}", ["load"]),
        ("export const LIMIT = 3;\nexport interface Props {}", ["LIMIT", "Props"]),
        ("exports.run = function () {};", ["run"]),
        ("module.exports.stop = () => {};", ["stop"]),
        ("@Input() label: string;", ["label"]),
        ("@Output() changed = new EventEmitter();", ["changed"]),
        ("export { a, b as c };", ["a", "c"]),
        ("function internal() {}", []),
        ("", []),
    ])
    def test_detects_declarations(self, text, expected):
        assert public_symbols(text) == expected

    def test_duplicates_reported_once(self):
        assert public_symbols("export function foo(){}\nexport { foo };") == ["foo"]

    def test_mentions_is_identifier_bounded(self):
        assert mentions("return foo();", "foo")
        assert not mentions("return fooBar();", "foo")
        assert not mentions("return $foo;", "foo")
        assert mentions("x = a.foo", "foo")


class TestSeverityPolicy:
    """Tests for per-hunk severity."""

    def test_added_is_low(self):
        [item] = _classify("function foo(){}", "function foo(){}\nfunction bar(){}")
        assert item.change_type is ChangeType.ADDED
        assert item.severity is Severity.LOW
        assert not item.breaking

    def test_removed_outside_code_is_low(self):
        [item] = _classify("<p>export function foo</p>", "", SectionKind.MARKUP)
        assert item.severity is Severity.LOW
        assert not item.breaking

    def test_removed_in_code_is_medium(self):
        [item] = _classify("const x = 1;", "", SectionKind.LOGIC)
        assert item.severity is Severity.MEDIUM
        assert not item.breaking

    def test_removed_public_symbol_is_high_and_breaking(self):
        [item] = _classify("export function foo(){}", "")
        assert item.change_type is ChangeType.REMOVED
        assert item.severity is Severity.HIGH
        assert item.breaking
        assert item.removed_symbols == ("foo",)
        assert "'foo'" in item.description

    def test_modified_is_medium(self):
        [item] = _classify("let a = 1;", "let a = 2;")
        assert item.change_type is ChangeType.MODIFIED
        assert item.severity is Severity.MEDIUM

    def test_renamed_export_is_breaking(self):
        [item] = _classify("export function foo(){}", "export function foo2(){}")
        assert item.breaking
        assert item.severity is Severity.HIGH
        assert item.removed_symbols == ("foo",)

    def test_kept_export_is_not_breaking(self):
        [item] = _classify("export function foo(){ return 1; }", "export function foo(){ return 2; }")
        assert not item.breaking
        assert item.severity is Severity.MEDIUM

    def test_types_section_is_code(self):
        [item] = _classify("export interface Props {}", "", SectionKind.TYPES)
        assert item.breaking
        assert item.severity is Severity.HIGH

    def test_styles_section_is_never_breaking(self):
        [item] = _classify("export const x = 1;", "export const y = 1;", SectionKind.STYLES)
        assert not item.breaking
        assert item.severity is Severity.MEDIUM

    def test_large_modification_escalates(self):
        old = "\n".join(f"a{i}" for i in range(21))
        new = "\n".join(f"b{i}" for i in range(21))
        [item] = _classify(old, new)
        assert item.hunk.span == 21
        assert item.severity is Severity.HIGH
        assert not item.breaking

    def test_threshold_is_exclusive(self):
        old = "\n".join(f"a{i}" for i in range(20))
        new = "\n".join(f"b{i}" for i in range(20))
        [item] = _classify(old, new)
        assert item.severity is Severity.MEDIUM

    def test_threshold_is_tunable(self):
        [item] = _classify("a\nb\nc", "x\ny\nz", large_hunk_threshold=2)
        assert item.severity is Severity.HIGH


class TestClassifiedHunk:
    """Tests for the classified wire shape."""

    def test_to_dict_extends_hunk(self):
        [item] = _classify("export function foo(){}", "")
        data = item.to_dict()
        assert data['changeType'] == 'removed'
        assert data['oldRange'] == {'start': 1, 'count': 1}
        assert data['newRange'] is None
        assert data['severity'] == 'high'
        assert data['breaking'] is True
        assert data['removedSymbols'] == ['foo']
