"""
Tests for comparison export
===========================
"""

import json

import pytest

from config_logging import ValidationError
from version_compare.builder import ComparisonBuilder
from version_compare.exporters import ContextExporter, export_comparison, get_exporter, UnifiedExporter
from version_compare.models import Revision


@pytest.fixture
def comparison():
    return ComparisonBuilder().compare(
        Revision(id="r1", version="1.0.0", sections={
            "markup": "<div>\n<p>old</p>\n</div>",
            "logic": "function foo(){}",
        }),
        Revision(id="r2", version="1.0.1", sections={
            "markup": "<div>\n<p>new & improved</p>\n</div>",
            "logic": "function foo(){}\nfunction bar(){}",
        }),
    )


class TestUnifiedExport:
    """Tests for unified diff output."""

    def test_headers_and_lines_without_context(self, comparison):
        text = export_comparison(comparison, 'unified', context_lines=0)
        lines = text.splitlines()
        assert lines[0] == "--- r1/markup"
        assert lines[1] == "+++ r2/markup"
        assert lines[2].startswith("@@ -2,1 +2,1 @@")
        assert lines[3] == "-<p>old</p>"
        assert lines[4] == "+<p>new & improved</p>"
        assert "--- r1/logic" in lines
        assert any(line.startswith("@@ -1,0 +2,1 @@") for line in lines)
        assert "+function bar(){}" in lines

    def test_default_context_lines(self, comparison):
        lines = export_comparison(comparison, 'unified').splitlines()
        assert lines[:7] == [
            "--- r1/markup",
            "+++ r2/markup",
            "@@ -1,3 +1,3 @@ " + comparison.hunks[0].description,
            " <div>",
            "-<p>old</p>",
            "+<p>new & improved</p>",
            " </div>",
        ]
        assert lines[9].startswith("@@ -1,1 +1,2 @@")
        assert lines[10:] == [" function foo(){}", "+function bar(){}"]

    def test_nearby_hunks_share_one_header(self):
        old = "\n".join(["a", "b", "c", "d", "e", "f", "g"])
        new = "\n".join(["A", "b", "c", "d", "e", "f", "G"])
        comparison = ComparisonBuilder().compare(
            Revision(id="r1", version="1.0.0", sections={"logic": old}),
            Revision(id="r2", version="1.0.1", sections={"logic": new}),
        )
        wide = UnifiedExporter(context_lines=3).export(comparison).splitlines()
        assert [line for line in wide if line.startswith("@@")][0].startswith("@@ -1,7 +1,7 @@")
        narrow = UnifiedExporter(context_lines=1).export(comparison).splitlines()
        headers = [line for line in narrow if line.startswith("@@")]
        assert [h.split(" @@")[0] for h in headers] == ["@@ -1,2 +1,2", "@@ -6,2 +6,2"]

    def test_negative_context_rejected(self):
        with pytest.raises(ValidationError):
            UnifiedExporter(context_lines=-1)

    def test_identical_revisions_export_nothing(self):
        revision = Revision(id="r1", version="1.0.0", sections={"logic": "a"})
        comparison = ComparisonBuilder().compare(revision, revision)
        assert UnifiedExporter().export(comparison) == ""


class TestContextExport:
    """Tests for context diff output."""

    def test_modified_and_added_groups(self, comparison):
        lines = export_comparison(comparison, 'context').splitlines()
        assert lines == [
            "*** r1/markup",
            "--- r2/markup",
            "***************",
            "*** 1,3 ****",
            "  <div>",
            "! <p>old</p>",
            "  </div>",
            "--- 1,3 ----",
            "  <div>",
            "! <p>new & improved</p>",
            "  </div>",
            "*** r1/logic",
            "--- r2/logic",
            "***************",
            "*** 1 ****",
            "--- 1,2 ----",
            "  function foo(){}",
            "+ function bar(){}",
        ]

    def test_zero_context_removal(self):
        comparison = ComparisonBuilder().compare(
            Revision(id="r1", version="1.0.0", sections={"logic": "a\nb\nc"}),
            Revision(id="r2", version="1.0.1", sections={"logic": "a\nc"}),
        )
        lines = ContextExporter(context_lines=0).export(comparison).splitlines()
        assert lines[2:] == ["***************", "*** 2 ****", "- b", "--- 1 ----"]


class TestJSONExport:
    """Tests for JSON output."""

    def test_wire_shape(self, comparison):
        data = json.loads(export_comparison(comparison, 'json'))
        assert data == comparison.to_dict()
        assert data['summary']['totalChanges'] == 2


class TestHTMLExport:
    """Tests for HTML output."""

    def test_text_is_escaped(self, comparison):
        html = export_comparison(comparison, 'html')
        assert '<p>old</p>' not in html
        assert '&lt;p&gt;' in html
        assert '&amp;' in html

    def test_change_classes(self, comparison):
        html = export_comparison(comparison, 'html')
        assert 'vc-word-removed' in html
        assert 'vc-word-added' in html
        assert '<span class="vc-line-added">function bar(){}</span>' in html
        assert 'data-hunk-id="logic:0"' in html


class TestFormats:
    """Tests for format selection."""

    def test_unknown_format(self, comparison):
        with pytest.raises(ValidationError):
            export_comparison(comparison, 'xml')

    def test_format_is_case_insensitive(self):
        assert isinstance(get_exporter('UNIFIED'), UnifiedExporter)

    def test_context_lines_passed_to_text_formats(self):
        assert get_exporter('unified', context_lines=5).context_lines == 5
        assert isinstance(get_exporter('context', 1), ContextExporter)
        assert get_exporter('context', 1).context_lines == 1
